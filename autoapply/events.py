"""Append-only, ordered record of orchestrator activity."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger("autoapply.events")


class Subsystem(str, Enum):
    ORCHESTRATOR = "ORCHESTRATOR"
    DISCOVERY = "DISCOVERY"
    EXTRACTION = "EXTRACTION"
    MATCHING = "MATCHING"
    SUBMISSION = "SUBMISSION"
    SCHEDULER = "SCHEDULER"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class LogEvent:
    seq: int
    timestamp: datetime
    subsystem: Subsystem
    message: str
    severity: Severity

    def to_dict(self) -> dict:
        return {
            "seq": self.seq,
            "timestamp": self.timestamp.isoformat(),
            "subsystem": self.subsystem.value,
            "message": self.message,
            "severity": self.severity.value,
        }


class EventLog:
    """Insertion-ordered event sequence.

    Appends and reads may come from different threads; readers always get
    an immutable snapshot so they never observe a half-written entry.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._events: list[LogEvent] = []

    def append(self, subsystem: Subsystem, message: str, severity: Severity = Severity.INFO) -> LogEvent:
        with self._lock:
            event = LogEvent(
                seq=len(self._events) + 1,
                timestamp=datetime.now(timezone.utc),
                subsystem=Subsystem(subsystem),
                message=message,
                severity=Severity(severity),
            )
            self._events.append(event)

        logger.log(_LOG_LEVELS[event.severity], "[%s] %s", event.subsystem.value, message)
        return event

    def info(self, subsystem: Subsystem, message: str) -> LogEvent:
        return self.append(subsystem, message, Severity.INFO)

    def success(self, subsystem: Subsystem, message: str) -> LogEvent:
        return self.append(subsystem, message, Severity.SUCCESS)

    def warning(self, subsystem: Subsystem, message: str) -> LogEvent:
        return self.append(subsystem, message, Severity.WARNING)

    def error(self, subsystem: Subsystem, message: str) -> LogEvent:
        return self.append(subsystem, message, Severity.ERROR)

    def snapshot(self) -> tuple[LogEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def since(self, seq: int = 0, subsystem: Optional[Subsystem] = None) -> list[LogEvent]:
        """Events with a sequence number greater than ``seq``, optionally for one subsystem."""
        events = self.snapshot()[max(seq, 0):]
        if subsystem is not None:
            events = tuple(e for e in events if e.subsystem == subsystem)
        return list(events)

    def last(self) -> Optional[LogEvent]:
        with self._lock:
            return self._events[-1] if self._events else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self):
        return iter(self.snapshot())
