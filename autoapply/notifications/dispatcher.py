"""Two-tier outbound delivery: autonomous relay POST, falling back to a local mailto handoff."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from urllib.parse import quote

import requests

from autoapply.errors import DispatchFailure

logger = logging.getLogger("autoapply.notifications")

_SUBJECT_LINE = re.compile(r"^\s*Subject:[^\n]*(?:\n|$)", re.IGNORECASE)
_ADDRESS = re.compile(r"^[^@\s<>,;:?&\"]+@[^@\s<>,;:?&\"]+\.[^@\s<>,;:?&\".]+$")

HANDOFF_ATTACHMENT_NOTE = "Local handoff cannot embed files; attach these manually before sending"


class DispatchMode(str, Enum):
    RELAY = "relay"
    LOCAL_HANDOFF = "local_handoff"


@dataclass
class DispatchResult:
    mode: DispatchMode
    handoff_uri: Optional[str] = None
    manual_attachments: list[str] = field(default_factory=list)
    relay_error: Optional[str] = None

    @property
    def requires_operator_action(self) -> bool:
        return self.mode == DispatchMode.LOCAL_HANDOFF

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "handoff_uri": self.handoff_uri,
            "manual_attachments": list(self.manual_attachments),
            "relay_error": self.relay_error,
            "requires_operator_action": self.requires_operator_action,
        }


def sanitize_body(body: str) -> str:
    """Drop a leading "Subject: ..." line a draft may have included by mistake."""
    return _SUBJECT_LINE.sub("", body or "", count=1).strip()


def is_valid_address(address: str) -> bool:
    return bool(address) and bool(_ADDRESS.match(address.strip()))


def build_handoff_uri(to: str, subject: str, body: str) -> str:
    """Pre-filled mailto URI for the operator's own mail client."""
    if not is_valid_address(to or ""):
        raise DispatchFailure(f"Cannot build a handoff for malformed recipient {to!r}")
    return (
        f"mailto:{quote(to.strip(), safe='@')}"
        f"?subject={quote(subject or '', safe='')}"
        f"&body={quote(body or '', safe='')}"
    )


class DispatchGateway:
    """Send a message through the relay when configured, else hand it off locally.

    The relay POST counts as successful once submitted; its delivery cannot be
    observed synchronously. ``send`` only raises DispatchFailure when the relay
    is unavailable and the handoff cannot be built either.
    """

    def __init__(self, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Optional[list[str]] = None,
        relay_endpoint: Optional[str] = None,
        cover_letter: Optional[str] = None,
    ) -> DispatchResult:
        attachments = list(attachments or [])
        clean_body = sanitize_body(body)
        relay_error = None

        if relay_endpoint:
            payload = {
                "to": to,
                "subject": subject,
                "body": clean_body,
                "attachments": attachments,
            }
            if cover_letter:
                payload["coverLetter"] = cover_letter
            try:
                self.session.post(relay_endpoint, json=payload, timeout=self.timeout)
                logger.info("Relay accepted message to %s: %s", to, subject)
                return DispatchResult(mode=DispatchMode.RELAY)
            except requests.RequestException as e:
                relay_error = f"{type(e).__name__}: {e}"
                logger.warning("Relay submission failed, falling back to local handoff: %s", relay_error)

        handoff_uri = build_handoff_uri(to, subject, clean_body)
        if attachments:
            logger.info("%s: %s", HANDOFF_ATTACHMENT_NOTE, ", ".join(attachments))

        return DispatchResult(
            mode=DispatchMode.LOCAL_HANDOFF,
            handoff_uri=handoff_uri,
            manual_attachments=attachments,
            relay_error=relay_error,
        )
