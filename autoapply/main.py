"""CLI entry point - serve the API with the background scheduler, or run/inspect one cycle."""

import argparse
import logging
import sys

from autoapply.config import AppConfig, load_config, validate_config
from autoapply.orchestrator import Orchestrator
from autoapply.utils.logging_config import setup_logging

logger = logging.getLogger("autoapply")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="AutoApply - scheduled job discovery, matching and application dispatch",
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="Path to config file (default: config.yaml)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--serve", action="store_true",
        help="Run the HTTP API with the scheduler in the background (default)",
    )
    mode.add_argument(
        "--run-once", action="store_true",
        help="Run one discovery cycle now and exit",
    )
    mode.add_argument(
        "--status", action="store_true",
        help="Print checkpoint, next cycle and job counts, then exit",
    )
    parser.add_argument("--host", default="127.0.0.1", help="API bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="API port (default: 8000)")
    return parser.parse_args(argv)


def print_status(orchestrator: Orchestrator):
    """Print a human-readable summary of the orchestrator state."""
    stats = orchestrator.stats()
    status = orchestrator.schedule_status()
    print("\n=== AutoApply Status ===")
    print(f"Checkpoint:          {status['checkpoint']}")
    print(f"Next cycle:          {status['next_cycle_at']}")
    print(f"Persisted:           {status['checkpoint_persisted']}")
    print(f"Total jobs:          {stats['total_jobs']}")
    for name, count in stats["by_status"].items():
        print(f"  {name:<12} {count}")
    if stats["average_match_score"] is not None:
        print(f"Average match score: {stats['average_match_score']}%")
    if stats["total_runs"] is not None:
        print(f"Total cycles:        {stats['total_runs']} ({stats['failed_runs']} failed)")

    last = stats["last_cycle"]
    if last:
        print(f"\nLast cycle: {last['run_at']} ({last['trigger']})")
        print(f"  Success:  {last['success']}")
        print(f"  Found:    {last['jobs_discovered']}, new: {last['new_jobs_added']}")
        if last["error_message"]:
            print(f"  Error:    {last['error_message']}")
    print()


def run_once(orchestrator: Orchestrator) -> bool:
    report = orchestrator.trigger_manual_cycle()
    if report.success:
        logger.info("Cycle complete: %d discovered, %d new, digest via %s",
                    report.discovered, report.added, report.digest_mode)
        if report.handoff_uri:
            print(f"Digest ready for your mail client:\n{report.handoff_uri}")
    else:
        logger.error("Cycle failed: %s", report.error)
    return report.success


def serve(orchestrator: Orchestrator, host: str, port: int):
    import uvicorn

    from autoapply.web.app import create_app

    uvicorn.run(create_app(orchestrator), host=host, port=port, log_config=None)


def build_orchestrator(config: AppConfig) -> Orchestrator:
    return Orchestrator(config)


def main(argv=None):
    args = parse_args(argv)

    # Load config
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config.log_dir)

    # Validate config and print warnings
    warnings = validate_config(config)
    for w in warnings:
        logger.warning("Config: %s", w)

    orchestrator = build_orchestrator(config)

    if args.status:
        print_status(orchestrator)
        return

    if args.run_once:
        if not run_once(orchestrator):
            sys.exit(1)
        return

    serve(orchestrator, args.host, args.port)


if __name__ == "__main__":
    main()
