"""Confirmation-timer scanner for the procurement domain.

Periodically fires confirmation timers whose deadline has passed. The loop
holds no timer state of its own: every pass re-reads scheduled timers from
storage, and startup first recreates any timer missing for an open handover.
Running several scanners is safe because auto-completion only acts on a
handover that is still open.

Usage:
    python src/scheduler.py                 # Scan every 60 seconds
    python src/scheduler.py --interval 15   # Scan every 15 seconds
    python src/scheduler.py --once          # Single pass, then exit

The interval can also be set with CONFIRMATION_SCAN_INTERVAL.
"""

import argparse
import os
import time

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL = 60.0


def _get_domain():
    from procurement.domain import procurement

    procurement.init()
    return procurement


def resync(domain) -> int:
    from procurement.order.auto_completion import ResyncConfirmationTimers

    with domain.domain_context():
        return domain.process(ResyncConfirmationTimers(), asynchronous=False)


def scan_once(domain) -> dict:
    from procurement.order.auto_completion import fire_due_timers

    with domain.domain_context():
        return fire_due_timers()


def run(interval: float, once: bool = False) -> None:
    domain = _get_domain()
    recreated = resync(domain)
    logger.info("Confirmation scanner started", interval=interval, recreated_timers=recreated)

    while True:
        try:
            result = scan_once(domain)
            if result and result.get("fired"):
                logger.info("Confirmation timers fired", **result)
        except Exception as exc:
            # A failed pass is retried on the next tick; timers stay scheduled.
            logger.error("Confirmation scan failed", error=str(exc))
        if once:
            return
        time.sleep(interval)


def main():
    parser = argparse.ArgumentParser(description="Procurement confirmation-timer scanner")
    parser.add_argument(
        "--interval",
        type=float,
        default=float(os.environ.get("CONFIRMATION_SCAN_INTERVAL", DEFAULT_INTERVAL)),
        help="Seconds between scans (default: 60)",
    )
    parser.add_argument("--once", action="store_true", help="Run a single scan and exit")
    args = parser.parse_args()

    try:
        run(args.interval, once=args.once)
    except KeyboardInterrupt:
        logger.info("Confirmation scanner stopped")


if __name__ == "__main__":
    main()
