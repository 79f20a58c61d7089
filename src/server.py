"""Protean Engine runner for the procurement domain.

Starts Engine workers that process events asynchronously when the
``production`` overlay switches event processing to async:
- OutboxProcessor: polls the outbox table and publishes order events
- StreamSubscriptions: invokes projectors and the notification trigger

The confirmation-timer scanner is a separate loop, see ``scheduler.py``.

Usage:
    python src/server.py
    python src/server.py --test-mode   # Drain pending work and exit
"""

import argparse
import asyncio

from protean.server.engine import Engine


def _get_domain():
    """Import and initialize the procurement domain."""
    from procurement.domain import procurement

    procurement.init()
    return procurement


async def run(test_mode: bool = False):
    engine = Engine(_get_domain(), test_mode=test_mode)
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="Procurement Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    asyncio.run(run(test_mode=args.test_mode))


if __name__ == "__main__":
    main()
