"""Protean Engine runner for Dockside domains.

Starts Engine workers that process events asynchronously:
- OutboxProcessor: polls the outbox table and publishes committed events
- StreamSubscriptions: invokes projectors and event handlers

The notifications engine is what delivers Receiving's ticket events to
TicketEventsHandler, after the verification transaction has committed.

Usage:
    python src/server.py                          # Run both domain engines
    python src/server.py --domain receiving       # Run only the receiving engine
    python src/server.py --domain notifications   # Run only the notifications engine
"""

import argparse
import asyncio

from protean.server.engine import Engine

DOMAIN_NAMES = ["receiving", "notifications"]


def _get_domain(name):
    """Import and initialize a domain by name."""
    if name == "receiving":
        from receiving.domain import receiving

        receiving.init()
        return receiving
    elif name == "notifications":
        from notifications.domain import notifications

        notifications.init()
        return notifications
    else:
        raise ValueError(f"Unknown domain: {name}")


async def run(domain_names):
    engines = [Engine(_get_domain(name)) for name in domain_names]
    await asyncio.gather(*(engine.run() for engine in engines))


def main():
    parser = argparse.ArgumentParser(description="Dockside Engine runner")
    parser.add_argument(
        "--domain",
        choices=DOMAIN_NAMES,
        help="Run a single domain engine (default: run all)",
    )
    args = parser.parse_args()

    domain_names = [args.domain] if args.domain else DOMAIN_NAMES

    asyncio.run(run(domain_names))


if __name__ == "__main__":
    main()
