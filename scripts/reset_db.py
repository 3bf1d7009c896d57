"""Drop and recreate all AgentMart tables in the configured database."""

from __future__ import annotations

import argparse
import asyncio
import sys

from agentmart.config import settings
from agentmart.database import dispose_engine, drop_db, init_db
from agentmart.models import *  # noqa: F401, F403


async def _reset_db() -> None:
    print("Dropping all tables...")
    await drop_db()
    print("Creating all tables...")
    await init_db()
    await dispose_engine()
    print("Database reset complete.")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reset the local AgentMart database.")
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    if settings.environment.lower() in {"production", "prod"}:
        print("Refusing to reset a production database.", file=sys.stderr)
        return 1
    if not args.yes:
        answer = input(f"Reset {settings.database_url}? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted.")
            return 1
    asyncio.run(_reset_db())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
