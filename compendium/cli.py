"""
Command line front end for the Compendium sync client.

Usage:
    python -m compendium --code ABCD-1234      # connect with a code from the bot
    python -m compendium --status              # show user, guild and tech levels
    python -m compendium --alt Twink --set 42 3
    python -m compendium --logout
"""

import argparse
import asyncio
import json
import logging
import sys

from .config import get_settings
from .errors import CompendiumError
from .events import EventKind
from .session import Compendium
from .storage import SQLiteStore
from .tech import get_tech_from_index

logger = logging.getLogger("compendium.cli")


def print_status(session: Compendium) -> None:
    """Print the current session state."""
    user = session.get_user()
    guild = session.get_guild()

    print("\n=== Compendium Status ===")
    if user is None:
        print("Not connected")
        return

    print(f"User: {user.username} ({user.id})")
    if guild is not None:
        print(f"Guild: {guild.name} ({guild.id})")
    print(f"Profile: {session.selected_profile}")

    levels = session.get_tech_levels() or {}
    if not levels:
        print("No tech levels recorded")
    for tech_id, record in sorted(levels.items()):
        name = get_tech_from_index(tech_id) or "?"
        print(f"  {tech_id:>4} {name:<24} {record.level}")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    session = Compendium(store=SQLiteStore(settings.storage_path), settings=settings)
    session.on(EventKind.CONNECT_FAILED, lambda message: print(f"Connection failed: {message}"))

    async with session:
        if args.logout:
            session.logout()
            print("Logged out")
            return 0

        if args.code:
            identity = await session.check_connect_code(args.code)
            answer = input(f"Connect as {identity.user.username} in {identity.guild.name}? [y/N] ")
            if answer.strip().lower() != "y":
                print("Cancelled")
                return 1
            await session.connect(identity)
            print("Connected!")

        if args.alt:
            task = session.switch_alt(args.alt)
            if task is not None:
                await task

        if args.set:
            tech_id, level = args.set
            await session.set_tech_level(tech_id, level)
            print(f"Set {get_tech_from_index(tech_id)} to {level}")

        if args.sync:
            await session.sync_profile(session.selected_profile, "sync")
            print("Synced")

        if args.corps:
            corporations = await session.get_user_corporations()
            print(json.dumps(corporations, indent=2))

        if args.status:
            print_status(session)

    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Compendium tech level sync client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--code", help="Connect using a code from the Compendium bot")
    parser.add_argument("--alt", help="Select a profile (alt) by name")
    parser.add_argument(
        "--set",
        nargs=2,
        type=int,
        metavar=("TECH_ID", "LEVEL"),
        help="Set a tech level on the selected profile",
    )
    parser.add_argument("--sync", action="store_true", help="Sync the selected profile now")
    parser.add_argument("--corps", action="store_true", help="List your corporations")
    parser.add_argument("--status", action="store_true", help="Show session status")
    parser.add_argument("--logout", action="store_true", help="Disconnect and clear local data")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    args = parser.parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else get_settings().log_level
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        sys.exit(asyncio.run(run(args)))
    except CompendiumError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)
