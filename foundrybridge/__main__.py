"""
FoundryBridge CLI entry point.

Connects to the configured FoundryVTT server and prints query results as JSON.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import BaseModel

from foundrybridge import __version__
from foundrybridge.config.logging import get_logger, setup_logging
from foundrybridge.config.settings import Settings, load_settings
from foundrybridge.foundry import Collection, FoundryClient, FoundryError


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="foundrybridge",
        description="Query a FoundryVTT world from the command line",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"FoundryBridge {__version__}",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Config command
    subparsers.add_parser(
        "config",
        help="Show current configuration",
    )

    # Status command
    subparsers.add_parser(
        "status",
        help="Connect and show world info plus collection counts",
    )

    # Search command
    search_parser = subparsers.add_parser(
        "search",
        help="Search a collection by name",
    )
    search_parser.add_argument(
        "collection",
        choices=[c.value for c in Collection],
        help="Collection to search",
    )
    search_parser.add_argument(
        "query",
        nargs="?",
        default="",
        help="Case-insensitive name substring (default: match everything)",
    )
    search_parser.add_argument(
        "--type",
        default=None,
        help='Only documents of this type, e.g. "npc" or "weapon"',
    )
    search_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum results (default: SEARCH__DEFAULT_LIMIT from config)",
    )

    # Get command
    get_parser = subparsers.add_parser(
        "get",
        help="Show one document by id",
    )
    get_parser.add_argument(
        "collection",
        choices=[c.value for c in Collection],
        help="Collection holding the document",
    )
    get_parser.add_argument("document_id", help="Document _id")

    # Scene and combat commands
    subparsers.add_parser("scene", help="Show the active scene")
    subparsers.add_parser("combat", help="Show the active combat in initiative order")

    # Roll command
    roll_parser = subparsers.add_parser(
        "roll",
        help="Roll dice, e.g. 2d6+3",
    )
    roll_parser.add_argument("formula", help="Dice formula")
    roll_parser.add_argument(
        "--reason",
        default=None,
        help="Label for the roll",
    )

    return parser


def _print_json(value) -> None:
    if isinstance(value, BaseModel):
        print(value.model_dump_json(indent=2))
    else:
        print(json.dumps(value, indent=2, default=str))


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)
    foundry = settings.foundry

    logger.info("\n=== FoundryBridge Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nFoundry URL: {foundry.url or 'Not set'}")
    logger.info(f"Mode: {'REST API' if foundry.api_key else 'Socket.IO'}")
    logger.info(f"User: {foundry.user_id or foundry.username or 'Not set'}")
    logger.info(f"Password: {'Set' if foundry.password else 'Not set'}")
    logger.info(f"API Key: {'Set' if foundry.api_key else 'Not set'}")
    logger.info(f"Timeouts: http={foundry.timeout}s join={foundry.join_timeout}s "
                f"world={foundry.world_timeout}s")
    logger.info(f"Retries: {foundry.retry_attempts} (base delay {foundry.retry_delay}s)")
    logger.info(f"\nSearch Limits: default={settings.search.default_limit} "
                f"max={settings.search.max_limit}")

    return 0


async def cmd_status(args, settings: Settings) -> int:
    """Connect and print world info and collection counts."""
    async with FoundryClient(settings.foundry, settings.search) as client:
        _print_json({
            "mode": client.mode,
            "connected": client.is_connected(),
            "world": client.world_info().model_dump(),
            "counts": client.summary(),
        })
    return 0


async def cmd_search(args, settings: Settings) -> int:
    """Search one collection."""
    async with FoundryClient(settings.foundry, settings.search) as client:
        _print_json(client.search(args.collection, args.query, args.type, args.limit))
    return 0


async def cmd_get(args, settings: Settings) -> int:
    """Print one raw document."""
    async with FoundryClient(settings.foundry, settings.search) as client:
        _print_json(client.get(args.collection, args.document_id))
    return 0


async def cmd_scene(args, settings: Settings) -> int:
    """Print the active scene."""
    async with FoundryClient(settings.foundry, settings.search) as client:
        _print_json(client.get_active_scene())
    return 0


async def cmd_combat(args, settings: Settings) -> int:
    """Print the active combat."""
    async with FoundryClient(settings.foundry, settings.search) as client:
        _print_json(client.get_active_combat())
    return 0


async def cmd_roll(args, settings: Settings) -> int:
    """Roll dice on the server when possible, locally otherwise."""
    client = FoundryClient(settings.foundry, settings.search)
    try:
        _print_json(await client.roll_dice(args.formula, args.reason))
    finally:
        await client.disconnect()
    return 0


COMMANDS = {
    "status": cmd_status,
    "search": cmd_search,
    "get": cmd_get,
    "scene": cmd_scene,
    "combat": cmd_combat,
    "roll": cmd_roll,
}


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    # Setup logging
    setup_logging(settings)
    logger = get_logger(__name__)

    # Execute command
    if args.command == "config":
        return cmd_config(settings)
    if args.command in COMMANDS:
        try:
            return asyncio.run(COMMANDS[args.command](args, settings))
        except (FoundryError, ValueError) as e:
            logger.error(f"{args.command} failed: {e}")
            return 1

    # Default: show help
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
