"""
Transfer Sync - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point for the transfer sync pipeline.

- Lists the scheduled tasks
- Runs one task, or all of them, once
- Serves the cron scheduler
- Creates the store tables and rewinds cursors
- Shows stored cursors and transfer counts

============================================================
USAGE
============================================================
python -m transfer_sync.cli --list
python -m transfer_sync.cli --init-db
python -m transfer_sync.cli --run solana-sync-transfers-bitquery
python -m transfer_sync.cli --run-all --log-format json
python -m transfer_sync.cli --serve
python -m transfer_sync.cli --status
python -m transfer_sync.cli --reset-cursor base cdp 0xabc... 0x8335...

============================================================
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from database.engine import DatabasePersistenceError, create_all_tables, verify_database_connection
from transfer_sync.config import TransferSyncSettings, get_settings
from transfer_sync.exceptions import NormalizationError
from transfer_sync.logging_config import setup_logging
from transfer_sync.models import Chain, CursorKey, Provider, SyncTask
from transfer_sync.normalizer import normalize_address
from transfer_sync.orchestrator import SyncOrchestrator
from transfer_sync.providers.registry import build_default_registry
from transfer_sync.registry import FacilitatorRegistry, get_registry
from transfer_sync.scheduler import SyncScheduler
from transfer_sync.sink import PersistenceSink
from transfer_sync.sync_configs import SYNC_CONFIGS, build_tasks


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="transfer-sync",
        description="Sync facilitator payment transfers into the transfer store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --list                                   # Show scheduled tasks
  %(prog)s --run base-sync-transfers-cdp-coinbase   # Run one task once
  %(prog)s --run-all                                # Run every task once
  %(prog)s --serve                                  # Run the cron scheduler
  %(prog)s --status                                 # Show cursors and stored counts
        """
    )

    # --------------------------------------------------------
    # Commands
    # --------------------------------------------------------
    commands = parser.add_mutually_exclusive_group(required=True)

    commands.add_argument(
        "--list",
        action="store_true",
        help="List scheduled tasks and exit",
    )

    commands.add_argument(
        "--run",
        type=str,
        metavar="TASK_ID",
        help="Run a single task once",
    )

    commands.add_argument(
        "--run-all",
        action="store_true",
        help="Run every task once, concurrently",
    )

    commands.add_argument(
        "--serve",
        action="store_true",
        help="Start the cron scheduler and run until interrupted",
    )

    commands.add_argument(
        "--status",
        action="store_true",
        help="Show stored cursors and transfer counts, then exit",
    )

    commands.add_argument(
        "--init-db",
        action="store_true",
        help="Create the transfer store tables",
    )

    commands.add_argument(
        "--reset-cursor",
        nargs=4,
        metavar=("CHAIN", "PROVIDER", "ADDRESS", "TOKEN"),
        help="Delete the cursor for one key so its next run starts over",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=None,
        help="Logging format (default: LOG_FORMAT or text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []

    if args.reset_cursor:
        chain, provider, address, token = args.reset_cursor
        if chain not in {c.value for c in Chain}:
            errors.append(f"Unknown chain: {chain}")
        if provider not in {p.value for p in Provider}:
            errors.append(f"Unknown provider: {provider}")
        if not errors:
            for label, value in (("address", address), ("token", token)):
                try:
                    normalize_address(Chain(chain), value, label)
                except NormalizationError as e:
                    errors.append(e.message)

    return errors


def parse_cursor_key(values: List[str]) -> CursorKey:
    """CursorKey from the four --reset-cursor values, addresses canonicalized."""
    chain_value, provider_value, address, token = values
    chain = Chain(chain_value)
    return CursorKey(
        chain=chain,
        provider=Provider(provider_value),
        facilitator_address=normalize_address(chain, address),
        token_address=normalize_address(chain, token, "token"),
    )


# ============================================================
# COMMANDS
# ============================================================

def show_tasks(tasks: List[SyncTask], registry: FacilitatorRegistry) -> None:
    """Print scheduled tasks."""
    print(f"\nScheduled sync tasks ({len(tasks)})")
    print("=" * 78)

    for task in tasks:
        config = task.sync_config
        facilitators = [
            f for f in registry.configs_for_chain(config.chain)
            if task.facilitator_ids is None or f.id in task.facilitator_ids
        ]
        lanes = sum(len(f.addresses) for f in facilitators)
        print(
            f"  {task.task_id:48s} {config.cron:14s} "
            f"{config.max_duration_seconds:4d}s  {lanes:2d} lanes  "
            f"{config.pagination.mode.value}"
        )

    print()


def show_status(sink: PersistenceSink) -> None:
    """Print stored cursors with their last update, then transfer counts per facilitator."""
    cursors = sink.cursor_status()
    print(f"\nSync cursors ({len(cursors)})")
    print("=" * 78)

    for entry in cursors:
        print(
            f"  {entry['chain']:8s} {entry['provider']:9s} {entry['facilitator_address']:44s} "
            f"{entry['kind']}={entry['value']}  updated {entry['updated_at']}"
        )

    counts = sink.event_counts()
    print(f"\nStored transfers ({sum(counts.values())})")
    print("=" * 78)

    for facilitator_id, total in sorted(counts.items()):
        print(f"  {facilitator_id:24s} {total:10d}")

    print()


async def run_tasks(orchestrator: SyncOrchestrator, tasks: List[SyncTask]) -> int:
    """Run `tasks` once, concurrently; 0 if none failed."""
    results = await asyncio.gather(*(orchestrator.run(task) for task in tasks))
    for result in results:
        logger.info(
            f"{result.task_id}: {result.status.value} "
            f"({result.events_saved} saved, {result.pages_processed} pages)"
        )
    return 0 if all(result.success for result in results) else 1


async def serve(orchestrator: SyncOrchestrator, tasks: List[SyncTask]) -> int:
    """Run the cron scheduler until cancelled."""
    scheduler = SyncScheduler(orchestrator, tasks)
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
    return 0


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace, settings: TransferSyncSettings) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    registry = get_registry()
    tasks = build_tasks(SYNC_CONFIGS, registry)
    providers = build_default_registry(settings)
    orchestrator = SyncOrchestrator(
        registry=registry,
        providers=providers,
        sink=PersistenceSink(),
        settings=settings,
    )

    try:
        if args.run:
            selected = [task for task in tasks if task.task_id == args.run]
            if not selected:
                logger.error(f"Unknown task: {args.run}")
                return 1
            return await run_tasks(orchestrator, selected)

        if args.run_all:
            return await run_tasks(orchestrator, tasks)

        return await serve(orchestrator, tasks)
    finally:
        await providers.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    settings = get_settings()
    setup_logging(args.log_level or settings.log_level, args.log_format or settings.log_format)

    if args.list:
        show_tasks(build_tasks(SYNC_CONFIGS, get_registry()), get_registry())
        return 0

    try:
        if args.init_db:
            verify_database_connection()
            create_all_tables()
            return 0

        if args.reset_cursor:
            PersistenceSink().reset_cursor(parse_cursor_key(args.reset_cursor))
            return 0

        if args.status:
            show_status(PersistenceSink())
            return 0

        return asyncio.run(async_main(args, settings))

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130
    except DatabasePersistenceError as e:
        logging.error(f"Database error: {e}")
        return 1
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
