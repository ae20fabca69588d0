"""
Tests for the Transfer Sync CLI.

Tests cover:
- Argument parsing and validation
- Cursor key parsing
- Task listing
- Early exit on invalid arguments
- Logging setup
"""

import json
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from transfer_sync.cli import (
    create_parser,
    main,
    parse_cursor_key,
    run_tasks,
    show_status,
    show_tasks,
    validate_args,
)
from transfer_sync.facilitators import USDC_BASE_TOKEN
from transfer_sync.logging_config import setup_logging
from transfer_sync.models import (
    Chain,
    CursorKey,
    LaneResult,
    Provider,
    RunStatus,
    SyncRunResult,
    TimestampCursor,
    TransferEventData,
)
from transfer_sync.registry import get_registry
from transfer_sync.sync_configs import SYNC_CONFIGS, build_tasks


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
FACILITATOR = "0xDBDF3D8ED80F84C35D01C6C9F9271761BAD90BA6"


# =============================================================
# TEST: Parser
# =============================================================

class TestParser:
    """Argument parsing."""

    def test_a_command_is_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_commands_are_exclusive(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--list", "--run-all"])

    def test_run_takes_task_id(self):
        args = create_parser().parse_args(["--run", "solana-sync-transfers-bitquery", "--log-format", "json"])
        assert args.run == "solana-sync-transfers-bitquery"
        assert args.log_format == "json"
        assert args.log_level is None

    def test_reset_cursor_takes_four_values(self):
        args = create_parser().parse_args(
            ["--reset-cursor", "base", "cdp", FACILITATOR, USDC_BASE_TOKEN.address]
        )
        assert args.reset_cursor == ["base", "cdp", FACILITATOR, USDC_BASE_TOKEN.address]

    def test_status_is_a_command(self):
        args = create_parser().parse_args(["--status"])
        assert args.status is True
        assert args.run is None


# =============================================================
# TEST: Validation
# =============================================================

class TestValidation:
    """validate_args and parse_cursor_key."""

    def _args(self, *argv):
        return create_parser().parse_args(list(argv))

    def test_valid_reset(self):
        args = self._args("--reset-cursor", "base", "cdp", FACILITATOR, USDC_BASE_TOKEN.address)
        assert validate_args(args) == []

    def test_unknown_chain_and_provider(self):
        args = self._args("--reset-cursor", "ethereum", "alchemy", FACILITATOR, USDC_BASE_TOKEN.address)
        errors = validate_args(args)
        assert "Unknown chain: ethereum" in errors
        assert "Unknown provider: alchemy" in errors

    def test_bad_address(self):
        args = self._args("--reset-cursor", "base", "cdp", "0x123", USDC_BASE_TOKEN.address)
        assert len(validate_args(args)) == 1

    def test_other_commands_need_no_validation(self):
        assert validate_args(self._args("--list")) == []

    def test_parse_cursor_key_canonicalizes(self):
        key = parse_cursor_key(["base", "cdp", FACILITATOR, USDC_BASE_TOKEN.address.upper().replace("0X", "0x")])

        assert key.chain == Chain.BASE
        assert key.provider == Provider.CDP
        assert key.facilitator_address == FACILITATOR.lower()
        assert key.token_address == USDC_BASE_TOKEN.address

    def test_main_rejects_invalid_args_before_doing_anything(self, capsys):
        code = main(["--reset-cursor", "ethereum", "cdp", FACILITATOR, USDC_BASE_TOKEN.address])

        assert code == 1
        assert "Unknown chain: ethereum" in capsys.readouterr().err


# =============================================================
# TEST: Commands
# =============================================================

class TestCommands:
    """show_tasks, show_status and run_tasks."""

    def test_show_tasks_lists_every_task(self, capsys):
        registry = get_registry()
        tasks = build_tasks(SYNC_CONFIGS, registry)

        show_tasks(tasks, registry)

        out = capsys.readouterr().out
        assert f"Scheduled sync tasks ({len(tasks)})" in out
        for task in tasks:
            assert task.task_id in out

    def test_show_status_lists_cursors_and_counts(self, sink, capsys):
        address = FACILITATOR.lower()
        key = CursorKey(Chain.BASE, Provider.CDP, address, USDC_BASE_TOKEN.address)
        event = TransferEventData(
            address=USDC_BASE_TOKEN.address,
            transaction_from=address,
            sender=address,
            recipient="0x" + "9" * 40,
            amount=1_000_000,
            decimals=6,
            block_timestamp=T0,
            tx_hash="0x" + "1" * 64,
            log_index=0,
            chain=Chain.BASE,
            provider=Provider.CDP,
            facilitator_id="coinbase",
        )
        sink.commit_page([event], key, TimestampCursor(T0))

        show_status(sink)

        out = capsys.readouterr().out
        assert "Sync cursors (1)" in out
        assert address in out
        assert "timestamp=2025-01-01 00:00:00+00:00" in out
        assert "Stored transfers (1)" in out
        assert "coinbase" in out

    def test_show_status_on_empty_store(self, sink, capsys):
        show_status(sink)

        out = capsys.readouterr().out
        assert "Sync cursors (0)" in out
        assert "Stored transfers (0)" in out

    @pytest.mark.asyncio
    async def test_run_tasks_exit_code(self):
        tasks = build_tasks(SYNC_CONFIGS, get_registry())[:2]
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(side_effect=[
            SyncRunResult(tasks[0].task_id, RunStatus.COMPLETED, T0, T0),
            SyncRunResult(tasks[1].task_id, RunStatus.ABORTED, T0, T0),
        ])

        assert await run_tasks(orchestrator, tasks) == 0

    @pytest.mark.asyncio
    async def test_run_tasks_fails_on_failed_run(self):
        tasks = build_tasks(SYNC_CONFIGS, get_registry())[:1]
        failed = SyncRunResult(
            tasks[0].task_id, RunStatus.FAILED, T0, T0,
            lanes=[LaneResult("coinbase", FACILITATOR.lower(), USDC_BASE_TOKEN.address, error="boom")],
        )
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=failed)

        assert await run_tasks(orchestrator, tasks) == 1


# =============================================================
# TEST: Logging setup
# =============================================================

class TestLoggingSetup:
    """setup_logging replaces root handlers."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_text_format(self):
        logger = setup_logging("DEBUG", "text")

        root = logging.getLogger()
        assert logger.name == "transfer_sync"
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_json_format(self):
        setup_logging("INFO", "json")

        handler = logging.getLogger().handlers[0]
        record = logging.LogRecord("transfer_sync.test", logging.INFO, __file__, 1, "Saved 3 transfers", None, None)
        payload = json.loads(handler.formatter.format(record))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "transfer_sync.test"
        assert payload["message"] == "Saved 3 transfers"

    def test_noisy_loggers_are_quieted(self):
        setup_logging("DEBUG", "text")
        assert logging.getLogger("apscheduler").level == logging.WARNING
