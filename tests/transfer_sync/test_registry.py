"""
Tests for the Facilitator Registry and sync task expansion.

Tests cover:
- Roster invariants (unique ids, names, addresses)
- Per-chain enabled views
- Split and disabled sync configs
"""

from datetime import datetime, timedelta, timezone

import pytest

from transfer_sync.exceptions import RegistryValidationError
from transfer_sync.facilitators import FACILITATORS, USDC_BASE_TOKEN, USDC_SOLANA_TOKEN
from transfer_sync.models import (
    Chain,
    CursorKey,
    Facilitator,
    FacilitatorConfig,
    PaginationMode,
    PaginationSettings,
    Provider,
    SyncConfig,
    Token,
    workers_for_machine,
)
from transfer_sync.registry import FacilitatorRegistry, get_registry
from transfer_sync.sync_configs import BASE_CDP, POLYGON_BIGQUERY, SOLANA_BITQUERY, SYNC_CONFIGS, build_tasks


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _base(address: str, enabled: bool = True) -> FacilitatorConfig:
    return FacilitatorConfig(Chain.BASE, address, USDC_BASE_TOKEN, T0, enabled)


def _facilitator(fid: str, *configs: FacilitatorConfig, name: str = None) -> Facilitator:
    return Facilitator(id=fid, name=name or fid.title(), addresses=tuple(configs))


# =============================================================
# TEST: Deployed roster
# =============================================================

class TestDeployedRoster:
    """The static roster itself satisfies every registry invariant."""

    def test_roster_loads(self):
        registry = get_registry()
        assert len(registry) == len(FACILITATORS) == 11

    def test_ids_and_names_unique(self):
        ids = [f.id for f in FACILITATORS]
        names = [f.name for f in FACILITATORS]
        assert len(set(ids)) == len(ids)
        assert len(set(names)) == len(names)

    def test_addresses_are_canonical(self):
        registry = get_registry()
        for facilitator in registry.all():
            for config in facilitator.addresses:
                if config.chain.is_evm:
                    assert config.address == config.address.lower()

    def test_mixed_case_address_resolves(self):
        registry = get_registry()
        found = registry.facilitator_for_address(Chain.BASE, "0x279e08f711182c79Ba6d09669127a426228a4653")
        assert found is not None
        assert found.id == "daydreams"

    def test_polygon_has_no_enabled_configs(self):
        assert get_registry().configs_for_chain(Chain.POLYGON) == ()

    def test_disabled_config_still_resolves_owner(self):
        registry = get_registry()
        owner = registry.facilitator_for_address(Chain.POLYGON, "0xd8dfc729cbd05381647eb5540d756f4f8ad63eec")
        assert owner.id == "x402rs"

    def test_solana_view_only_holds_solana_configs(self):
        for facilitator in get_registry().configs_for_chain(Chain.SOLANA):
            assert facilitator.addresses
            assert all(c.chain == Chain.SOLANA for c in facilitator.addresses)
            assert all(c.token == USDC_SOLANA_TOKEN for c in facilitator.addresses)


# =============================================================
# TEST: Validation
# =============================================================

class TestRegistryValidation:
    """Construction-time invariant checks."""

    def test_duplicate_id_rejected(self):
        with pytest.raises(RegistryValidationError, match="Duplicate facilitator id"):
            FacilitatorRegistry([
                _facilitator("alpha", _base("0x" + "1" * 40), name="A"),
                _facilitator("alpha", _base("0x" + "2" * 40), name="B"),
            ])

    def test_duplicate_name_rejected(self):
        with pytest.raises(RegistryValidationError, match="Duplicate facilitator name"):
            FacilitatorRegistry([
                _facilitator("alpha", _base("0x" + "1" * 40), name="Same"),
                _facilitator("beta", _base("0x" + "2" * 40), name="Same"),
            ])

    def test_shared_address_rejected(self):
        address = "0x" + "c" * 40
        other_token = Token(address="0x" + "f" * 40, symbol="TST", decimals=6)
        with pytest.raises(RegistryValidationError, match="claimed by both"):
            FacilitatorRegistry([
                _facilitator("alpha", _base(address)),
                _facilitator("beta", FacilitatorConfig(Chain.BASE, address.upper().replace("0X", "0x"), other_token, T0)),
            ])

    def test_duplicate_config_rejected(self):
        address = "0x" + "4" * 40
        with pytest.raises(RegistryValidationError, match="Duplicate base config"):
            FacilitatorRegistry([_facilitator("alpha", _base(address), _base(address))])

    def test_invalid_address_rejected(self):
        with pytest.raises(RegistryValidationError):
            FacilitatorRegistry([_facilitator("alpha", _base("0xnope"))])

    def test_disabled_configs_hidden_from_chain_view(self):
        registry = FacilitatorRegistry([
            _facilitator("alpha", _base("0x" + "5" * 40), _base("0x" + "6" * 40, enabled=False)),
            _facilitator("beta", _base("0x" + "7" * 40, enabled=False)),
        ])

        view = registry.configs_for_chain(Chain.BASE)

        assert [f.id for f in view] == ["alpha"]
        assert [c.address for c in view[0].addresses] == ["0x" + "5" * 40]
        assert len(registry.get("alpha").addresses) == 2


# =============================================================
# TEST: Sync configs and tasks
# =============================================================

class TestSyncTasks:
    """SyncConfig -> SyncTask expansion."""

    def test_task_ids(self):
        assert SOLANA_BITQUERY.task_id == "solana-sync-transfers-bitquery"
        assert POLYGON_BIGQUERY.task_id == "polygon-sync-transfers-bigquery"
        assert BASE_CDP.task_id_for("coinbase") == "base-sync-transfers-cdp-coinbase"

    def test_split_config_yields_task_per_facilitator(self):
        registry = get_registry()
        tasks = build_tasks([BASE_CDP], registry)

        expected = [f.id for f in registry.configs_for_chain(Chain.BASE)]
        assert [t.facilitator_ids for t in tasks] == [(fid,) for fid in expected]
        assert [t.task_id for t in tasks] == [f"base-sync-transfers-cdp-{fid}" for fid in expected]

    def test_unsplit_configs_yield_one_task(self):
        tasks = build_tasks([SOLANA_BITQUERY, POLYGON_BIGQUERY], get_registry())
        assert [t.task_id for t in tasks] == [
            "solana-sync-transfers-bitquery",
            "polygon-sync-transfers-bigquery",
        ]
        assert all(t.facilitator_ids is None for t in tasks)

    def test_disabled_config_yields_no_task(self):
        disabled = SyncConfig(
            chain=Chain.BASE,
            provider=Provider.CDP,
            cron="0 * * * *",
            max_duration_seconds=60,
            pagination=PaginationSettings(PaginationMode.OFFSET, 10),
            enabled=False,
        )
        assert build_tasks([disabled], get_registry()) == []

    def test_split_respects_facilitator_filter(self):
        narrowed = SyncConfig(
            chain=Chain.BASE,
            provider=Provider.CDP,
            cron="0 * * * *",
            max_duration_seconds=60,
            pagination=PaginationSettings(PaginationMode.TIME_WINDOW, 10, timedelta(days=1)),
            facilitator_ids=("coinbase", "thirdweb"),
            split_by_facilitator=True,
        )
        tasks = build_tasks([narrowed], get_registry())
        assert sorted(t.facilitator_ids[0] for t in tasks) == ["coinbase", "thirdweb"]

    def test_all_task_ids_unique(self):
        tasks = build_tasks(SYNC_CONFIGS, get_registry())
        ids = [t.task_id for t in tasks]
        assert len(ids) == len(set(ids))

    def test_cursor_key_for_config(self):
        config = _base("0x" + "a" * 40)
        key = CursorKey.for_config(BASE_CDP, config)
        assert str(key) == f"base/cdp/{config.address}/{USDC_BASE_TOKEN.address}"


# =============================================================
# TEST: Compute classes
# =============================================================

class TestComputeClasses:
    """Compute-class hint -> worker bound."""

    @pytest.mark.parametrize("machine,workers", [
        ("micro", 1),
        ("small-1x", 2),
        ("medium-1x", 4),
        ("large-2x", 12),
        ("unheard-of", 2),
    ])
    def test_workers_for_machine(self, machine, workers):
        assert workers_for_machine(machine) == workers

    def test_sync_config_workers(self):
        assert BASE_CDP.max_workers == 4
        assert POLYGON_BIGQUERY.max_workers == 2
