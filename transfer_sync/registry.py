"""
Facilitator Registry - Immutable lookup over the static roster.

Features:
- Validates the roster once at construction
- Canonicalizes addresses (EVM lowercase, base58 untouched)
- Per-chain views holding only enabled configs
- Address -> facilitator correlation, the only place it lives
"""

import dataclasses
import logging
from types import MappingProxyType
from typing import Iterable, Optional

from transfer_sync.exceptions import NormalizationError, RegistryValidationError
from transfer_sync.facilitators import FACILITATORS
from transfer_sync.models import Chain, Facilitator
from transfer_sync.normalizer import normalize_address


logger = logging.getLogger(__name__)


class FacilitatorRegistry:
    """
    Read-only registry of facilitators and their per-chain configs.

    Usage:
        registry = FacilitatorRegistry(FACILITATORS)
        for facilitator in registry.configs_for_chain(Chain.BASE):
            for config in facilitator.addresses:
                ...
    """

    def __init__(self, facilitators: Iterable[Facilitator]) -> None:
        normalized = tuple(self._normalize(f) for f in facilitators)
        self._validate(normalized)

        self._facilitators = normalized
        self._by_id = MappingProxyType({f.id: f for f in normalized})

        by_address: dict[tuple[Chain, str], Facilitator] = {}
        for facilitator in normalized:
            for config in facilitator.addresses:
                by_address[(config.chain, config.address)] = facilitator
        self._by_address = MappingProxyType(by_address)

        by_chain: dict[Chain, tuple[Facilitator, ...]] = {}
        for chain in Chain:
            entries = []
            for facilitator in normalized:
                configs = facilitator.configs_for(chain, enabled_only=True)
                if configs:
                    entries.append(dataclasses.replace(facilitator, addresses=configs))
            by_chain[chain] = tuple(entries)
        self._by_chain = MappingProxyType(by_chain)

        logger.debug(
            f"Facilitator registry loaded: {len(normalized)} facilitators, "
            f"{len(by_address)} addresses"
        )

    # ─────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────

    def configs_for_chain(self, chain: Chain) -> tuple[Facilitator, ...]:
        """
        Facilitators active on `chain`.

        Each returned facilitator carries only that chain's enabled
        configs; facilitators with none are omitted.
        """
        return self._by_chain[chain]

    def get(self, facilitator_id: str) -> Optional[Facilitator]:
        """Full facilitator (all chains, all configs) by id."""
        return self._by_id.get(facilitator_id)

    def all(self) -> tuple[Facilitator, ...]:
        return self._facilitators

    def facilitator_for_address(self, chain: Chain, address: str) -> Optional[Facilitator]:
        """Facilitator owning `address` on `chain`, enabled or not."""
        try:
            key = normalize_address(chain, address)
        except NormalizationError:
            return None
        return self._by_address.get((chain, key))

    def __len__(self) -> int:
        return len(self._facilitators)

    # ─────────────────────────────────────────────────────────────
    # Construction helpers
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def _normalize(facilitator: Facilitator) -> Facilitator:
        configs = []
        for config in facilitator.addresses:
            try:
                address = normalize_address(config.chain, config.address)
                token_address = normalize_address(config.chain, config.token.address, "token address")
            except NormalizationError as e:
                raise RegistryValidationError(
                    f"Facilitator {facilitator.id} has an invalid {config.chain.value} address",
                    config_key=facilitator.id,
                    original_error=e,
                ) from e
            configs.append(dataclasses.replace(
                config,
                address=address,
                token=dataclasses.replace(config.token, address=token_address),
            ))
        return dataclasses.replace(facilitator, addresses=tuple(configs))

    @staticmethod
    def _validate(facilitators: tuple[Facilitator, ...]) -> None:
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        owners: dict[tuple[Chain, str], str] = {}
        seen_pairs: set[tuple[Chain, str, str]] = set()

        for facilitator in facilitators:
            if facilitator.id in seen_ids:
                raise RegistryValidationError(
                    f"Duplicate facilitator id: {facilitator.id}",
                    config_key=facilitator.id,
                )
            seen_ids.add(facilitator.id)

            if facilitator.name in seen_names:
                raise RegistryValidationError(
                    f"Duplicate facilitator name: {facilitator.name}",
                    config_key=facilitator.id,
                )
            seen_names.add(facilitator.name)

            for config in facilitator.addresses:
                pair = (config.chain, config.address, config.token.address)
                if pair in seen_pairs:
                    raise RegistryValidationError(
                        f"Duplicate {config.chain.value} config {config.address} "
                        f"for token {config.token.address}",
                        config_key=facilitator.id,
                    )
                seen_pairs.add(pair)

                owner = owners.setdefault((config.chain, config.address), facilitator.id)
                if owner != facilitator.id:
                    raise RegistryValidationError(
                        f"{config.chain.value} address {config.address} is claimed by "
                        f"both {owner} and {facilitator.id}",
                        config_key=facilitator.id,
                    )


_registry: Optional[FacilitatorRegistry] = None


def get_registry() -> FacilitatorRegistry:
    """Registry over the deployed roster, built on first use."""
    global _registry
    if _registry is None:
        _registry = FacilitatorRegistry(FACILITATORS)
    return _registry
