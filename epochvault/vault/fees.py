"""
Fee and tier configuration consumed by vaults.

The factory that creates vaults owns the tier table and the platform fee
beneficiary. Vaults only see it through the ``FeeConfig`` interface, which
is injected at construction. ``StaticFeeConfig`` is an in-process
implementation used for simulations and tests.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional, Tuple

from epochvault.vault.core.decay import BASIS_POINTS
from epochvault.vault.errors import StateError, ValidationError

logger = logging.getLogger(__name__)


class VaultTier(IntEnum):
    NO_RISK_NO_CROWN = 0
    SPLIT_THE_SPOILS = 1
    VAULTMASTER_3000 = 2


@dataclass(frozen=True)
class TierConfig:
    """Fee bounds and platform cut for one vault tier (rates in basis points)."""

    min_deposit_fee_rate: int
    max_deposit_fee_rate: int
    can_adjust_deposit_fee: bool
    deployment_fee: int
    performance_fee_rate: int
    platform_fee_share: int

    def clamp_deposit_fee(self, rate: int) -> int:
        return min(max(rate, self.min_deposit_fee_rate), self.max_deposit_fee_rate)


DEFAULT_TIERS: Dict[VaultTier, TierConfig] = {
    VaultTier.NO_RISK_NO_CROWN: TierConfig(
        min_deposit_fee_rate=500,
        max_deposit_fee_rate=500,
        can_adjust_deposit_fee=False,
        deployment_fee=0,
        performance_fee_rate=1_000,
        platform_fee_share=5_000,
    ),
    VaultTier.SPLIT_THE_SPOILS: TierConfig(
        min_deposit_fee_rate=100,
        max_deposit_fee_rate=500,
        can_adjust_deposit_fee=True,
        deployment_fee=10 ** 17,
        performance_fee_rate=500,
        platform_fee_share=3_000,
    ),
    VaultTier.VAULTMASTER_3000: TierConfig(
        min_deposit_fee_rate=0,
        max_deposit_fee_rate=1_000,
        can_adjust_deposit_fee=True,
        deployment_fee=5 * 10 ** 17,
        performance_fee_rate=250,
        platform_fee_share=1_000,
    ),
}


class FeeConfig(ABC):
    """Interface of the factory as seen by a vault."""

    address: str

    @abstractmethod
    def fee_beneficiary(self) -> str:
        """Platform account receiving performance fees and the platform deposit-fee share."""

    @abstractmethod
    def performance_fee(self, vault_id: str, gross_amount: int) -> int:
        """Fee taken from a reward funding of ``gross_amount``."""

    @abstractmethod
    def deposit_fee_sharing(self, vault_id: str, fee_amount: int) -> Tuple[int, int]:
        """Split a deposit fee into (platform share, admin share)."""

    @abstractmethod
    def vault_tier(self, vault_id: str) -> VaultTier:
        """Tier the factory has recorded for the vault."""

    @abstractmethod
    def tier_config(self, vault_id: str) -> TierConfig:
        """Tier configuration of the vault."""


class StaticFeeConfig(FeeConfig):
    """
    In-process factory stand-in holding a fixed tier table.

    Args:
        address: Identity the factory acts under when calling vaults
        beneficiary: Platform fee beneficiary
        tiers: Tier table, defaults to ``DEFAULT_TIERS``
    """

    def __init__(self, address: str, beneficiary: str, tiers: Optional[Dict[VaultTier, TierConfig]] = None):
        self.address = address
        self.beneficiary = beneficiary
        self.tiers = dict(tiers or DEFAULT_TIERS)
        self.vault_tiers: Dict[str, VaultTier] = {}

    def register_vault(self, vault_id: str, tier: VaultTier):
        if tier not in self.tiers:
            raise ValidationError("INVALID_TIER", f"unknown tier {tier}")
        self.vault_tiers[vault_id] = VaultTier(tier)

    def set_vault_tier(self, vault, new_tier: VaultTier):
        """Move a vault to a new tier, on both sides."""
        previous = self.vault_tiers.get(vault.vault_id)
        self.register_vault(vault.vault_id, new_tier)
        try:
            vault.update_tier(self.address, new_tier)
        except Exception:
            if previous is None:
                del self.vault_tiers[vault.vault_id]
            else:
                self.vault_tiers[vault.vault_id] = previous
            raise

    def fee_beneficiary(self) -> str:
        return self.beneficiary

    def vault_tier(self, vault_id: str) -> VaultTier:
        tier = self.vault_tiers.get(vault_id)
        if tier is None:
            raise StateError("VAULT_NOT_REGISTERED", f"vault {vault_id} is not registered with the factory")
        return tier

    def tier_config(self, vault_id: str) -> TierConfig:
        return self.tiers[self.vault_tier(vault_id)]

    def performance_fee(self, vault_id: str, gross_amount: int) -> int:
        return gross_amount * self.tier_config(vault_id).performance_fee_rate // BASIS_POINTS

    def deposit_fee_sharing(self, vault_id: str, fee_amount: int) -> Tuple[int, int]:
        platform_share = fee_amount * self.tier_config(vault_id).platform_fee_share // BASIS_POINTS
        return platform_share, fee_amount - platform_share
