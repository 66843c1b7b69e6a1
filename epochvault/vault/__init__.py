"""
Vault engine for epochvault.

This module implements time-locked positions whose voting power decays
linearly, aggregates that power into reward epochs, and distributes epoch
rewards pro rata with NFT boosts and a cumulative leaderboard bonus.
"""

# Core components
from epochvault.vault.core import (
    weight_at,
    LockStore,
    EpochLedger,
    ContributionEngine,
    NFTBoostRegistry,
    RewardSettlement,
    LeaderboardTracker,
)

# Collaborators
from epochvault.vault.assets import AssetRegistry, InMemoryToken, InMemoryCollection, ZERO_ADDRESS
from epochvault.vault.fees import FeeConfig, StaticFeeConfig, TierConfig, VaultTier
from epochvault.vault.config import VaultConfig, load_vault_config

# Main system
from epochvault.vault.system import Vault, RewardSpec
from epochvault.vault.reader import VaultReader
from epochvault.vault.errors import (
    VaultError,
    ValidationError,
    StateError,
    AuthorizationError,
    ResourceError,
    ReentrancyError,
)

__all__ = [
    # Core components
    "weight_at",
    "LockStore",
    "EpochLedger",
    "ContributionEngine",
    "NFTBoostRegistry",
    "RewardSettlement",
    "LeaderboardTracker",

    # Collaborators
    "AssetRegistry",
    "InMemoryToken",
    "InMemoryCollection",
    "ZERO_ADDRESS",
    "FeeConfig",
    "StaticFeeConfig",
    "TierConfig",
    "VaultTier",
    "VaultConfig",
    "load_vault_config",

    # Main system
    "Vault",
    "RewardSpec",
    "VaultReader",
    "VaultError",
    "ValidationError",
    "StateError",
    "AuthorizationError",
    "ResourceError",
    "ReentrancyError",
]
