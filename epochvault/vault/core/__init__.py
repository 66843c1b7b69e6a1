"""
Core components of the vault engine.
"""

from epochvault.vault.core.decay import weight_at, trapezoid_area, apply_boost, BASIS_POINTS
from epochvault.vault.core.indexed_set import IndexedSet
from epochvault.vault.core.lock_store import LockStore, UserLock
from epochvault.vault.core.epoch_ledger import Epoch, EpochLedger, split_reward
from epochvault.vault.core.boosts import NFTBoostRegistry, NFTRequirement
from epochvault.vault.core.leaderboard import LeaderboardTracker
from epochvault.vault.core.contribution import ContributionEngine
from epochvault.vault.core.settlement import RewardSettlement
from epochvault.vault.core.transaction import atomic_operation, ReentrancyGuard, StateSnapshot

__all__ = [
    "weight_at",
    "trapezoid_area",
    "apply_boost",
    "BASIS_POINTS",
    "IndexedSet",
    "LockStore",
    "UserLock",
    "Epoch",
    "EpochLedger",
    "split_reward",
    "NFTBoostRegistry",
    "NFTRequirement",
    "LeaderboardTracker",
    "ContributionEngine",
    "RewardSettlement",
    "atomic_operation",
    "ReentrancyGuard",
    "StateSnapshot",
]
