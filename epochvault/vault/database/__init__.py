"""
Database models and snapshot store for vaults.
"""

from epochvault.vault.database.models import (
    Base,
    BigIntString,
    VaultRecord,
    RoleRecord,
    LockRecord,
    LockedNFTRecord,
    PendingEpochRecord,
    EpochRecord,
    EpochPoolRecord,
    EpochPowerRecord,
    NFTRequirementRecord,
    LeaderboardRecord,
    LeaderboardCountedRecord,
)
from epochvault.vault.database.store import VaultStateStore

__all__ = [
    "Base",
    "BigIntString",
    "VaultRecord",
    "RoleRecord",
    "LockRecord",
    "LockedNFTRecord",
    "PendingEpochRecord",
    "EpochRecord",
    "EpochPoolRecord",
    "EpochPowerRecord",
    "NFTRequirementRecord",
    "LeaderboardRecord",
    "LeaderboardCountedRecord",
    "VaultStateStore",
]
