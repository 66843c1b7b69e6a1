"""
Database models for vault snapshots.

This module defines the tables a vault's full state is persisted to:
settings, roles, locks and their NFTs, epochs with their pools and stored
contributions, boost requirements, and the leaderboard.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class BigIntString(TypeDecorator):
    """SQLAlchemy type for arbitrary-precision integers, stored as decimal text"""
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        """Convert int to its decimal string when storing in database"""
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        """Convert decimal string back to int when loading from database"""
        if value is None:
            return None
        return int(value)


class VaultRecord(Base):
    """Vault-level settings."""

    __tablename__ = "vault_settings"

    vault_id = Column(String(255), primary_key=True)
    token = Column(String(255))
    fee_beneficiary = Column(String(255))
    deposit_fee_rate = Column(Integer)
    tier = Column(Integer)
    paused = Column(Boolean, default=False)
    emergency_mode = Column(Boolean, default=False)
    allowlist_enabled = Column(Boolean, default=False)
    top_holder = Column(String(255), nullable=True)
    top_holder_weight = Column(BigIntString, default=0)
    saved_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "vault_id": self.vault_id,
            "token": self.token,
            "fee_beneficiary": self.fee_beneficiary,
            "deposit_fee_rate": self.deposit_fee_rate,
            "tier": self.tier,
            "paused": self.paused,
            "emergency_mode": self.emergency_mode,
            "allowlist_enabled": self.allowlist_enabled,
            "top_holder": self.top_holder,
            "top_holder_weight": self.top_holder_weight,
            "saved_at": self.saved_at,
        }


class RoleRecord(Base):
    """Role grant (admin, factory, allow-listed participant)."""

    __tablename__ = "vault_roles"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    role = Column(String(32), index=True)
    account = Column(String(255))


class LockRecord(Base):
    """A participant's lock."""

    __tablename__ = "vault_locks"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    participant = Column(String(255), index=True)
    amount = Column(BigIntString, default=0)
    lock_start = Column(BigInteger, default=0)
    lock_end = Column(BigInteger, default=0)
    peak_weight = Column(BigIntString, default=0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "participant": self.participant,
            "amount": self.amount,
            "lock_start": self.lock_start,
            "lock_end": self.lock_end,
            "peak_weight": self.peak_weight,
        }


class LockedNFTRecord(Base):
    """An NFT locked by a participant."""

    __tablename__ = "vault_locked_nfts"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    participant = Column(String(255), index=True)
    collection = Column(String(255))
    item_id = Column(BigInteger)
    position = Column(Integer)


class PendingEpochRecord(Base):
    """An epoch a participant can still claim."""

    __tablename__ = "vault_pending_epochs"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    participant = Column(String(255), index=True)
    epoch_id = Column(Integer)


class EpochRecord(Base):
    """A reward epoch."""

    __tablename__ = "vault_epochs"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    epoch_id = Column(Integer, index=True)
    start_time = Column(BigInteger)
    end_time = Column(BigInteger)
    total_weight = Column(BigIntString, default=0)
    leaderboard_percentage = Column(Integer, default=0)
    leaderboard_claimed = Column(Boolean, default=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "epoch_id": self.epoch_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_weight": self.total_weight,
            "leaderboard_percentage": self.leaderboard_percentage,
            "leaderboard_claimed": self.leaderboard_claimed,
        }


class EpochPoolRecord(Base):
    """One asset entry of an epoch's reward or leaderboard pool."""

    __tablename__ = "vault_epoch_pools"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    epoch_id = Column(Integer, index=True)
    kind = Column(String(16))  # "reward", "leaderboard"
    asset = Column(String(255))
    amount = Column(BigIntString, default=0)
    position = Column(Integer)


class EpochPowerRecord(Base):
    """A participant's stored contribution to an epoch."""

    __tablename__ = "vault_epoch_powers"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    participant = Column(String(255), index=True)
    epoch_id = Column(Integer, index=True)
    power = Column(BigIntString, default=0)


class NFTRequirementRecord(Base):
    """Boost rule for an NFT collection."""

    __tablename__ = "vault_nft_requirements"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    collection = Column(String(255))
    is_active = Column(Boolean, default=True)
    required_count = Column(Integer)
    boost_percentage = Column(Integer)


class LeaderboardRecord(Base):
    """A participant's cumulative leaderboard weight."""

    __tablename__ = "vault_leaderboard"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    participant = Column(String(255), index=True)
    cumulative_weight = Column(BigIntString, default=0)


class LeaderboardCountedRecord(Base):
    """Marks a (participant, epoch) pair already folded into the leaderboard."""

    __tablename__ = "vault_leaderboard_counted"

    id = Column(Integer, primary_key=True)
    vault_id = Column(String(255), index=True)
    participant = Column(String(255))
    epoch_id = Column(Integer)


SNAPSHOT_TABLES = [
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
]
