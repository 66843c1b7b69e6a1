"""
Snapshot persistence for vaults.

A snapshot replaces every row previously stored for the vault, so the
database always holds one consistent image of each vault's state.
"""

import logging
from datetime import datetime
from typing import List

from sqlalchemy import create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from epochvault.vault.core.boosts import NFTRequirement
from epochvault.vault.core.epoch_ledger import Epoch
from epochvault.vault.core.indexed_set import IndexedSet
from epochvault.vault.core.lock_store import UserLock
from epochvault.vault.database.models import (
    Base,
    EpochPoolRecord,
    EpochPowerRecord,
    EpochRecord,
    LeaderboardCountedRecord,
    LeaderboardRecord,
    LockedNFTRecord,
    LockRecord,
    NFTRequirementRecord,
    PendingEpochRecord,
    RoleRecord,
    SNAPSHOT_TABLES,
    VaultRecord,
)
from epochvault.vault.errors import StateError
from epochvault.vault.fees import VaultTier

logger = logging.getLogger(__name__)

REWARD_POOL = "reward"
LEADERBOARD_POOL = "leaderboard"


class VaultStateStore:
    """
    Saves and restores full vault snapshots through SQLAlchemy.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///vault.db``
    """

    def __init__(self, database_url: str = "sqlite:///:memory:"):
        self.database_url = database_url
        self.engine = create_engine(database_url)
        self.session_factory = sessionmaker(bind=self.engine)

    def initialize(self):
        """Create all tables if they do not exist."""
        Base.metadata.create_all(self.engine)
        logger.info(f"Vault state store initialized at {self.database_url}")

    def list_vaults(self) -> List[str]:
        with self.session_factory() as session:
            return list(session.scalars(select(VaultRecord.vault_id).order_by(VaultRecord.vault_id)))

    def describe(self, vault_id: str) -> dict:
        """
        Plain-dict view of a stored snapshot, without building a vault.

        Raises:
            StateError: If no snapshot exists for the vault
        """
        with self.session_factory() as session:
            record = session.get(VaultRecord, vault_id)
            if record is None:
                raise StateError("VAULT_NOT_FOUND", f"no snapshot stored for vault {vault_id}")
            locks = session.scalars(
                select(LockRecord).where(LockRecord.vault_id == vault_id).order_by(LockRecord.participant)
            )
            epochs = session.scalars(
                select(EpochRecord).where(EpochRecord.vault_id == vault_id).order_by(EpochRecord.epoch_id)
            )
            leaderboard = session.scalars(
                select(LeaderboardRecord).where(LeaderboardRecord.vault_id == vault_id)
            )
            return {
                "settings": record.to_dict(),
                "locks": [lock.to_dict() for lock in locks],
                "epochs": [epoch.to_dict() for epoch in epochs],
                "leaderboard": sorted(
                    ((row.participant, row.cumulative_weight) for row in leaderboard),
                    key=lambda item: -item[1],
                ),
            }

    def save(self, vault):
        """Write a full snapshot of ``vault``, replacing any previous one."""
        vault_id = vault.vault_id
        try:
            with self.session_factory() as session, session.begin():
                session.execute(delete(VaultRecord).where(VaultRecord.vault_id == vault_id))
                for table in SNAPSHOT_TABLES:
                    session.execute(delete(table).where(table.vault_id == vault_id))

                self._add_settings(session, vault)
                self._add_locks(session, vault)
                self._add_epochs(session, vault)
                self._add_boosts_and_leaderboard(session, vault)
        except SQLAlchemyError as e:
            logger.error(f"Error saving snapshot of vault {vault_id}: {e}")
            raise

        logger.info(f"Saved snapshot of vault {vault_id}: {len(vault.ledger)} epochs, "
                    f"{len(vault.locks.locks)} locks")

    def _add_settings(self, session: Session, vault):
        settings = vault.settings
        session.add(VaultRecord(
            vault_id=vault.vault_id,
            token=settings.token,
            fee_beneficiary=settings.fee_beneficiary,
            deposit_fee_rate=settings.deposit_fee_rate,
            tier=int(settings.tier),
            paused=settings.paused,
            emergency_mode=settings.emergency_mode,
            allowlist_enabled=settings.allowlist_enabled,
            top_holder=vault.leaderboard.top_holder,
            top_holder_weight=vault.leaderboard.top_holder_weight,
            saved_at=datetime.utcnow(),
        ))
        for role, accounts in vault.roles.grants.items():
            session.add_all([
                RoleRecord(vault_id=vault.vault_id, role=role, account=account)
                for account in sorted(accounts)
            ])

    def _add_locks(self, session: Session, vault):
        for participant, lock in vault.locks.locks.items():
            session.add(LockRecord(
                vault_id=vault.vault_id,
                participant=participant,
                amount=lock.amount,
                lock_start=lock.lock_start,
                lock_end=lock.lock_end,
                peak_weight=lock.peak_weight,
            ))
            session.add_all([
                LockedNFTRecord(vault_id=vault.vault_id, participant=participant,
                                collection=collection, item_id=item_id, position=position)
                for position, (collection, item_id) in enumerate(lock.locked_nfts.to_list())
            ])
            session.add_all([
                PendingEpochRecord(vault_id=vault.vault_id, participant=participant, epoch_id=epoch_id)
                for epoch_id in lock.pending_epochs
            ])

    def _add_epochs(self, session: Session, vault):
        for epoch in vault.ledger.epochs:
            session.add(EpochRecord(
                vault_id=vault.vault_id,
                epoch_id=epoch.epoch_id,
                start_time=epoch.start_time,
                end_time=epoch.end_time,
                total_weight=epoch.total_weight,
                leaderboard_percentage=epoch.leaderboard_percentage,
                leaderboard_claimed=epoch.leaderboard_claimed,
            ))
            for kind, pool in ((REWARD_POOL, epoch.reward_pool), (LEADERBOARD_POOL, epoch.leaderboard_pool)):
                session.add_all([
                    EpochPoolRecord(vault_id=vault.vault_id, epoch_id=epoch.epoch_id, kind=kind,
                                    asset=asset, amount=amount, position=position)
                    for position, (asset, amount) in enumerate(pool.items())
                ])
        session.add_all([
            EpochPowerRecord(vault_id=vault.vault_id, participant=participant, epoch_id=epoch_id, power=power)
            for (participant, epoch_id), power in vault.ledger.powers.items()
        ])

    def _add_boosts_and_leaderboard(self, session: Session, vault):
        session.add_all([
            NFTRequirementRecord(vault_id=vault.vault_id, collection=collection,
                                 is_active=requirement.is_active,
                                 required_count=requirement.required_count,
                                 boost_percentage=requirement.boost_percentage)
            for collection, requirement in vault.boosts.requirements.items()
        ])
        session.add_all([
            LeaderboardRecord(vault_id=vault.vault_id, participant=participant, cumulative_weight=weight)
            for participant, weight in vault.leaderboard.cumulative_weight.items()
        ])
        session.add_all([
            LeaderboardCountedRecord(vault_id=vault.vault_id, participant=participant, epoch_id=epoch_id)
            for participant, epoch_id in vault.leaderboard.counted
        ])

    def restore(self, vault):
        """
        Load the stored snapshot for ``vault.vault_id`` into ``vault``.

        Raises:
            StateError: If no snapshot exists for the vault
        """
        vault_id = vault.vault_id
        with self.session_factory() as session:
            record = session.get(VaultRecord, vault_id)
            if record is None:
                raise StateError("VAULT_NOT_FOUND", f"no snapshot stored for vault {vault_id}")

            def rows(table, *order_by):
                query = select(table).where(table.vault_id == vault_id)
                if order_by:
                    query = query.order_by(*order_by)
                return list(session.scalars(query))

            settings = vault.settings
            settings.token = record.token
            settings.fee_beneficiary = record.fee_beneficiary
            settings.deposit_fee_rate = record.deposit_fee_rate
            settings.tier = VaultTier(record.tier)
            settings.paused = record.paused
            settings.emergency_mode = record.emergency_mode
            settings.allowlist_enabled = record.allowlist_enabled

            vault.roles.grants = {}
            for role in rows(RoleRecord):
                vault.roles.grant(role.role, role.account)

            locks = {}
            for row in rows(LockRecord):
                locks[row.participant] = UserLock(
                    amount=row.amount,
                    lock_start=row.lock_start,
                    lock_end=row.lock_end,
                    peak_weight=row.peak_weight,
                    pending_epochs=IndexedSet(),
                    locked_nfts=IndexedSet(),
                )
            nft_owners = {}
            for row in rows(LockedNFTRecord, LockedNFTRecord.position):
                locks[row.participant].locked_nfts.add((row.collection, row.item_id))
                nft_owners[(row.collection, row.item_id)] = row.participant
            for row in rows(PendingEpochRecord, PendingEpochRecord.epoch_id):
                locks[row.participant].pending_epochs.add(row.epoch_id)
            vault.locks.locks = locks
            vault.locks.nft_owners = nft_owners

            epochs = [
                Epoch(
                    epoch_id=row.epoch_id,
                    start_time=row.start_time,
                    end_time=row.end_time,
                    leaderboard_percentage=row.leaderboard_percentage,
                    total_weight=row.total_weight,
                    leaderboard_claimed=row.leaderboard_claimed,
                )
                for row in rows(EpochRecord, EpochRecord.epoch_id)
            ]
            for row in rows(EpochPoolRecord, EpochPoolRecord.epoch_id, EpochPoolRecord.position):
                pool = epochs[row.epoch_id].reward_pool if row.kind == REWARD_POOL \
                    else epochs[row.epoch_id].leaderboard_pool
                pool[row.asset] = row.amount
            vault.ledger.epochs = epochs
            vault.ledger.powers = {
                (row.participant, row.epoch_id): row.power for row in rows(EpochPowerRecord)
            }

            vault.boosts.requirements = {
                row.collection: NFTRequirement(row.is_active, row.required_count, row.boost_percentage)
                for row in rows(NFTRequirementRecord)
            }

            vault.leaderboard.cumulative_weight = {
                row.participant: row.cumulative_weight for row in rows(LeaderboardRecord)
            }
            vault.leaderboard.counted = {
                (row.participant, row.epoch_id) for row in rows(LeaderboardCountedRecord)
            }
            vault.leaderboard.top_holder = record.top_holder
            vault.leaderboard.top_holder_weight = record.top_holder_weight or 0

        logger.info(f"Restored vault {vault_id} from snapshot saved at {record.saved_at}")
        return vault
