"""
Per-participant lock storage.

Each participant holds at most one lock. A lock is created on first
deposit, expanded in place (more principal and/or a later end), and
cleared on withdrawal.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from epochvault.vault.config import VaultConfig
from epochvault.vault.core.decay import weight_at
from epochvault.vault.core.indexed_set import IndexedSet
from epochvault.vault.errors import StateError, ValidationError

logger = logging.getLogger(__name__)

NFTKey = Tuple[str, int]


@dataclass
class UserLock:
    """A participant's locked principal and its decay window."""

    amount: int = 0
    lock_start: int = 0
    lock_end: int = 0
    peak_weight: int = 0
    pending_epochs: IndexedSet = field(default_factory=IndexedSet)
    locked_nfts: IndexedSet = field(default_factory=IndexedSet)

    @property
    def is_active(self) -> bool:
        return self.amount > 0

    def weight_at(self, t: int) -> int:
        if self.amount == 0:
            return 0
        return weight_at(self.peak_weight, self.lock_start, self.lock_end, t)

    def to_dict(self) -> Dict:
        return {
            "amount": self.amount,
            "lock_start": self.lock_start,
            "lock_end": self.lock_end,
            "peak_weight": self.peak_weight,
            "pending_epochs": sorted(self.pending_epochs),
            "locked_nfts": self.locked_nfts.to_list(),
        }


class LockStore:
    """
    Owns one ``UserLock`` per participant.

    This class is responsible for:
    1. Enforcing the single-active-lock rule and the lock bounds
    2. Resetting the decay curve when a lock is expanded
    3. Tracking which participant holds each locked NFT
    """

    def __init__(self, config: VaultConfig):
        self.config = config
        self.locks: Dict[str, UserLock] = {}
        self.nft_owners: Dict[NFTKey, str] = {}

    def get(self, participant: str) -> UserLock:
        """Return the participant's lock, creating an empty one if needed."""
        lock = self.locks.get(participant)
        if lock is None:
            lock = UserLock()
            self.locks[participant] = lock
        return lock

    def peek(self, participant: str) -> Optional[UserLock]:
        """Return the participant's lock without creating one."""
        return self.locks.get(participant)

    def participants(self) -> List[str]:
        return list(self.locks.keys())

    def validate_create(self, participant: str, net_amount: int, duration: int):
        if net_amount < self.config.min_deposit_amount:
            raise ValidationError(
                "AMOUNT_BELOW_MINIMUM",
                f"net amount {net_amount} is below minimum {self.config.min_deposit_amount}"
            )
        if not self.config.min_lock_duration <= duration <= self.config.max_lock_duration:
            raise ValidationError(
                "INVALID_LOCK_DURATION",
                f"duration {duration} outside [{self.config.min_lock_duration}, {self.config.max_lock_duration}]"
            )
        lock = self.peek(participant)
        if lock is not None and lock.amount != 0:
            raise StateError("LOCK_ALREADY_ACTIVE", f"{participant} already has an active lock")

    def create_lock(self, participant: str, net_amount: int, duration: int, now: int) -> UserLock:
        """
        Create a new lock starting now.

        Args:
            participant: Lock owner
            net_amount: Principal after deposit fees
            duration: Lock length in seconds
            now: Current timestamp

        Returns:
            The created lock
        """
        self.validate_create(participant, net_amount, duration)
        lock = self.get(participant)
        lock.amount = net_amount
        lock.lock_start = now
        lock.lock_end = now + duration
        lock.peak_weight = net_amount
        logger.debug(f"Created lock for {participant}: {net_amount} until {lock.lock_end}")
        return lock

    def validate_expand(self, participant: str, extra_amount: int, new_end: int, now: int):
        lock = self.peek(participant)
        if lock is None or lock.amount == 0:
            raise StateError("NO_ACTIVE_LOCK", f"{participant} has no lock to expand")
        if extra_amount < 0:
            raise ValidationError("INVALID_AMOUNT", "extra amount must be non-negative")
        extends = new_end > lock.lock_end
        if now >= lock.lock_end and not extends:
            raise StateError("LOCK_EXPIRED", "lock has expired and the new end does not extend it")
        if extra_amount == 0 and not extends:
            raise ValidationError("NOTHING_TO_EXPAND", "expansion must add principal or extend the end")
        if extends and (new_end <= now or new_end - now > self.config.max_lock_duration):
            raise ValidationError(
                "INVALID_LOCK_DURATION",
                f"new end {new_end} must be in the future and within the maximum lock duration"
            )

    def expand_lock(self, participant: str, extra_amount: int, new_end: int, now: int) -> UserLock:
        """
        Add principal and/or push the lock end forward.

        The decay restarts from the weight remaining at ``now`` plus the
        newly added principal; the end only ever moves later.
        """
        self.validate_expand(participant, extra_amount, new_end, now)
        lock = self.locks[participant]
        lock.peak_weight = lock.weight_at(now) + extra_amount
        if new_end > lock.lock_end:
            lock.lock_end = new_end
        lock.lock_start = now
        lock.amount += extra_amount
        logger.debug(
            f"Expanded lock for {participant}: amount={lock.amount}, "
            f"peak={lock.peak_weight}, end={lock.lock_end}"
        )
        return lock

    def clear_lock(self, participant: str) -> Tuple[int, List[NFTKey]]:
        """
        Zero the lock and release its NFTs.

        Pending epochs are kept so ended epochs remain claimable.

        Returns:
            Tuple of (principal to return, NFTs to return)
        """
        lock = self.peek(participant)
        if lock is None or lock.amount == 0:
            raise StateError("NO_ACTIVE_LOCK", f"{participant} has no lock to clear")
        principal = lock.amount
        lock.amount = 0
        lock.lock_start = 0
        lock.lock_end = 0
        lock.peak_weight = 0
        nfts = lock.locked_nfts.clear()
        for key in nfts:
            self.nft_owners.pop(key, None)
        return principal, nfts

    def lock_nft(self, participant: str, collection: str, item_id: int):
        key = (collection, item_id)
        if key in self.nft_owners:
            raise StateError("NFT_ALREADY_LOCKED", f"{collection}#{item_id} is already locked")
        self.nft_owners[key] = participant
        self.get(participant).locked_nfts.add(key)

    def nft_owner(self, collection: str, item_id: int) -> Optional[str]:
        return self.nft_owners.get((collection, item_id))
