"""
Epoch contribution accounting.

A participant's contribution to the open epoch is the exact area under
their lock's decay curve over the overlap of lock and epoch, scaled by
their NFT boost. The epoch's ``total_weight`` is kept equal to the sum of
all stored contributions by always subtracting the previous value before
adding the new one.
"""

import logging
from typing import Optional, Tuple

from epochvault.vault.core.boosts import NFTBoostRegistry
from epochvault.vault.core.decay import apply_boost, trapezoid_area
from epochvault.vault.core.epoch_ledger import Epoch, EpochLedger
from epochvault.vault.core.leaderboard import LeaderboardTracker
from epochvault.vault.core.lock_store import LockStore, UserLock

logger = logging.getLogger(__name__)


def overlap_window(lock: UserLock, epoch: Epoch) -> Tuple[int, int]:
    return max(lock.lock_start, epoch.start_time), min(lock.lock_end, epoch.end_time)


class ContributionEngine:
    """
    Keeps stored epoch contributions and epoch totals in step with locks.

    This class is responsible for:
    1. Recomputing a participant's contribution after every lock mutation
    2. Removing the not-yet-elapsed part of a contribution on withdrawal
    3. Feeding first-time epoch contributions to the leaderboard
    """

    def __init__(
        self,
        locks: LockStore,
        ledger: EpochLedger,
        boosts: NFTBoostRegistry,
        leaderboard: LeaderboardTracker
    ):
        self.locks = locks
        self.ledger = ledger
        self.boosts = boosts
        self.leaderboard = leaderboard

    def _boosted_area(self, lock: UserLock, window_start: int, window_end: int) -> int:
        area = trapezoid_area(lock.peak_weight, lock.lock_start, lock.lock_end, window_start, window_end)
        if area == 0:
            return 0
        return apply_boost(area, self.boosts.total_boost(lock.locked_nfts))

    def _store(self, participant: str, lock: UserLock, epoch: Epoch, previous: int, new: int):
        epoch.total_weight = max(epoch.total_weight - previous, 0) + new
        self.ledger.set_power(participant, epoch.epoch_id, new)
        if new > 0:
            lock.pending_epochs.add(epoch.epoch_id)
        else:
            lock.pending_epochs.discard(epoch.epoch_id)

    def recompute(self, participant: str, now: int) -> Optional[str]:
        """
        Recompute the participant's contribution to the open epoch.

        Args:
            participant: Participant whose lock just changed
            now: Current timestamp

        Returns:
            The participant if they became the new leaderboard top holder,
            otherwise None
        """
        epoch = self.ledger.open_epoch_at(now)
        if epoch is None:
            return None

        lock = self.locks.get(participant)
        previous = self.ledger.power_of(participant, epoch.epoch_id)
        effective_start, effective_end = overlap_window(lock, epoch)
        if lock.amount == 0:
            contribution = 0
        else:
            contribution = self._boosted_area(lock, effective_start, effective_end)

        self._store(participant, lock, epoch, previous, contribution)
        logger.debug(
            f"Contribution of {participant} to epoch {epoch.epoch_id}: "
            f"{previous} -> {contribution} (window [{effective_start}, {effective_end}])"
        )

        if self.leaderboard.record_first_contribution(participant, epoch.epoch_id, contribution):
            return participant
        return None

    def reduce(self, participant: str, now: int) -> int:
        """
        Remove the remaining future part of a contribution ahead of withdrawal.

        Must run before the lock is cleared. Only the area over
        ``[now, effective_end]`` is removed; the part already elapsed in the
        epoch stays credited.

        Returns:
            The amount subtracted from the stored contribution
        """
        epoch = self.ledger.open_epoch_at(now)
        if epoch is None:
            return 0

        lock = self.locks.get(participant)
        previous = self.ledger.power_of(participant, epoch.epoch_id)
        if previous == 0:
            return 0

        effective_start, effective_end = overlap_window(lock, epoch)
        remaining = self._boosted_area(lock, max(now, effective_start), effective_end)
        removed = min(remaining, previous)
        self._store(participant, lock, epoch, previous, previous - removed)
        logger.debug(f"Reduced contribution of {participant} to epoch {epoch.epoch_id} by {removed}")
        return removed

    def check_invariant(self, epoch_id: int) -> bool:
        """Whether the epoch total equals the sum of stored contributions."""
        epoch = self.ledger.get(epoch_id)
        return epoch.total_weight == sum(self.ledger.powers_for(epoch_id).values())
