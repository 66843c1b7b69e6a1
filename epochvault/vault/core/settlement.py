"""
Pro-rata reward settlement for ended epochs.

Shares are floored, so a small amount of dust may remain in a pool; the
vault never pays out more than an epoch was funded with.
"""

import logging
from typing import Dict

from epochvault.vault.core.epoch_ledger import EpochLedger
from epochvault.vault.core.leaderboard import LeaderboardTracker
from epochvault.vault.core.lock_store import LockStore
from epochvault.vault.errors import AuthorizationError, StateError

logger = logging.getLogger(__name__)


class RewardSettlement:
    """Computes and records claims against ended epochs."""

    def __init__(self, locks: LockStore, ledger: EpochLedger, leaderboard: LeaderboardTracker):
        self.locks = locks
        self.ledger = ledger
        self.leaderboard = leaderboard

    def compute_claim(self, participant: str, epoch_id: int, now: int) -> Dict[str, int]:
        """
        Compute the participant's share of every reward asset in the epoch.

        Args:
            participant: Claimer
            epoch_id: Epoch to settle
            now: Current timestamp

        Returns:
            Mapping of asset to payable amount, zero shares omitted

        Raises:
            StateError: If the epoch has not ended or nothing is claimable
        """
        epoch = self.ledger.get(epoch_id)
        if not epoch.has_ended(now):
            raise StateError("EPOCH_NOT_ENDED", f"epoch {epoch_id} ends at {epoch.end_time}")

        lock = self.locks.peek(participant)
        if lock is None or epoch_id not in lock.pending_epochs:
            raise StateError("NOTHING_TO_CLAIM", f"{participant} has nothing pending for epoch {epoch_id}")

        power = self.ledger.power_of(participant, epoch_id)
        if power == 0 or epoch.total_weight == 0:
            raise StateError("NOTHING_TO_CLAIM", f"{participant} has no weight in epoch {epoch_id}")

        payouts = {}
        for asset, amount in epoch.reward_pool.items():
            share = amount * power // epoch.total_weight
            if share > 0:
                payouts[asset] = share

        logger.debug(f"Claim for {participant} in epoch {epoch_id}: power={power}/{epoch.total_weight}, payouts={payouts}")
        return payouts

    def mark_claimed(self, participant: str, epoch_id: int):
        self.locks.get(participant).pending_epochs.discard(epoch_id)

    def claimable_epochs(self, participant: str, now: int) -> list:
        """Pending epochs of the participant that have already ended."""
        lock = self.locks.peek(participant)
        if lock is None:
            return []
        return sorted(
            epoch_id for epoch_id in lock.pending_epochs
            if self.ledger.get(epoch_id).has_ended(now)
        )

    def compute_leaderboard_bonus(self, caller: str, epoch_id: int, now: int) -> Dict[str, int]:
        """
        Validate a leaderboard bonus claim and return the pool to pay.

        Raises:
            AuthorizationError: If the caller is not the current top holder
            StateError: If the bonus is claimed, not configured or not yet due
        """
        epoch = self.ledger.get(epoch_id)
        if self.leaderboard.top_holder is None or caller != self.leaderboard.top_holder:
            raise AuthorizationError("NOT_TOP_HOLDER", f"{caller} is not the leaderboard top holder")
        if epoch.leaderboard_claimed:
            raise StateError("LEADERBOARD_ALREADY_CLAIMED", f"bonus for epoch {epoch_id} already claimed")
        if not epoch.has_ended(now):
            raise StateError("EPOCH_NOT_ENDED", f"epoch {epoch_id} ends at {epoch.end_time}")
        if epoch.leaderboard_percentage == 0:
            raise StateError("LEADERBOARD_NOT_CONFIGURED", f"epoch {epoch_id} has no leaderboard bonus")
        return {asset: amount for asset, amount in epoch.leaderboard_pool.items() if amount > 0}

    def mark_leaderboard_claimed(self, epoch_id: int):
        self.ledger.get(epoch_id).leaderboard_claimed = True
