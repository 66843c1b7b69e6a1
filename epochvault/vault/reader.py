"""
Read-only views over a vault's state.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from epochvault.vault.errors import VaultError

logger = logging.getLogger(__name__)


class VaultReader:
    """Aggregates lock, epoch and leaderboard state for display and indexing."""

    def __init__(self, vault):
        self.vault = vault

    def lock_snapshot(self, participant: str) -> Dict[str, Any]:
        lock = self.vault.locks.peek(participant)
        if lock is None:
            return {
                "amount": 0, "lock_start": 0, "lock_end": 0, "peak_weight": 0,
                "pending_epochs": [], "locked_nfts": [],
            }
        return lock.to_dict()

    def epoch_snapshot(self, epoch_id: int) -> Dict[str, Any]:
        snapshot = self.vault.ledger.get(epoch_id).to_dict()
        snapshot["has_ended"] = self.vault.ledger.get(epoch_id).has_ended(self.vault.clock())
        return snapshot

    def current_epoch_id(self) -> Optional[int]:
        epoch = self.vault.ledger.current_epoch()
        return epoch.epoch_id if epoch else None

    def leaderboard_snapshot(self) -> Dict[str, Any]:
        snapshot = self.vault.leaderboard.snapshot()
        snapshot["ranking"] = self.vault.leaderboard.ranking()
        return snapshot

    def top_holders(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [
            {"participant": participant, "cumulative_weight": weight}
            for participant, weight in self.vault.leaderboard.ranking(limit)
        ]

    def qualifies_for_boost(self, participant: str, collection: str) -> bool:
        lock = self.vault.locks.peek(participant)
        if lock is None:
            return False
        return self.vault.boosts.qualifies(lock.locked_nfts, collection)

    def boost_of(self, participant: str) -> int:
        lock = self.vault.locks.peek(participant)
        return self.vault.boosts.total_boost(lock.locked_nfts) if lock else 0

    def voting_power(self, participant: str, at: Optional[int] = None) -> int:
        """Current decayed weight of the participant's lock."""
        lock = self.vault.locks.peek(participant)
        if lock is None:
            return 0
        return lock.weight_at(self.vault.clock() if at is None else at)

    def pending_rewards(self, participant: str) -> Dict[int, Dict[str, int]]:
        """
        Estimated payouts for every ended epoch the participant can claim.

        Returns:
            Mapping of epoch id to {asset: amount}
        """
        now = self.vault.clock()
        pending = {}
        for epoch_id in self.vault.settlement.claimable_epochs(participant, now):
            try:
                pending[epoch_id] = self.vault.settlement.compute_claim(participant, epoch_id, now)
            except VaultError as e:
                logger.debug(f"Epoch {epoch_id} not claimable for {participant}: {e.reason}")
        return pending

    def epoch_shares(self, epoch_id: int, participants: Sequence[str]) -> np.ndarray:
        """
        Each participant's fraction of the epoch's total weight.

        Args:
            epoch_id: Epoch to inspect
            participants: Participants, in the order of the returned vector

        Returns:
            Float vector aligned with ``participants``; all zeros if the epoch
            has no weight
        """
        epoch = self.vault.ledger.get(epoch_id)
        powers = np.array(
            [float(self.vault.ledger.power_of(participant, epoch_id)) for participant in participants],
            dtype=np.float64,
        )
        if epoch.total_weight == 0:
            return np.zeros(len(participants), dtype=np.float64)
        return powers / float(epoch.total_weight)

    def summary(self) -> Dict[str, Any]:
        settings = self.vault.settings
        return {
            "vault_id": self.vault.vault_id,
            "token": settings.token,
            "admin": self.vault.admin,
            "tier": settings.tier.name,
            "deposit_fee_rate": settings.deposit_fee_rate,
            "paused": settings.paused,
            "emergency_mode": settings.emergency_mode,
            "epochs": len(self.vault.ledger),
            "active_locks": sum(1 for p in self.vault.locks.participants() if self.vault.locks.get(p).is_active),
            "leaderboard": self.vault.leaderboard.snapshot(),
        }
