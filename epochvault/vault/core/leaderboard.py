"""
Cumulative cross-epoch leaderboard.

Each participant's first contribution to an epoch is folded into their
cumulative weight once; later recomputes within the same epoch are not
re-counted. The top holder is a running maximum, ties keep the incumbent.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class LeaderboardTracker:
    """Tracks cumulative weight per participant and the current top holder."""

    def __init__(self):
        self.cumulative_weight: Dict[str, int] = {}
        self.counted: Set[Tuple[str, int]] = set()
        self.top_holder: Optional[str] = None
        self.top_holder_weight: int = 0

    def is_counted(self, participant: str, epoch_id: int) -> bool:
        return (participant, epoch_id) in self.counted

    def record_first_contribution(self, participant: str, epoch_id: int, amount: int) -> bool:
        """
        Fold a first-time epoch contribution into the cumulative total.

        Args:
            participant: Contributor
            epoch_id: Epoch the contribution belongs to
            amount: Boosted contribution

        Returns:
            True if the participant became the new top holder
        """
        if amount <= 0 or (participant, epoch_id) in self.counted:
            return False
        self.counted.add((participant, epoch_id))
        cumulative = self.cumulative_weight.get(participant, 0) + amount
        self.cumulative_weight[participant] = cumulative

        if cumulative > self.top_holder_weight:
            changed = participant != self.top_holder
            self.top_holder = participant
            self.top_holder_weight = cumulative
            return changed
        return False

    def weight_of(self, participant: str) -> int:
        return self.cumulative_weight.get(participant, 0)

    def ranking(self, limit: Optional[int] = None) -> List[Tuple[str, int]]:
        ranked = sorted(self.cumulative_weight.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit] if limit is not None else ranked

    def snapshot(self) -> Dict:
        return {
            "top_holder": self.top_holder,
            "top_holder_weight": self.top_holder_weight,
            "participants": len(self.cumulative_weight),
        }
