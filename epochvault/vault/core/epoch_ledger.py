"""
Append-only ledger of reward epochs.

Only the highest-indexed epoch can be open, and a new epoch can only be
opened once the previous one has ended. An epoch "ends" purely by time;
there is no explicit close transition.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from epochvault.vault.config import VaultConfig
from epochvault.vault.core.decay import BASIS_POINTS
from epochvault.vault.errors import StateError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class Epoch:
    """A reward window and the pools attached to it."""

    epoch_id: int
    start_time: int
    end_time: int
    leaderboard_percentage: int = 0
    total_weight: int = 0
    reward_pool: Dict[str, int] = field(default_factory=dict)
    leaderboard_pool: Dict[str, int] = field(default_factory=dict)
    leaderboard_claimed: bool = False

    def has_ended(self, now: int) -> bool:
        return now >= self.end_time

    def to_dict(self) -> Dict:
        return {
            "epoch_id": self.epoch_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_weight": self.total_weight,
            "reward_pool": dict(self.reward_pool),
            "leaderboard_pool": dict(self.leaderboard_pool),
            "leaderboard_percentage": self.leaderboard_percentage,
            "leaderboard_claimed": self.leaderboard_claimed,
        }


def split_reward(gross_amount: int, fee: int, leaderboard_percentage: int) -> Tuple[int, int]:
    """
    Split a funded amount into its reward and leaderboard parts.

    Args:
        gross_amount: Amount pulled from the funder
        fee: Performance fee already routed to the platform
        leaderboard_percentage: Leaderboard carve-out in basis points

    Returns:
        Tuple of (net reward, leaderboard bonus); together with ``fee`` they
        sum to ``gross_amount`` exactly
    """
    if fee < 0 or fee > gross_amount:
        raise ValidationError("INVALID_FEE", f"fee {fee} is outside [0, {gross_amount}]")
    remainder = gross_amount - fee
    leaderboard_amount = remainder * leaderboard_percentage // BASIS_POINTS
    return remainder - leaderboard_amount, leaderboard_amount


class EpochLedger:
    """Owns the epoch sequence and every participant's stored contribution."""

    def __init__(self, config: VaultConfig):
        self.config = config
        self.epochs: List[Epoch] = []
        self.powers: Dict[Tuple[str, int], int] = {}

    def __len__(self) -> int:
        return len(self.epochs)

    def get(self, epoch_id: int) -> Epoch:
        if not 0 <= epoch_id < len(self.epochs):
            raise StateError("EPOCH_NOT_FOUND", f"epoch {epoch_id} does not exist")
        return self.epochs[epoch_id]

    def current_epoch(self) -> Optional[Epoch]:
        return self.epochs[-1] if self.epochs else None

    def open_epoch_at(self, now: int) -> Optional[Epoch]:
        """The epoch accepting contributions at ``now``, if any."""
        epoch = self.current_epoch()
        if epoch is None or epoch.has_ended(now):
            return None
        return epoch

    def validate_open(self, now: int, end_time: int, leaderboard_percentage: int):
        previous = self.current_epoch()
        if previous is not None and not previous.has_ended(now):
            raise StateError(
                "PREVIOUS_EPOCH_NOT_ENDED",
                f"epoch {previous.epoch_id} runs until {previous.end_time}"
            )
        duration = end_time - now
        if not self.config.min_epoch_duration <= duration <= self.config.max_epoch_duration:
            raise ValidationError(
                "INVALID_EPOCH_DURATION",
                f"epoch duration {duration} outside "
                f"[{self.config.min_epoch_duration}, {self.config.max_epoch_duration}]"
            )
        if not 0 <= leaderboard_percentage <= self.config.max_leaderboard_percentage:
            raise ValidationError(
                "LEADERBOARD_PERCENTAGE_TOO_HIGH",
                f"leaderboard percentage {leaderboard_percentage} exceeds "
                f"{self.config.max_leaderboard_percentage}"
            )

    def open_epoch(self, now: int, end_time: int, leaderboard_percentage: int) -> Epoch:
        """Append a new, empty epoch running from ``now`` to ``end_time``."""
        self.validate_open(now, end_time, leaderboard_percentage)
        epoch = Epoch(
            epoch_id=len(self.epochs),
            start_time=now,
            end_time=end_time,
            leaderboard_percentage=leaderboard_percentage,
        )
        self.epochs.append(epoch)
        logger.debug(f"Opened epoch {epoch.epoch_id}: [{now}, {end_time})")
        return epoch

    def fund(self, epoch_id: int, asset: str, net_reward: int, leaderboard_amount: int):
        """Merge net amounts into the epoch's pools, appending new assets."""
        epoch = self.get(epoch_id)
        epoch.reward_pool[asset] = epoch.reward_pool.get(asset, 0) + net_reward
        if leaderboard_amount > 0:
            epoch.leaderboard_pool[asset] = epoch.leaderboard_pool.get(asset, 0) + leaderboard_amount

    def power_of(self, participant: str, epoch_id: int) -> int:
        return self.powers.get((participant, epoch_id), 0)

    def set_power(self, participant: str, epoch_id: int, power: int):
        if power:
            self.powers[(participant, epoch_id)] = power
        else:
            self.powers.pop((participant, epoch_id), None)

    def powers_for(self, epoch_id: int) -> Dict[str, int]:
        return {
            participant: power
            for (participant, eid), power in self.powers.items()
            if eid == epoch_id
        }
