"""
Observable side effects of vault operations.

Events are buffered while an operation runs and only published once it
has committed, so a reverted call never leaves events behind.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

# Event names
DEPOSITED = "Deposited"
LOCK_EXPANDED = "LockExpanded"
WITHDRAWN = "Withdrawn"
EMERGENCY_UNLOCKED = "EmergencyUnlocked"
EPOCH_OPENED = "EpochOpened"
REWARDS_ADDED = "RewardsAdded"
REWARDS_CLAIMED = "RewardsClaimed"
LEADERBOARD_BONUS_CLAIMED = "LeaderboardBonusClaimed"
NFTS_DEPOSITED = "NFTsDeposited"
NFTS_WITHDRAWN = "NFTsWithdrawn"
ADMIN_TRANSFERRED = "AdminTransferred"
FEE_BENEFICIARY_UPDATED = "FeeBeneficiaryUpdated"
DEPOSIT_FEE_RATE_UPDATED = "DepositFeeRateUpdated"
TIER_UPDATED = "TierUpdated"
PAUSED = "Paused"
UNPAUSED = "Unpaused"
EMERGENCY_MODE_SET = "EmergencyModeSet"
NFT_REQUIREMENT_SET = "NFTRequirementSet"
NFT_REQUIREMENT_REMOVED = "NFTRequirementRemoved"
ALLOWLIST_UPDATED = "AllowlistUpdated"
NEW_TOP_HOLDER = "NewTopHolder"


@dataclass
class VaultEvent:
    """A committed state change."""

    name: str
    timestamp: int
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "timestamp": self.timestamp, "args": dict(self.args)}


class EventLog:
    """Committed events plus the handlers notified about them."""

    def __init__(self):
        self.events: List[VaultEvent] = []
        self._handlers: List[Callable[[VaultEvent], None]] = []

    def register_handler(self, handler: Callable[[VaultEvent], None]):
        """
        Register a handler called for every committed event.

        Args:
            handler: Callable taking a ``VaultEvent``
        """
        if callable(handler):
            self._handlers.append(handler)
            logger.info(f"Registered event handler: {getattr(handler, '__name__', handler)}")

    def publish(self, events: List[VaultEvent]):
        """Record committed events, then notify handlers; handler errors are logged, not raised."""
        self.events.extend(events)
        for event in events:
            logger.info(f"{event.name} {event.args}")
            for handler in list(self._handlers):
                try:
                    handler(event)
                except Exception as e:
                    logger.error(f"Error in event handler for {event.name}: {e}")

    def named(self, name: str) -> List[VaultEvent]:
        return [event for event in self.events if event.name == name]
