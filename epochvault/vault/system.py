"""
Vault engine.

This module ties the lock store, epoch ledger, contribution engine, boost
registry, settlement and leaderboard together behind the vault's entry
points. Every state-mutating entry point is atomic and non-reentrant:
preconditions are validated first, internal state is mutated next, and
external asset transfers run last.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from epochvault.vault import events as ev
from epochvault.vault.access import ADMIN, ALLOWLISTED, FACTORY, RoleTable
from epochvault.vault.assets import NFT_RECEIVED, AssetRegistry, FungibleAsset, is_valid_address
from epochvault.vault.config import VaultConfig
from epochvault.vault.core.boosts import NFTBoostRegistry
from epochvault.vault.core.contribution import ContributionEngine
from epochvault.vault.core.decay import BASIS_POINTS
from epochvault.vault.core.epoch_ledger import Epoch, EpochLedger, split_reward
from epochvault.vault.core.leaderboard import LeaderboardTracker
from epochvault.vault.core.lock_store import LockStore
from epochvault.vault.core.settlement import RewardSettlement
from epochvault.vault.core.transaction import ReentrancyGuard, StateSnapshot, atomic_operation
from epochvault.vault.errors import ResourceError, StateError, ValidationError
from epochvault.vault.fees import FeeConfig, VaultTier

logger = logging.getLogger(__name__)


@dataclass
class RewardSpec:
    """An amount of one asset to fund an epoch with."""

    asset: str
    amount: int


@dataclass
class VaultSettings:
    """Mutable vault-level settings."""

    token: str
    fee_beneficiary: str
    deposit_fee_rate: int
    tier: VaultTier
    paused: bool = False
    emergency_mode: bool = False
    allowlist_enabled: bool = False


class Vault:
    """
    Time-locked vault with decaying voting power and epoch rewards.

    The vault:
    1. Locks a single token per participant with a linearly decaying weight
    2. Aggregates weight into epochs as exact integrals of the decay curve
    3. Distributes epoch reward pools pro rata, with NFT boosts
    4. Reserves a per-epoch leaderboard bonus for the top cumulative holder
    """

    def __init__(
        self,
        vault_id: str,
        token: str,
        admin: str,
        fee_config: FeeConfig,
        fee_beneficiary: str,
        assets: AssetRegistry,
        tier: Optional[VaultTier] = None,
        deposit_fee_rate: Optional[int] = None,
        config: Optional[VaultConfig] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        """
        Initialize the vault.

        Args:
            vault_id: Identity of the vault; also its account in asset ledgers
            token: Asset id of the lockable token
            admin: Initial vault administrator
            fee_config: Factory interface supplying fees and tier bounds
            fee_beneficiary: Account receiving the admin share of deposit fees
            assets: Registry resolving asset and collection ids
            tier: Vault tier; must match the factory's record (defaults to it)
            deposit_fee_rate: Deposit fee in basis points (defaults to the tier minimum)
            config: Lock, epoch and boost bounds
            clock: Returns the current timestamp in seconds
        """
        for name, address in (("vault_id", vault_id), ("token", token), ("admin", admin),
                              ("fee_beneficiary", fee_beneficiary)):
            if not is_valid_address(address):
                raise ValidationError("INVALID_ADDRESS", f"{name} must be a valid address")

        self.vault_id = vault_id
        self.fee_config = fee_config
        self.assets = assets
        self.config = (config or VaultConfig()).validate()
        self.clock = clock or (lambda: int(time.time()))

        registered_tier = fee_config.vault_tier(vault_id)
        if tier is None:
            tier = registered_tier
        if VaultTier(tier) != registered_tier:
            raise ValidationError(
                "TIER_MISMATCH",
                f"tier {VaultTier(tier).name} differs from the factory record {registered_tier.name}"
            )
        tier_config = fee_config.tier_config(vault_id)
        if deposit_fee_rate is None:
            deposit_fee_rate = tier_config.min_deposit_fee_rate
        if not tier_config.min_deposit_fee_rate <= deposit_fee_rate <= tier_config.max_deposit_fee_rate:
            raise ValidationError(
                "DEPOSIT_FEE_OUT_OF_RANGE",
                f"deposit fee {deposit_fee_rate} outside tier bounds "
                f"[{tier_config.min_deposit_fee_rate}, {tier_config.max_deposit_fee_rate}]"
            )

        self.settings = VaultSettings(
            token=token,
            fee_beneficiary=fee_beneficiary,
            deposit_fee_rate=deposit_fee_rate,
            tier=VaultTier(tier),
        )
        self.roles = RoleTable()
        self.roles.grant(ADMIN, admin)
        self.roles.grant(FACTORY, fee_config.address)

        # Components
        self.locks = LockStore(self.config)
        self.ledger = EpochLedger(self.config)
        self.boosts = NFTBoostRegistry(self.config)
        self.leaderboard = LeaderboardTracker()
        self.contributions = ContributionEngine(self.locks, self.ledger, self.boosts, self.leaderboard)
        self.settlement = RewardSettlement(self.locks, self.ledger, self.leaderboard)

        self.event_log = ev.EventLog()
        self._pending_events: List[ev.VaultEvent] = []
        self._guard = ReentrancyGuard()

        assets.register_receiver(vault_id, self)
        logger.info(f"Vault {vault_id} initialized: token={token}, tier={self.settings.tier.name}, "
                    f"deposit_fee_rate={deposit_fee_rate}")

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _snapshot(self) -> StateSnapshot:
        components = {
            "settings": self.settings,
            "roles": self.roles,
            "locks": self.locks,
            "ledger": self.ledger,
            "boosts": self.boosts,
            "leaderboard": self.leaderboard,
        }
        # Asset ledgers roll back with the vault so a failed transfer never leaves partial payments.
        for asset_id, token in self.assets.tokens.items():
            components[f"token:{asset_id}"] = token
        for asset_id, collection in self.assets.collections.items():
            components[f"collection:{asset_id}"] = collection
        return StateSnapshot(components, shared=[self.config, self.assets, self, self.fee_config])

    def _emit(self, name: str, now: int, **args):
        self._pending_events.append(ev.VaultEvent(name, now, args))

    def _publish_events(self):
        events, self._pending_events = self._pending_events, []
        self.event_log.publish(events)

    def register_event_handler(self, handler: Callable[[ev.VaultEvent], None]):
        self.event_log.register_handler(handler)

    @property
    def events(self) -> List[ev.VaultEvent]:
        return self.event_log.events

    # ------------------------------------------------------------------
    # Shared checks
    # ------------------------------------------------------------------

    @property
    def admin(self) -> str:
        return next(iter(self.roles.holders(ADMIN)))

    def _require_admin(self, caller: str):
        self.roles.require(ADMIN, caller, "NOT_ADMIN")

    def _require_not_paused(self):
        if self.settings.paused:
            raise StateError("VAULT_PAUSED", "vault is paused")

    def _require_participant(self, caller: str):
        if not is_valid_address(caller):
            raise ValidationError("INVALID_ADDRESS", "caller must be a valid address")
        if self.settings.allowlist_enabled:
            self.roles.require(ALLOWLISTED, caller, "NOT_ALLOWLISTED")

    def _token(self) -> FungibleAsset:
        return self.assets.token(self.settings.token)

    def _require_pull(self, token: FungibleAsset, owner: str, amount: int):
        if token.balance_of(owner) < amount:
            raise ResourceError(
                "INSUFFICIENT_BALANCE",
                f"{owner} holds {token.balance_of(owner)} {token.asset_id}, needs {amount}"
            )
        if token.allowance(owner, self.vault_id) < amount:
            raise ResourceError(
                "INSUFFICIENT_ALLOWANCE",
                f"vault may move {token.allowance(owner, self.vault_id)} {token.asset_id} of {owner}, needs {amount}"
            )

    def _require_vault_balance(self, payouts: Dict[str, int]):
        for asset, amount in payouts.items():
            held = self.assets.token(asset).balance_of(self.vault_id)
            if held < amount:
                raise ResourceError(
                    "INSUFFICIENT_VAULT_BALANCE",
                    f"vault holds {held} {asset}, needs {amount}"
                )

    def _split_deposit_fee(self, amount: int) -> Tuple[int, int, int]:
        """Return (fee, platform share, admin share) for a deposit of ``amount``."""
        fee = amount * self.settings.deposit_fee_rate // BASIS_POINTS
        if fee == 0:
            return 0, 0, 0
        platform_share, admin_share = self.fee_config.deposit_fee_sharing(self.vault_id, fee)
        if platform_share + admin_share != fee:
            raise ValidationError("INVALID_FEE", "deposit fee shares do not sum to the fee")
        return fee, platform_share, admin_share

    def _deposit_transfers(self, caller: str, amount: int, platform_share: int, admin_share: int) -> List[Callable]:
        token = self._token()
        transfers = [lambda: token.transfer_from(self.vault_id, caller, self.vault_id, amount)]
        if platform_share:
            transfers.append(
                lambda b=self.fee_config.fee_beneficiary(), a=platform_share: token.transfer(self.vault_id, b, a)
            )
        if admin_share:
            transfers.append(
                lambda b=self.settings.fee_beneficiary, a=admin_share: token.transfer(self.vault_id, b, a)
            )
        return transfers

    @staticmethod
    def _execute(transfers: Sequence[Callable]):
        for transfer in transfers:
            transfer()

    def _recompute(self, participant: str, now: int):
        top_holder = self.contributions.recompute(participant, now)
        if top_holder is not None:
            self._emit(ev.NEW_TOP_HOLDER, now, holder=top_holder,
                       cumulative_weight=self.leaderboard.top_holder_weight)

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    @atomic_operation
    def deposit(self, caller: str, amount: int, duration: int) -> int:
        """
        Lock ``amount`` of the vault token for ``duration`` seconds.

        The deposit fee is taken from ``amount``; the remainder is locked.

        Returns:
            The net amount locked
        """
        now = self.clock()
        self._require_not_paused()
        self._require_participant(caller)
        if amount <= 0:
            raise ValidationError("INVALID_AMOUNT", "deposit amount must be positive")

        fee, platform_share, admin_share = self._split_deposit_fee(amount)
        net_amount = amount - fee
        self.locks.validate_create(caller, net_amount, duration)
        self._require_pull(self._token(), caller, amount)

        lock = self.locks.create_lock(caller, net_amount, duration, now)
        self._emit(ev.DEPOSITED, now, participant=caller, amount=amount, net_amount=net_amount,
                   fee=fee, lock_end=lock.lock_end)
        self._recompute(caller, now)

        self._execute(self._deposit_transfers(caller, amount, platform_share, admin_share))
        return net_amount

    @atomic_operation
    def expand_lock(self, caller: str, extra_amount: int, new_end: int) -> int:
        """
        Add principal and/or extend the lock end.

        Returns:
            The net principal added
        """
        now = self.clock()
        self._require_not_paused()
        self._require_participant(caller)

        fee, platform_share, admin_share = self._split_deposit_fee(extra_amount) if extra_amount > 0 else (0, 0, 0)
        net_extra = extra_amount - fee
        self.locks.validate_expand(caller, net_extra, new_end, now)
        if extra_amount > 0:
            self._require_pull(self._token(), caller, extra_amount)

        lock = self.locks.expand_lock(caller, net_extra, new_end, now)
        self._emit(ev.LOCK_EXPANDED, now, participant=caller, added=net_extra, fee=fee,
                   amount=lock.amount, lock_end=lock.lock_end, peak_weight=lock.peak_weight)
        self._recompute(caller, now)

        if extra_amount > 0:
            self._execute(self._deposit_transfers(caller, extra_amount, platform_share, admin_share))
        return net_extra

    def _release(self, caller: str, now: int, event_name: str) -> int:
        self.contributions.reduce(caller, now)
        principal, nfts = self.locks.clear_lock(caller)
        self._require_vault_balance({self.settings.token: principal})

        token = self._token()
        transfers = [lambda: token.transfer(self.vault_id, caller, principal)]
        for collection_id, item_id in nfts:
            collection = self.assets.collection(collection_id)
            transfers.append(
                lambda c=collection, i=item_id: c.safe_transfer_from(self.vault_id, self.vault_id, caller, i)
            )

        self._emit(event_name, now, participant=caller, amount=principal)
        if nfts:
            self._emit(ev.NFTS_WITHDRAWN, now, participant=caller, items=list(nfts))
        self._execute(transfers)
        return principal

    @atomic_operation
    def withdraw(self, caller: str) -> int:
        """
        Withdraw the full principal and locked NFTs once the lock has ended.

        Returns:
            The principal returned
        """
        now = self.clock()
        lock = self.locks.peek(caller)
        if lock is None or lock.amount == 0:
            raise StateError("NO_ACTIVE_LOCK", f"{caller} has no active lock")
        if now < lock.lock_end:
            raise StateError("LOCK_NOT_ENDED", f"lock ends at {lock.lock_end}")
        return self._release(caller, now, ev.WITHDRAWN)

    @atomic_operation
    def emergency_unlock(self, caller: str) -> int:
        """
        Withdraw before the lock end; only while paused with emergency mode on.

        Returns:
            The principal returned
        """
        now = self.clock()
        if not (self.settings.paused and self.settings.emergency_mode):
            raise StateError("EMERGENCY_NOT_ACTIVE", "emergency unlock requires paused emergency mode")
        lock = self.locks.peek(caller)
        if lock is None or lock.amount == 0:
            raise StateError("NO_ACTIVE_LOCK", f"{caller} has no active lock")
        return self._release(caller, now, ev.EMERGENCY_UNLOCKED)

    @atomic_operation
    def deposit_nfts(self, caller: str, items: Sequence[Tuple[str, int]]) -> int:
        """
        Lock NFTs alongside the caller's active lock to earn boosts.

        Returns:
            The caller's total boost in basis points afterwards
        """
        now = self.clock()
        self._require_not_paused()
        self._require_participant(caller)
        if not items:
            raise ValidationError("INVALID_AMOUNT", "no NFTs given")
        lock = self.locks.peek(caller)
        if lock is None or lock.amount == 0:
            raise StateError("NO_ACTIVE_LOCK", f"{caller} has no active lock")

        collections = []
        for collection_id, item_id in items:
            collection = self.assets.collection(collection_id)
            if collection.owner_of(item_id) != caller:
                raise ValidationError("NOT_NFT_OWNER", f"{caller} does not own {collection_id}#{item_id}")
            if collection.get_approved(item_id) != self.vault_id \
                    and not collection.is_approved_for_all(caller, self.vault_id):
                raise ValidationError("NFT_NOT_APPROVED", f"vault is not approved for {collection_id}#{item_id}")
            self.locks.lock_nft(caller, collection_id, item_id)
            collections.append((collection, item_id))

        self._emit(ev.NFTS_DEPOSITED, now, participant=caller, items=list(items))
        self._recompute(caller, now)

        self._execute([
            lambda c=collection, i=item_id: c.safe_transfer_from(self.vault_id, caller, self.vault_id, i)
            for collection, item_id in collections
        ])
        return self.boosts.total_boost(lock.locked_nfts)

    def on_nft_received(self, operator: str, owner: str, collection_id: str, item_id: int) -> Optional[str]:
        """Receive hook; only transfers the vault itself initiated are accepted."""
        if operator == self.vault_id and self._guard.entered:
            return NFT_RECEIVED
        logger.warning(f"Rejected unsolicited NFT {collection_id}#{item_id} from {owner}")
        return None

    # ------------------------------------------------------------------
    # Epochs and rewards
    # ------------------------------------------------------------------

    def _fund_epoch(self, caller: str, epoch: Epoch, reward_specs: Sequence[RewardSpec], now: int) -> List[Callable]:
        """Validate, split and book reward specs; returns the transfers to run."""
        gross_by_asset: Dict[str, int] = {}
        for spec in reward_specs:
            if not is_valid_address(spec.asset):
                raise ValidationError("INVALID_ADDRESS", "reward asset must be a valid address")
            if spec.amount <= 0:
                raise ValidationError("INVALID_AMOUNT", f"reward amount for {spec.asset} must be positive")
            gross_by_asset[spec.asset] = gross_by_asset.get(spec.asset, 0) + spec.amount
        for asset, gross in gross_by_asset.items():
            self._require_pull(self.assets.token(asset), caller, gross)

        beneficiary = self.fee_config.fee_beneficiary()
        transfers = []
        for spec in reward_specs:
            fee = self.fee_config.performance_fee(self.vault_id, spec.amount)
            net_reward, leaderboard_amount = split_reward(spec.amount, fee, epoch.leaderboard_percentage)
            self.ledger.fund(epoch.epoch_id, spec.asset, net_reward, leaderboard_amount)
            self._emit(ev.REWARDS_ADDED, now, epoch_id=epoch.epoch_id, asset=spec.asset, gross=spec.amount,
                       fee=fee, reward=net_reward, leaderboard=leaderboard_amount)

            token = self.assets.token(spec.asset)
            transfers.append(lambda t=token, a=spec.amount: t.transfer_from(self.vault_id, caller, self.vault_id, a))
            if fee:
                transfers.append(lambda t=token, f=fee: t.transfer(self.vault_id, beneficiary, f))
        return transfers

    @atomic_operation
    def open_epoch(
        self,
        caller: str,
        reward_specs: Sequence[RewardSpec],
        end_time: int,
        leaderboard_percentage: int = 0
    ) -> int:
        """
        Open a new epoch running from now until ``end_time``.

        Active locks are credited to the new epoch immediately.

        Returns:
            The new epoch id
        """
        now = self.clock()
        self._require_admin(caller)
        self._require_not_paused()
        epoch = self.ledger.open_epoch(now, end_time, leaderboard_percentage)
        self._emit(ev.EPOCH_OPENED, now, epoch_id=epoch.epoch_id, start_time=now, end_time=end_time,
                   leaderboard_percentage=leaderboard_percentage)
        transfers = self._fund_epoch(caller, epoch, reward_specs, now)

        for participant in self.locks.participants():
            if self.locks.get(participant).is_active:
                self._recompute(participant, now)

        self._execute(transfers)
        return epoch.epoch_id

    @atomic_operation
    def add_rewards_to_epoch(self, caller: str, epoch_id: int, reward_specs: Sequence[RewardSpec]):
        """Top up an epoch that has not ended yet."""
        now = self.clock()
        self._require_admin(caller)
        epoch = self.ledger.get(epoch_id)
        if epoch.has_ended(now):
            raise StateError("EPOCH_ENDED", f"epoch {epoch_id} ended at {epoch.end_time}")
        if not reward_specs:
            raise ValidationError("INVALID_AMOUNT", "no rewards given")
        self._execute(self._fund_epoch(caller, epoch, reward_specs, now))

    def _settle(self, caller: str, epoch_id: int, now: int) -> Dict[str, int]:
        payouts = self.settlement.compute_claim(caller, epoch_id, now)
        self.settlement.mark_claimed(caller, epoch_id)
        self._emit(ev.REWARDS_CLAIMED, now, participant=caller, epoch_id=epoch_id, payouts=dict(payouts))
        return payouts

    def _pay(self, recipient: str, payouts: Dict[str, int]):
        self._require_vault_balance(payouts)
        self._execute([
            lambda t=self.assets.token(asset), a=amount: t.transfer(self.vault_id, recipient, a)
            for asset, amount in payouts.items()
        ])

    @atomic_operation
    def claim(self, caller: str, epoch_id: int) -> Dict[str, int]:
        """
        Claim the caller's share of an ended epoch.

        Returns:
            Mapping of asset to amount paid
        """
        now = self.clock()
        payouts = self._settle(caller, epoch_id, now)
        self._pay(caller, payouts)
        return payouts

    @atomic_operation
    def claim_all(self, caller: str) -> Dict[str, int]:
        """Claim every ended epoch the caller has pending."""
        now = self.clock()
        epoch_ids = self.settlement.claimable_epochs(caller, now)
        if not epoch_ids:
            raise StateError("NOTHING_TO_CLAIM", f"{caller} has no ended pending epochs")
        totals: Dict[str, int] = {}
        for epoch_id in epoch_ids:
            for asset, amount in self._settle(caller, epoch_id, now).items():
                totals[asset] = totals.get(asset, 0) + amount
        self._pay(caller, totals)
        return totals

    @atomic_operation
    def claim_leaderboard_bonus(self, caller: str, epoch_id: int) -> Dict[str, int]:
        """Pay the epoch's leaderboard pool to the current top holder."""
        now = self.clock()
        payouts = self.settlement.compute_leaderboard_bonus(caller, epoch_id, now)
        self.settlement.mark_leaderboard_claimed(epoch_id)
        self._emit(ev.LEADERBOARD_BONUS_CLAIMED, now, holder=caller, epoch_id=epoch_id, payouts=dict(payouts))
        self._pay(caller, payouts)
        return payouts

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @atomic_operation
    def set_nft_requirement(self, caller: str, collection: str, required_count: int,
                            boost_percentage: int, is_active: bool = True):
        now = self.clock()
        self._require_admin(caller)
        self.boosts.set_requirement(collection, required_count, boost_percentage, is_active)
        self._emit(ev.NFT_REQUIREMENT_SET, now, collection=collection, required_count=required_count,
                   boost_percentage=boost_percentage, is_active=is_active)

    @atomic_operation
    def set_nft_requirements(self, caller: str, collections: List[str], required_counts: List[int],
                             boost_percentages: List[int], is_active: List[bool]):
        now = self.clock()
        self._require_admin(caller)
        self.boosts.set_requirements(collections, required_counts, boost_percentages, is_active)
        for collection, count, boost, active in zip(collections, required_counts, boost_percentages, is_active):
            self._emit(ev.NFT_REQUIREMENT_SET, now, collection=collection, required_count=count,
                       boost_percentage=boost, is_active=active)

    @atomic_operation
    def remove_nft_requirement(self, caller: str, collection: str):
        now = self.clock()
        self._require_admin(caller)
        self.boosts.remove_requirement(collection)
        self._emit(ev.NFT_REQUIREMENT_REMOVED, now, collection=collection)

    @atomic_operation
    def set_deposit_fee_rate(self, caller: str, rate: int):
        now = self.clock()
        self._require_admin(caller)
        tier_config = self.fee_config.tier_config(self.vault_id)
        if not tier_config.can_adjust_deposit_fee:
            raise StateError("DEPOSIT_FEE_NOT_ADJUSTABLE", f"tier {self.settings.tier.name} has a fixed deposit fee")
        if not tier_config.min_deposit_fee_rate <= rate <= tier_config.max_deposit_fee_rate:
            raise ValidationError(
                "DEPOSIT_FEE_OUT_OF_RANGE",
                f"deposit fee {rate} outside [{tier_config.min_deposit_fee_rate}, {tier_config.max_deposit_fee_rate}]"
            )
        self.settings.deposit_fee_rate = rate
        self._emit(ev.DEPOSIT_FEE_RATE_UPDATED, now, rate=rate)

    @atomic_operation
    def set_fee_beneficiary(self, caller: str, beneficiary: str):
        now = self.clock()
        self._require_admin(caller)
        if not is_valid_address(beneficiary):
            raise ValidationError("INVALID_ADDRESS", "fee beneficiary must be a valid address")
        self.settings.fee_beneficiary = beneficiary
        self._emit(ev.FEE_BENEFICIARY_UPDATED, now, beneficiary=beneficiary)

    @atomic_operation
    def transfer_admin(self, caller: str, new_admin: str):
        now = self.clock()
        self._require_admin(caller)
        if not is_valid_address(new_admin):
            raise ValidationError("INVALID_ADDRESS", "new admin must be a valid address")
        self.roles.replace(ADMIN, new_admin)
        self._emit(ev.ADMIN_TRANSFERRED, now, previous_admin=caller, new_admin=new_admin)

    @atomic_operation
    def pause(self, caller: str):
        now = self.clock()
        self._require_admin(caller)
        if self.settings.paused:
            raise StateError("VAULT_PAUSED", "vault is already paused")
        self.settings.paused = True
        self._emit(ev.PAUSED, now, by=caller)

    @atomic_operation
    def unpause(self, caller: str):
        now = self.clock()
        self._require_admin(caller)
        if not self.settings.paused:
            raise StateError("VAULT_NOT_PAUSED", "vault is not paused")
        self.settings.paused = False
        self.settings.emergency_mode = False
        self._emit(ev.UNPAUSED, now, by=caller)

    @atomic_operation
    def set_emergency_mode(self, caller: str, enabled: bool):
        now = self.clock()
        self._require_admin(caller)
        if enabled and not self.settings.paused:
            raise StateError("VAULT_NOT_PAUSED", "emergency mode requires the vault to be paused")
        self.settings.emergency_mode = enabled
        self._emit(ev.EMERGENCY_MODE_SET, now, enabled=enabled)

    @atomic_operation
    def set_allowlist_enabled(self, caller: str, enabled: bool):
        now = self.clock()
        self._require_admin(caller)
        self.settings.allowlist_enabled = enabled
        self._emit(ev.ALLOWLIST_UPDATED, now, enabled=enabled)

    @atomic_operation
    def set_allowlisted(self, caller: str, participants: Sequence[str], allowed: bool):
        now = self.clock()
        self._require_admin(caller)
        for participant in participants:
            if not is_valid_address(participant):
                raise ValidationError("INVALID_ADDRESS", "allow-list entries must be valid addresses")
            if allowed:
                self.roles.grant(ALLOWLISTED, participant)
            else:
                self.roles.revoke(ALLOWLISTED, participant)
        self._emit(ev.ALLOWLIST_UPDATED, now, participants=list(participants), allowed=allowed)

    @atomic_operation
    def update_tier(self, caller: str, new_tier: VaultTier):
        """Factory-only: move to a new tier and clamp the deposit fee into its bounds."""
        now = self.clock()
        self.roles.require(FACTORY, caller, "NOT_FACTORY")
        registered_tier = self.fee_config.vault_tier(self.vault_id)
        if VaultTier(new_tier) != registered_tier:
            raise ValidationError(
                "TIER_MISMATCH",
                f"tier {VaultTier(new_tier).name} differs from the factory record {registered_tier.name}"
            )
        tier_config = self.fee_config.tier_config(self.vault_id)
        self.settings.tier = registered_tier
        self.settings.deposit_fee_rate = tier_config.clamp_deposit_fee(self.settings.deposit_fee_rate)
        self._emit(ev.TIER_UPDATED, now, tier=self.settings.tier.name,
                   deposit_fee_rate=self.settings.deposit_fee_rate)
