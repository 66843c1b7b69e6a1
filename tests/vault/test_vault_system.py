"""
Tests for vault orchestration: atomicity, reentrancy, access control,
pausing and fees.
"""

from unittest.mock import MagicMock, patch

import pytest

from conftest import ADMIN, ADMIN_FEES, FACTORY, PLATFORM, VAULT_ID, deposit, fund, open_epoch

from epochvault.vault import events as ev
from epochvault.vault.assets import ZERO_ADDRESS, InMemoryToken
from epochvault.vault.errors import (
    AuthorizationError,
    ReentrancyError,
    ResourceError,
    StateError,
    ValidationError,
)
from epochvault.vault.fees import StaticFeeConfig, VaultTier
from epochvault.vault.system import RewardSpec, Vault


class ReentrantToken(InMemoryToken):
    """Token that calls back into the vault while it is pulling funds."""

    def __init__(self, asset_id, vault):
        super().__init__(asset_id)
        self.vault = vault
        self.reentered = False

    def transfer_from(self, spender, owner, to, amount):
        if not self.reentered:
            self.reentered = True
            self.vault.claim_all(owner)
        super().transfer_from(spender, owner, to, amount)


class RejectingReceiver:
    def on_nft_received(self, operator, owner, collection_id, item_id):
        return None


@pytest.fixture
def fee_vault(assets, config, clock):
    """Vault on the SPLIT_THE_SPOILS tier with a 1% deposit fee."""
    factory = StaticFeeConfig(FACTORY, PLATFORM)
    factory.register_vault("FEE_VAULT", VaultTier.SPLIT_THE_SPOILS)
    return Vault(
        vault_id="FEE_VAULT",
        token="TOKEN",
        admin=ADMIN,
        fee_config=factory,
        fee_beneficiary=ADMIN_FEES,
        assets=assets,
        tier=VaultTier.SPLIT_THE_SPOILS,
        deposit_fee_rate=100,
        config=config,
        clock=clock,
    )


class TestAtomicity:
    """Test suite for all-or-nothing entry points."""

    def test_reentrant_call_reverts_outer_operation(self, vault, assets):
        hostile = ReentrantToken("TOKEN", vault)
        assets.add(hostile)
        fund(assets, "TOKEN", "alice", 1_000)

        with pytest.raises(ReentrancyError) as exc_info:
            vault.deposit("alice", 1_000, 100)

        assert exc_info.value.reason == "REENTRANT_CALL"
        assert vault.locks.peek("alice") is None
        assert hostile.balance_of("alice") == 1_000
        assert hostile.balance_of(VAULT_ID) == 0
        assert vault.events == []
        assert not vault._guard.entered

    def test_failed_nft_return_reverts_withdrawal(self, vault, assets, clock):
        punks = assets.collection("PUNKS")
        punks.mint("alice", 1)
        punks.set_approval_for_all("alice", VAULT_ID, True)
        deposit(vault, "alice", 1_000, 100)
        vault.deposit_nfts("alice", [("PUNKS", 1)])
        committed = len(vault.events)

        assets.register_receiver("alice", RejectingReceiver())
        clock.advance(100)
        with pytest.raises(StateError) as exc_info:
            vault.withdraw("alice")

        assert exc_info.value.reason == "NFT_RECEIVER_REJECTED"
        assert vault.locks.get("alice").amount == 1_000
        assert vault.locks.nft_owner("PUNKS", 1) == "alice"
        assert punks.owner_of(1) == VAULT_ID
        assert assets.token("TOKEN").balance_of("alice") == 0
        assert assets.token("TOKEN").balance_of(VAULT_ID) == 1_000
        assert len(vault.events) == committed

    def test_validation_failure_changes_nothing(self, vault):
        open_epoch(vault, 100)
        before = vault.ledger.get(0).to_dict()
        with pytest.raises(ValidationError) as exc_info:
            deposit(vault, "alice", 99, 100)
        assert exc_info.value.reason == "AMOUNT_BELOW_MINIMUM"
        assert vault.ledger.get(0).to_dict() == before
        assert vault.locks.peek("alice") is None

    def test_handlers_see_committed_events_only(self, vault):
        handler = MagicMock()
        vault.register_event_handler(handler)

        deposit(vault, "alice", 1_000, 100)
        with pytest.raises(StateError):
            deposit(vault, "alice", 1_000, 100)

        handler.assert_called_once()
        event = handler.call_args[0][0]
        assert event.name == ev.DEPOSITED
        assert event.args["net_amount"] == 1_000

    def test_failing_handler_does_not_fail_committed_call(self, vault):
        later = MagicMock()
        vault.register_event_handler(MagicMock(side_effect=RuntimeError("handler down")))
        vault.register_event_handler(later)
        vault.set_nft_requirement(ADMIN, "PUNKS", 1, 100)
        open_epoch(vault, 100)

        assert deposit(vault, "alice", 1_000, 100) == 1_000

        assert vault.locks.get("alice").amount == 1_000
        names = [event.name for event in vault.events]
        assert names[-2:] == [ev.DEPOSITED, ev.NEW_TOP_HOLDER]
        assert [c[0][0].name for c in later.call_args_list][-2:] == [ev.DEPOSITED, ev.NEW_TOP_HOLDER]


class TestResources:
    """Test suite for balance and allowance checks."""

    def test_missing_allowance(self, vault, assets):
        assets.token("TOKEN").mint("alice", 1_000)
        with pytest.raises(ResourceError) as exc_info:
            vault.deposit("alice", 1_000, 100)
        assert exc_info.value.reason == "INSUFFICIENT_ALLOWANCE"

    def test_missing_balance(self, vault, assets):
        assets.token("TOKEN").approve("alice", VAULT_ID, 1_000)
        with pytest.raises(ResourceError) as exc_info:
            vault.deposit("alice", 1_000, 100)
        assert exc_info.value.reason == "INSUFFICIENT_BALANCE"

    def test_unfunded_epoch_rewards(self, vault):
        with pytest.raises(ResourceError):
            vault.open_epoch(ADMIN, [RewardSpec("REWARD", 100)], vault.clock() + 100)
        assert len(vault.ledger) == 0

    def test_invalid_reward_spec(self, vault):
        fund(vault.assets, "REWARD", ADMIN, 100)
        with pytest.raises(ValidationError) as exc_info:
            vault.open_epoch(ADMIN, [RewardSpec("REWARD", 0)], vault.clock() + 100)
        assert exc_info.value.reason == "INVALID_AMOUNT"
        with pytest.raises(ValidationError) as exc_info:
            vault.open_epoch(ADMIN, [RewardSpec(ZERO_ADDRESS, 100)], vault.clock() + 100)
        assert exc_info.value.reason == "INVALID_ADDRESS"


class TestAccessControl:
    """Test suite for admin, factory and allow-list roles."""

    def test_admin_only_operations(self, vault):
        with pytest.raises(AuthorizationError) as exc_info:
            vault.open_epoch("alice", [], vault.clock() + 100)
        assert exc_info.value.reason == "NOT_ADMIN"
        with pytest.raises(AuthorizationError):
            vault.pause("alice")
        with pytest.raises(AuthorizationError):
            vault.set_nft_requirement("alice", "PUNKS", 1, 100)

    def test_transfer_admin(self, vault):
        vault.transfer_admin(ADMIN, "new_admin")
        assert vault.admin == "new_admin"
        with pytest.raises(AuthorizationError):
            vault.pause(ADMIN)
        vault.pause("new_admin")
        assert vault.settings.paused

    def test_factory_only_tier_update(self, vault, fee_config):
        with pytest.raises(AuthorizationError) as exc_info:
            vault.update_tier(ADMIN, VaultTier.NO_RISK_NO_CROWN)
        assert exc_info.value.reason == "NOT_FACTORY"

        fee_config.set_vault_tier(vault, VaultTier.NO_RISK_NO_CROWN)
        assert vault.settings.tier == VaultTier.NO_RISK_NO_CROWN
        assert vault.settings.deposit_fee_rate == 500
        assert vault.event_log.named(ev.TIER_UPDATED)[0].args["deposit_fee_rate"] == 500

    def test_tier_update_must_match_factory_record(self, vault, fee_config):
        with pytest.raises(ValidationError) as exc_info:
            vault.update_tier(FACTORY, VaultTier.SPLIT_THE_SPOILS)
        assert exc_info.value.reason == "TIER_MISMATCH"
        assert vault.settings.tier == VaultTier.VAULTMASTER_3000
        assert vault.settings.deposit_fee_rate == 0

    def test_constructor_tier_must_match_factory_record(self, assets, fee_config, config):
        fee_config.register_vault("OTHER", VaultTier.SPLIT_THE_SPOILS)
        with pytest.raises(ValidationError) as exc_info:
            Vault("OTHER", "TOKEN", ADMIN, fee_config, ADMIN_FEES, assets,
                  tier=VaultTier.VAULTMASTER_3000, config=config)
        assert exc_info.value.reason == "TIER_MISMATCH"

        other = Vault("OTHER", "TOKEN", ADMIN, fee_config, ADMIN_FEES, assets, config=config)
        assert other.settings.tier == VaultTier.SPLIT_THE_SPOILS
        assert other.settings.deposit_fee_rate == 100

    def test_allowlist(self, vault):
        vault.set_allowlist_enabled(ADMIN, True)
        with pytest.raises(AuthorizationError) as exc_info:
            deposit(vault, "alice", 1_000, 100)
        assert exc_info.value.reason == "NOT_ALLOWLISTED"

        vault.set_allowlisted(ADMIN, ["alice"], True)
        assert deposit(vault, "alice", 1_000, 100) == 1_000

        vault.set_allowlist_enabled(ADMIN, False)
        assert deposit(vault, "bob", 1_000, 100) == 1_000

    def test_invalid_participant(self, vault):
        with pytest.raises(ValidationError) as exc_info:
            vault.deposit(ZERO_ADDRESS, 1_000, 100)
        assert exc_info.value.reason == "INVALID_ADDRESS"


class TestPauseAndEmergency:
    """Test suite for pausing and emergency unlocks."""

    def test_paused_vault_rejects_deposits(self, vault):
        vault.pause(ADMIN)
        with pytest.raises(StateError) as exc_info:
            deposit(vault, "alice", 1_000, 100)
        assert exc_info.value.reason == "VAULT_PAUSED"
        with pytest.raises(StateError):
            vault.pause(ADMIN)

    def test_emergency_unlock_requires_paused_emergency_mode(self, vault):
        deposit(vault, "alice", 1_000, 100)
        with pytest.raises(StateError) as exc_info:
            vault.emergency_unlock("alice")
        assert exc_info.value.reason == "EMERGENCY_NOT_ACTIVE"

        with pytest.raises(StateError) as exc_info:
            vault.set_emergency_mode(ADMIN, True)
        assert exc_info.value.reason == "VAULT_NOT_PAUSED"

        vault.pause(ADMIN)
        vault.set_emergency_mode(ADMIN, True)
        assert vault.emergency_unlock("alice") == 1_000
        assert vault.assets.token("TOKEN").balance_of("alice") == 1_000

        vault.unpause(ADMIN)
        assert not vault.settings.emergency_mode

    def test_withdraw_before_lock_end(self, vault, clock):
        deposit(vault, "alice", 1_000, 100)
        clock.advance(99)
        with pytest.raises(StateError) as exc_info:
            vault.withdraw("alice")
        assert exc_info.value.reason == "LOCK_NOT_ENDED"

    def test_withdraw_allowed_while_paused(self, vault, clock):
        deposit(vault, "alice", 1_000, 100)
        vault.pause(ADMIN)
        clock.advance(100)
        assert vault.withdraw("alice") == 1_000


class TestFees:
    """Test suite for deposit and performance fees."""

    def test_deposit_fee_split(self, fee_vault, assets):
        fund(assets, "TOKEN", "alice", 1_000, spender="FEE_VAULT")
        assert fee_vault.deposit("alice", 1_000, 100) == 990

        token = assets.token("TOKEN")
        assert token.balance_of(PLATFORM) == 3
        assert token.balance_of(ADMIN_FEES) == 7
        assert token.balance_of("FEE_VAULT") == 990
        assert fee_vault.locks.get("alice").amount == 990

    def test_performance_fee_conservation(self, fee_vault, assets):
        fund(assets, "REWARD", ADMIN, 1_001, spender="FEE_VAULT")
        epoch_id = fee_vault.open_epoch(ADMIN, [RewardSpec("REWARD", 1_001)], fee_vault.clock() + 100, 1_000)

        epoch = fee_vault.ledger.get(epoch_id)
        reward = assets.token("REWARD")
        assert reward.balance_of(PLATFORM) == 50
        assert epoch.leaderboard_pool == {"REWARD": 95}
        assert epoch.reward_pool == {"REWARD": 856}
        assert reward.balance_of("FEE_VAULT") == 856 + 95

    def test_fee_rate_bounds(self, fee_vault, vault, fee_config):
        fee_vault.set_deposit_fee_rate(ADMIN, 500)
        assert fee_vault.settings.deposit_fee_rate == 500
        with pytest.raises(ValidationError) as exc_info:
            fee_vault.set_deposit_fee_rate(ADMIN, 600)
        assert exc_info.value.reason == "DEPOSIT_FEE_OUT_OF_RANGE"

        fee_config.set_vault_tier(vault, VaultTier.NO_RISK_NO_CROWN)
        with pytest.raises(StateError) as exc_info:
            vault.set_deposit_fee_rate(ADMIN, 500)
        assert exc_info.value.reason == "DEPOSIT_FEE_NOT_ADJUSTABLE"

    def test_constructor_rejects_out_of_range_fee(self, assets, fee_config, config):
        fee_config.register_vault("OTHER", VaultTier.SPLIT_THE_SPOILS)
        with pytest.raises(ValidationError) as exc_info:
            Vault("OTHER", "TOKEN", ADMIN, fee_config, ADMIN_FEES, assets,
                  tier=VaultTier.SPLIT_THE_SPOILS, deposit_fee_rate=50, config=config)
        assert exc_info.value.reason == "DEPOSIT_FEE_OUT_OF_RANGE"

    def test_deposit_fee_shares_reach_both_beneficiaries(self, assets, config, clock):
        factory = StaticFeeConfig(FACTORY, PLATFORM)
        factory.register_vault("FIXED_VAULT", VaultTier.NO_RISK_NO_CROWN)
        fixed = Vault("FIXED_VAULT", "TOKEN", ADMIN, factory, ADMIN_FEES, assets, config=config, clock=clock)
        fund(assets, "TOKEN", "alice", 10_000, spender="FIXED_VAULT")

        assert fixed.deposit("alice", 10_000, 100) == 9_500

        token = assets.token("TOKEN")
        assert token.balance_of(PLATFORM) == 250
        assert token.balance_of(ADMIN_FEES) == 250
        assert token.balance_of("FIXED_VAULT") == 9_500

    def test_fee_shares_must_sum_to_fee(self, fee_vault, assets):
        fund(assets, "TOKEN", "alice", 1_000, spender="FEE_VAULT")
        with patch.object(fee_vault.fee_config, "deposit_fee_sharing", return_value=(5, 1)):
            with pytest.raises(ValidationError) as exc_info:
                fee_vault.deposit("alice", 1_000, 100)
        assert exc_info.value.reason == "INVALID_FEE"
        assert assets.token("TOKEN").balance_of("alice") == 1_000

    def test_fee_beneficiary_update(self, fee_vault, assets):
        fee_vault.set_fee_beneficiary(ADMIN, "treasury")
        fund(assets, "TOKEN", "alice", 1_000, spender="FEE_VAULT")
        fee_vault.deposit("alice", 1_000, 100)
        assert assets.token("TOKEN").balance_of("treasury") == 7
        with pytest.raises(ValidationError):
            fee_vault.set_fee_beneficiary(ADMIN, ZERO_ADDRESS)
