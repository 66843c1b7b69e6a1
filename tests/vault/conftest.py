"""
Shared fixtures for the vault test suite.
"""

import pytest

from epochvault.vault.assets import AssetRegistry, InMemoryCollection, InMemoryToken
from epochvault.vault.config import VaultConfig
from epochvault.vault.fees import DEFAULT_TIERS, StaticFeeConfig, TierConfig, VaultTier
from epochvault.vault.system import RewardSpec, Vault

START_TIME = 1_000
VAULT_ID = "VAULT"
ADMIN = "ADMIN"
ADMIN_FEES = "ADMIN_FEES"
FACTORY = "FACTORY"
PLATFORM = "PLATFORM"

# VAULTMASTER_3000 without a performance fee
FEE_FREE_TIERS = dict(DEFAULT_TIERS)
FEE_FREE_TIERS[VaultTier.VAULTMASTER_3000] = TierConfig(
    min_deposit_fee_rate=0,
    max_deposit_fee_rate=1_000,
    can_adjust_deposit_fee=True,
    deployment_fee=0,
    performance_fee_rate=0,
    platform_fee_share=1_000,
)


class ManualClock:
    """Clock the tests move by hand."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def config():
    return VaultConfig(
        min_deposit_amount=100,
        min_lock_duration=10,
        max_lock_duration=1_000,
        min_epoch_duration=10,
        max_epoch_duration=100,
        max_leaderboard_percentage=2_000,
        max_boost_percentage=5_000,
    )


@pytest.fixture
def assets():
    registry = AssetRegistry()
    registry.add(InMemoryToken("TOKEN"))
    registry.add(InMemoryToken("REWARD"))
    registry.add(InMemoryCollection("PUNKS", registry))
    registry.add(InMemoryCollection("APES", registry))
    return registry


@pytest.fixture
def fee_config():
    factory = StaticFeeConfig(FACTORY, PLATFORM, tiers=FEE_FREE_TIERS)
    factory.register_vault(VAULT_ID, VaultTier.VAULTMASTER_3000)
    return factory


@pytest.fixture
def vault(assets, fee_config, config, clock):
    return Vault(
        vault_id=VAULT_ID,
        token="TOKEN",
        admin=ADMIN,
        fee_config=fee_config,
        fee_beneficiary=ADMIN_FEES,
        assets=assets,
        tier=VaultTier.VAULTMASTER_3000,
        deposit_fee_rate=0,
        config=config,
        clock=clock,
    )


def fund(assets, asset_id: str, owner: str, amount: int, spender: str = VAULT_ID):
    """Mint ``amount`` to ``owner`` and approve the vault to pull it."""
    token = assets.token(asset_id)
    token.mint(owner, amount)
    token.approve(owner, spender, token.allowance(owner, spender) + amount)
    return token


def deposit(vault, participant: str, amount: int, duration: int) -> int:
    fund(vault.assets, "TOKEN", participant, amount)
    return vault.deposit(participant, amount, duration)


def open_epoch(vault, duration: int, rewards=None, leaderboard_percentage: int = 0) -> int:
    """Fund the admin and open an epoch of ``duration`` seconds starting now."""
    specs = []
    for asset, amount in (rewards or {}).items():
        fund(vault.assets, asset, ADMIN, amount)
        specs.append(RewardSpec(asset, amount))
    return vault.open_epoch(ADMIN, specs, vault.clock() + duration, leaderboard_percentage)
