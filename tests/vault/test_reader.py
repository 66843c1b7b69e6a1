"""
Tests for read-only vault views.
"""

import numpy as np

from conftest import START_TIME, deposit, open_epoch

from epochvault.vault.reader import VaultReader


class TestVaultReader:
    """Test suite for VaultReader."""

    def test_epoch_shares(self, vault):
        epoch_id = open_epoch(vault, 100)
        deposit(vault, "alice", 1_000, 100)
        deposit(vault, "bob", 3_000, 100)

        shares = VaultReader(vault).epoch_shares(epoch_id, ["alice", "bob", "carol"])
        np.testing.assert_allclose(shares, [0.25, 0.75, 0.0])

    def test_epoch_shares_without_weight(self, vault):
        epoch_id = open_epoch(vault, 100)
        shares = VaultReader(vault).epoch_shares(epoch_id, ["alice", "bob"])
        assert shares.tolist() == [0.0, 0.0]

    def test_lock_snapshot_and_voting_power(self, vault, clock):
        reader = VaultReader(vault)
        assert reader.lock_snapshot("alice")["amount"] == 0
        assert reader.voting_power("alice") == 0

        deposit(vault, "alice", 1_000, 100)
        clock.advance(25)
        assert reader.voting_power("alice") == 750
        assert reader.voting_power("alice", at=START_TIME + 100) == 0
        assert reader.lock_snapshot("alice")["lock_end"] == START_TIME + 100

    def test_pending_rewards(self, vault, clock):
        reader = VaultReader(vault)
        epoch_id = open_epoch(vault, 100, rewards={"REWARD": 100})
        deposit(vault, "alice", 1_000, 100)
        assert reader.pending_rewards("alice") == {}

        clock.advance(100)
        assert reader.pending_rewards("alice") == {epoch_id: {"REWARD": 100}}
        assert reader.epoch_snapshot(epoch_id)["has_ended"]

        vault.claim("alice", epoch_id)
        assert reader.pending_rewards("alice") == {}

    def test_summary_and_leaderboard(self, vault):
        reader = VaultReader(vault)
        open_epoch(vault, 100)
        deposit(vault, "alice", 1_000, 100)
        deposit(vault, "bob", 2_000, 100)

        summary = reader.summary()
        assert summary["active_locks"] == 2
        assert summary["epochs"] == 1
        assert reader.current_epoch_id() == 0
        assert reader.top_holders(1) == [{"participant": "bob", "cumulative_weight": 100_000}]
        assert reader.leaderboard_snapshot()["ranking"] == [("bob", 100_000), ("alice", 50_000)]
