"""
Tests for vault configuration loading.
"""

import json
import os

import pytest

from epochvault.vault import config as config_module
from epochvault.vault.config import VaultConfig, load_vault_config
from epochvault.vault.errors import ValidationError


@pytest.fixture
def config_files(tmp_path, monkeypatch):
    """Point the loader at temporary files and clear EPOCHVAULT_* variables."""
    repo_file = tmp_path / "vault.cfg"
    user_file = tmp_path / "user" / "vault.cfg"
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_FILES", [repo_file])
    monkeypatch.setattr(config_module, "USER_CONFIG_FILE", user_file)
    for key in list(os.environ):
        if key.startswith(config_module.ENV_PREFIX):
            monkeypatch.delenv(key)
    return repo_file, user_file


class TestVaultConfig:
    """Test suite for configuration precedence and validation."""

    def test_defaults(self, config_files):
        assert load_vault_config() == VaultConfig()

    def test_json_file(self, config_files):
        repo_file, _ = config_files
        repo_file.write_text(json.dumps({"min_deposit_amount": 5, "unknown_key": 1}))
        assert load_vault_config().min_deposit_amount == 5

    def test_ini_file(self, config_files):
        repo_file, _ = config_files
        repo_file.write_text("[Vault]\nMIN_LOCK_DURATION = 60\nmax_boost_percentage = 2500\n")
        config = load_vault_config()
        assert config.min_lock_duration == 60
        assert config.max_boost_percentage == 2_500

    def test_ini_without_section_is_ignored(self, config_files):
        repo_file, user_file = config_files
        repo_file.write_text("[Other]\nmin_deposit_amount = 5\n")
        user_file.parent.mkdir()
        user_file.write_text(json.dumps({"min_deposit_amount": 7}))
        assert load_vault_config().min_deposit_amount == 7

    def test_repo_file_wins_over_user_file(self, config_files):
        repo_file, user_file = config_files
        repo_file.write_text(json.dumps({"min_deposit_amount": 5}))
        user_file.parent.mkdir()
        user_file.write_text(json.dumps({"min_deposit_amount": 7}))
        assert load_vault_config().min_deposit_amount == 5

    def test_precedence(self, config_files, monkeypatch):
        repo_file, _ = config_files
        repo_file.write_text(json.dumps({"min_deposit_amount": 5, "min_epoch_duration": 20}))
        monkeypatch.setenv("EPOCHVAULT_MIN_DEPOSIT_AMOUNT", "9")

        config = load_vault_config({"min_deposit_amount": 6, "min_epoch_duration": 30})
        assert config.min_deposit_amount == 9
        assert config.min_epoch_duration == 30

    def test_invalid_env_value_keeps_previous(self, config_files, monkeypatch):
        monkeypatch.setenv("EPOCHVAULT_MAX_BOOST_PERCENTAGE", "lots")
        assert load_vault_config().max_boost_percentage == VaultConfig().max_boost_percentage

    def test_inconsistent_bounds(self, config_files):
        with pytest.raises(ValidationError) as exc_info:
            load_vault_config({"min_lock_duration": 10, "max_lock_duration": 5})
        assert exc_info.value.reason == "INVALID_CONFIG"

    @pytest.mark.parametrize("overrides", [
        {"min_deposit_amount": -1},
        {"min_epoch_duration": 0},
        {"max_leaderboard_percentage": 10_001},
    ])
    def test_validate(self, overrides):
        with pytest.raises(ValidationError):
            VaultConfig(**overrides).validate()
