# epochvault/vault/config.py
import os
import json
import logging
import configparser
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

from epochvault.vault.errors import ValidationError

logger = logging.getLogger(__name__)

DAY = 24 * 60 * 60

DEFAULT_CONFIG_FILES = [
    Path("./config/vault.cfg"),  # Repository config
    Path("./vault.cfg"),         # Root directory config
]
USER_CONFIG_FILE = Path.home() / ".epochvault" / "vault.cfg"
ENV_PREFIX = "EPOCHVAULT_"


@dataclass
class VaultConfig:
    """Bounds enforced by the lock store, epoch ledger and boost registry."""

    min_deposit_amount: int = 1_000
    min_lock_duration: int = 7 * DAY
    max_lock_duration: int = 4 * 365 * DAY
    min_epoch_duration: int = 1 * DAY
    max_epoch_duration: int = 90 * DAY
    max_leaderboard_percentage: int = 2_000  # basis points
    max_boost_percentage: int = 10_000       # basis points, per collection

    def validate(self) -> "VaultConfig":
        """
        Check that the bounds are consistent.

        Raises:
            ValidationError: If any bound is negative or a min exceeds its max
        """
        for field in fields(self):
            if getattr(self, field.name) < 0:
                raise ValidationError("INVALID_CONFIG", f"{field.name} must be non-negative")
        if self.min_lock_duration < 1 or self.min_lock_duration > self.max_lock_duration:
            raise ValidationError("INVALID_CONFIG", "lock duration bounds are inconsistent")
        if self.min_epoch_duration < 1 or self.min_epoch_duration > self.max_epoch_duration:
            raise ValidationError("INVALID_CONFIG", "epoch duration bounds are inconsistent")
        if self.max_leaderboard_percentage > 10_000:
            raise ValidationError("INVALID_CONFIG", "max_leaderboard_percentage exceeds 100%")
        return self

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _read_config_file(config_file: Path) -> Optional[Dict[str, Any]]:
    """Parse a JSON or INI (``[Vault]`` section) config file."""
    try:
        with open(config_file, "r") as f:
            return json.load(f)
    except json.JSONDecodeError:
        config_parser = configparser.ConfigParser()
        config_parser.read(config_file)
        if "Vault" not in config_parser:
            logger.warning(f"Config file {config_file} has no [Vault] section, ignoring it")
            return None
        return dict(config_parser["Vault"])


def _coerce(values: Dict[str, Any], source: str) -> Dict[str, int]:
    """Keep known keys whose values parse as integers."""
    known = {field.name for field in fields(VaultConfig)}
    coerced = {}
    for key, value in values.items():
        key = key.lower()
        if key not in known:
            logger.debug(f"Ignoring unknown config key '{key}' from {source}")
            continue
        try:
            coerced[key] = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid value for '{key}' in {source}: {value!r}. Using default/config value.")
    return coerced


def load_vault_config(config_override: Optional[Dict[str, Any]] = None) -> VaultConfig:
    """
    Load vault configuration from multiple sources with precedence.

    Precedence:
    1. Environment Variables (EPOCHVAULT_*)
    2. ``config_override`` dictionary (if provided)
    3. Config file (JSON or INI) in ./config/vault.cfg or ./vault.cfg
    4. Config file (JSON or INI) in ~/.epochvault/vault.cfg
    5. Default values

    Args:
        config_override: Optional dictionary to override loaded config.

    Returns:
        VaultConfig: The final, validated configuration.
    """
    config = VaultConfig().to_dict()

    file_config = {}
    for config_file in DEFAULT_CONFIG_FILES + [USER_CONFIG_FILE]:
        if not config_file.exists():
            continue
        try:
            loaded = _read_config_file(config_file)
        except OSError as e:
            logger.error(f"Error reading vault config file {config_file}: {e}")
            continue
        if loaded is not None:
            file_config = _coerce(loaded, str(config_file))
            logger.info(f"Loaded vault config from: {config_file}")
            break

    config.update(file_config)

    if config_override and isinstance(config_override, dict):
        config.update(_coerce(config_override, "override"))
        logger.debug(f"Vault config updated with override dict: {config_override}")

    env_values = {
        key[len(ENV_PREFIX):]: value
        for key, value in os.environ.items()
        if key.startswith(ENV_PREFIX)
    }
    env_config = _coerce(env_values, "environment")
    if env_config:
        config.update(env_config)
        logger.info(f"Vault config updated with environment variables: {list(env_config.keys())}")

    logger.debug(f"Final vault config: {config}")
    return VaultConfig(**config).validate()
