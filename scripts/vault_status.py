#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Script to inspect persisted vault snapshots.

Prints a vault's settings, locks, epochs and leaderboard from a snapshot
database, or lists the vaults stored in it.
"""

import sys
import json
import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

# Add epochvault to Python path
ROOT_DIR = str(Path(__file__).parent.parent.absolute())
sys.path.insert(0, ROOT_DIR)

from epochvault.vault.config import load_vault_config
from epochvault.vault.database import VaultStateStore
from epochvault.vault.errors import VaultError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def show_vault(store: VaultStateStore, vault_id: str) -> bool:
    """
    Print the stored snapshot of a vault.

    Returns:
        True if the vault was found, False otherwise
    """
    try:
        snapshot = store.describe(vault_id)
    except VaultError as e:
        logger.error(f"Cannot show vault {vault_id}: {e.message}")
        return False
    print(json.dumps(snapshot, indent=2, default=str))
    return True


def list_vaults(store: VaultStateStore) -> bool:
    vault_ids = store.list_vaults()
    if not vault_ids:
        logger.info("No vault snapshots stored.")
    for vault_id in vault_ids:
        print(vault_id)
    return True


def main():
    """Main entry point for the script."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="Inspect persisted vault snapshots.")
    parser.add_argument("--database-url", default="sqlite:///vault_state.db",
                        help="SQLAlchemy URL of the snapshot database")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    show_parser = subparsers.add_parser("show", help="Show a vault snapshot")
    show_parser.add_argument("vault_id", help="Vault to show")

    subparsers.add_parser("list", help="List stored vaults")
    subparsers.add_parser("config", help="Show the effective vault configuration")

    args = parser.parse_args()

    if args.command == "config":
        print(json.dumps(load_vault_config().to_dict(), indent=2))
        return 0

    store = VaultStateStore(args.database_url)
    store.initialize()

    if args.command == "show":
        success = show_vault(store, args.vault_id)
    elif args.command == "list":
        success = list_vaults(store)
    else:
        parser.print_help()
        success = False

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
