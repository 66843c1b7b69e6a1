"""
Role-based authorization for vault operations.
"""

import logging
from typing import Dict, Iterable, Set

from epochvault.vault.errors import AuthorizationError

logger = logging.getLogger(__name__)

ADMIN = "admin"
FACTORY = "factory"
ALLOWLISTED = "allowlisted"


class RoleTable:
    """Stored role grants, checked explicitly by each operation."""

    def __init__(self):
        self.grants: Dict[str, Set[str]] = {}

    def grant(self, role: str, account: str):
        self.grants.setdefault(role, set()).add(account)

    def revoke(self, role: str, account: str):
        self.grants.get(role, set()).discard(account)

    def replace(self, role: str, account: str):
        """Make ``account`` the sole holder of ``role``."""
        self.grants[role] = {account}

    def has_role(self, role: str, account: str) -> bool:
        return account in self.grants.get(role, ())

    def holders(self, role: str) -> Iterable[str]:
        return sorted(self.grants.get(role, ()))

    def require(self, role: str, account: str, reason: str):
        if not self.has_role(role, account):
            raise AuthorizationError(reason, f"{account} lacks role '{role}'")
