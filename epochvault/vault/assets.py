"""
Asset transfer primitives used by the vault.

The vault depends only on the ``FungibleAsset`` and ``NonFungibleAsset``
interfaces; the in-memory implementations here back simulations and tests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set, Tuple, Union

from epochvault.vault.errors import AuthorizationError, ResourceError, StateError, ValidationError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
NFT_RECEIVED = "onNFTReceived"


def is_valid_address(address: Optional[str]) -> bool:
    return bool(address) and address != ZERO_ADDRESS


class FungibleAsset(ABC):
    """Token with balances and allowances."""

    asset_id: str

    @abstractmethod
    def balance_of(self, owner: str) -> int: ...

    @abstractmethod
    def allowance(self, owner: str, spender: str) -> int: ...

    @abstractmethod
    def transfer(self, sender: str, to: str, amount: int): ...

    @abstractmethod
    def transfer_from(self, spender: str, owner: str, to: str, amount: int): ...


class NonFungibleAsset(ABC):
    """Collection of uniquely owned items."""

    asset_id: str

    @abstractmethod
    def owner_of(self, item_id: int) -> str: ...

    @abstractmethod
    def get_approved(self, item_id: int) -> Optional[str]: ...

    @abstractmethod
    def is_approved_for_all(self, owner: str, operator: str) -> bool: ...

    @abstractmethod
    def safe_transfer_from(self, operator: str, owner: str, to: str, item_id: int): ...


class InMemoryToken(FungibleAsset):
    """Plain fungible token kept in memory."""

    def __init__(self, asset_id: str):
        self.asset_id = asset_id
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}

    def mint(self, to: str, amount: int):
        self.balances[to] = self.balances.get(to, 0) + amount

    def balance_of(self, owner: str) -> int:
        return self.balances.get(owner, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int):
        self.allowances[(owner, spender)] = amount

    def _move(self, sender: str, to: str, amount: int):
        if amount < 0:
            raise ValidationError("INVALID_AMOUNT", "transfer amount must be non-negative")
        if not is_valid_address(to):
            raise ValidationError("INVALID_ADDRESS", "cannot transfer to the zero address")
        if self.balance_of(sender) < amount:
            raise ResourceError(
                "INSUFFICIENT_BALANCE",
                f"{sender} holds {self.balance_of(sender)} {self.asset_id}, needs {amount}"
            )
        self.balances[sender] -= amount
        self.balances[to] = self.balances.get(to, 0) + amount

    def transfer(self, sender: str, to: str, amount: int):
        self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int):
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise ResourceError(
                "INSUFFICIENT_ALLOWANCE",
                f"{spender} may move {allowed} {self.asset_id} of {owner}, needs {amount}"
            )
        self._move(owner, to, amount)
        self.allowances[(owner, spender)] = allowed - amount


class InMemoryCollection(NonFungibleAsset):
    """
    Non-fungible collection kept in memory.

    ``safe_transfer_from`` notifies registered receivers and requires the
    ``NFT_RECEIVED`` acknowledgement back.
    """

    def __init__(self, asset_id: str, registry: Optional["AssetRegistry"] = None):
        self.asset_id = asset_id
        self.registry = registry
        self.owners: Dict[int, str] = {}
        self.approvals: Dict[int, str] = {}
        self.operators: Set[Tuple[str, str]] = set()

    def mint(self, to: str, item_id: int):
        if item_id in self.owners:
            raise StateError("NFT_EXISTS", f"{self.asset_id}#{item_id} already minted")
        self.owners[item_id] = to

    def owner_of(self, item_id: int) -> str:
        owner = self.owners.get(item_id)
        if owner is None:
            raise StateError("NFT_NOT_FOUND", f"{self.asset_id}#{item_id} does not exist")
        return owner

    def approve(self, owner: str, operator: str, item_id: int):
        if self.owner_of(item_id) != owner:
            raise AuthorizationError("NOT_NFT_OWNER", f"{owner} does not own {self.asset_id}#{item_id}")
        self.approvals[item_id] = operator

    def set_approval_for_all(self, owner: str, operator: str, approved: bool):
        if approved:
            self.operators.add((owner, operator))
        else:
            self.operators.discard((owner, operator))

    def get_approved(self, item_id: int) -> Optional[str]:
        return self.approvals.get(item_id)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return (owner, operator) in self.operators

    def safe_transfer_from(self, operator: str, owner: str, to: str, item_id: int):
        if self.owner_of(item_id) != owner:
            raise AuthorizationError("NOT_NFT_OWNER", f"{owner} does not own {self.asset_id}#{item_id}")
        if not is_valid_address(to):
            raise ValidationError("INVALID_ADDRESS", "cannot transfer to the zero address")
        if operator != owner and self.get_approved(item_id) != operator \
                and not self.is_approved_for_all(owner, operator):
            raise AuthorizationError("NFT_NOT_APPROVED", f"{operator} may not move {self.asset_id}#{item_id}")

        approved = self.approvals.pop(item_id, None)
        self.owners[item_id] = to

        receiver = self.registry.receiver(to) if self.registry else None
        if receiver is not None:
            ack = receiver.on_nft_received(operator, owner, self.asset_id, item_id)
            if ack != NFT_RECEIVED:
                self.owners[item_id] = owner
                if approved is not None:
                    self.approvals[item_id] = approved
                raise StateError("NFT_RECEIVER_REJECTED", f"{to} did not acknowledge {self.asset_id}#{item_id}")


class AssetRegistry:
    """Resolves asset ids to asset instances and accounts to receive hooks."""

    def __init__(self):
        self.tokens: Dict[str, FungibleAsset] = {}
        self.collections: Dict[str, NonFungibleAsset] = {}
        self.receivers: Dict[str, object] = {}

    def add(self, asset: Union[FungibleAsset, NonFungibleAsset]):
        if isinstance(asset, NonFungibleAsset):
            self.collections[asset.asset_id] = asset
        else:
            self.tokens[asset.asset_id] = asset
        return asset

    def token(self, asset_id: str) -> FungibleAsset:
        token = self.tokens.get(asset_id)
        if token is None:
            raise ValidationError("UNKNOWN_ASSET", f"no fungible asset {asset_id}")
        return token

    def collection(self, collection_id: str) -> NonFungibleAsset:
        collection = self.collections.get(collection_id)
        if collection is None:
            raise ValidationError("UNKNOWN_COLLECTION", f"no collection {collection_id}")
        return collection

    def register_receiver(self, address: str, receiver: object):
        self.receivers[address] = receiver

    def receiver(self, address: str) -> Optional[object]:
        return self.receivers.get(address)
