"""
NFT boost calculation for the vault.

Participants can lock NFTs alongside their principal. Each configured
collection grants a boost (in basis points) once the participant holds at
least ``required_count`` items of it; boosts from qualifying collections
add up and are applied as a single multiplicative factor to contributions.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from epochvault.vault.config import VaultConfig
from epochvault.vault.errors import StateError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class NFTRequirement:
    """Boost rule for one collection."""

    is_active: bool
    required_count: int
    boost_percentage: int

    def to_dict(self) -> Dict:
        return {
            "is_active": self.is_active,
            "required_count": self.required_count,
            "boost_percentage": self.boost_percentage,
        }


class NFTBoostRegistry:
    """Per-collection boost rules and the boost they yield for a holding."""

    def __init__(self, config: VaultConfig):
        self.config = config
        self.requirements: Dict[str, NFTRequirement] = {}

    def validate_requirement(self, collection: str, required_count: int, boost_percentage: int):
        if not collection:
            raise ValidationError("INVALID_ADDRESS", "collection id must be set")
        if required_count < 1:
            raise ValidationError("INVALID_REQUIRED_COUNT", "required count must be at least 1")
        if not 0 <= boost_percentage <= self.config.max_boost_percentage:
            raise ValidationError(
                "BOOST_TOO_HIGH",
                f"boost {boost_percentage} exceeds cap {self.config.max_boost_percentage}"
            )

    def set_requirement(
        self,
        collection: str,
        required_count: int,
        boost_percentage: int,
        is_active: bool = True
    ) -> NFTRequirement:
        self.validate_requirement(collection, required_count, boost_percentage)
        requirement = NFTRequirement(is_active, required_count, boost_percentage)
        self.requirements[collection] = requirement
        logger.debug(f"Set NFT requirement for {collection}: {requirement}")
        return requirement

    def set_requirements(
        self,
        collections: List[str],
        required_counts: List[int],
        boost_percentages: List[int],
        is_active: List[bool]
    ) -> List[NFTRequirement]:
        """Batch form of ``set_requirement``; all-or-nothing."""
        if not len(collections) == len(required_counts) == len(boost_percentages) == len(is_active):
            raise ValidationError("ARRAY_LENGTH_MISMATCH", "requirement arrays differ in length")
        for collection, count, boost in zip(collections, required_counts, boost_percentages):
            self.validate_requirement(collection, count, boost)
        return [
            self.set_requirement(*args)
            for args in zip(collections, required_counts, boost_percentages, is_active)
        ]

    def remove_requirement(self, collection: str):
        if collection not in self.requirements:
            raise StateError("COLLECTION_NOT_FOUND", f"no requirement configured for {collection}")
        del self.requirements[collection]

    def qualifies(self, locked_nfts: Iterable[Tuple[str, int]], collection: str) -> bool:
        """Whether a holding meets an active collection's requirement."""
        requirement = self.requirements.get(collection)
        if requirement is None or not requirement.is_active:
            return False
        held = sum(1 for held_collection, _ in locked_nfts if held_collection == collection)
        return held >= requirement.required_count

    def total_boost(self, locked_nfts: Iterable[Tuple[str, int]]) -> int:
        """
        Sum of boosts from every qualifying collection in the holding.

        Args:
            locked_nfts: (collection, item_id) pairs locked by a participant

        Returns:
            Total boost in basis points
        """
        counts = Counter(collection for collection, _ in locked_nfts)
        total = 0
        for collection, held in counts.items():
            requirement = self.requirements.get(collection)
            if requirement is None or not requirement.is_active:
                continue
            if held >= requirement.required_count:
                total += requirement.boost_percentage

        logger.debug(f"Boost calculation: holdings={dict(counts)}, total_boost={total}bps")
        return total
