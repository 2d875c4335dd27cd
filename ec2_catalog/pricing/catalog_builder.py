"""
Catalog builder.
Orders parsed instance types by the EC2 API's own instance type list.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import structlog

from ec2_catalog.pricing.errors import DuplicateCatalogKeyError, EmptyCanonicalOrderError
from ec2_catalog.pricing.models import ParsedInstanceType

logger = structlog.get_logger()


@dataclass
class CatalogResult:
    """Ordered catalog plus the keys missing from the canonical order."""
    catalog: "OrderedDict[str, ParsedInstanceType]"
    unlisted: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Plain nested mapping, ready for YAML/JSON dumping."""
        return {key: parsed.to_dict() for key, parsed in self.catalog.items()}


class CatalogBuilder:
    """
    Builds the final instance type catalog.

    Sort policy:
    - Keys found in the canonical order keep its positions
    - Unlisted keys go last, alphabetically, and are reported
    """

    def __init__(self, source_name: str = "canonical order"):
        self.source_name = source_name

    def build(
        self,
        parsed: Iterable[Tuple[str, ParsedInstanceType]],
        canonical_order: Sequence[str]
    ) -> CatalogResult:
        """
        Build the ordered catalog.

        Args:
            parsed: (key, parsed instance type) pairs
            canonical_order: Authoritative ordering of instance type keys

        Returns:
            CatalogResult with the ordered catalog and unlisted keys

        Raises:
            EmptyCanonicalOrderError: If canonical_order is empty
            DuplicateCatalogKeyError: If a key appears more than once in parsed
        """
        if not canonical_order:
            raise EmptyCanonicalOrderError(self.source_name)

        positions: Dict[str, int] = {}
        for index, key in enumerate(canonical_order):
            positions.setdefault(key, index)

        entries: Dict[str, ParsedInstanceType] = {}
        duplicates = set()
        for key, instance_type in parsed:
            if key in entries:
                duplicates.add(key)
            entries[key] = instance_type
        if duplicates:
            raise DuplicateCatalogKeyError(duplicates)

        unlisted = sorted(key for key in entries if key not in positions)

        ordered_keys = sorted(
            entries,
            key=lambda key: (0, positions[key], key) if key in positions else (1, 0, key)
        )
        catalog = OrderedDict((key, entries[key]) for key in ordered_keys)

        if unlisted:
            logger.warning(
                "unlisted_instance_types",
                source=self.source_name,
                count=len(unlisted),
                types=unlisted
            )
        return CatalogResult(catalog=catalog, unlisted=unlisted)


def build(
    parsed: Iterable[Tuple[str, ParsedInstanceType]],
    canonical_order: Sequence[str]
) -> CatalogResult:
    """Build the ordered catalog with a default CatalogBuilder."""
    return CatalogBuilder().build(parsed, canonical_order)
