"""
Product folding.

Merges the product records of several price-list versions into one record
per logical product. Versions must be supplied oldest first: the last value
seen for an attribute wins, and disagreements on attributes that are not
allowed to change are reported as conflicts.
"""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from ec2_catalog.pricing.errors import MissingFoldKeyError
from ec2_catalog.pricing.models import Conflict, FoldedRecord, FoldKey, RawProduct

logger = structlog.get_logger()


class ProductFolder:
    """
    Folds raw products across price-list versions.

    Rules:
    - Only products whose family is in `product_families` are folded
    - Only `wanted_attrs` (plus the fold keys) are kept
    - New values always overwrite old ones
    - Case-insensitive differences on non-mutable attributes become conflicts
    - Conflicts are reported, never raised
    """

    def __init__(
        self,
        fold_keys: Sequence[str],
        wanted_attrs: Iterable[str],
        mutable_attrs: Iterable[str] = (),
        product_families: Optional[Iterable[str]] = None
    ):
        """
        Initialize folder.

        Args:
            fold_keys: Attribute names whose values identify a logical product
            wanted_attrs: Attribute names to keep in folded records
            mutable_attrs: Attribute names allowed to change between versions
            product_families: Allowed product families, None allows all
        """
        if not fold_keys:
            raise ValueError("At least one fold key attribute is required")
        self.fold_keys = tuple(fold_keys)
        self.wanted_attrs = frozenset(wanted_attrs) | frozenset(self.fold_keys)
        self.mutable_attrs = frozenset(mutable_attrs)
        self.product_families = (
            frozenset(product_families) if product_families is not None else None
        )
        self.logger = logger.bind(component="product_folder")

    def fold(self, records: Iterable[RawProduct]) -> Tuple[Dict[FoldKey, FoldedRecord], List[Conflict]]:
        """
        Fold records into one merged record per fold key.

        Args:
            records: Raw products, oldest version first

        Returns:
            Tuple of (folded records by fold key, conflicts in discovery order)

        Raises:
            MissingFoldKeyError: If a folded product lacks a fold key attribute
        """
        folded: Dict[FoldKey, FoldedRecord] = {}
        deviations: Dict[Tuple[FoldKey, str], List[str]] = {}
        skipped = 0

        for record in records:
            if self.product_families is not None and record.product_family not in self.product_families:
                skipped += 1
                continue

            item_attrs = {
                name: value
                for name, value in record.attributes.items()
                if name in self.wanted_attrs
            }
            key = self._fold_key(record, item_attrs)

            group = folded.setdefault(key, {})
            for name, new_value in item_attrs.items():
                old_value = group.get(name)
                if old_value is not None and self._differs(old_value, new_value) \
                        and name not in self.mutable_attrs:
                    values = deviations.setdefault((key, name), [old_value])
                    if new_value not in values:
                        values.append(new_value)
                # versions are sorted, the freshest value is authoritative
                group[name] = new_value

        conflicts = [
            Conflict(fold_key=key, attribute=name, values=tuple(values))
            for (key, name), values in deviations.items()
        ]

        self.logger.debug(
            "products_folded",
            folded=len(folded),
            skipped=skipped,
            conflicts=len(conflicts)
        )
        return folded, conflicts

    def _fold_key(self, record: RawProduct, item_attrs: Dict[str, str]) -> FoldKey:
        values = []
        for name in self.fold_keys:
            if name not in item_attrs:
                raise MissingFoldKeyError(name, sku=record.sku, version=record.version)
            values.append(item_attrs[name])
        return tuple(values)

    @staticmethod
    def _differs(old_value: str, new_value: str) -> bool:
        return str(old_value).casefold() != str(new_value).casefold()


def fold(
    records: Iterable[RawProduct],
    fold_keys: Sequence[str],
    mutable_attrs: Iterable[str],
    wanted_attrs: Iterable[str],
    product_families: Optional[Iterable[str]] = None
) -> Tuple[Dict[FoldKey, FoldedRecord], List[Conflict]]:
    """Fold records with a one-off ProductFolder."""
    folder = ProductFolder(
        fold_keys=fold_keys,
        wanted_attrs=wanted_attrs,
        mutable_attrs=mutable_attrs,
        product_families=product_families,
    )
    return folder.fold(records)
