"""
Catalog pipeline errors.

Only structural problems are raised. Malformed attribute text is never an
error here: it is collected as an unknown value and reported by the caller.
"""
from typing import Any, Dict, Iterable, Optional


class CatalogError(Exception):
    """Base class for all hard pipeline failures."""
    pass


class MissingFoldKeyError(CatalogError):
    """Raised when a product lacks an attribute used to fold versions."""

    def __init__(self, attribute: str, sku: Optional[str] = None, version: Optional[str] = None):
        self.attribute = attribute
        self.sku = sku
        self.version = version
        message = f"Record missing required fold key attribute '{attribute}'"
        if sku:
            message += f" (sku {sku}"
            message += f", version {version})" if version else ")"
        super().__init__(message)


class EmptyCanonicalOrderError(CatalogError):
    """Raised when the instance type order source yields nothing."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Canonical instance type order from {source} is empty")


class OfferIndexError(CatalogError):
    """Raised when an offer index document has no usable version list."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid offer index {url}: {reason}")


class OfferDownloadError(CatalogError):
    """Raised when a price-list document cannot be retrieved."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Failed to download {url}")


class InconvertibleDataError(CatalogError):
    """
    Raised at the reporting boundary when strict mode is enabled and some
    attribute values could not be converted, or some catalog keys are missing
    from the canonical order.
    """

    def __init__(self, unknown_values: Dict[str, Iterable[Any]], unlisted_types: Iterable[str] = ()):
        self.unknown_values = {key: sorted(values) for key, values in unknown_values.items()}
        self.unlisted_types = sorted(unlisted_types)
        problems = []
        if self.unknown_values:
            problems.append(f"fields: {', '.join(sorted(self.unknown_values))}")
        if self.unlisted_types:
            problems.append(f"unlisted types: {', '.join(self.unlisted_types)}")
        super().__init__(f"Inconvertible instance types data in {'; '.join(problems)}")


class DuplicateCatalogKeyError(CatalogError):
    """Raised when several folded records map to the same catalog key."""

    def __init__(self, keys: Iterable[str]):
        self.keys = sorted(keys)
        super().__init__(
            f"Several folded records share catalog keys {', '.join(self.keys)}; "
            "the first fold attribute must identify one instance type"
        )
