"""Price-list folding, attribute parsing and catalog building."""
from ec2_catalog.pricing.catalog_builder import CatalogBuilder
from ec2_catalog.pricing.folding import ProductFolder
from ec2_catalog.pricing.instance_parser import AttributeParser
from ec2_catalog.pricing.pipeline import InstanceTypesPipeline
from ec2_catalog.pricing.version_source import OfferVersionSource

__all__ = [
    "AttributeParser",
    "CatalogBuilder",
    "InstanceTypesPipeline",
    "OfferVersionSource",
    "ProductFolder",
]
