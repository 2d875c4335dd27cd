"""
Instance types pipeline.

VersionSource -> ProductFolder -> AttributeParser -> CatalogBuilder.
Conflicts, unknown values and unlisted types are collected along the way
and returned to the caller; they are logged but never fatal unless strict
mode is requested.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict

import structlog

from ec2_catalog.config import Settings
from ec2_catalog.pricing.catalog_builder import CatalogBuilder, CatalogResult
from ec2_catalog.pricing.errors import InconvertibleDataError
from ec2_catalog.pricing.folding import ProductFolder
from ec2_catalog.pricing.instance_parser import AttributeParser, merge_unknown_values
from ec2_catalog.pricing.models import PipelineDiagnostics

logger = structlog.get_logger()


@dataclass
class PipelineResult:
    catalog: CatalogResult
    diagnostics: PipelineDiagnostics

    def to_dict(self) -> Dict[str, Any]:
        return self.catalog.to_dict()


class InstanceTypesPipeline:
    """Builds the EC2 instance type catalog from all price-list versions."""

    def __init__(self, settings: Settings, version_source, order_source):
        """
        Initialize pipeline.

        Args:
            settings: Folding and diagnostics settings
            version_source: Provides collect_products(), the products of every version oldest first
            order_source: Provides instance_type_order()
        """
        self.settings = settings
        self.version_source = version_source
        self.order_source = order_source
        self.folder = ProductFolder(
            fold_keys=settings.fold_attributes,
            wanted_attrs=settings.product_attributes,
            mutable_attrs=settings.mutable_attributes,
            product_families=settings.product_families,
        )
        self.parser = AttributeParser()
        self.builder = CatalogBuilder(getattr(order_source, "source_name", "canonical order"))
        self.logger = logger.bind(component="instance_types_pipeline")

    def collect_products(self):
        products = self.version_source.collect_products()
        self.logger.info("products_collected", products=len(products))
        return products

    def run(self) -> PipelineResult:
        """
        Run the full pipeline.

        Raises:
            CatalogError: On structural failures (missing fold keys, empty order,
                catalog keys shared by several folded records)
            InconvertibleDataError: In strict mode, when unknown values or
                unlisted types were found
        """
        folded, conflicts = self.folder.fold(self.collect_products())

        parsed = []
        unknown_maps = []
        for record in folded.values():
            instance_type, unknown = self.parser.parse(record)
            parsed.append((record[self.settings.fold_attributes[0]], instance_type))
            unknown_maps.append(unknown)
        unknown_values = merge_unknown_values(unknown_maps)

        catalog = self.builder.build(parsed, self.order_source.instance_type_order())

        diagnostics = PipelineDiagnostics(
            conflicts=conflicts,
            unknown_values=unknown_values,
            unlisted_types=catalog.unlisted,
        )
        self.report(diagnostics)

        if self.settings.fail_on_unknown_values and (unknown_values or catalog.unlisted):
            raise InconvertibleDataError(unknown_values, catalog.unlisted)

        self.logger.info("catalog_built", instance_types=len(catalog.catalog))
        return PipelineResult(catalog=catalog, diagnostics=diagnostics)

    def report(self, diagnostics: PipelineDiagnostics) -> None:
        """Log every diagnostic category for operator review."""
        report = diagnostics.to_dict()
        if diagnostics.conflicts:
            self.logger.warning(
                "contradictory_products_data",
                count=len(diagnostics.conflicts),
                conflicts=json.dumps(report["conflicts"], indent=2)
            )
        if diagnostics.unknown_values:
            self.logger.warning(
                "inconvertible_attribute_values",
                fields=sorted(diagnostics.unknown_values),
                values=json.dumps(report["unknown_values"], indent=2)
            )
        if diagnostics.unlisted_types:
            self.logger.warning("unlisted_instance_types_in_catalog", types=diagnostics.unlisted_types)
