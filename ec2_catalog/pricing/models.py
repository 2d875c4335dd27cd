"""
Data structures flowing through the catalog pipeline.

RawProduct -> FoldedRecord -> ParsedInstanceType. Every structure here is
plain data so the export layer can dump it to YAML or JSON.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple


FoldKey = Tuple[str, ...]
FoldedRecord = Dict[str, str]
# field name -> raw strings that failed extraction
UnknownValues = Dict[str, Set[str]]


@dataclass(frozen=True)
class RawProduct:
    """One product entry of a price-list version. Read-only once created."""
    version: str
    attributes: Mapping[str, str]
    product_family: Optional[str] = None
    sku: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @classmethod
    def from_offer(cls, version: str, sku: str, product: Dict[str, Any]) -> "RawProduct":
        """Build from a `products` entry of an AWS offer file."""
        return cls(
            version=version,
            attributes=product.get("attributes", {}),
            product_family=product.get("productFamily"),
            sku=product.get("sku", sku),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "sku": self.sku,
            "product_family": self.product_family,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawProduct":
        return cls(**data)


@dataclass(frozen=True)
class Conflict:
    """Distinct values observed for one attribute of one folded product."""
    fold_key: FoldKey
    attribute: str
    values: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fold_key": list(self.fold_key),
            "attribute": self.attribute,
            "values": list(self.values),
        }


@dataclass(frozen=True)
class StorageInfo:
    """Instance store geometry."""
    ebs_only: bool = False
    volumes: int = 0
    volume_size_gb: Optional[float] = None
    total_size_gb: float = 0.0
    medium: Optional[str] = None


@dataclass(frozen=True)
class ParsedInstanceType:
    """
    Normalized descriptor of one EC2 instance type.

    Feature flags are tri-state: True when present, None when known to be
    absent. They are never False.
    """
    name: Optional[str]
    family: Optional[str]
    multiplier: Optional[int]
    size_name: Optional[str]
    family_name: Optional[str]
    description: Optional[str]
    deprecated: bool
    memory: float
    memory_bytes: int
    vcpu: int
    storage: StorageInfo
    architecture: Optional[Tuple[str, ...]]
    virtualization_type: Tuple[str, ...]
    network_performance: Optional[str]
    physical_processor: Optional[str] = None
    processor_clock_speed: Optional[str] = None
    intel_aes_ni: Optional[bool] = None
    intel_avx: Optional[bool] = None
    intel_avx2: Optional[bool] = None
    intel_turbo: Optional[bool] = None
    ebs_optimized_available: Optional[bool] = None
    enhanced_networking: Optional[bool] = None
    cluster_networking: Optional[bool] = None
    vpc_only: Optional[bool] = None

    @property
    def instance_store_size(self) -> int:
        """Total instance store size in bytes."""
        return int(self.storage.total_size_gb * 1024 ** 3)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into the catalog entry layout."""
        return {
            "deprecated": self.deprecated,
            "name": self.name,
            "family": self.family,
            "family_name": self.family_name,
            "description": self.description,
            "memory": self.memory_bytes,
            "memory_gb": self.memory,
            "vcpu": self.vcpu,
            "ebs_only": self.storage.ebs_only,
            "instance_store_size": self.instance_store_size,
            "instance_store_size_gb": self.storage.total_size_gb,
            "instance_store_volumes": self.storage.volumes,
            "instance_store_volume_size_gb": self.storage.volume_size_gb,
            "instance_store_type": self.storage.medium,
            "architecture": list(self.architecture) if self.architecture is not None else None,
            "virtualization_type": list(self.virtualization_type),
            "network_performance": self.network_performance,
            "physical_processor": self.physical_processor,
            "processor_clock_speed": self.processor_clock_speed,
            "intel_aes_ni": self.intel_aes_ni,
            "intel_avx": self.intel_avx,
            "intel_avx2": self.intel_avx2,
            "intel_turbo": self.intel_turbo,
            "ebs_optimized_available": self.ebs_optimized_available,
            "enhanced_networking": self.enhanced_networking,
            "cluster_networking": self.cluster_networking,
            "vpc_only": self.vpc_only,
        }


@dataclass
class PipelineDiagnostics:
    """Side-channel findings accumulated during one pipeline run."""
    conflicts: List[Conflict] = field(default_factory=list)
    unknown_values: UnknownValues = field(default_factory=dict)
    unlisted_types: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.conflicts or self.unknown_values or self.unlisted_types)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflicts": [c.to_dict() for c in self.conflicts],
            "unknown_values": {k: sorted(v) for k, v in sorted(self.unknown_values.items())},
            "unlisted_types": list(self.unlisted_types),
        }
