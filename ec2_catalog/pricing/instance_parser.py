"""
EC2 instance attribute parser.

Converts the free-text attributes of a folded EC2 product into a typed
ParsedInstanceType. Extraction failures never raise: the raw text is
recorded as an unknown value under the field name and the field keeps its
default.
"""
import re
from typing import Iterable, Mapping, Optional, Tuple

import structlog

from ec2_catalog.pricing.models import ParsedInstanceType, StorageInfo, UnknownValues

logger = structlog.get_logger()

GIB = 1024 ** 3

TYPE_REGEXP = re.compile(r"^(?:([a-z0-9][a-z0-9-]*)\.)?(\d+)?([a-z][a-z0-9-]*)$", re.IGNORECASE)
MEMORY_REGEXP = re.compile(r"^\s*(\d[\d,]*(?:\.\d*)?|\.\d+)\s*GiB\s*$", re.IGNORECASE)
STORAGE_REGEXP = re.compile(r"^\s*(\d+)\s+x\s+(\d+(?:[.,]\d+)*)(?:\s+(.+?))?\s*$")
NETWORK_REGEXP = re.compile(r"^\d+\s+Gigabit$", re.IGNORECASE)

INTEL_AVX_REGEXP = re.compile(r"\bIntel AVX\b")
INTEL_AVX2_REGEXP = re.compile(r"\bIntel AVX2\b")
INTEL_TURBO_REGEXP = re.compile(r"\bIntel Turbo\b")

EBS_ONLY = "EBS only"

CPU_ARCHES = {
    "32-bit or 64-bit": ("i386", "x86_64"),
    "64-bit": ("x86_64",),
}

# https://docs.aws.amazon.com/AWSEC2/latest/UserGuide/virtualization_types.html
DEFAULT_VIRT_TYPES = ("hvm",)
VIRT_TYPES = {
    **{name: ("paravirtual",) for name in ("t1", "m1", "m2", "c1")},
    **{name: ("paravirtual", "hvm") for name in ("m3", "c3", "hs1", "hi1")},
}

# Families described without their informal family name
POPULAR_TYPES = frozenset(["t1", "t2"])

# https://docs.aws.amazon.com/AWSEC2/latest/UserGuide/using-vpc.html#vpc-only-instance-types
VPC_ONLY_TYPES = frozenset(["m4", "m5", "t2", "c4", "c5", "r4", "x1", "h1", "i3", "f1", "g3", "p2", "p3"])

CLUSTERABLE_TYPES = frozenset(["m4", "c3", "c4", "cr1", "r4", "x1", "hs1", "i2", "g2", "p2", "d2"])


class AttributeParser:
    """
    Parses folded EC2 product records.

    The parser is stateless; each call returns its own unknown values so
    records can be parsed independently and merged afterwards.
    """

    def parse(self, record: Mapping[str, str]) -> Tuple[ParsedInstanceType, UnknownValues]:
        """
        Parse one folded record.

        Args:
            record: Attribute name -> value mapping of one instance type

        Returns:
            Tuple of (parsed instance type, unknown values by field name)
        """
        unknown: UnknownValues = {}
        instance_type = record.get("instanceType")

        family, multiplier, size_name = self._decompose_type(instance_type, unknown)
        family_name = record.get("instanceFamily") or None
        deprecated = record.get("currentGeneration") != "Yes"

        memory = self._memory(record.get("memory"), unknown)
        storage = self._storage(record.get("storage"), unknown)

        processor_features = record.get("processorFeatures") or ""
        intel_avx = self._feature(record, "intelAvxAvailable", INTEL_AVX_REGEXP, processor_features)
        intel_avx2 = self._feature(record, "intelAvx2Available", INTEL_AVX2_REGEXP, processor_features)
        intel_turbo = self._feature(record, "intelTurboAvailable", INTEL_TURBO_REGEXP, processor_features)

        parsed = ParsedInstanceType(
            name=instance_type,
            family=family,
            multiplier=multiplier,
            size_name=size_name,
            family_name=family_name,
            description=self._description(family, multiplier, size_name, family_name),
            deprecated=deprecated,
            memory=memory,
            memory_bytes=int(memory * GIB),
            vcpu=self._vcpu(record.get("vcpu"), unknown),
            storage=storage,
            architecture=self._cpu_arches(record.get("processorArchitecture"), unknown),
            virtualization_type=VIRT_TYPES.get(family, DEFAULT_VIRT_TYPES),
            network_performance=self._network_performance(record.get("networkPerformance")),
            physical_processor=record.get("physicalProcessor"),
            processor_clock_speed=record.get("clockSpeed"),
            intel_aes_ni=_flag(not deprecated),
            intel_avx=_flag(intel_avx),
            intel_avx2=_flag(intel_avx2),
            intel_turbo=_flag(intel_turbo),
            ebs_optimized_available=_flag(record.get("ebsOptimized") == "Yes"),
            enhanced_networking=_flag(record.get("enhancedNetworkingSupported") == "Yes"),
            cluster_networking=_flag(family in CLUSTERABLE_TYPES),
            vpc_only=_flag(family in VPC_ONLY_TYPES),
        )

        if unknown:
            logger.debug("unknown_attribute_values", instance_type=instance_type, fields=sorted(unknown))
        return parsed, unknown

    def _decompose_type(
        self,
        instance_type: Optional[str],
        unknown: UnknownValues
    ) -> Tuple[Optional[str], Optional[int], Optional[str]]:
        """Split `m5.2xlarge` into ("m5", 2, "xlarge"). A missing multiplier means 1."""
        match = TYPE_REGEXP.match(instance_type or "")
        if not match:
            _save_unknown(unknown, "instance_type", instance_type)
            return None, None, None
        family, multiplier, size_name = match.groups()
        return family, int(multiplier) if multiplier else 1, size_name

    @staticmethod
    def _description(
        family: Optional[str],
        multiplier: Optional[int],
        size_name: Optional[str],
        family_name: Optional[str]
    ) -> Optional[str]:
        if size_name is None:
            return None

        description = []
        if family:
            description.append(family.upper())
            if family not in POPULAR_TYPES and family_name:
                description.append(_titleize(family_name))
        if size_name.lower() == "xlarge":
            description.append("XL" if multiplier == 1 else f"{multiplier}XL")
        else:
            description.append(size_name.capitalize())
        return " ".join(description)

    @staticmethod
    def _memory(memory: Optional[str], unknown: UnknownValues) -> float:
        match = MEMORY_REGEXP.match(memory or "")
        if not match:
            _save_unknown(unknown, "memory", memory)
            return 0.0
        return float(match.group(1).replace(",", ""))

    @staticmethod
    def _storage(storage: Optional[str], unknown: UnknownValues) -> StorageInfo:
        if storage == EBS_ONLY:
            return StorageInfo(ebs_only=True, volumes=0, volume_size_gb=0.0, total_size_gb=0.0)

        match = STORAGE_REGEXP.match(storage or "")
        if not match:
            _save_unknown(unknown, "storage", storage)
            return StorageInfo()

        volumes, size, medium = match.groups()
        volumes = int(volumes)
        # comma is a thousands separator in price lists ("2 x 1,900 NVMe SSD")
        volume_size = float(size.replace(",", ""))
        return StorageInfo(
            ebs_only=False,
            volumes=volumes,
            volume_size_gb=volume_size,
            total_size_gb=volume_size * volumes,
            medium=medium,
        )

    @staticmethod
    def _cpu_arches(label: Optional[str], unknown: UnknownValues) -> Optional[Tuple[str, ...]]:
        arches = CPU_ARCHES.get(label)
        if arches is None:
            _save_unknown(unknown, "architecture", label)
        return arches

    @staticmethod
    def _vcpu(vcpu: Optional[str], unknown: UnknownValues) -> int:
        try:
            return int(str(vcpu).strip())
        except ValueError:
            _save_unknown(unknown, "vcpu", vcpu)
            return 0

    @staticmethod
    def _network_performance(net_perf: Optional[str]) -> Optional[str]:
        if not net_perf:
            return None
        if NETWORK_REGEXP.match(net_perf.strip()):
            return "very_high"
        return re.sub(r"\s+", "_", net_perf.strip().lower())

    @staticmethod
    def _feature(record: Mapping[str, str], flag_attr: str, marker, processor_features: str) -> bool:
        return record.get(flag_attr) == "Yes" or bool(marker.search(processor_features))


def parse(record: Mapping[str, str]) -> Tuple[ParsedInstanceType, UnknownValues]:
    """Parse one folded record."""
    return AttributeParser().parse(record)


def merge_unknown_values(maps: Iterable[UnknownValues]) -> UnknownValues:
    """Union unknown values per field name. Order of `maps` does not matter."""
    merged: UnknownValues = {}
    for unknown in maps:
        for field_name, values in unknown.items():
            merged.setdefault(field_name, set()).update(values)
    return merged


def _save_unknown(unknown: UnknownValues, field_name: str, raw: Optional[str]) -> None:
    # missing attributes are recorded as empty text
    unknown.setdefault(field_name, set()).add("" if raw is None else str(raw))


def _flag(value: bool) -> Optional[bool]:
    return True if value else None


def _titleize(text: str) -> str:
    return " ".join(word.capitalize() for word in text.split())
