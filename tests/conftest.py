import pytest

from ec2_catalog.config import Settings
from ec2_catalog.pricing.models import RawProduct


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, cache_dir=str(tmp_path / "cache"))


@pytest.fixture
def m5_record():
    """Folded attributes of m5.2xlarge as published in the price list."""
    return {
        "instanceType": "m5.2xlarge",
        "instanceFamily": "General purpose",
        "currentGeneration": "Yes",
        "memory": "32 GiB",
        "vcpu": "8",
        "storage": "EBS only",
        "networkPerformance": "Up to 10 Gigabit",
        "processorArchitecture": "64-bit",
        "processorFeatures": "Intel AVX; Intel AVX2; Intel AVX512; Intel Turbo",
        "physicalProcessor": "Intel Xeon Platinum 8175",
        "clockSpeed": "2.5 GHz",
        "ebsOptimized": "Yes",
        "enhancedNetworkingSupported": "Yes",
        "intelAvxAvailable": "Yes",
        "intelAvx2Available": "Yes",
        "intelTurboAvailable": "Yes",
    }


def make_product(version, instance_type, family="Compute Instance", sku=None, **attributes):
    attributes.setdefault("instanceType", instance_type)
    return RawProduct(
        version=version,
        attributes=attributes,
        product_family=family,
        sku=sku or f"{instance_type}-{version}",
    )
