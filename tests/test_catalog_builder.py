"""
Unit tests for CatalogBuilder.
Validates canonical ordering, unlisted type reporting and determinism.
"""
import json

import pytest

from ec2_catalog.pricing.catalog_builder import CatalogBuilder, build
from ec2_catalog.pricing.errors import DuplicateCatalogKeyError, EmptyCanonicalOrderError
from ec2_catalog.pricing.instance_parser import parse


@pytest.fixture
def parsed_types(m5_record):
    entries = []
    for name in ["zz9.large", "m5.large", "c5.large", "t2.micro", "aa1.small"]:
        record = dict(m5_record, instanceType=name)
        entries.append((name, parse(record)[0]))
    return entries


class TestOrdering:
    """Test catalog ordering."""

    def test_canonical_positions_then_unlisted_alphabetically(self, parsed_types):
        result = build(parsed_types, ["t2.micro", "c5.large", "m5.large", "m5.xlarge"])

        assert list(result.catalog) == ["t2.micro", "c5.large", "m5.large", "aa1.small", "zz9.large"]

    def test_unlisted_reported(self, parsed_types):
        result = build(parsed_types, ["t2.micro", "c5.large", "m5.large"])

        assert result.unlisted == ["aa1.small", "zz9.large"]
        assert "zz9.large" in result.catalog

    def test_no_unlisted(self, parsed_types):
        order = [name for name, _ in parsed_types]

        result = CatalogBuilder().build(parsed_types, order)

        assert result.unlisted == []
        assert list(result.catalog) == order

    def test_duplicate_canonical_entries_use_first_position(self, parsed_types):
        result = build(parsed_types[1:3], ["c5.large", "m5.large", "c5.large"])

        assert list(result.catalog) == ["c5.large", "m5.large"]

    def test_deterministic(self, parsed_types):
        order = ["m5.large", "t2.micro"]

        first = json.dumps(build(parsed_types, order).to_dict())
        second = json.dumps(build(list(reversed(parsed_types)), order).to_dict())

        assert first == second

    def test_to_dict_entries(self, parsed_types):
        data = build(parsed_types, ["m5.large"]).to_dict()

        assert data["m5.large"]["name"] == "m5.large"
        assert data["m5.large"]["architecture"] == ["x86_64"]


class TestStructuralFailures:
    """Test hard failures."""

    def test_empty_canonical_order_raises(self, parsed_types):
        with pytest.raises(EmptyCanonicalOrderError) as exc_info:
            CatalogBuilder("botocore").build(parsed_types, [])

        assert exc_info.value.source == "botocore"

    def test_empty_parsed_input(self):
        result = build([], ["m5.large"])

        assert list(result.catalog) == []
        assert result.unlisted == []

    def test_duplicate_keys_raise(self, parsed_types):
        duplicated = parsed_types + parsed_types[:2]

        with pytest.raises(DuplicateCatalogKeyError) as exc_info:
            build(duplicated, ["m5.large"])

        assert exc_info.value.keys == ["m5.large", "zz9.large"]
