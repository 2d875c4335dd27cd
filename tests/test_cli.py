import json
from unittest.mock import MagicMock, patch

import yaml

from ec2_catalog.cli import build_parser, dump, main
from ec2_catalog.pricing.errors import EmptyCanonicalOrderError


def test_dump_yaml_keeps_order():
    text = dump({"t2.micro": {"vcpu": 1}, "m5.large": {"vcpu": 2}}, "yaml")

    assert text.index("t2.micro") < text.index("m5.large")
    assert yaml.safe_load(text) == {"t2.micro": {"vcpu": 1}, "m5.large": {"vcpu": 2}}


def test_dump_json():
    assert json.loads(dump({"a": None}, "json")) == {"a": None}


def test_parser_requires_command():
    args = build_parser().parse_args(["build", "--format", "json", "--strict"])

    assert args.format == "json"
    assert args.strict is True


@patch("ec2_catalog.cli.get_order_source")
@patch("ec2_catalog.cli.OfferVersionSource")
@patch("ec2_catalog.cli.InstanceTypesPipeline")
def test_build_writes_catalog(mock_pipeline, mock_source, mock_order, tmp_path, monkeypatch):
    monkeypatch.setenv("CACHE_DIR", str(tmp_path / "cache"))
    result = MagicMock()
    result.to_dict.return_value = {"m5.large": {"vcpu": 2}}
    result.diagnostics.to_dict.return_value = {"conflicts": []}
    mock_pipeline.return_value.run.return_value = result
    output = tmp_path / "out" / "instance_types.yml"
    diagnostics = tmp_path / "out" / "diagnostics.yml"

    assert main(["build", "-o", str(output), "--diagnostics", str(diagnostics)]) == 0

    assert yaml.safe_load(output.read_text()) == {"m5.large": {"vcpu": 2}}
    assert yaml.safe_load(diagnostics.read_text()) == {"conflicts": []}


@patch("ec2_catalog.cli.get_order_source")
@patch("ec2_catalog.cli.OfferVersionSource")
@patch("ec2_catalog.cli.InstanceTypesPipeline")
def test_build_failure_exit_code(mock_pipeline, mock_source, mock_order, tmp_path):
    mock_pipeline.return_value.run.side_effect = EmptyCanonicalOrderError("botocore")

    assert main(["build", "-o", str(tmp_path / "out.yml")]) == 1
    assert not (tmp_path / "out.yml").exists()
