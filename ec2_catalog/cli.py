"""
Command line entry point.

    ec2-catalog build --output instance_types.yml
    ec2-catalog metrics --instance-id i-0123456789abcdef0
"""
import argparse
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import boto3
import structlog
import yaml

from ec2_catalog.config import Settings
from ec2_catalog.logging_config import configure_logging
from ec2_catalog.metrics.capture import MetricsCapture
from ec2_catalog.pricing.api_info import get_order_source
from ec2_catalog.pricing.errors import CatalogError
from ec2_catalog.pricing.pipeline import InstanceTypesPipeline
from ec2_catalog.pricing.version_source import OfferVersionSource

logger = structlog.get_logger()


def dump(data, output_format: str) -> str:
    if output_format == "json":
        return json.dumps(data, indent=2) + "\n"
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)


def write_output(text: str, output: Optional[str]) -> None:
    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.info("output_written", path=str(path))
    else:
        sys.stdout.write(text)


def run_build(args, settings: Settings) -> int:
    if args.strict:
        settings.fail_on_unknown_values = True

    pipeline = InstanceTypesPipeline(
        settings,
        version_source=OfferVersionSource(settings),
        order_source=get_order_source(settings),
    )
    try:
        result = pipeline.run()
    except CatalogError as e:
        logger.error("catalog_build_failed", error=str(e), error_class=type(e).__name__)
        return 1

    write_output(dump(result.to_dict(), args.format), args.output)
    if args.diagnostics:
        write_output(dump(result.diagnostics.to_dict(), args.format), args.diagnostics)
    return 0


def run_metrics(args, settings: Settings) -> int:
    client = boto3.client("cloudwatch", region_name=settings.aws_region)
    capture = MetricsCapture(client, args.instance_id)
    end_time = datetime.now(timezone.utc)
    counters, values = capture.perf_collect_metrics(
        "realtime",
        start_time=end_time - timedelta(hours=args.hours),
        end_time=end_time,
    )
    write_output(dump({"counters": counters, "values": values}, args.format), args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ec2-catalog", description="EC2 instance type catalog tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build the instance type catalog from AWS price lists")
    build.add_argument("--output", "-o", help="Catalog file (stdout when omitted)")
    build.add_argument("--diagnostics", help="Write conflicts and unknown values to this file")
    build.add_argument("--format", choices=["yaml", "json"], default="yaml")
    build.add_argument(
        "--strict",
        action="store_true",
        help="Fail when attribute values cannot be converted or types are missing from the canonical order"
    )
    build.set_defaults(handler=run_build)

    metrics = subparsers.add_parser("metrics", help="Capture CloudWatch counters for an instance")
    metrics.add_argument("--instance-id", required=True)
    metrics.add_argument("--hours", type=int, default=4)
    metrics.add_argument("--output", "-o")
    metrics.add_argument("--format", choices=["yaml", "json"], default="yaml")
    metrics.set_defaults(handler=run_metrics)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(settings.log_level, settings.log_json)
    return args.handler(args, settings)


if __name__ == "__main__":
    sys.exit(main())
