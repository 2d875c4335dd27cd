"""
CloudWatch metrics capture.

Maps CloudWatch instance statistics onto a fixed set of internal counters.
Values are published in 20-second realtime slots; CloudWatch datapoints are
1-minute (detailed) or 5-minute (basic), so each datapoint pair is spread over
the slots it covers.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import structlog

logger = structlog.get_logger()

INTERVALS = (timedelta(minutes=5), timedelta(minutes=1))
SLOT = timedelta(seconds=20)
# CloudWatch limits the datapoints per request, so ask for one day at a time
REQUEST_WINDOW = timedelta(days=1)
DEFAULT_LOOKBACK = timedelta(hours=4)

MetricsByName = Dict[str, Dict[datetime, float]]


def _passthrough(stats: Sequence[Optional[float]], _interval: float) -> Optional[float]:
    return stats[0]


def _kilobytes_per_second(stats: Sequence[Optional[float]], interval: float) -> float:
    return sum(s for s in stats if s is not None) / 1024.0 / interval


@dataclass(frozen=True)
class CounterDefinition:
    counter_key: str
    unit_key: str
    precision: int
    metric_names: Tuple[str, ...]
    calculation: Callable[[Sequence[Optional[float]], float], Optional[float]]
    instance: str = ""
    capture_interval: str = "20"
    capture_interval_name: str = "realtime"
    rollup: str = "average"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counter_key": self.counter_key,
            "unit_key": self.unit_key,
            "precision": self.precision,
            "metric_names": list(self.metric_names),
            "instance": self.instance,
            "capture_interval": self.capture_interval,
            "capture_interval_name": self.capture_interval_name,
            "rollup": self.rollup,
        }


COUNTERS = {
    counter.counter_key: counter
    for counter in (
        CounterDefinition("cpu_usage_rate_average", "percent", 1, ("CPUUtilization",), _passthrough),
        CounterDefinition("mem_usage_absolute_average", "percent", 1, ("MemoryUtilization",), _passthrough),
        CounterDefinition("mem_swapped_absolute_average", "percent", 1, ("SwapUtilization",), _passthrough),
        CounterDefinition(
            "disk_usage_rate_average", "kilobytespersecond", 2,
            ("DiskReadBytes", "DiskWriteBytes"), _kilobytes_per_second
        ),
        CounterDefinition(
            "net_usage_rate_average", "kilobytespersecond", 2,
            ("NetworkIn", "NetworkOut"), _kilobytes_per_second
        ),
    )
}

COUNTER_NAMES = tuple(dict.fromkeys(name for c in COUNTERS.values() for name in c.metric_names))


def counter_values_by_timestamp(metrics_by_name: MetricsByName) -> Dict[str, Dict[str, float]]:
    """
    Convert per-metric datapoints into counter values per 20-second slot.

    Args:
        metrics_by_name: CloudWatch metric name -> {timestamp: average}

    Returns:
        ISO-8601 timestamp -> {counter_key: value}
    """
    values_by_ts: Dict[str, Dict[str, float]] = {}
    for counter in COUNTERS.values():
        timestamps = sorted({
            ts
            for name in counter.metric_names
            for ts in metrics_by_name.get(name, {})
        })

        # The first datapoint and any pair with an unexpected gap cannot be
        # attributed to a known interval, so they are dropped.
        for last_ts, ts in zip(timestamps, timestamps[1:]):
            interval = ts - last_ts
            if interval not in INTERVALS:
                continue

            stats = [metrics_by_name.get(name, {}).get(ts) for name in counter.metric_names]
            value = counter.calculation(stats, interval.total_seconds())
            if value is None:
                continue

            inner_ts = last_ts + SLOT
            while inner_ts <= ts:
                values_by_ts.setdefault(inner_ts.isoformat(), {})[counter.counter_key] = value
                inner_ts += SLOT
    return values_by_ts


def _time_windows(start_time: datetime, end_time: datetime, step: timedelta) -> Iterable[Tuple[datetime, datetime]]:
    window_start = start_time
    while window_start < end_time:
        window_end = min(window_start + step, end_time)
        yield window_start, window_end
        window_start = window_end


class MetricsCapture:
    """Collects CloudWatch metrics of one EC2 instance."""

    def __init__(self, cloudwatch_client, instance_id: str):
        """
        Initialize capture.

        Args:
            cloudwatch_client: boto3 CloudWatch client
            instance_id: EC2 instance id (e.g., "i-0123456789abcdef0")
        """
        if not instance_id:
            raise ValueError("An instance id is required for metrics capture")
        self.client = cloudwatch_client
        self.instance_id = instance_id
        self.unknown_metrics: Set[str] = set()
        self.logger = logger.bind(component="metrics_capture", instance_id=instance_id)

    def perf_collect_metrics(
        self,
        interval_name: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None
    ):
        """
        Collect counters for the instance.

        Args:
            interval_name: Capture interval label, used for logging
            start_time: Window start, defaults to 4 hours before end_time
            end_time: Window end, defaults to now

        Returns:
            Tuple of (counters by instance id, counter values by instance id and timestamp)
        """
        end_time = _as_utc(end_time or datetime.now(timezone.utc))
        start_time = _as_utc(start_time or end_time - DEFAULT_LOOKBACK)
        log = self.logger.bind(interval_name=interval_name)

        try:
            # ask for one datapoint earlier than needed, the first one is dropped
            start_time -= INTERVALS[0]
            counters = self.get_counters()
            metrics_by_name = self.metrics_by_name(counters, start_time, end_time)
            values_by_ts = counter_values_by_timestamp(metrics_by_name)
        except Exception as e:
            log.error("perf_collect_failed", error=str(e), error_class=type(e).__name__)
            raise

        log.info("perf_collected", timestamps=len(values_by_ts))
        counters_by_id = {self.instance_id: {k: c.to_dict() for k, c in COUNTERS.items()}}
        values_by_id_and_ts = {self.instance_id: values_by_ts}
        return counters_by_id, values_by_id_and_ts

    def get_counters(self) -> List[Dict[str, Any]]:
        """Instance metrics (as returned by list_metrics) that map to a counter."""
        dimensions = [{"Name": "InstanceId", "Value": self.instance_id}]
        paginator = self.client.get_paginator("list_metrics")

        counters: List[Dict[str, Any]] = []
        for page in paginator.paginate(Dimensions=dimensions):
            for metric in page.get("Metrics", []):
                if metric["MetricName"] in COUNTER_NAMES:
                    counters.append(metric)
                else:
                    self.unknown_metrics.add(metric["MetricName"])

        if self.unknown_metrics:
            self.logger.debug("unmapped_metrics", metrics=sorted(self.unknown_metrics))
        return counters

    def metrics_by_name(
        self,
        counters: Iterable[Dict[str, Any]],
        start_time: datetime,
        end_time: datetime
    ) -> MetricsByName:
        metrics: MetricsByName = {}
        for counter in counters:
            datapoints = metrics.setdefault(counter["MetricName"], {})
            for window_start, window_end in _time_windows(start_time, end_time, REQUEST_WINDOW):
                response = self.client.get_metric_statistics(
                    Namespace=counter["Namespace"],
                    MetricName=counter["MetricName"],
                    Dimensions=counter["Dimensions"],
                    StartTime=window_start,
                    EndTime=window_end,
                    Statistics=["Average"],
                    Period=60,
                )
                for point in response.get("Datapoints", []):
                    datapoints[_as_utc(point["Timestamp"])] = point["Average"]
        return metrics


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
