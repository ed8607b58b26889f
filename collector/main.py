import logging
import time
from typing import Dict

from prometheus_client import REGISTRY, CollectorRegistry
from prometheus_client.core import GaugeMetricFamily

from collector.disk.diskstats_linux import DiskstatsCollector
from collector.errors import FormatError
from collector.metrics import MetricSink

logger = logging.getLogger(__name__)


def _scrape_families():
    duration = GaugeMetricFamily(
        "node_scrape_collector_duration_seconds",
        "Duration of a collector scrape.",
        labels=["collector"],
    )
    success = GaugeMetricFamily(
        "node_scrape_collector_success",
        "Whether a collector succeeded.",
        labels=["collector"],
    )
    return duration, success


class NodeCollector:
    """
    Runs every named collector once per scrape and reports how each went.

    A failing collector still contributes whatever it emitted before the
    error; the failure shows up as node_scrape_collector_success 0.
    """

    def __init__(self, collectors: Dict[str, object]):
        self.collectors = collectors

    def describe(self):
        yield from _scrape_families()
        for c in self.collectors.values():
            yield from c.describe()

    def collect(self):
        duration, success = _scrape_families()

        for name, c in self.collectors.items():
            sink = MetricSink()
            start = time.perf_counter()
            try:
                c.update(sink.emit)
                ok = 1
            except (OSError, FormatError) as e:
                logger.error(f"collector {name} failed after {sink.count} samples: {e}")
                ok = 0
            elapsed = time.perf_counter() - start
            logger.debug(f"collector {name} succeeded={ok} duration_seconds={elapsed:.6f}")

            duration.add_metric([name], elapsed)
            success.add_metric([name], ok)
            yield from sink.families()

        yield duration
        yield success


def default_collectors():
    return {"diskstats": DiskstatsCollector()}


def build_registry(collectors=None):
    registry = CollectorRegistry()
    registry.register(NodeCollector(collectors if collectors is not None else default_collectors()))
    return registry


def reload_collectors():
    node_collector.collectors = default_collectors()


node_collector = NodeCollector(default_collectors())

register = REGISTRY
register.register(node_collector)
