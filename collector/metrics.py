from typing import Dict, NamedTuple, Tuple, Union

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

COUNTER = "counter"
GAUGE = "gauge"

MetricFamily = Union[CounterMetricFamily, GaugeMetricFamily]


def build_fq_name(namespace, subsystem, name):
    return "_".join(part for part in (namespace, subsystem, name) if part)


class MetricDescriptor(NamedTuple):
    name: str
    documentation: str
    kind: str
    labels: Tuple[str, ...] = ("device",)

    def new_family(self) -> MetricFamily:
        if self.kind == COUNTER:
            return CounterMetricFamily(self.name, self.documentation, labels=list(self.labels))
        if self.kind == GAUGE:
            return GaugeMetricFamily(self.name, self.documentation, labels=list(self.labels))
        raise ValueError(f"unknown metric kind {self.kind!r} for {self.name}")


class Sample(NamedTuple):
    descriptor: MetricDescriptor
    label_values: Tuple[str, ...]
    value: float


class MetricSink:
    """
    Consumer side of a collection cycle.

    Collectors call emit() once per sample as they go; samples are grouped
    into one family per descriptor, kept in first-emission order. Nothing
    is ever removed, so whatever was emitted before a failure is still
    exposed.
    """

    def __init__(self):
        self._families: Dict[str, MetricFamily] = {}
        self.count = 0

    def emit(self, sample):
        desc = sample.descriptor
        family = self._families.get(desc.name)
        if family is None:
            family = self._families[desc.name] = desc.new_family()
        family.add_metric(list(sample.label_values), sample.value)
        self.count += 1

    def families(self):
        return list(self._families.values())
