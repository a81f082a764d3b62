"""Render an assembled metric set in the Prometheus text format."""

from typing import Dict, Iterable, List

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.gc_collector import GCCollector
from prometheus_client.platform_collector import PlatformCollector
from prometheus_client.process_collector import ProcessCollector

from docker_exporter.metrics.registry import MetricDescriptor, MetricKind, MetricSample

OUTPUT_MINIMUM = "minimum"
OUTPUT_ALL = "all"
OUTPUT_MODES = (OUTPUT_MINIMUM, OUTPUT_ALL)

__all__ = [
    "CONTENT_TYPE_LATEST",
    "OUTPUT_ALL",
    "OUTPUT_MINIMUM",
    "OUTPUT_MODES",
    "Renderer",
    "to_families",
]


def _family_for(descriptor: MetricDescriptor) -> Metric:
    labels = list(descriptor.label_names)
    if descriptor.kind == MetricKind.COUNTER:
        return CounterMetricFamily(descriptor.name, descriptor.help, labels=labels)
    return GaugeMetricFamily(descriptor.name, descriptor.help, labels=labels)


def to_families(samples: Iterable[MetricSample]) -> List[Metric]:
    """Group samples by descriptor, keeping first-seen order."""
    families: Dict[str, Metric] = {}
    for sample in samples:
        family = families.get(sample.descriptor.name)
        if family is None:
            family = families[sample.descriptor.name] = _family_for(sample.descriptor)
        family.add_metric(list(sample.label_values), sample.value)
    return list(families.values())


class _SnapshotCollector:
    """Collector that yields a fixed list of families once per render."""

    def __init__(self, families: List[Metric]):
        self._families = families

    def collect(self):
        return iter(self._families)


class Renderer:
    """Turns a metric set into exposition bytes.

    In ``all`` output mode prometheus_client's process, platform and GC
    collectors are rendered alongside the Docker metrics.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, output_mode: str = OUTPUT_MINIMUM):
        self.output_mode = output_mode if output_mode in OUTPUT_MODES else OUTPUT_MINIMUM
        self._runtime_collectors = []
        if self.output_mode == OUTPUT_ALL:
            self._runtime_collectors = [
                ProcessCollector(registry=None),
                PlatformCollector(registry=None),
                GCCollector(registry=None),
            ]

    @property
    def include_runtime_metrics(self) -> bool:
        return bool(self._runtime_collectors)

    def render(self, samples: Iterable[MetricSample]) -> bytes:
        registry = CollectorRegistry(auto_describe=False)
        for collector in self._runtime_collectors:
            registry.register(collector)
        registry.register(_SnapshotCollector(to_families(samples)))
        return generate_latest(registry)
