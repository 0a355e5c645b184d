"""Prometheus metrics for the generator.

The collectors register in prometheus_client's global REGISTRY on import.
They are updated unconditionally; the HTTP endpoint that exposes them is
only started by main when a metrics port is configured.
"""

from prometheus_client import Counter, Gauge, Histogram

events_total = Counter(
    "trafficgen_events_total",
    "Events synthesized and accepted by the sink",
    ["action"],
)
batches_total = Counter(
    "trafficgen_batches_total",
    "Batches accepted by the sink",
)
batch_size = Histogram(
    "trafficgen_batch_size",
    "Events per submitted batch",
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000, 5000],
)
expected_rate = Gauge(
    "trafficgen_expected_rate",
    "Expected events per slice from the rate model",
)
sink_failures_total = Counter(
    "trafficgen_sink_failures_total",
    "Batches rejected by the sink",
)
