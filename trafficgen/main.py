"""Traffic generator service: builds the pipeline from config and runs it.

Loads the YAML config, draws the user population, creates the output topic
if needed, and runs the dispatcher in fixed-duration or fixed-count mode.
SIGINT/SIGTERM stop the run after the batch in flight.

Exit status: 0 on success, 1 when the run aborts on a sink or serialization
failure, 2 on a configuration error.

Usage:
    python -m trafficgen.main
    python -m trafficgen.main --config config/traffic.yml
    python -m trafficgen.main --dry-run --pretty --seed 7
    python -m trafficgen.main --bootstrap-servers kafka-1:29092 --topic events
"""

import argparse
import random
import signal
import sys

from confluent_kafka import KafkaException
from confluent_kafka.admin import AdminClient, NewTopic
from prometheus_client import start_http_server

from trafficgen.arrivals import ArrivalSampler
from trafficgen.config import GeneratorConfig, config_from_dict, load_config
from trafficgen.dispatcher import Dispatcher
from trafficgen.errors import ConfigurationError, SerializationError, SinkFailure
from trafficgen.population import PopulationWeights
from trafficgen.sinks import Sink
from trafficgen.sinks.kafka_sink import KafkaSink
from trafficgen.sinks.stdout_sink import StdoutSink
from trafficgen.synthesizer import EventSynthesizer

_active: Dispatcher | None = None


def _shutdown(sig, frame):
    print("\nShutting down generator...", file=sys.stderr)
    if _active is not None:
        _active.stop()


def _ensure_topic(bootstrap_servers, topic, partitions, replication_factor):
    """Create the output topic if it doesn't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    fs = admin.create_topics([
        NewTopic(topic, num_partitions=partitions, replication_factor=replication_factor)
    ])
    for t, f in fs.items():
        try:
            f.result()
            print(f"Created topic '{t}'")
        except Exception as e:
            if "TOPIC_ALREADY_EXISTS" in str(e):
                print(f"Topic '{t}' already exists")
            else:
                raise


def _build_sink(config: GeneratorConfig) -> Sink:
    s = config.sink
    if s.kind == "stdout":
        return StdoutSink()
    _ensure_topic(s.bootstrap_servers, s.topic, s.partitions, s.replication_factor)
    return KafkaSink(s.bootstrap_servers, s.topic, flush_timeout=s.flush_timeout_seconds)


def _load(args) -> GeneratorConfig:
    config = load_config(args.config) if args.config else config_from_dict({})
    if args.bootstrap_servers:
        config.sink.bootstrap_servers = args.bootstrap_servers
    if args.topic:
        config.sink.topic = args.topic
    if args.seed is not None:
        config.seed = args.seed
    if args.pretty:
        config.echo = True
    if args.dry_run:
        config.sink.kind = "stdout"
    return config.validate()


def build_dispatcher(config: GeneratorConfig, sink: Sink, out=None) -> Dispatcher:
    """Wire every component for *config* around an already-built sink."""
    rng = random.Random(config.seed)
    w = config.weights
    population = PopulationWeights.build(
        rng, config.population, w.distribution, **w.params()
    )
    return Dispatcher(
        rate_model=config.rate_model(),
        sampler=ArrivalSampler(config.jitter_ratio),
        population=population,
        synthesizer=EventSynthesizer(),
        sink=sink,
        rng=rng,
        echo=config.echo,
        progress_every=config.progress_every,
        out=out,
    )


def main(argv=None) -> int:
    global _active

    parser = argparse.ArgumentParser(description="Synthetic user-behavior traffic generator")
    parser.add_argument("--config", help="YAML config file (defaults apply without one)")
    parser.add_argument("--bootstrap-servers")
    parser.add_argument("--topic")
    parser.add_argument("--seed", type=int)
    parser.add_argument("--pretty", action="store_true", help="Echo every record as indented JSON")
    parser.add_argument("--dry-run", action="store_true", help="Write NDJSON to stdout instead of Kafka")
    args = parser.parse_args(argv)

    try:
        config = _load(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    # Keep stdout clean for the NDJSON stream in dry-run mode.
    out = sys.stderr if config.sink.kind == "stdout" else sys.stdout

    if config.metrics_port:
        start_http_server(config.metrics_port)
        print(f"Prometheus metrics server started on :{config.metrics_port}", file=out)

    try:
        sink = _build_sink(config)
    except KafkaException as e:
        print(f"Aborted after 0 events: cannot open {config.sink.kind} sink: {e}", file=sys.stderr)
        return 1
    dispatcher = build_dispatcher(config, sink, out=out)
    _active = dispatcher

    signal.signal(signal.SIGINT, _shutdown)   # Ctrl+C (local dev)
    signal.signal(signal.SIGTERM, _shutdown)  # docker stop / k8s pod termination

    population = dispatcher.population
    if config.mode == "duration":
        target = f"{config.duration_seconds:g}s"
    else:
        target = f"{config.total_events} events"
    print(f"Generating to {sink.name} sink ({target}, seed={config.seed})", file=out)
    print(f"Users: {len(population)}  {config.weights.distribution} weights, "
          f"top 10% hold {population.heavy_share(0.1):.0%} of activity", file=out)

    try:
        with sink:
            summary = dispatcher.run(config.duration_seconds, config.total_events)
    except (SinkFailure, SerializationError) as e:
        print(f"Aborted after {e.events_generated} events: {e.reason}", file=sys.stderr)
        return 1
    finally:
        _active = None

    print(f"Done. {summary.events} events in {summary.batches} batches "
          f"({summary.elapsed_seconds:.1f}s).", file=out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
