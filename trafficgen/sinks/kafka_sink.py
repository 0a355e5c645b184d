"""Kafka sink: one produce() per payload, then wait for every delivery report.

confluent-kafka's producer is asynchronous; submit() makes it synchronous by
flushing after the batch and checking the delivery callback results.  A batch
counts as accepted only when every message in it was acknowledged.

linger.ms=50 gives librdkafka a 50 ms window to coalesce a batch into as few
requests as possible.  Messages are produced without a key, so partition
choice is left to the client's default partitioner.
"""

import sys

from confluent_kafka import KafkaException, Producer

from trafficgen.sinks import Sink


class KafkaSink(Sink):
    name = "kafka"

    def __init__(self, bootstrap_servers: str, topic: str,
                 flush_timeout: float = 10.0, producer=None):
        self.topic = topic
        self.flush_timeout = flush_timeout
        self._producer = producer or Producer({
            "bootstrap.servers": bootstrap_servers,
            "acks": "all",
            "linger.ms": 50,
            "client.id": "trafficgen",
        })

    def submit(self, batch: list[bytes]) -> bool:
        errors = []

        def _on_delivery(err, msg):
            if err is not None:
                errors.append(err)

        try:
            for payload in batch:
                self._producer.produce(self.topic, value=payload, on_delivery=_on_delivery)
                self._producer.poll(0)
        except (BufferError, KafkaException) as e:
            print(f"Kafka produce failed: {e}", file=sys.stderr)
            return False

        pending = self._producer.flush(self.flush_timeout)
        if pending:
            print(f"Kafka flush timed out with {pending} message(s) undelivered",
                  file=sys.stderr)
            return False
        if errors:
            print(f"Kafka delivery failed for {len(errors)} message(s): {errors[0]}",
                  file=sys.stderr)
            return False
        return True

    def close(self) -> None:
        self._producer.flush(self.flush_timeout)
