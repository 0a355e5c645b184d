"""Tests for output sinks and payload encoding."""

import io
import random
from datetime import datetime, timezone

import pytest
from confluent_kafka import KafkaError, KafkaException

from trafficgen.population import SimulatedUser
from trafficgen.serialization import decode, encode, pretty
from trafficgen.sinks.kafka_sink import KafkaSink
from trafficgen.sinks.memory_sink import MemorySink
from trafficgen.sinks.stdout_sink import StdoutSink
from trafficgen.synthesizer import EventSynthesizer


class FakeProducer:
    """Stands in for confluent_kafka.Producer; delivery reports fire on flush()."""

    def __init__(self, delivery_error=None, pending=0, produce_error=None):
        self.delivery_error = delivery_error
        self.pending = pending
        self.produce_error = produce_error
        self.produced = []
        self._callbacks = []

    def produce(self, topic, value=None, on_delivery=None):
        if self.produce_error is not None:
            raise self.produce_error
        self.produced.append((topic, value))
        self._callbacks.append(on_delivery)

    def poll(self, timeout):
        return 0

    def flush(self, timeout=None):
        for cb in self._callbacks:
            cb(self.delivery_error, None)
        self._callbacks.clear()
        return self.pending


# ---------------------------------------------------------------------------
# KafkaSink
# ---------------------------------------------------------------------------

class TestKafkaSink:
    def test_successful_batch(self):
        producer = FakeProducer()
        sink = KafkaSink("unused:9092", "events", producer=producer)
        assert sink.submit([b"a", b"b", b"c"]) is True
        assert producer.produced == [("events", b"a"), ("events", b"b"), ("events", b"c")]

    def test_delivery_error_fails_batch(self, capsys):
        producer = FakeProducer(delivery_error=KafkaError(KafkaError._MSG_TIMED_OUT))
        sink = KafkaSink("unused:9092", "events", producer=producer)
        assert sink.submit([b"a"]) is False
        assert "delivery failed" in capsys.readouterr().err

    def test_undelivered_after_flush_fails_batch(self):
        sink = KafkaSink("unused:9092", "events", producer=FakeProducer(pending=2))
        assert sink.submit([b"a", b"b"]) is False

    def test_full_queue_fails_batch(self):
        sink = KafkaSink("unused:9092", "events", producer=FakeProducer(produce_error=BufferError("queue full")))
        assert sink.submit([b"a"]) is False

    def test_client_exception_fails_batch(self):
        err = KafkaException(KafkaError(KafkaError._TRANSPORT))
        sink = KafkaSink("unused:9092", "events", producer=FakeProducer(produce_error=err))
        assert sink.submit([b"a"]) is False


# ---------------------------------------------------------------------------
# StdoutSink / MemorySink
# ---------------------------------------------------------------------------

class TestStdoutSink:
    def test_writes_one_line_per_payload(self):
        stream = io.StringIO()
        assert StdoutSink(stream).submit([b'{"a":1}', b'{"b":2}']) is True
        assert stream.getvalue() == '{"a":1}\n{"b":2}\n'

    def test_closed_stream_fails_batch(self):
        stream = io.StringIO()
        stream.close()
        assert StdoutSink(stream).submit([b"x"]) is False


class TestMemorySink:
    def test_keeps_batches_in_order(self):
        sink = MemorySink()
        sink.submit([b"1", b"2"])
        sink.submit([b"3"])
        assert sink.batches == [[b"1", b"2"], [b"3"]]
        assert sink.payloads == [b"1", b"2", b"3"]

    def test_fail_after(self):
        sink = MemorySink(fail_after=1)
        assert sink.submit([b"1"]) is True
        assert sink.submit([b"2"]) is False
        assert sink.payloads == [b"1"]

    def test_context_manager_closes(self):
        with MemorySink() as sink:
            pass
        assert sink.closed


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

class TestSerialization:
    def setup_method(self):
        now = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.record = EventSynthesizer().synthesize(
            random.Random(1), SimulatedUser(0, 1.0), now,
        )

    def test_encode_is_compact_json(self):
        payload = encode(self.record)
        assert isinstance(payload, bytes)
        assert b"\n" not in payload
        assert decode(payload) == self.record.to_dict()

    def test_pretty_is_indented(self):
        text = pretty(self.record)
        assert text.startswith("{\n  ")
        assert decode(text)["event_id"] == self.record.event_id

    def test_encode_rejects_nan(self):
        self.record.value = float("nan")
        with pytest.raises(ValueError):
            encode(self.record)
