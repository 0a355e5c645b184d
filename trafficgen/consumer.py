"""Verification consumer: reads generated events back and checks them.

Every record is decoded and run through record_violations(); the consumer
prints a short line per event and a per-action tally with the violation
count on exit.  A healthy generator run ends with zero violations.

Usage:
    python -m trafficgen.consumer
    python -m trafficgen.consumer --bootstrap-servers kafka-1:29092 --topic events
"""

import argparse
import signal
import sys
from collections import Counter
from datetime import datetime

from confluent_kafka import Consumer, KafkaError

from trafficgen.serialization import decode
from trafficgen.synthesizer import STATUS_CODES

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down consumer...")
    running = False


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_payload(value: bytes | None) -> dict:
    """Decode one message value into a record; ValueError if it is not one."""
    if value is None:
        raise ValueError("empty payload (tombstone)")
    record = decode(value)
    if not isinstance(record, dict):
        raise ValueError(f"expected a JSON object, got {type(record).__name__}")
    return record


def record_violations(record: dict) -> list[str]:
    """Names of the invariants a decoded event record breaks (empty if none)."""
    problems = []
    try:
        if _parse_ts(record["ingest_time"]) < _parse_ts(record["event_time"]):
            problems.append("ingest_before_event")
    except (KeyError, TypeError, ValueError):
        problems.append("bad_timestamp")

    status = record.get("status_code")
    if status not in STATUS_CODES:
        problems.append("unknown_status")
    if record.get("success") != (status == 200):
        problems.append("success_mismatch")

    value = record.get("value", 0)
    if record.get("action") == "purchase":
        if not value or value <= 0:
            problems.append("purchase_without_value")
    elif value != 0:
        problems.append("value_on_non_purchase")
    return problems


def main():
    parser = argparse.ArgumentParser(description="Generated-event verifier")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="events")
    parser.add_argument("--group-id", default="trafficgen-verify")
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": args.group_id,
        "auto.offset.reset": "earliest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([args.topic])

    count = 0
    violations = 0
    actions = Counter()
    try:
        while running:
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() == KafkaError._PARTITION_EOF:
                    continue
                print(f"Consumer error: {msg.error()}", file=sys.stderr)
                continue

            try:
                record = parse_payload(msg.value())
            except ValueError as e:
                print(f"Undecodable message at offset {msg.offset()}: {e}", file=sys.stderr)
                violations += 1
                continue

            count += 1
            actions[record.get("action", "unknown")] += 1
            problems = record_violations(record)
            if problems:
                violations += 1
                print(f"INVALID  event={record.get('event_id')}  {', '.join(problems)}")
            else:
                print(f"[partition={msg.partition()}] {record['action']:<12s} "
                      f"user={record['user_id']}  status={record['status_code']}")

            if count % 500 == 0:
                print(f"  ... {count} events consumed, {violations} invalid")
    finally:
        consumer.close()
        summary = "  ".join(f"{a}={n}" for a, n in actions.most_common())
        print(f"Done. {count} events consumed, {violations} invalid.  {summary}")


if __name__ == "__main__":
    main()
