"""EventRecord <-> JSON wire payloads."""

import json

from trafficgen.synthesizer import EventRecord


def encode(record: EventRecord) -> bytes:
    """Compact UTF-8 JSON, one record per payload.

    Raises TypeError / ValueError from json on unencodable fields; the
    dispatcher turns those into SerializationError.
    """
    return json.dumps(
        record.to_dict(), ensure_ascii=False, allow_nan=False, separators=(",", ":"),
    ).encode("utf-8")


def pretty(record: EventRecord) -> str:
    return json.dumps(record.to_dict(), ensure_ascii=False, indent=2)


def decode(payload: bytes | str) -> dict:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    return json.loads(payload)
