# Output sinks.  The dispatcher only knows this interface: hand over an
# ordered batch of opaque payloads, get back whether the batch was accepted.
# Each concrete sink lives in its own module so the Kafka client is only
# imported when a Kafka sink is actually built.


class Sink:
    """Base output sink. Subclass and implement submit()."""

    name: str

    def submit(self, batch: list[bytes]) -> bool:
        """Write *batch* in order. Return False if any payload was rejected."""
        raise NotImplementedError

    def close(self) -> None:
        """Release client resources. Default: nothing to release."""
        return None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
