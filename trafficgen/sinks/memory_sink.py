"""In-memory sink keeping every accepted batch.  Used by tests and benchmarks."""

from trafficgen.sinks import Sink


class MemorySink(Sink):
    name = "memory"

    def __init__(self, fail_after: int | None = None):
        # fail_after=N: the first N submits succeed, every later one fails
        self.fail_after = fail_after
        self.batches: list[list[bytes]] = []
        self.calls = 0
        self.closed = False

    def submit(self, batch: list[bytes]) -> bool:
        self.calls += 1
        if self.fail_after is not None and self.calls > self.fail_after:
            return False
        self.batches.append(list(batch))
        return True

    @property
    def payloads(self) -> list[bytes]:
        return [p for b in self.batches for p in b]

    def close(self) -> None:
        self.closed = True
