"""Error types raised by the traffic generator.

ConfigurationError is raised at startup, before any event exists.  The two
run-time errors carry the number of events already submitted so the entry
point can report progress before exiting.
"""


class TrafficGenError(Exception):
    """Base class for every error the generator raises on purpose."""


class ConfigurationError(TrafficGenError):
    """Invalid or contradictory generator parameters."""


class _RunError(TrafficGenError):

    def __init__(self, events_generated: int, reason: str):
        super().__init__(reason)
        self.events_generated = events_generated
        self.reason = reason


class SinkFailure(_RunError):
    """The output sink rejected a batch.  Fatal: no retry, no buffering."""


class SerializationError(_RunError):
    """A synthesized record could not be encoded (a synthesizer bug)."""
