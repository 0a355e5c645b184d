"""Stdout sink: newline-delimited JSON for dry runs and file redirects."""

import sys

from trafficgen.sinks import Sink


class StdoutSink(Sink):
    name = "stdout"

    def __init__(self, stream=None):
        self._stream = stream or sys.stdout

    def submit(self, batch: list[bytes]) -> bool:
        try:
            for payload in batch:
                self._stream.write(payload.decode("utf-8"))
                self._stream.write("\n")
            self._stream.flush()
        except (OSError, ValueError) as e:
            # BrokenPipe when piped into `head`, ValueError on a closed stream
            print(f"stdout write failed: {e}", file=sys.stderr)
            return False
        return True
