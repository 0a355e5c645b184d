"""Dispatcher: drives the generation loop and hands batches to the sink.

Two mutually exclusive modes:

  run_for(seconds)  fixed duration.  Each slice: rate model -> arrival
                    sampler -> pick users -> synthesize -> submit one batch
                    -> sleep to the next slice boundary.  The rate model is
                    re-evaluated every slice, so a run that crosses an hour
                    boundary (or enters the spike window) picks up the new
                    multiplier immediately.
  run_count(n)      fixed count.  Batches of max(1, Poisson(max(rate, 1)))
                    events, clipped to what is left, submitted back to back
                    with no delay.  Stops at exactly n.

Any rejected batch is fatal: SinkFailure is raised straight away with the
number of events already accepted.  There is no retry and no partial-batch
recovery: the job is to produce load, not to guarantee delivery.

Clock and sleep are injected so tests can run a "60 second" loop instantly.
"""

import random
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from trafficgen import metrics
from trafficgen.arrivals import ArrivalSampler, poisson
from trafficgen.errors import SerializationError, SinkFailure
from trafficgen.population import PopulationWeights
from trafficgen.rate_model import RateModel
from trafficgen.serialization import encode, pretty
from trafficgen.sinks import Sink
from trafficgen.synthesizer import EventSynthesizer


@dataclass
class RunSummary:
    events: int
    batches: int
    elapsed_seconds: float


class Dispatcher:

    def __init__(self, rate_model: RateModel, sampler: ArrivalSampler,
                 population: PopulationWeights, synthesizer: EventSynthesizer,
                 sink: Sink, rng: random.Random, *, echo=False,
                 progress_every=500, clock=time.time, sleep=time.sleep,
                 out=None):
        self.rate_model = rate_model
        self.sampler = sampler
        self.population = population
        self.synthesizer = synthesizer
        self.sink = sink
        self.rng = rng
        self.echo = echo
        self.progress_every = progress_every
        self._clock = clock
        self._sleep = sleep
        self._out = out

        self.events = 0
        self.batches = 0
        self._stopping = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, duration_seconds: float | None = None,
            total_events: int | None = None) -> RunSummary:
        if (duration_seconds is None) == (total_events is None):
            raise ValueError("pass exactly one of duration_seconds / total_events")
        if duration_seconds is not None:
            return self.run_for(duration_seconds)
        return self.run_count(total_events)

    def run_for(self, duration_seconds: float) -> RunSummary:
        slice_seconds = self.rate_model.slice_seconds
        start = self._clock()
        deadline = start + duration_seconds

        while not self._stopping:
            t = self._clock()
            if t >= deadline:
                break
            now = self._now(t)
            rate = self._expected_rate(now)
            n = self.sampler.sample(self.rng, rate)
            if n:
                self._dispatch(n, now)

            # Next boundary strictly after the current time; slow slices skip
            # ahead rather than bursting to catch up.
            elapsed = self._clock() - start
            boundary = start + (int(elapsed // slice_seconds) + 1) * slice_seconds
            delay = min(boundary, deadline) - self._clock()
            if delay > 0:
                self._sleep(delay)

        return self._summary(start)

    def run_count(self, total_events: int) -> RunSummary:
        if total_events < 1:
            raise ValueError(f"total_events must be >= 1, got {total_events}")
        start = self._clock()

        while not self._stopping and self.events < total_events:
            now = self._now(self._clock())
            rate = self._expected_rate(now)
            n = max(1, poisson(self.rng, max(rate, 1.0)))
            n = min(n, total_events - self.events)
            self._dispatch(n, now)

        return self._summary(start)

    def stop(self) -> None:
        """Finish the batch in flight, then leave the loop."""
        self._stopping = True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now(self, t: float) -> datetime:
        return datetime.fromtimestamp(t, tz=timezone.utc)

    def _expected_rate(self, now: datetime) -> float:
        rate = self.rate_model.expected_rate(now)
        metrics.expected_rate.set(rate)
        return rate

    def _dispatch(self, n: int, now: datetime) -> None:
        records = []
        batch = []
        for _ in range(n):
            user = self.population.user(self.population.pick(self.rng))
            record = self.synthesizer.synthesize(self.rng, user, now)
            try:
                batch.append(encode(record))
            except (TypeError, ValueError) as e:
                raise SerializationError(
                    self.events, f"cannot encode event {record.event_id}: {e}"
                ) from e
            records.append(record)

        if not self.sink.submit(batch):
            metrics.sink_failures_total.inc()
            raise SinkFailure(
                self.events,
                f"sink '{self.sink.name}' rejected a batch of {len(batch)} events",
            )

        before = self.events
        self.events += len(batch)
        self.batches += 1
        metrics.batches_total.inc()
        metrics.batch_size.observe(len(batch))
        for record in records:
            metrics.events_total.labels(action=record.action).inc()
            if self.echo:
                print(pretty(record), file=self._stream)

        if self.events // self.progress_every > before // self.progress_every:
            print(f"  ... {self.events} events produced", file=self._stream)

    @property
    def _stream(self):
        return self._out or sys.stdout

    def _summary(self, start: float) -> RunSummary:
        return RunSummary(
            events=self.events,
            batches=self.batches,
            elapsed_seconds=self._clock() - start,
        )
