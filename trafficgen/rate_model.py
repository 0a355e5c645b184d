"""Target arrival rate as a function of wall-clock time.

rate = population * per-user-per-minute baseline
       * hour-of-day multiplier * weekday/hour spike multiplier
       / 60 * slice length

With the default one-second slice the result is events per second.  A
configured fixed rate bypasses the model entirely and is returned as-is.

The hour table and spike window are read on the calendar's local clock
(Asia/Seoul by default, matching the records' locale).  Aware datetimes are
converted to that zone first; naive ones are taken as local already.
"""

from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from trafficgen.errors import ConfigurationError

# Quiet overnight, morning ramp, lunch bump, evening peak (19-22h).
HOUR_MULTIPLIERS: tuple[float, ...] = (
    0.35, 0.25, 0.20, 0.15, 0.15, 0.20,   # 00-05
    0.35, 0.60, 0.85, 0.95, 1.00, 1.05,   # 06-11
    1.20, 1.10, 1.00, 0.95, 1.00, 1.10,   # 12-17
    1.30, 1.55, 1.70, 1.65, 1.25, 0.70,   # 18-23
)

SPIKE_WEEKDAY = 4   # Friday (Monday == 0)
SPIKE_HOUR = 20
SPIKE_MULTIPLIER = 3.0
CALENDAR_TIMEZONE = "Asia/Seoul"


@dataclass(frozen=True)
class RateModel:
    population: int
    baseline_per_user_per_minute: float
    hour_multipliers: tuple[float, ...] = HOUR_MULTIPLIERS
    spike_weekday: int = SPIKE_WEEKDAY
    spike_hour: int = SPIKE_HOUR
    spike_multiplier: float = SPIKE_MULTIPLIER
    fixed_rate: float | None = None
    slice_seconds: float = 1.0
    timezone: str = CALENDAR_TIMEZONE

    def __post_init__(self):
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"unknown calendar timezone '{self.timezone}'") from e
        if len(self.hour_multipliers) != 24:
            raise ConfigurationError(
                f"hour_multipliers needs 24 entries, got {len(self.hour_multipliers)}"
            )
        if any(m <= 0 for m in self.hour_multipliers):
            raise ConfigurationError("hour_multipliers must all be > 0")
        if self.spike_multiplier <= 0:
            raise ConfigurationError("spike_multiplier must be > 0")
        if not 0 <= self.spike_weekday <= 6:
            raise ConfigurationError(f"spike_weekday out of range: {self.spike_weekday}")
        if not 0 <= self.spike_hour <= 23:
            raise ConfigurationError(f"spike_hour out of range: {self.spike_hour}")
        if self.fixed_rate is not None and self.fixed_rate <= 0:
            raise ConfigurationError("fixed_rate must be > 0 when set")
        if self.slice_seconds <= 0:
            raise ConfigurationError("slice_seconds must be > 0")

    def hour_multiplier(self, hour: int) -> float:
        return self.hour_multipliers[hour]

    def spike(self, weekday: int, hour: int) -> float:
        if weekday == self.spike_weekday and hour == self.spike_hour:
            return self.spike_multiplier
        return 1.0

    def local_time(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            return now
        return now.astimezone(ZoneInfo(self.timezone))

    def expected_rate(self, now: datetime) -> float:
        """Expected events per slice at *now*."""
        if self.fixed_rate is not None:
            return self.fixed_rate
        now = self.local_time(now)
        per_minute = (
            self.population
            * self.baseline_per_user_per_minute
            * self.hour_multiplier(now.hour)
            * self.spike(now.weekday(), now.hour)
        )
        return per_minute / 60.0 * self.slice_seconds
