"""Generator configuration loaded from YAML.

Every key is optional; a missing file section falls back to the defaults
below.  Unknown keys are rejected so a typo cannot silently fall back to a
default.  All validation happens here, before any event is generated.
"""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from trafficgen.errors import ConfigurationError
from trafficgen.population import DISTRIBUTIONS
from trafficgen.rate_model import (
    CALENDAR_TIMEZONE, HOUR_MULTIPLIERS, SPIKE_HOUR, SPIKE_MULTIPLIER, SPIKE_WEEKDAY,
    RateModel,
)

SINK_KINDS = ("kafka", "stdout")

# Used when a config names neither duration_seconds nor total_events.
DEFAULT_TOTAL_EVENTS = 1000


@dataclass
class WeightsConfig:
    distribution: str = "lognormal"
    mu: float = 0.0
    sigma: float = 1.0
    alpha: float = 1.16  # 80/20 rule
    x_min: float = 1.0

    def params(self) -> dict:
        if self.distribution == "pareto":
            return {"alpha": self.alpha, "x_min": self.x_min}
        return {"mu": self.mu, "sigma": self.sigma}


@dataclass
class CalendarConfig:
    hour_multipliers: list[float] = field(default_factory=lambda: list(HOUR_MULTIPLIERS))
    spike_weekday: int = SPIKE_WEEKDAY
    spike_hour: int = SPIKE_HOUR
    spike_multiplier: float = SPIKE_MULTIPLIER
    timezone: str = CALENDAR_TIMEZONE


@dataclass
class SinkConfig:
    kind: str = "kafka"
    bootstrap_servers: str = "localhost:9092"
    topic: str = "events"
    partitions: int = 3
    replication_factor: int = 1
    flush_timeout_seconds: float = 10.0


@dataclass
class GeneratorConfig:
    population: int = 5000
    baseline_per_user_per_minute: float = 0.2
    fixed_rate: float | None = None
    duration_seconds: float | None = None
    total_events: int | None = None
    slice_seconds: float = 1.0
    jitter_ratio: float = 0.2
    seed: int | None = None
    echo: bool = False
    progress_every: int = 500
    metrics_port: int | None = None
    weights: WeightsConfig = field(default_factory=WeightsConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    sink: SinkConfig = field(default_factory=SinkConfig)

    @property
    def mode(self) -> str:
        return "duration" if self.duration_seconds is not None else "count"

    def validate(self) -> "GeneratorConfig":
        """Raise ConfigurationError on the first invalid parameter."""
        self._check_types()
        if self.population < 1:
            raise ConfigurationError(f"population must be >= 1, got {self.population}")
        if self.baseline_per_user_per_minute < 0:
            raise ConfigurationError("baseline_per_user_per_minute must be >= 0")
        if (self.duration_seconds is None) == (self.total_events is None):
            raise ConfigurationError(
                "set exactly one of duration_seconds or total_events"
            )
        if self.duration_seconds is not None and self.duration_seconds <= 0:
            raise ConfigurationError("duration_seconds must be > 0")
        if self.total_events is not None and self.total_events < 1:
            raise ConfigurationError("total_events must be >= 1")
        if not 0 <= self.jitter_ratio < 1:
            raise ConfigurationError("jitter_ratio must be in [0, 1)")
        if self.progress_every < 1:
            raise ConfigurationError("progress_every must be >= 1")

        w = self.weights
        if w.distribution not in DISTRIBUTIONS:
            raise ConfigurationError(
                f"weights.distribution must be one of {DISTRIBUTIONS}, got '{w.distribution}'"
            )
        if w.distribution == "lognormal" and w.sigma <= 0:
            raise ConfigurationError("weights.sigma must be > 0")
        if w.distribution == "pareto" and (w.alpha <= 0 or w.x_min <= 0):
            raise ConfigurationError("weights.alpha and weights.x_min must be > 0")

        if self.sink.kind not in SINK_KINDS:
            raise ConfigurationError(
                f"sink.kind must be one of {SINK_KINDS}, got '{self.sink.kind}'"
            )

        # RateModel validates the calendar and rate fields itself.
        self.rate_model()
        return self

    def _check_types(self) -> None:
        for name, expected, optional in _TOP_LEVEL_TYPES:
            _check_type(name, getattr(self, name), expected, optional)
        for section, fields in _SECTION_TYPES.items():
            obj = getattr(self, section)
            for name, expected in fields:
                _check_type(f"{section}.{name}", getattr(obj, name), expected)
        table = self.calendar.hour_multipliers
        if not isinstance(table, (list, tuple)) or not all(_is_number(m) for m in table):
            raise ConfigurationError(
                "wrong value type for calendar.hour_multipliers: expected a list of numbers"
            )

    def rate_model(self) -> RateModel:
        cal = self.calendar
        return RateModel(
            population=self.population,
            baseline_per_user_per_minute=self.baseline_per_user_per_minute,
            hour_multipliers=tuple(cal.hour_multipliers),
            spike_weekday=cal.spike_weekday,
            spike_hour=cal.spike_hour,
            spike_multiplier=cal.spike_multiplier,
            fixed_rate=self.fixed_rate,
            slice_seconds=self.slice_seconds,
            timezone=cal.timezone,
        )


_SECTIONS = {"weights": WeightsConfig, "calendar": CalendarConfig, "sink": SinkConfig}


def _is_int(value) -> bool:
    # bool is an int subclass; "population: true" is still a mistake
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


_TYPE_CHECKS = {
    "an integer": _is_int,
    "a number": _is_number,
    "a string": lambda v: isinstance(v, str),
    "true or false": lambda v: isinstance(v, bool),
}

# (field, expected, may be null)
_TOP_LEVEL_TYPES = (
    ("population", "an integer", False),
    ("baseline_per_user_per_minute", "a number", False),
    ("fixed_rate", "a number", True),
    ("duration_seconds", "a number", True),
    ("total_events", "an integer", True),
    ("slice_seconds", "a number", False),
    ("jitter_ratio", "a number", False),
    ("seed", "an integer", True),
    ("echo", "true or false", False),
    ("progress_every", "an integer", False),
    ("metrics_port", "an integer", True),
)

_SECTION_TYPES = {
    "weights": (
        ("distribution", "a string"), ("mu", "a number"), ("sigma", "a number"),
        ("alpha", "a number"), ("x_min", "a number"),
    ),
    "calendar": (
        ("spike_weekday", "an integer"), ("spike_hour", "an integer"),
        ("spike_multiplier", "a number"), ("timezone", "a string"),
    ),
    "sink": (
        ("kind", "a string"), ("bootstrap_servers", "a string"), ("topic", "a string"),
        ("partitions", "an integer"), ("replication_factor", "an integer"),
        ("flush_timeout_seconds", "a number"),
    ),
}


def _check_type(name: str, value, expected: str, optional: bool = False) -> None:
    if optional and value is None:
        return
    if not _TYPE_CHECKS[expected](value):
        raise ConfigurationError(
            f"wrong value type for {name}: expected {expected}, got {value!r}"
        )


def _build(cls, data: dict, where: str):
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"{where}: unknown key(s) {', '.join(unknown)}")
    return cls(**data)


def config_from_dict(data: dict | None) -> GeneratorConfig:
    """Build and validate a GeneratorConfig from a plain mapping."""
    data = dict(data or {})
    if "duration_seconds" not in data and "total_events" not in data:
        data["total_events"] = DEFAULT_TOTAL_EVENTS
    sections = {}
    for name, cls in _SECTIONS.items():
        section = data.pop(name, None) or {}
        if not isinstance(section, dict):
            raise ConfigurationError(f"'{name}' must be a mapping")
        sections[name] = _build(cls, section, name)
    config = _build(GeneratorConfig, data, "config")
    for name, value in sections.items():
        setattr(config, name, value)
    return config.validate()


def load_config(path: str | Path) -> GeneratorConfig:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{path.name}: invalid YAML: {e}") from e
    if data is not None and not isinstance(data, dict):
        raise ConfigurationError(f"{path.name}: top level must be a mapping")
    return config_from_dict(data)
