"""Tests for the service entry point: wiring, dry runs, exit codes."""

import json
import signal
from unittest.mock import patch

import pytest
from confluent_kafka import KafkaException

from trafficgen import main as entry
from trafficgen.config import config_from_dict
from trafficgen.sinks.memory_sink import MemorySink


@pytest.fixture(autouse=True)
def _restore_signal_handlers():
    saved = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}
    yield
    for s, handler in saved.items():
        signal.signal(s, handler)


def _config_file(tmp_path, **extra):
    lines = ["population: 50", "seed: 3", "sink:", "  kind: stdout"]
    lines += [f"{k}: {v}" for k, v in extra.items()]
    path = tmp_path / "traffic.yml"
    path.write_text("\n".join(lines) + "\n")
    return path


def _without_times(ndjson):
    """Decoded records minus the wall-clock timestamps, which differ per run."""
    records = [json.loads(line) for line in ndjson.splitlines()]
    for record in records:
        del record["event_time"], record["ingest_time"]
    return records


class TestDryRun:
    def test_writes_exactly_total_events_as_ndjson(self, tmp_path, capsys):
        path = _config_file(tmp_path, total_events=25)
        assert entry.main(["--config", str(path)]) == 0
        captured = capsys.readouterr()
        lines = captured.out.splitlines()
        assert len(lines) == 25
        for line in lines:
            record = json.loads(line)
            assert record["ingest_time"] >= record["event_time"]
        assert "Done. 25 events" in captured.err

    def test_banner_goes_to_stderr(self, tmp_path, capsys):
        entry.main(["--config", str(_config_file(tmp_path, total_events=1))])
        err = capsys.readouterr().err
        assert "Generating to stdout sink (1 events, seed=3)" in err
        assert "Users: 50" in err

    def test_seed_override_reproduces_output(self, tmp_path, capsys):
        path = _config_file(tmp_path, total_events=10, fixed_rate=5)
        entry.main(["--config", str(path), "--seed", "42"])
        first = _without_times(capsys.readouterr().out)
        entry.main(["--config", str(path), "--seed", "42"])
        assert _without_times(capsys.readouterr().out) == first
        assert len(first) == 10

    def test_dry_run_flag_overrides_kafka_sink(self, capsys):
        with patch("trafficgen.main.config_from_dict",
                   return_value=config_from_dict({"total_events": 3, "population": 5})):
            assert entry.main(["--dry-run"]) == 0
        assert len(capsys.readouterr().out.splitlines()) == 3


class TestExitCodes:
    def test_configuration_error_exits_2(self, tmp_path, capsys):
        path = _config_file(tmp_path, total_events=5, duration_seconds=5)
        assert entry.main(["--config", str(path)]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_missing_config_exits_2(self, tmp_path, capsys):
        assert entry.main(["--config", str(tmp_path / "missing.yml")]) == 2

    def test_fractional_total_events_exits_2_before_generating(self, tmp_path, capsys):
        path = _config_file(tmp_path, total_events=2.5, fixed_rate=10)
        assert entry.main(["--config", str(path)]) == 2
        captured = capsys.readouterr()
        assert "total_events" in captured.err
        assert "Generating" not in captured.err
        assert captured.out == ""

    def test_fractional_population_exits_2(self, tmp_path, capsys):
        path = tmp_path / "traffic.yml"
        path.write_text("population: 2.5\ntotal_events: 5\nsink:\n  kind: stdout\n")
        assert entry.main(["--config", str(path)]) == 2
        assert "wrong value type for population" in capsys.readouterr().err

    def test_unreachable_broker_exits_1(self, capsys):
        with patch("trafficgen.main.config_from_dict",
                   return_value=config_from_dict({"total_events": 3, "population": 5})), \
             patch("trafficgen.main._ensure_topic",
                   side_effect=KafkaException("broker transport failure")):
            assert entry.main([]) == 1
        err = capsys.readouterr().err
        assert "Aborted after 0 events" in err
        assert "broker transport failure" in err

    def test_sink_failure_exits_1_with_progress(self, tmp_path, capsys):
        path = _config_file(tmp_path, total_events=500, fixed_rate=10)
        sink = MemorySink(fail_after=3)
        with patch("trafficgen.main._build_sink", return_value=sink):
            assert entry.main(["--config", str(path)]) == 1
        err = capsys.readouterr().err
        assert f"Aborted after {len(sink.payloads)} events" in err
        assert sink.closed


class TestWiring:
    def test_build_dispatcher_uses_config(self):
        config = config_from_dict({
            "population": 30, "fixed_rate": 2.0, "echo": True, "progress_every": 7,
            "weights": {"distribution": "pareto"},
        })
        d = entry.build_dispatcher(config, MemorySink())
        assert len(d.population) == 30
        assert d.rate_model.fixed_rate == 2.0
        assert d.echo is True
        assert d.progress_every == 7

    def test_shutdown_handler_stops_active_dispatcher(self):
        d = entry.build_dispatcher(config_from_dict({"population": 2}), MemorySink())
        entry._active = d
        try:
            entry._shutdown(signal.SIGTERM, None)
        finally:
            entry._active = None
        assert d._stopping
