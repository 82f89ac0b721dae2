"""Tests for the simulation engine and runner."""

import json
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from smart_meter.config import MonitorConfig
from smart_meter.engine import EngineRunner, SimulationEngine
from smart_meter.errors import ProviderUnavailable
from smart_meter.models import FeedSample, Reading, SimulationMode
from smart_meter.simulators import BatteryModel
from smart_meter.storage import HistoryStore, InMemoryPersistence
from smart_meter.storage.history import STATE_KEY

START = datetime(2024, 6, 15, 0, 0, tzinfo=timezone.utc)


class StaticFeed:
    name = "static"

    def __init__(self, sample: FeedSample):
        self.sample = sample
        self.calls = 0

    def fetch_reading(self, timeout=None) -> FeedSample:
        self.calls += 1
        return self.sample


class SlowFeed:
    name = "slow"

    def fetch_reading(self, timeout=None) -> FeedSample:
        time.sleep(0.5)
        return FeedSample(solar_kw=1.0, wind_kw=1.0, consumption_kw=1.0)


class HangingFeed:
    """Hangs on the first fetch until released, then answers promptly."""

    name = "hanging"

    def __init__(self):
        self.release = threading.Event()
        self.calls = 0

    def fetch_reading(self, timeout=None) -> FeedSample:
        self.calls += 1
        if self.calls == 1:
            self.release.wait(5)
        return FeedSample(solar_kw=1.0, wind_kw=1.0, consumption_kw=1.0, efficiency_pct=91.0)


class FailingFeed:
    name = "failing"

    def __init__(self, exc: Exception):
        self.exc = exc

    def fetch_reading(self, timeout=None) -> FeedSample:
        raise self.exc


@pytest.fixture
def engine():
    eng = SimulationEngine(seed=42)
    yield eng
    eng.close()


class TestSimulationEngineTick:
    """Tests for SimulationEngine.tick."""

    def test_tick_returns_reading(self, engine):
        reading = engine.tick(START + timedelta(hours=12))

        assert isinstance(reading, Reading)
        assert reading.timestamp == START + timedelta(hours=12)
        assert engine.history.latest() == reading

    def test_tick_uses_clock_by_default(self):
        now = datetime(2024, 6, 15, 9, 30, tzinfo=timezone.utc)
        eng = SimulationEngine(seed=1, clock=lambda: now)
        assert eng.tick().timestamp == now

    def test_values_are_rounded(self, engine):
        for i in range(20):
            r = engine.tick(START + timedelta(minutes=5 * i))
            for value in (r.solar_kw, r.wind_kw, r.consumption_kw, r.grid_import_kw):
                assert round(value, 2) == value
            assert round(r.battery_level_pct, 1) == r.battery_level_pct
            assert round(r.efficiency_pct, 1) == r.efficiency_pct

    def test_auto_mode_no_solar_at_night(self, engine):
        reading = engine.tick(START + timedelta(hours=2))
        assert reading.solar_kw == 0.0
        assert 85.0 <= reading.efficiency_pct <= 95.0

    def test_local_timezone_shifts_daylight(self):
        """02:00 UTC is 07:30 in UTC+05:30, so the sun is up."""
        eng = SimulationEngine(seed=3, local_tz=timezone(timedelta(hours=5, minutes=30)))
        assert eng.tick(START + timedelta(hours=2)).solar_kw > 0.0

    def test_manual_mode_ranges(self):
        eng = SimulationEngine(mode="manual", seed=7)
        for i in range(50):
            r = eng.tick(START + timedelta(minutes=i))
            assert 2.0 <= r.solar_kw <= 10.0
            assert 3.0 <= r.consumption_kw <= 8.0

    def test_history_bounded_and_ordered(self):
        eng = SimulationEngine(
            seed=5,
            history=HistoryStore(max_in_memory=50, max_persisted=10),
        )
        for i in range(120):
            eng.tick(START + timedelta(minutes=5 * i))

        snapshot = eng.history.snapshot()
        assert len(snapshot) == 50
        timestamps = [r.timestamp for r in snapshot]
        assert timestamps == sorted(timestamps)
        assert snapshot[-1].timestamp == START + timedelta(minutes=5 * 119)

    def test_older_explicit_timestamp_rejected(self, engine):
        engine.tick(START + timedelta(hours=1))
        with pytest.raises(ValueError):
            engine.tick(START)
        assert len(engine.history) == 1

    def test_backwards_clock_is_clamped(self):
        times = iter(
            [
                START + timedelta(hours=2),
                START + timedelta(hours=1),
            ]
        )
        eng = SimulationEngine(seed=1, clock=lambda: next(times))

        first = eng.tick()
        second = eng.tick()

        assert second.timestamp == first.timestamp

    def test_naive_explicit_timestamp_read_as_utc(self, engine):
        reading = engine.tick(datetime(2024, 6, 15, 11, 0))

        assert reading.timestamp == START + timedelta(hours=11)
        assert engine.tick().timestamp > reading.timestamp

    def test_naive_clock_read_as_utc(self):
        eng = SimulationEngine(seed=1, clock=lambda: datetime(2024, 6, 15, 9, 30))

        first = eng.tick()
        second = eng.tick(START + timedelta(hours=10))

        assert first.timestamp == START + timedelta(hours=9, minutes=30)
        assert second.timestamp > first.timestamp

    def test_grid_import_at_reserve_floor(self):
        feed = StaticFeed(FeedSample(solar_kw=1.0, wind_kw=0.5, consumption_kw=6.0))
        eng = SimulationEngine(
            mode=SimulationMode.EXTERNAL,
            battery=BatteryModel(initial_level_pct=5, reserve_floor_pct=5),
            feed=feed,
            seed=1,
        )

        reading = eng.tick(START)
        eng.close()

        assert reading.grid_import_kw == pytest.approx(4.5)
        assert reading.battery_level_pct == 5.0
        assert 85.0 <= reading.efficiency_pct <= 95.0

    def test_no_grid_import_above_floor(self):
        feed = StaticFeed(FeedSample(solar_kw=1.0, wind_kw=0.5, consumption_kw=6.0))
        eng = SimulationEngine(mode="external", feed=feed, seed=1)

        reading = eng.tick(START)
        eng.close()

        assert reading.grid_import_kw == 0.0
        assert reading.battery_level_pct < 78.0

    def test_external_values_used(self):
        feed = StaticFeed(FeedSample(solar_kw=4.2, wind_kw=1.8, consumption_kw=6.5, efficiency_pct=91.0))
        eng = SimulationEngine(mode="external", feed=feed)

        reading = eng.tick(START)
        eng.close()

        assert (reading.solar_kw, reading.wind_kw, reading.consumption_kw) == (4.2, 1.8, 6.5)
        assert reading.efficiency_pct == 91.0
        assert eng.last_warning is None


class TestExternalFallback:
    """Tests for degradation when the external feed misbehaves."""

    def test_timeout_falls_back_to_one_reading(self):
        warnings = []
        eng = SimulationEngine(
            mode="external",
            feed=SlowFeed(),
            feed_timeout_seconds=0.05,
            seed=9,
            on_warning=warnings.append,
        )

        started = time.monotonic()
        reading = eng.tick(START)
        elapsed = time.monotonic() - started
        eng.close()

        assert len(eng.history) == 1
        assert 2.0 <= reading.solar_kw <= 10.0
        assert elapsed < 0.45
        assert eng.last_warning is not None
        assert len(warnings) == 1

    def test_feed_recovers_after_hung_fetch(self):
        feed = HangingFeed()
        eng = SimulationEngine(mode="external", feed=feed, feed_timeout_seconds=0.1, seed=9)
        try:
            eng.tick(START)
            assert eng.last_warning is not None

            reading = eng.tick(START + timedelta(minutes=5))
        finally:
            feed.release.set()
            eng.close()

        assert eng.last_warning is None
        assert feed.calls == 2
        assert reading.efficiency_pct == 91.0

    @pytest.mark.parametrize(
        "exc",
        [ProviderUnavailable("failing", "HTTP 503"), RuntimeError("boom")],
    )
    def test_failing_feed_falls_back(self, exc):
        eng = SimulationEngine(mode="external", feed=FailingFeed(exc), seed=9)

        reading = eng.tick(START)
        eng.close()

        assert isinstance(reading, Reading)
        assert "failing" in eng.last_warning

    def test_missing_feed_falls_back(self):
        eng = SimulationEngine(mode="external", seed=9)
        eng.tick(START)
        assert "no feed provider configured" in eng.last_warning

    def test_warning_cleared_on_next_good_tick(self):
        feed = FailingFeed(RuntimeError("boom"))
        eng = SimulationEngine(mode="external", feed=feed, seed=9)
        eng.tick(START)

        eng.feed = StaticFeed(FeedSample(solar_kw=1.0, wind_kw=1.0, consumption_kw=1.0))
        eng.tick(START + timedelta(minutes=5))
        eng.close()

        assert eng.last_warning is None

    def test_feed_connection_check(self):
        good = SimulationEngine(feed=StaticFeed(FeedSample(1.0, 1.0, 1.0)))
        bad = SimulationEngine(feed=FailingFeed(RuntimeError("down")))

        assert good.test_feed_connection() is True
        assert bad.test_feed_connection() is False
        assert len(good.history) == 0
        good.close()
        bad.close()


class TestSettingsPersistence:
    """Tests for mode and key persistence."""

    def test_tick_persists_history(self):
        port = InMemoryPersistence()
        eng = SimulationEngine(history=HistoryStore(persistence=port), seed=2)
        eng.tick(START)

        restored = HistoryStore(persistence=port)
        settings = restored.restore()

        assert len(restored) == 1
        assert settings["mode"] == "auto"

    def test_set_mode_survives_restart(self):
        port = InMemoryPersistence()
        SimulationEngine(history=HistoryStore(persistence=port)).set_mode("manual")

        eng = SimulationEngine(history=HistoryStore(persistence=port))
        eng.start()

        assert eng.mode is SimulationMode.MANUAL

    def test_start_restores_history(self):
        port = InMemoryPersistence()
        first = SimulationEngine(history=HistoryStore(persistence=port), seed=2)
        first.generate_historical(START, START + timedelta(minutes=20))

        second = SimulationEngine(history=HistoryStore(persistence=port))

        assert second.start() == 5
        assert second.history.snapshot() == first.history.snapshot()

    def test_start_applies_persisted_feed_key(self):
        port = InMemoryPersistence()
        SimulationEngine(history=HistoryStore(persistence=port)).set_api_keys(emoncms_api_key="abc123")
        feed = Mock()

        eng = SimulationEngine(history=HistoryStore(persistence=port), feed=feed)
        eng.start()

        feed.set_api_key.assert_called_with("abc123")
        assert eng.settings()["emoncms_api_key"] == "abc123"

    def test_unknown_persisted_mode_ignored(self):
        port = InMemoryPersistence()
        store = HistoryStore(persistence=port)
        store.persist({"mode": "warp"})

        eng = SimulationEngine(history=HistoryStore(persistence=port))
        eng.start()

        assert eng.mode is SimulationMode.AUTO

    def test_start_restores_under_engine_lock(self):
        eng = SimulationEngine(history=HistoryStore(persistence=InMemoryPersistence()))
        restore = eng.history.restore
        lock_held = []

        def restore_and_check():
            lock_held.append(eng._lock.locked())
            return restore()

        eng.history.restore = restore_and_check
        eng.start()

        assert lock_held == [True]

    def test_tick_after_restoring_naive_history(self):
        port = InMemoryPersistence()
        SimulationEngine(history=HistoryStore(persistence=port), seed=2).tick(START + timedelta(hours=11))
        port.save(STATE_KEY, port.load(STATE_KEY).replace("+00:00", ""))

        eng = SimulationEngine(
            history=HistoryStore(persistence=port),
            seed=2,
            clock=lambda: START + timedelta(hours=12),
        )
        assert eng.start() == 1
        reading = eng.tick()

        assert reading.timestamp == START + timedelta(hours=12)
        assert len(eng.history) == 2

    def test_legacy_api_mode_name(self):
        assert SimulationEngine(mode="api").mode is SimulationMode.EXTERNAL


class TestHistoricalAndRecent:
    """Tests for back-fill and recent readings."""

    def test_generate_historical(self, engine):
        data = engine.generate_historical(START, START + timedelta(hours=1), interval_minutes=5)

        assert len(data) == 13
        assert data[0].timestamp == START
        assert data[-1].timestamp == START + timedelta(hours=1)

    def test_generate_historical_invalid_interval(self, engine):
        with pytest.raises(ValueError):
            engine.generate_historical(START, START + timedelta(hours=1), interval_minutes=0)

    def test_get_recent(self):
        eng = SimulationEngine(seed=4, clock=lambda: START + timedelta(hours=24))
        eng.generate_historical(START, START + timedelta(hours=24), interval_minutes=60)

        recent = eng.get_recent(hours=6)

        assert len(recent) == 7
        assert recent[0].timestamp == START + timedelta(hours=18)


class TestFromConfig:
    """Tests for SimulationEngine.from_config."""

    def test_builds_from_config(self):
        config = MonitorConfig()
        config.simulation.mode = "manual"
        config.simulation.seed = 10
        config.battery.initial_level_pct = 50
        config.history.max_in_memory = 30
        config.history.max_persisted = 10

        eng = SimulationEngine.from_config(config)

        assert eng.mode is SimulationMode.MANUAL
        assert eng.battery.level_pct == 50
        assert eng.history.max_in_memory == 30

    def test_from_config_keeps_persistence_and_bounds(self):
        config = MonitorConfig()
        config.history.max_in_memory = 30
        config.history.max_persisted = 10
        port = InMemoryPersistence()

        eng = SimulationEngine.from_config(config, persistence=port)
        for i in range(40):
            eng.tick(START + timedelta(minutes=5 * i))

        assert eng.history.persistence is port
        assert len(eng.history) == 30
        restored = HistoryStore(persistence=port)
        restored.restore()
        assert len(restored) == 10
        assert restored.latest() == eng.history.latest()

    def test_seeded_engines_match(self):
        config = MonitorConfig()
        config.simulation.seed = 99

        a = SimulationEngine.from_config(config).generate_historical(START, START + timedelta(hours=3))
        b = SimulationEngine.from_config(config).generate_historical(START, START + timedelta(hours=3))

        assert a == b


class TestEngineRunner:
    """Tests for EngineRunner."""

    def test_run_once_outputs(self, engine, tmp_path):
        outputs = []
        output_file = tmp_path / "readings.jsonl"
        influxdb = Mock()
        runner = EngineRunner(engine, output_callback=outputs.append, output_file=output_file, influxdb=influxdb)

        reading = runner.run_once()

        assert outputs == [reading]
        influxdb.write.assert_called_once_with(reading)
        line = output_file.read_text().strip()
        assert json.loads(line)["solar_kw"] == reading.solar_kw

    def test_run_continuous_max_ticks(self, engine):
        outputs = []
        runner = EngineRunner(engine, output_callback=outputs.append)

        ticks = runner.run_continuous(interval_seconds=0.01, max_ticks=3)

        assert ticks == 3
        assert len(outputs) == 3
        assert not runner.running

    def test_stop_ends_loop(self, engine):
        runner = EngineRunner(engine)
        runner.output_callback = lambda reading: runner.stop()

        ticks = runner.run_continuous(interval_seconds=10)

        assert ticks == 1

    def test_invalid_interval(self, engine):
        with pytest.raises(ValueError):
            EngineRunner(engine).run_continuous(interval_seconds=0)


class TestConcurrentTicks:
    """Tests for ticks and reads racing across threads."""

    def test_parallel_ticks_all_recorded_in_order(self):
        port = InMemoryPersistence()
        eng = SimulationEngine(seed=3, history=HistoryStore(max_in_memory=500, max_persisted=100, persistence=port))
        errors = []

        def worker():
            try:
                for _ in range(25):
                    eng.tick()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        snapshot = eng.history.snapshot()
        assert len(snapshot) == 200
        timestamps = [r.timestamp for r in snapshot]
        assert timestamps == sorted(timestamps)
        assert all(0.0 <= r.battery_level_pct <= 100.0 for r in snapshot)

        restored = HistoryStore(persistence=port)
        restored.restore()
        assert restored.snapshot() == snapshot[-100:]

    def test_snapshots_during_ticks_stay_ordered(self):
        eng = SimulationEngine(seed=3, history=HistoryStore(max_in_memory=50, max_persisted=10))
        stop = threading.Event()
        errors = []

        def ticker():
            try:
                while not stop.is_set():
                    eng.tick()
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=ticker)
        thread.start()
        try:
            deadline = time.monotonic() + 5
            while len(eng.history) < 50 and time.monotonic() < deadline:
                snapshot = eng.history.snapshot()
                timestamps = [r.timestamp for r in snapshot]
                assert timestamps == sorted(timestamps)
                assert len(snapshot) <= 50
        finally:
            stop.set()
            thread.join()

        assert errors == []
        assert len(eng.history) == 50
