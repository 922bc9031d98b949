import threading
from datetime import datetime, timedelta, timezone

from solarshift.forecast.open_meteo import synthetic_weather_forecast
from solarshift.io.schema import Device, Household, MeterReading, SchedulerConfig
from solarshift.io.store import InMemoryStore
from solarshift.jobs.orchestrator import JobOrchestrator
from solarshift.jobs.scheduler import FixedClock

NOW = datetime(2025, 3, 21, 6, 0, tzinfo=timezone.utc)


class FixedWeather:
    """Same synthetic samples for every location; optionally fails for one latitude."""

    def __init__(self, start=NOW, fail_lat=None, drop_hours=()):
        self.start = start
        self.fail_lat = fail_lat
        self.drop_hours = set(drop_hours)
        self.calls = 0

    def fetch_weather_forecast(self, lat, lon, hours=48):
        self.calls += 1
        if self.fail_lat is not None and lat == self.fail_lat:
            raise ConnectionError("weather service unavailable")
        samples = synthetic_weather_forecast(self.start, hours=hours)
        return [s for s in samples if s.timestamp.hour not in self.drop_hours]


class GhostStore(InMemoryStore):
    """Lists a household that can no longer be fetched."""

    def list_households(self):
        ghost = Household(id="ghost", latitude=0.0, longitude=0.0, pv_kw=1.0)
        return super().list_households() + [ghost]


def _london(hid="london", lat=51.5) -> Household:
    return Household(id=hid, latitude=lat, longitude=-0.1, pv_kw=4.0, tariff_currency="GBP", tariff_per_kwh=0.3, co2_factor_kg_per_kwh=0.2, timezone="UTC")


def _devices(hid="london"):
    return [
        Device(id=f"{hid}-pool", household_id=hid, name="Pool pump", typical_kwh=1.1, min_duration_hours=6, earliest_hour=10, latest_hour=16),
        Device(id=f"{hid}-ev", household_id=hid, name="EV charger", typical_kwh=7.2, min_duration_hours=4, earliest_hour=22, latest_hour=6),
        Device(id=f"{hid}-ac", household_id=hid, name="Air conditioner", typical_kwh=1.8, flexible=False),
    ]


def _orchestrator(store, weather=None, **kw):
    return JobOrchestrator(store, weather or FixedWeather(), config=SchedulerConfig(max_workers=2), clock=FixedClock(NOW), **kw)


def test_hourly_refresh_is_idempotent():
    store = InMemoryStore(households=[_london()], devices=_devices())
    orch = _orchestrator(store)

    first = orch.run_hourly_refresh()
    second = orch.run_hourly_refresh()

    assert first.succeeded == 1 and first.ok
    assert first.records_written == 96
    assert second.records_written == 0
    assert len(store.forecasts) == 48
    assert len(store.weather) == 48


def test_daily_pass_recommends_each_flexible_device():
    store = InMemoryStore(households=[_london()], devices=_devices())
    orch = _orchestrator(store)
    orch.run_hourly_refresh()

    report = orch.run_daily_recommendation_pass()
    assert report.job == "daily_recommendations"
    assert report.succeeded == 1
    assert report.records_written == 2

    recs = {r.device_id: r for r in store.recommendations_for_household("london")}
    assert set(recs) == {"london-pool", "london-ev"}
    pool = recs["london-pool"]
    assert pool.start_ts == datetime(2025, 3, 21, 10, 0, tzinfo=timezone.utc)
    assert pool.end_ts - pool.start_ts == timedelta(hours=6)
    ev = recs["london-ev"]
    assert ev.start_ts.hour in (22, 23, 0, 1, 2)
    assert ev.end_ts - ev.start_ts == timedelta(hours=4)

    # a second pass supersedes instead of accumulating
    orch.run_daily_recommendation_pass()
    assert len(store.recommendations_for_household("london")) == 2


def test_daily_pass_without_forecast_writes_nothing():
    store = InMemoryStore(households=[_london()], devices=_devices())
    report = _orchestrator(store).run_daily_recommendation_pass()
    assert report.succeeded == 1
    assert report.records_written == 0
    assert store.recommendations == {}


def test_one_failing_household_does_not_abort_batch():
    store = InMemoryStore(households=[_london(), _london("bad", lat=40.0)], devices=_devices())
    report = _orchestrator(store, FixedWeather(fail_lat=40.0)).run_hourly_refresh()

    assert report.households_total == 2
    assert report.succeeded == 1
    assert report.failed == 1
    assert not report.ok
    assert "bad" in report.errors
    assert "ConnectionError" in report.errors["bad"]
    assert len(store.forecasts) == 48


def test_missing_household_is_skipped():
    store = GhostStore(households=[_london()], devices=_devices())
    report = _orchestrator(store).run_hourly_refresh()
    assert report.households_total == 2
    assert report.succeeded == 1
    assert report.skipped == 1
    assert report.failed == 0


def test_stop_signal_cancels_unstarted_households():
    stop = threading.Event()
    stop.set()
    weather = FixedWeather()
    store = InMemoryStore(households=[_london(), _london("other")])
    report = _orchestrator(store, weather, stop_event=stop).run_hourly_refresh()
    assert report.cancelled == 2
    assert weather.calls == 0
    assert store.forecasts == {}


def test_no_households_is_an_empty_success():
    report = _orchestrator(InMemoryStore()).run_daily_recommendation_pass()
    assert report.households_total == 0
    assert report.ok
    assert report.finished_ts is not None


def test_compute_daily_metrics_for_today():
    store = InMemoryStore(households=[_london()], devices=_devices())
    orch = _orchestrator(store)
    orch.run_hourly_refresh()

    m = orch.compute_daily_metrics("london")
    assert m.date == "2025-03-21"
    assert m.solar_generated_kwh > 0
    assert m.metered is False
    assert orch.compute_daily_metrics("nobody") is None


def test_compute_daily_metrics_uses_meter_readings():
    store = InMemoryStore(households=[_london()], devices=_devices())
    store.add_meter_reading(MeterReading(household_id="london", timestamp=NOW + timedelta(hours=2), grid_kwh=2.5))
    store.add_meter_reading(MeterReading(household_id="london", timestamp=NOW - timedelta(days=1), grid_kwh=40.0))
    orch = _orchestrator(store)
    orch.run_hourly_refresh()

    m = orch.compute_daily_metrics("london")
    assert m.metered is True
    assert m.grid_consumed_kwh == 2.5


def test_gap_in_stored_forecast_does_not_shift_recommendation():
    hh = _london()
    kettle = Device(id="kettle", household_id="london", name="Kettle", typical_kwh=1.0, min_duration_hours=1, earliest_hour=6, latest_hour=20)
    store = InMemoryStore(households=[hh], devices=[kettle])
    orch = _orchestrator(store, FixedWeather(drop_hours={8}))
    orch.run_hourly_refresh()
    assert len(store.forecasts) == 46

    orch.run_daily_recommendation_pass()
    (rec,) = store.recommendations_for_household("london")
    # solar peaks at noon UTC in London
    assert rec.start_ts == datetime(2025, 3, 21, 12, 0, tzinfo=timezone.utc)
