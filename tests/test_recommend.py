from datetime import datetime, timedelta, timezone

from solarshift.io.schema import Device, Household
from solarshift.io.store import InMemoryStore
from solarshift.planning.recommend import local_hour_start, persist_recommendation, synthesize_recommendation
from solarshift.planning.window_search import CandidateWindow
from solarshift.xai.explain import format_hour, generate_recommendation_reason

IST = timezone(timedelta(hours=5, minutes=30))


def _setup():
    hh = Household(id="h1", latitude=28.6139, longitude=77.2090, pv_kw=5.0, timezone="Asia/Kolkata")
    dev = Device(id="pool", household_id="h1", name="Pool pump", typical_kwh=1.1, min_duration_hours=6, earliest_hour=10, latest_hour=16)
    return hh, dev


def _window(start_hour=10, start_offset=1, duration=6, avg_solar_kw=2.4):
    return CandidateWindow(
        start_hour=start_hour,
        end_hour=(start_hour + duration) % 24,
        start_offset=start_offset,
        duration_hours=duration,
        score=0.9,
        avg_solar_kw=avg_solar_kw,
        solar_coverage_ratio=1.0,
        grid_avoidance_kwh=1.1,
        estimated_savings=5.5,
        estimated_co2_avoided=0.902,
    )


def test_format_hour():
    assert format_hour(0) == "12:00 AM"
    assert format_hour(9) == "9:00 AM"
    assert format_hour(12) == "12:00 PM"
    assert format_hour(13) == "1:00 PM"
    assert format_hour(24) == "12:00 AM"


def test_reason_tiers():
    peak = generate_recommendation_reason("Pool pump", 10, 16, 2.5, 55, 9.02)
    assert peak == "Peak solar generation period. Run Pool pump 10:00 AM - 4:00 PM to save ₹55 and avoid 9.0 kg CO₂"
    good = generate_recommendation_reason("Washer", 11, 13, 1.5, 4, 0.66, currency="USD")
    assert good.startswith("Good solar output expected. Schedule Washer 11:00 AM - 1:00 PM to save $4")
    low = generate_recommendation_reason("EV", 22, 2, 0.0, 0, 0.0)
    assert low.startswith("Optimal timing for renewable energy use. Run EV 10:00 PM - 2:00 AM")


def test_local_hour_start_uses_household_timezone():
    now = datetime(2025, 3, 21, 3, 47, tzinfo=timezone.utc)
    anchor = local_hour_start(now, "Asia/Kolkata")
    assert (anchor.hour, anchor.minute) == (9, 0)
    assert anchor.utcoffset() == timedelta(hours=5, minutes=30)


def test_recommendation_timestamps_from_window_offset():
    hh, dev = _setup()
    now = datetime(2025, 3, 21, 3, 47, tzinfo=timezone.utc)  # 09:17 IST
    rec = synthesize_recommendation(hh, dev, _window(), now)
    assert rec.start_ts == datetime(2025, 3, 21, 10, 0, tzinfo=IST)
    assert rec.end_ts - rec.start_ts == timedelta(hours=6)
    assert rec.end_ts.astimezone(IST).hour == 16
    assert rec.device_id == "pool" and rec.household_id == "h1"
    assert rec.estimated_savings == 5.5
    assert rec.reason.startswith("Peak solar generation period. Run Pool pump 10:00 AM - 4:00 PM")


def test_overnight_recommendation_crosses_midnight():
    hh, dev = _setup()
    now = datetime(2025, 3, 21, 12, 30, tzinfo=timezone.utc)  # 18:00 IST
    rec = synthesize_recommendation(hh, dev, _window(start_hour=23, start_offset=5, duration=4, avg_solar_kw=0.0), now)
    assert rec.start_ts == datetime(2025, 3, 21, 23, 0, tzinfo=IST)
    assert rec.end_ts == datetime(2025, 3, 22, 3, 0, tzinfo=IST)


def test_persist_supersedes_prior_recommendation():
    hh, dev = _setup()
    store = InMemoryStore(households=[hh], devices=[dev])
    now = datetime(2025, 3, 21, 3, 0, tzinfo=timezone.utc)

    first = persist_recommendation(store, synthesize_recommendation(hh, dev, _window(), now))
    second = persist_recommendation(store, synthesize_recommendation(hh, dev, _window(), now + timedelta(days=1)))

    recs = store.recommendations_for_household("h1")
    assert [r.id for r in recs] == [second.id]
    assert first.id != second.id


def test_clock_change_day_keeps_forecast_alignment():
    # UK clocks go forward at 01:00 UTC on 30 March 2025: 10:00 BST is 09:00 UTC
    from solarshift.io.schema import PvForecastPoint
    from solarshift.planning.suitability import build_suitability_profile
    from solarshift.planning.window_search import search_device_windows

    hh = Household(id="uk", latitude=51.5, longitude=-0.1, pv_kw=4.0, tariff_currency="GBP", timezone="Europe/London")
    dev = Device(id="wash", household_id="uk", name="Washer", typical_kwh=0.8, min_duration_hours=1, earliest_hour=6, latest_hour=20)
    now = datetime(2025, 3, 30, 0, 30, tzinfo=timezone.utc)
    utc_midnight = datetime(2025, 3, 30, 0, 0, tzinfo=timezone.utc)
    points = [
        PvForecastPoint(timestamp=utc_midnight + timedelta(hours=k), ac_kw=3.0 if k == 9 else 0.0, dc_kw=0.0, efficiency=0.0)
        for k in range(24)
    ]

    profile = build_suitability_profile(points, anchor=local_hour_start(now, hh.timezone))
    best = search_device_windows(dev, hh, profile)[0]
    assert best.start_hour == 10
    assert best.start_offset == 9
    assert best.end_hour == 11

    rec = synthesize_recommendation(hh, dev, best, now)
    assert rec.start_ts == datetime(2025, 3, 30, 9, 0, tzinfo=timezone.utc)
    assert rec.end_ts - rec.start_ts == timedelta(hours=1)
