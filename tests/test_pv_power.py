from datetime import datetime, timedelta, timezone

from solarshift.forecast.open_meteo import synthetic_weather_forecast
from solarshift.forecast.pv_power import build_pv_forecast, calculate_hourly_pv_output, total_energy_kwh
from solarshift.io.schema import PvSystemConfig, WeatherSample

IST = timezone(timedelta(hours=5, minutes=30))
SOLAR_NOON = datetime(2025, 3, 21, 12, 21, tzinfo=IST)


def _delhi(capacity_kw: float = 5.0) -> PvSystemConfig:
    return PvSystemConfig(
        capacity_kw=capacity_kw,
        tilt_deg=30,
        azimuth_deg=180,
        latitude=28.6139,
        longitude=77.2090,
        system_losses=0.14,
    )


def _sample(ts=SOLAR_NOON, ghi=800.0, cloud=0.0, temp=25.0) -> WeatherSample:
    return WeatherSample(timestamp=ts, temperature_c=temp, cloud_cover_pct=cloud, wind_speed_mps=2.0, ghi_wm2=ghi)


def test_clear_sky_solar_noon_output():
    p = calculate_hourly_pv_output(_delhi(), _sample())
    # panel almost normal to the sun: 5 kW * 0.8 * 0.86
    assert abs(p.ac_kw - 3.44) < 0.01
    assert abs(p.dc_kw - 4.0) < 0.01
    assert p.timestamp == SOLAR_NOON


def test_full_overcast_keeps_quarter_of_clear_sky():
    clear = calculate_hourly_pv_output(_delhi(), _sample(cloud=0.0))
    overcast = calculate_hourly_pv_output(_delhi(), _sample(cloud=100.0))
    assert overcast.ac_kw > 0
    assert abs(overcast.ac_kw / clear.ac_kw - 0.25) < 0.005


def test_night_output_is_exactly_zero():
    p = calculate_hourly_pv_output(_delhi(), _sample(ts=datetime(2025, 3, 21, 1, 0, tzinfo=IST), ghi=300.0))
    assert p.ac_kw == 0.0
    assert p.dc_kw == 0.0
    assert p.efficiency == 0.0


def test_hot_panels_derate_and_cold_panels_boost():
    base = calculate_hourly_pv_output(_delhi(), _sample(temp=25.0)).ac_kw
    assert calculate_hourly_pv_output(_delhi(), _sample(temp=45.0)).ac_kw < base
    assert calculate_hourly_pv_output(_delhi(), _sample(temp=5.0)).ac_kw > base


def test_efficiency_bounds_over_a_day():
    samples = synthetic_weather_forecast(datetime(2025, 6, 1, tzinfo=IST), hours=24, peak_ghi_wm2=1100, cloud_cover_pct=0, temperature_c=-10)
    for p in build_pv_forecast(_delhi(), samples):
        assert 0.0 <= p.efficiency <= 1.0


def test_zero_capacity_gives_zero_efficiency():
    p = calculate_hourly_pv_output(_delhi(capacity_kw=0.0), _sample())
    assert p.ac_kw == 0.0
    assert p.efficiency == 0.0


def test_output_is_deterministic():
    a = calculate_hourly_pv_output(_delhi(), _sample(cloud=37.0, temp=31.5))
    b = calculate_hourly_pv_output(_delhi(), _sample(cloud=37.0, temp=31.5))
    assert a == b


def test_forecast_series_parallel_to_weather():
    samples = synthetic_weather_forecast(datetime(2025, 3, 21, tzinfo=IST), hours=48)
    points = build_pv_forecast(_delhi(), samples)
    assert len(points) == 48
    assert [p.timestamp for p in points] == [s.timestamp for s in samples]
    # roughly one clear day each side of midnight
    assert 15.0 < total_energy_kwh(points[:24]) < 30.0


def test_forecast_series_empty_input():
    assert build_pv_forecast(_delhi(), []) == []
