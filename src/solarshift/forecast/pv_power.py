from __future__ import annotations

from typing import List, Sequence

from solarshift.forecast.irradiance import incident_irradiance_wm2
from solarshift.forecast.solar_position import calculate_solar_position
from solarshift.io.schema import PvForecastPoint, PvSystemConfig, WeatherSample

REF_IRRADIANCE_WM2 = 1000.0  # STC
REF_TEMPERATURE_C = 25.0
TEMP_COEFF_PER_C = -0.004  # crystalline silicon, per °C
CLOUD_ATTENUATION = 0.75  # full overcast keeps 25 % (diffuse light)


def cloud_factor(cloud_cover_pct: float) -> float:
    return 1.0 - (float(cloud_cover_pct) / 100.0) * CLOUD_ATTENUATION


def temperature_derate(temperature_c: float) -> float:
    return max(0.0, 1.0 + TEMP_COEFF_PER_C * (float(temperature_c) - REF_TEMPERATURE_C))


def calculate_hourly_pv_output(cfg: PvSystemConfig, sample: WeatherSample) -> PvForecastPoint:
    """PV output for one hour of weather; the sample's timestamp is copied verbatim."""
    pos = calculate_solar_position(cfg.latitude, cfg.longitude, sample.timestamp)
    incident = incident_irradiance_wm2(
        sample.ghi_wm2,
        pos.elevation_deg,
        pos.azimuth_deg,
        cfg.tilt_deg,
        cfg.azimuth_deg,
    )

    effective = incident * cloud_factor(sample.cloud_cover_pct)
    ratio = max(0.0, effective / REF_IRRADIANCE_WM2)

    dc_kw = cfg.capacity_kw * ratio * temperature_derate(sample.temperature_c)
    ac_kw = max(0.0, dc_kw * (1.0 - cfg.system_losses))
    efficiency = min(1.0, ac_kw / cfg.capacity_kw) if cfg.capacity_kw > 0 else 0.0

    return PvForecastPoint(
        timestamp=sample.timestamp,
        ac_kw=round(ac_kw, 3),
        dc_kw=round(dc_kw, 3),
        efficiency=round(efficiency, 3),
    )


def build_pv_forecast(cfg: PvSystemConfig, samples: Sequence[WeatherSample]) -> List[PvForecastPoint]:
    """Hourly PV forecast series, parallel to ``samples``."""
    return [calculate_hourly_pv_output(cfg, s) for s in samples]


def total_energy_kwh(points: Sequence[PvForecastPoint]) -> float:
    # hourly points: average kW over the hour == kWh
    return float(sum(p.ac_kw for p in points))
