"""Hourly weather forecasts for PV estimation.

Open-Meteo is the default provider: free, keyless, and it returns temperature,
cloud cover, wind and shortwave (global horizontal) radiation on one hourly
grid. A deterministic synthetic provider is kept for offline runs and tests.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from solarshift.io.schema import WeatherSample

LOG = logging.getLogger("solarshift")

OPEN_METEO_BASE = "https://api.open-meteo.com/v1"
HOURLY_VARS = ("temperature_2m", "cloudcover", "windspeed_10m", "shortwave_radiation")
RETRY_STATUS = (429, 500, 502, 503, 504)


class WeatherProvider(Protocol):
    def fetch_weather_forecast(self, lat: float, lon: float, hours: int = 48) -> List[WeatherSample]:
        ...


def build_retrying_session(retries: int = 3, backoff_seconds: float = 0.5) -> requests.Session:
    """Session that retries transient failures with exponential backoff and jitter."""
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=backoff_seconds,
        backoff_jitter=backoff_seconds,
        status_forcelist=RETRY_STATUS,
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class OpenMeteoWeatherClient:
    def __init__(
        self,
        base_url: str = OPEN_METEO_BASE,
        timeout_seconds: int = 30,
        retries: int = 3,
        backoff_seconds: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or build_retrying_session(retries, backoff_seconds)

    def fetch_weather_forecast(self, lat: float, lon: float, hours: int = 48) -> List[WeatherSample]:
        """Fetch the next ``hours`` hourly samples, ascending, in the location's local offset.

        The ``forecast_hours`` window starts at the current hour. Raises
        ``requests.HTTPError`` once retries are exhausted. A short or empty hourly
        block is returned as-is.
        """
        params = {
            "latitude": lat,
            "longitude": lon,
            "hourly": ",".join(HOURLY_VARS),
            "forecast_hours": int(hours),
            "windspeed_unit": "ms",
            "timezone": "auto",
        }
        r = self.session.get(f"{self.base_url}/forecast", params=params, timeout=self.timeout_seconds)
        r.raise_for_status()
        samples = _parse_open_meteo_hourly(r.json(), limit=hours)
        if not samples:
            LOG.warning("Open-Meteo returned no hourly samples for (%.4f, %.4f)", lat, lon)
        return samples

    def close(self) -> None:
        self.session.close()


def _parse_open_meteo_hourly(data: dict, limit: Optional[int] = None) -> List[WeatherSample]:
    """Parse an Open-Meteo ``hourly`` block into WeatherSample list.

    Times are local wall-clock strings; the response's ``utc_offset_seconds`` is
    attached so the samples are tz-aware. Hours missing temperature or cloud
    cover are skipped; missing radiation counts as 0.
    """
    samples: List[WeatherSample] = []
    hourly = data.get("hourly") if isinstance(data, dict) else None
    if not isinstance(hourly, dict) or not isinstance(hourly.get("time"), list):
        return samples

    tz = timezone(timedelta(seconds=int(data.get("utc_offset_seconds") or 0)))
    times = hourly["time"]
    temps = hourly.get("temperature_2m") or []
    clouds = hourly.get("cloudcover") or []
    winds = hourly.get("windspeed_10m") or []
    ghis = hourly.get("shortwave_radiation") or []

    n = len(times) if limit is None else min(limit, len(times))
    for i in range(n):
        try:
            ts = datetime.fromisoformat(str(times[i]))
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=tz)
            temp = temps[i] if i < len(temps) else None
            cloud = clouds[i] if i < len(clouds) else None
            if temp is None or cloud is None:
                continue
            wind = winds[i] if i < len(winds) and winds[i] is not None else 0.0
            ghi = ghis[i] if i < len(ghis) and ghis[i] is not None else 0.0
            samples.append(
                WeatherSample(
                    timestamp=ts,
                    temperature_c=float(temp),
                    cloud_cover_pct=min(100.0, max(0.0, float(cloud))),
                    wind_speed_mps=max(0.0, float(wind)),
                    ghi_wm2=max(0.0, float(ghi)),
                )
            )
        except (ValueError, TypeError):
            continue
    return samples


def synthetic_weather_forecast(
    start: datetime,
    hours: int = 48,
    peak_ghi_wm2: float = 850.0,
    cloud_cover_pct: float = 20.0,
    temperature_c: float = 28.0,
) -> List[WeatherSample]:
    """Deterministic, reproducible hourly weather.

    Bell-shaped irradiance between 06:00 and 18:00 local clock time of ``start``'s
    offset, constant cloud cover, and a mild diurnal temperature swing.
    """
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    start = start.replace(minute=0, second=0, microsecond=0)
    samples: List[WeatherSample] = []
    for i in range(max(0, int(hours))):
        ts = start + timedelta(hours=i)
        hour = float(ts.hour)
        if 6.0 <= hour <= 18.0:
            x = (hour - 6.0) / 12.0
            ghi = peak_ghi_wm2 * (4.0 * x * (1.0 - x))
        else:
            ghi = 0.0
        temp = temperature_c + 4.0 * math.sin(math.pi * (hour - 9.0) / 12.0)
        samples.append(
            WeatherSample(
                timestamp=ts,
                temperature_c=round(temp, 2),
                cloud_cover_pct=cloud_cover_pct,
                wind_speed_mps=2.0,
                ghi_wm2=max(0.0, ghi),
            )
        )
    return samples


class SyntheticWeatherProvider:
    """Offline provider: synthetic samples from the current hour, in the longitude's nominal offset."""

    def __init__(self, peak_ghi_wm2: float = 850.0, cloud_cover_pct: float = 20.0, temperature_c: float = 28.0):
        self.peak_ghi_wm2 = peak_ghi_wm2
        self.cloud_cover_pct = cloud_cover_pct
        self.temperature_c = temperature_c

    def fetch_weather_forecast(self, lat: float, lon: float, hours: int = 48) -> List[WeatherSample]:
        nominal_tz = timezone(timedelta(hours=round(lon / 15.0)))
        start = datetime.now(tz=nominal_tz)
        return synthetic_weather_forecast(
            start=start,
            hours=hours,
            peak_ghi_wm2=self.peak_ghi_wm2,
            cloud_cover_pct=self.cloud_cover_pct,
            temperature_c=self.temperature_c,
        )
