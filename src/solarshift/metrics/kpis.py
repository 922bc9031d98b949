from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import pandas as pd

from solarshift.io.schema import Household, MeterReading, PvForecastPoint

# Baseline household demand (kWh/day) when the day has no meter readings.
ASSUMED_DAILY_CONSUMPTION_KWH = 15.0


@dataclass(frozen=True)
class DailyMetrics:
    household_id: str
    date: str
    solar_generated_kwh: float
    grid_consumed_kwh: float
    renewable_share_pct: float
    cost_savings: float
    co2_avoided_kg: float
    metered: bool  # False when grid use is the assumed baseline


def local_day_bounds(day: date, tz_name: str) -> Tuple[datetime, datetime]:
    """[start, end) of a local calendar day as aware datetimes."""
    tz = ZoneInfo(tz_name)
    start = datetime.combine(day, time(0, 0), tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz)
    return start, end


def local_today(now: datetime, tz_name: str) -> date:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()


def _local_dates(timestamps: Sequence[datetime], tz_name: str) -> pd.Series:
    ts = pd.to_datetime(pd.Series(list(timestamps), dtype=object), utc=True)
    return ts.dt.tz_convert(tz_name).dt.date


def _day_total(timestamps: Sequence[datetime], values: Sequence[float], day: date, tz_name: str) -> Tuple[float, int]:
    if not timestamps:
        return 0.0, 0
    df = pd.DataFrame({"date": _local_dates(timestamps, tz_name).to_numpy(), "value": list(values)})
    g = df[df["date"] == day]
    return float(g["value"].astype(float).sum()), int(len(g))


def compute_daily_metrics(
    household: Household,
    forecast: Sequence[PvForecastPoint],
    meter_readings: Sequence[MeterReading] = (),
    day: Optional[date] = None,
    assumed_daily_consumption_kwh: float = ASSUMED_DAILY_CONSUMPTION_KWH,
) -> DailyMetrics:
    """
    Solar generation, grid use and derived savings for one local calendar day.

    Hourly forecast points are 1 h long, so their AC kW sum is the day's kWh.
    ``day`` defaults to the household's local date of the first forecast
    point (or of now when there is none).
    """
    tz_name = household.timezone
    if day is None:
        first = min(p.timestamp for p in forecast) if forecast else datetime.now(tz=timezone.utc)
        day = local_today(first, tz_name)

    solar_kwh, _ = _day_total(
        [p.timestamp for p in forecast], [p.ac_kw for p in forecast], day, tz_name
    )
    grid_metered, n_readings = _day_total(
        [m.timestamp for m in meter_readings], [m.grid_kwh for m in meter_readings], day, tz_name
    )
    metered = n_readings > 0
    grid_kwh = grid_metered if metered else max(0.0, assumed_daily_consumption_kwh - solar_kwh)

    total = solar_kwh + grid_kwh
    share = 100.0 * solar_kwh / total if total > 0 else 0.0

    return DailyMetrics(
        household_id=household.id,
        date=day.isoformat(),
        solar_generated_kwh=round(solar_kwh, 2),
        grid_consumed_kwh=round(grid_kwh, 2),
        renewable_share_pct=round(share, 1),
        cost_savings=round(solar_kwh * household.tariff_per_kwh, 2),
        co2_avoided_kg=round(solar_kwh * household.co2_factor_kg_per_kwh, 2),
        metered=metered,
    )
