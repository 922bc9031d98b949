"""Closed-form solar position for hourly PV estimates.

Uses Cooper's declination and a mean-solar-time hour angle. Accurate to a few
degrees, which is ample for hourly forecast resolution; no equation-of-time or
refraction correction is applied.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class SolarPosition:
    elevation_deg: float  # clamped to >= 0; 0 means the sun is at or below the horizon
    azimuth_deg: float  # [0, 360), 180 = south


def day_of_year(ts: datetime) -> int:
    return ts.timetuple().tm_yday


def solar_declination_deg(n: int) -> float:
    return 23.45 * math.sin(math.radians(360.0 * (284 + n) / 365.0))


def solar_time_hours(ts: datetime, longitude: float) -> float:
    """Local solar time: clock time shifted by 4 min per degree from the zone meridian."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    offset = ts.utcoffset()
    offset_hours = offset.total_seconds() / 3600.0 if offset is not None else 0.0
    clock_hours = ts.hour + ts.minute / 60.0 + ts.second / 3600.0
    return clock_hours + (longitude - 15.0 * offset_hours) / 15.0


def calculate_solar_position(latitude: float, longitude: float, ts: datetime) -> SolarPosition:
    """Solar elevation and azimuth at ``ts`` for the given location.

    ``ts`` is read in its own UTC offset (naive values are UTC). Elevation below
    the horizon is reported as 0 so that downstream power is zero.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)

    decl = math.radians(solar_declination_deg(day_of_year(ts)))
    lat = math.radians(latitude)
    hour_angle = math.radians(15.0 * (solar_time_hours(ts, longitude) - 12.0))

    sin_elev = math.sin(lat) * math.sin(decl) + math.cos(lat) * math.cos(decl) * math.cos(hour_angle)
    elevation = math.degrees(math.asin(max(-1.0, min(1.0, sin_elev))))

    azimuth = 180.0 + math.degrees(
        math.atan2(
            math.sin(hour_angle),
            math.cos(hour_angle) * math.sin(lat) - math.tan(decl) * math.cos(lat),
        )
    )

    return SolarPosition(elevation_deg=max(0.0, elevation), azimuth_deg=azimuth % 360.0)
