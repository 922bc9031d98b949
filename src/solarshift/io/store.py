"""Record store contract consumed by the jobs, plus an in-memory implementation.

Production deployments back ``Store`` with their own database. Weather and
forecast upserts are insert-if-absent on ``(household_id, timestamp)``: an
existing row is never overwritten, so a PV configuration change only shows up
for hours that were not stored yet.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from solarshift.io.schema import (
    Device,
    Household,
    MeterReading,
    PvForecastPoint,
    PvForecastRecord,
    Recommendation,
    WeatherRecord,
)

RowKey = Tuple[str, datetime]


class Store(Protocol):
    def list_households(self) -> List[Household]: ...

    def get_household(self, household_id: str) -> Optional[Household]: ...

    def list_flexible_devices(self, household_id: str) -> List[Device]: ...

    def upsert_weather_hourly(self, rows: Sequence[WeatherRecord]) -> int: ...

    def upsert_pv_forecast_hourly(self, rows: Sequence[PvForecastRecord]) -> int: ...

    def get_pv_forecast_hourly(self, household_id: str, start: datetime, end: datetime) -> List[PvForecastPoint]: ...

    def create_recommendation(self, rec: Recommendation) -> Recommendation: ...

    def delete_recommendations_for_device(self, device_id: str) -> int: ...

    def get_meter_readings(self, household_id: str, start: datetime, end: datetime) -> List[MeterReading]: ...


class InMemoryStore:
    """Thread-safe dict-backed Store for tests, demos and single-process runs."""

    def __init__(
        self,
        households: Iterable[Household] = (),
        devices: Iterable[Device] = (),
        meter_readings: Iterable[MeterReading] = (),
    ):
        self._lock = threading.Lock()
        self.households: Dict[str, Household] = {h.id: h for h in households}
        self.devices: Dict[str, Device] = {d.id: d for d in devices}
        self.weather: Dict[RowKey, WeatherRecord] = {}
        self.forecasts: Dict[RowKey, PvForecastRecord] = {}
        self.meter_readings: List[MeterReading] = list(meter_readings)
        self.recommendations: Dict[str, Recommendation] = {}

    # households / devices

    def add_meter_reading(self, reading: MeterReading) -> None:
        with self._lock:
            self.meter_readings.append(reading)

    def list_households(self) -> List[Household]:
        with self._lock:
            return list(self.households.values())

    def get_household(self, household_id: str) -> Optional[Household]:
        with self._lock:
            return self.households.get(household_id)

    def list_devices(self, household_id: str) -> List[Device]:
        with self._lock:
            return [d for d in self.devices.values() if d.household_id == household_id]

    def list_flexible_devices(self, household_id: str) -> List[Device]:
        return [d for d in self.list_devices(household_id) if d.flexible]

    # hourly series

    def upsert_weather_hourly(self, rows: Sequence[WeatherRecord]) -> int:
        inserted = 0
        with self._lock:
            for r in rows:
                key = (r.household_id, r.sample.timestamp)
                if key not in self.weather:
                    self.weather[key] = r
                    inserted += 1
        return inserted

    def upsert_pv_forecast_hourly(self, rows: Sequence[PvForecastRecord]) -> int:
        inserted = 0
        with self._lock:
            for r in rows:
                key = (r.household_id, r.point.timestamp)
                if key not in self.forecasts:
                    self.forecasts[key] = r
                    inserted += 1
        return inserted

    def get_pv_forecast_hourly(self, household_id: str, start: datetime, end: datetime) -> List[PvForecastPoint]:
        """Forecast points with ``start <= timestamp < end``, ascending."""
        with self._lock:
            points = [
                r.point
                for (hid, ts), r in self.forecasts.items()
                if hid == household_id and start <= ts < end
            ]
        return sorted(points, key=lambda p: p.timestamp)

    def get_meter_readings(self, household_id: str, start: datetime, end: datetime) -> List[MeterReading]:
        with self._lock:
            readings = [
                m for m in self.meter_readings
                if m.household_id == household_id and start <= m.timestamp < end
            ]
        return sorted(readings, key=lambda m: m.timestamp)

    # recommendations

    def create_recommendation(self, rec: Recommendation) -> Recommendation:
        with self._lock:
            self.recommendations[rec.id] = rec
        return rec

    def delete_recommendations_for_device(self, device_id: str) -> int:
        with self._lock:
            stale = [rid for rid, r in self.recommendations.items() if r.device_id == device_id]
            for rid in stale:
                del self.recommendations[rid]
        return len(stale)

    def recommendations_for_household(self, household_id: str) -> List[Recommendation]:
        with self._lock:
            recs = [r for r in self.recommendations.values() if r.household_id == household_id]
        return sorted(recs, key=lambda r: r.start_ts)
