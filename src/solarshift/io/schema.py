from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

JobName = Literal["hourly_refresh", "daily_recommendations"]


def _as_utc_if_naive(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


# Naive timestamps are read as UTC.
Timestamp = Annotated[datetime, AfterValidator(_as_utc_if_naive)]


class WeatherSample(BaseModel):
    """One hour of forecast weather for a location."""
    model_config = ConfigDict(frozen=True)

    timestamp: Timestamp
    temperature_c: float
    cloud_cover_pct: float = Field(ge=0.0, le=100.0)
    wind_speed_mps: float = Field(default=0.0, ge=0.0)
    ghi_wm2: float = Field(ge=0.0, description="Beam/global irradiance proxy (W/m²)")


class PvSystemConfig(BaseModel):
    capacity_kw: float = Field(ge=0.0, description="Rated PV capacity (kW)")
    tilt_deg: float = Field(default=30.0, ge=0.0, le=90.0)
    azimuth_deg: float = Field(default=180.0, ge=0.0, le=360.0, description="180 = south")
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    system_losses: float = Field(default=0.14, ge=0.0, lt=1.0)


class PvForecastPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: Timestamp
    ac_kw: float = Field(ge=0.0)
    dc_kw: float = Field(ge=0.0)
    efficiency: float = Field(ge=0.0, le=1.0)


class Household(BaseModel):
    id: str
    name: str = ""
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    pv_kw: float = Field(gt=0, description="PV peak capacity (kW)")
    tilt: float = Field(default=30.0, ge=0.0, le=90.0)
    azimuth: float = Field(default=180.0, ge=0.0, le=360.0)
    system_losses: float = Field(default=0.14, ge=0.0, lt=1.0)

    tariff_currency: str = "INR"
    tariff_per_kwh: float = Field(default=5.0, ge=0.0)
    co2_factor_kg_per_kwh: float = Field(default=0.82, ge=0.0)

    timezone: str = Field(default="UTC", description="IANA timezone for local clock hours and calendar days.")

    def pv_config(self) -> PvSystemConfig:
        return PvSystemConfig(
            capacity_kw=self.pv_kw,
            tilt_deg=self.tilt,
            azimuth_deg=self.azimuth,
            latitude=self.latitude,
            longitude=self.longitude,
            system_losses=self.system_losses,
        )


class Device(BaseModel):
    id: str
    household_id: str
    name: str
    typical_kwh: float = Field(gt=0, description="Energy drawn by one scheduled run (kWh)")
    flexible: bool = True

    min_duration_hours: float = Field(default=1.0, gt=0)
    earliest_hour: int = Field(default=6, ge=0, le=23)
    latest_hour: int = Field(default=22, ge=0, le=23)

    @property
    def duration_hours(self) -> int:
        """Whole hours a run occupies."""
        return int(math.ceil(self.min_duration_hours))

    @property
    def wraps_midnight(self) -> bool:
        return self.earliest_hour > self.latest_hour


class MeterReading(BaseModel):
    household_id: str
    timestamp: Timestamp
    grid_kwh: float = Field(ge=0.0)
    solar_kwh: float = Field(default=0.0, ge=0.0)


class WeatherRecord(BaseModel):
    """Stored weather row; (household_id, sample.timestamp) is the natural key."""
    household_id: str
    sample: WeatherSample


class PvForecastRecord(BaseModel):
    household_id: str
    point: PvForecastPoint


class Recommendation(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    household_id: str
    device_id: str
    created_ts: Timestamp = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    start_ts: Timestamp
    end_ts: Timestamp
    reason: str
    estimated_savings: float
    estimated_co2_avoided: float


class SchedulerConfig(BaseModel):
    forecast_hours: int = Field(default=48, ge=1, le=168)
    refresh_interval_minutes: int = Field(default=60, ge=1)
    daily_run_hour: int = Field(default=7, ge=0, le=23)
    daily_run_minute: int = Field(default=0, ge=0, le=59)
    timezone: str = Field(default="UTC", description="Timezone the daily run time is expressed in.")

    max_workers: int = Field(default=4, ge=1, le=64)
    top_n_windows: int = Field(default=3, ge=1)
    assumed_daily_consumption_kwh: float = Field(
        default=15.0,
        ge=0.0,
        description="Baseline household demand used when no meter readings exist for the day.",
    )

    weather_timeout_seconds: int = Field(default=30, ge=1)
    weather_retries: int = Field(default=3, ge=0, le=10)
    weather_backoff_seconds: float = Field(default=0.5, ge=0.0)


class JobReport(BaseModel):
    job: JobName
    started_ts: Timestamp
    finished_ts: Optional[datetime] = None
    households_total: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: int = 0
    records_written: int = 0
    errors: Dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.failed == 0


def load_scheduler_config(path: Union[str, Path]) -> SchedulerConfig:
    return SchedulerConfig.model_validate_json(Path(path).read_text(encoding="utf-8"))
