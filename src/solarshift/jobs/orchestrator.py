"""Periodic per-household jobs: forecast refresh and daily recommendations.

Households are independent, so each job fans out over a bounded thread pool.
Work for one household is sequential (devices in list order). A household's
failure is logged and recorded in the job's ``JobReport``; it never aborts the
batch, and neither job raises to its caller.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional

from solarshift.forecast.open_meteo import WeatherProvider
from solarshift.forecast.pv_power import build_pv_forecast, total_energy_kwh
from solarshift.io.logger import RunLogger
from solarshift.io.schema import (
    Household,
    JobName,
    JobReport,
    PvForecastRecord,
    SchedulerConfig,
    WeatherRecord,
)
from solarshift.io.store import Store
from solarshift.jobs.scheduler import Clock, SystemClock
from solarshift.metrics.kpis import DailyMetrics, compute_daily_metrics, local_day_bounds, local_today
from solarshift.planning.recommend import local_hour_start, recommend_for_device
from solarshift.planning.suitability import build_suitability_profile

LOG = logging.getLogger("solarshift")

SUCCEEDED = "succeeded"
SKIPPED = "skipped"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass(frozen=True)
class HouseholdOutcome:
    household_id: str
    status: str
    records_written: int = 0
    error: Optional[str] = None


class JobOrchestrator:
    def __init__(
        self,
        store: Store,
        weather: WeatherProvider,
        config: Optional[SchedulerConfig] = None,
        clock: Optional[Clock] = None,
        stop_event: Optional[threading.Event] = None,
        run_logger: Optional[RunLogger] = None,
    ):
        self.store = store
        self.weather = weather
        self.config = config or SchedulerConfig()
        self.clock = clock or SystemClock()
        self.stop_event = stop_event or threading.Event()
        self.run_logger = run_logger

    # public jobs

    def run_hourly_refresh(self) -> JobReport:
        return self._run_job("hourly_refresh", self._refresh_household)

    def run_daily_recommendation_pass(self) -> JobReport:
        return self._run_job("daily_recommendations", self._recommend_household)

    def compute_daily_metrics(self, household_id: str) -> Optional[DailyMetrics]:
        """Today's metrics for one household, or None if it does not exist."""
        household = self.store.get_household(household_id)
        if household is None:
            LOG.warning("Household %s not found; no metrics", household_id)
            return None
        day = local_today(self.clock.now(), household.timezone)
        start, end = local_day_bounds(day, household.timezone)
        forecast = self.store.get_pv_forecast_hourly(household_id, start, end)
        readings = self.store.get_meter_readings(household_id, start, end)
        return compute_daily_metrics(
            household,
            forecast,
            readings,
            day=day,
            assumed_daily_consumption_kwh=self.config.assumed_daily_consumption_kwh,
        )

    # per-household work

    def _refresh_household(self, household: Household) -> int:
        samples = self.weather.fetch_weather_forecast(
            household.latitude, household.longitude, hours=self.config.forecast_hours
        )
        points = build_pv_forecast(household.pv_config(), samples)

        n_weather = self.store.upsert_weather_hourly(
            [WeatherRecord(household_id=household.id, sample=s) for s in samples]
        )
        n_forecast = self.store.upsert_pv_forecast_hourly(
            [PvForecastRecord(household_id=household.id, point=p) for p in points]
        )
        LOG.info(
            "Household %s: %d weather hours (%.2f kWh forecast), %d new weather rows, %d new forecast rows",
            household.id, len(samples), total_energy_kwh(points), n_weather, n_forecast,
        )
        return n_weather + n_forecast

    def _recommend_household(self, household: Household) -> int:
        now = self.clock.now()
        anchor = local_hour_start(now, household.timezone)
        points = self.store.get_pv_forecast_hourly(
            household.id, anchor, anchor + timedelta(hours=self.config.forecast_hours)
        )
        if not points:
            LOG.warning("Household %s has no stored forecast from %s; no recommendations", household.id, anchor.isoformat())
            return 0

        profile = build_suitability_profile(points, anchor=anchor)
        written = 0
        for device in self.store.list_flexible_devices(household.id):
            result = recommend_for_device(
                self.store, household, device, profile, now, top_n=self.config.top_n_windows
            )
            if result.recommendation is None:
                continue
            written += 1
            if self.run_logger is not None:
                self.run_logger.append_recommendation(result.recommendation)
        LOG.info("Household %s: %d recommendation(s) written", household.id, written)
        return written

    # batch plumbing

    def _guarded(self, household_id: str, work: Callable[[Household], int]) -> HouseholdOutcome:
        if self.stop_event.is_set():
            return HouseholdOutcome(household_id, CANCELLED)
        try:
            household = self.store.get_household(household_id)
            if household is None:
                LOG.warning("Household %s not found; skipping", household_id)
                return HouseholdOutcome(household_id, SKIPPED)
            return HouseholdOutcome(household_id, SUCCEEDED, records_written=work(household))
        except Exception as e:
            LOG.exception("Household %s failed", household_id)
            return HouseholdOutcome(household_id, FAILED, error=f"{type(e).__name__}: {e}")

    def _run_job(self, job: JobName, work: Callable[[Household], int]) -> JobReport:
        report = JobReport(job=job, started_ts=self.clock.now())
        try:
            household_ids = [h.id for h in self.store.list_households()]
        except Exception as e:
            LOG.exception("Job %s could not list households", job)
            report.errors["*"] = f"{type(e).__name__}: {e}"
            report.failed = 1
            return self._finish(report)

        report.households_total = len(household_ids)
        outcomes: List[HouseholdOutcome] = []
        if household_ids:
            workers = min(self.config.max_workers, len(household_ids))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"solarshift-{job}") as pool:
                futures = [pool.submit(self._guarded, hid, work) for hid in household_ids]
                outcomes = [f.result() for f in futures]

        for o in outcomes:
            if o.status == SUCCEEDED:
                report.succeeded += 1
                report.records_written += o.records_written
            elif o.status == SKIPPED:
                report.skipped += 1
            elif o.status == CANCELLED:
                report.cancelled += 1
            else:
                report.failed += 1
                report.errors[o.household_id] = o.error or "unknown error"
        return self._finish(report)

    def _finish(self, report: JobReport) -> JobReport:
        report.finished_ts = self.clock.now()
        LOG.info(
            "Job %s finished: %d/%d succeeded, %d skipped, %d failed, %d cancelled, %d records",
            report.job, report.succeeded, report.households_total,
            report.skipped, report.failed, report.cancelled, report.records_written,
        )
        if self.run_logger is not None:
            self.run_logger.append_report(report)
        return report
