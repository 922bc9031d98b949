from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from datetime import timedelta
from pathlib import Path

# Ensure src/ is importable when running this script without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from solarshift.forecast.open_meteo import OpenMeteoWeatherClient, SyntheticWeatherProvider
from solarshift.io.logger import RunLogger
from solarshift.io.schema import Device, Household, SchedulerConfig, load_scheduler_config
from solarshift.io.store import InMemoryStore
from solarshift.jobs.orchestrator import JobOrchestrator
from solarshift.jobs.scheduler import DailySchedule, IntervalSchedule, JobScheduler


def default_households():
    home = Household(
        id="demo",
        name="Demo household (Delhi)",
        latitude=28.6139,
        longitude=77.2090,
        pv_kw=5.0,
        tariff_currency="INR",
        tariff_per_kwh=5.0,
        co2_factor_kg_per_kwh=0.82,
        timezone="Asia/Kolkata",
    )
    devices = [
        Device(id="ev", household_id="demo", name="EV charger", typical_kwh=7.2, min_duration_hours=4, earliest_hour=22, latest_hour=6),
        Device(id="water_heater", household_id="demo", name="Water heater", typical_kwh=3.0, min_duration_hours=2, earliest_hour=5, latest_hour=23),
        Device(id="dishwasher", household_id="demo", name="Dishwasher", typical_kwh=1.5, min_duration_hours=1.5, earliest_hour=20, latest_hour=3),
        Device(id="pool_pump", household_id="demo", name="Pool pump", typical_kwh=1.1, min_duration_hours=6, earliest_hour=10, latest_hour=16),
        Device(id="washer", household_id="demo", name="Washing machine", typical_kwh=0.8, min_duration_hours=2, earliest_hour=9, latest_hour=21),
        Device(id="heat_pump", household_id="demo", name="Heat pump", typical_kwh=2.5, min_duration_hours=2.5, earliest_hour=4, latest_hour=22),
        Device(id="ac", household_id="demo", name="Air conditioner", typical_kwh=1.8, flexible=False),
    ]
    return [home], devices


def _close(weather):
    if isinstance(weather, OpenMeteoWeatherClient):
        weather.close()


def main():
    ap = argparse.ArgumentParser(description="Refresh PV forecasts and schedule flexible loads.")

    ap.add_argument("--config", type=str, default=None, help="SchedulerConfig JSON file")
    ap.add_argument("--once", action="store_true", help="Run one refresh + recommendation pass and exit")
    ap.add_argument("--synthetic-weather", action="store_true", help="Use deterministic offline weather")
    ap.add_argument("--out", type=str, default="logs")
    ap.add_argument("--prefix", type=str, default="run")
    ap.add_argument("--max-workers", type=int, default=None)
    ap.add_argument("--log-level", type=str, default="INFO")

    args = ap.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
    )

    cfg = load_scheduler_config(args.config) if args.config else SchedulerConfig()
    if args.max_workers is not None:
        cfg = cfg.model_copy(update={"max_workers": args.max_workers})

    households, devices = default_households()
    store = InMemoryStore(households=households, devices=devices)

    if args.synthetic_weather:
        weather = SyntheticWeatherProvider()
    else:
        weather = OpenMeteoWeatherClient(
            timeout_seconds=cfg.weather_timeout_seconds,
            retries=cfg.weather_retries,
            backoff_seconds=cfg.weather_backoff_seconds,
        )

    stop = threading.Event()
    run_logger = RunLogger(out_dir=Path(args.out))
    orchestrator = JobOrchestrator(store, weather, config=cfg, stop_event=stop, run_logger=run_logger)

    if args.once:
        try:
            print(orchestrator.run_hourly_refresh().model_dump_json())
            print(orchestrator.run_daily_recommendation_pass().model_dump_json())
            for h in households:
                for rec in store.recommendations_for_household(h.id):
                    print(rec.start_ts.strftime("%Y-%m-%d %H:%M"), rec.device_id, "-", rec.reason)
                print(h.id, orchestrator.compute_daily_metrics(h.id))
        finally:
            print(run_logger.flush(prefix=args.prefix))
            _close(weather)
        return

    scheduler = JobScheduler()
    scheduler.add_job(
        "hourly_refresh",
        IntervalSchedule(interval=timedelta(minutes=cfg.refresh_interval_minutes)),
        orchestrator.run_hourly_refresh,
        run_immediately=True,
    )
    scheduler.add_job(
        "daily_recommendations",
        DailySchedule(hour=cfg.daily_run_hour, minute=cfg.daily_run_minute, tz_name=cfg.timezone),
        orchestrator.run_daily_recommendation_pass,
    )

    def _stop(signum, frame):
        logging.getLogger("solarshift").info("Signal %s received; finishing in-flight work", signum)
        stop.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    try:
        scheduler.run(stop)
    finally:
        print(run_logger.flush(prefix=args.prefix))
        _close(weather)


if __name__ == "__main__":
    main()
