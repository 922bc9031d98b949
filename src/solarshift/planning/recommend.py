from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from solarshift.io.schema import Device, Household, Recommendation
from solarshift.io.store import Store
from solarshift.planning.suitability import SuitabilityProfile
from solarshift.planning.window_search import DEFAULT_TOP_N, CandidateWindow, search_device_windows
from solarshift.xai.explain import generate_recommendation_reason

LOG = logging.getLogger("solarshift")


@dataclass
class DeviceRecommendationResult:
    device_id: str
    recommendation: Optional[Recommendation] = None
    # ranked candidates, best first; only the first is persisted
    candidates: List[CandidateWindow] = field(default_factory=list)


def local_hour_start(now: datetime, tz_name: str) -> datetime:
    """``now`` in the household's timezone, floored to the hour."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).replace(minute=0, second=0, microsecond=0)


def synthesize_recommendation(
    household: Household,
    device: Device,
    window: CandidateWindow,
    now: datetime,
) -> Recommendation:
    # offsets are elapsed hours from the anchor, not wall-clock hours
    anchor = local_hour_start(now, household.timezone)
    anchor_utc = anchor.astimezone(timezone.utc)
    start_ts = (anchor_utc + timedelta(hours=window.start_offset)).astimezone(anchor.tzinfo)
    end_ts = (anchor_utc + timedelta(hours=window.start_offset + window.duration_hours)).astimezone(anchor.tzinfo)

    reason = generate_recommendation_reason(
        device.name,
        window.start_hour,
        window.end_hour,
        window.avg_solar_kw,
        round(window.estimated_savings, 2),
        round(window.estimated_co2_avoided, 3),
        currency=household.tariff_currency,
    )
    return Recommendation(
        household_id=household.id,
        device_id=device.id,
        created_ts=now if now.tzinfo else now.replace(tzinfo=timezone.utc),
        start_ts=start_ts,
        end_ts=end_ts,
        reason=reason,
        estimated_savings=round(window.estimated_savings, 2),
        estimated_co2_avoided=round(window.estimated_co2_avoided, 3),
    )


def persist_recommendation(store: Store, rec: Recommendation) -> Recommendation:
    """Replace whatever was stored for the device with ``rec``."""
    removed = store.delete_recommendations_for_device(rec.device_id)
    if removed:
        LOG.debug("Superseded %d recommendation(s) for device %s", removed, rec.device_id)
    return store.create_recommendation(rec)


def recommend_for_device(
    store: Store,
    household: Household,
    device: Device,
    profile: SuitabilityProfile,
    now: datetime,
    top_n: int = DEFAULT_TOP_N,
) -> DeviceRecommendationResult:
    candidates = search_device_windows(device, household, profile, top_n=top_n)
    if not candidates:
        LOG.info(
            "No feasible window for device %s (earliest=%d, latest=%d, duration=%dh)",
            device.id, device.earliest_hour, device.latest_hour, device.duration_hours,
        )
        return DeviceRecommendationResult(device_id=device.id)

    rec = persist_recommendation(store, synthesize_recommendation(household, device, candidates[0], now))
    return DeviceRecommendationResult(device_id=device.id, recommendation=rec, candidates=candidates)
