"""Device window search: rank permitted start hours by solar suitability.

A device may start at any whole clock hour that lets a run of
``ceil(min_duration_hours)`` hours finish by ``latest_hour``. When
``earliest_hour > latest_hour`` the permitted span wraps past midnight
(e.g. 22 → 6 allows 22:00–06:00). When ``earliest_hour <= latest_hour`` and
the run does not fit, there are no candidates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np

from solarshift.io.schema import Device, Household
from solarshift.planning.suitability import SuitabilityProfile

DEFAULT_TOP_N = 3


@dataclass(frozen=True)
class CandidateWindow:
    start_hour: int  # local clock hour
    end_hour: int  # local clock hour the run ends at
    start_offset: int  # hours after the profile anchor
    duration_hours: int

    score: float
    avg_solar_kw: float
    solar_coverage_ratio: float
    grid_avoidance_kwh: float
    estimated_savings: float
    estimated_co2_avoided: float


def permitted_span_hours(device: Device) -> int:
    if device.wraps_midnight:
        return device.latest_hour + 24 - device.earliest_hour
    return device.latest_hour - device.earliest_hour


def candidate_start_hours(device: Device) -> List[int]:
    """Clock hours a run may start at, in search order (earliest first)."""
    slack = permitted_span_hours(device) - device.duration_hours
    if slack < 0:
        return []
    return [(device.earliest_hour + k) % 24 for k in range(slack + 1)]


def evaluate_window(
    device: Device,
    household: Household,
    profile: SuitabilityProfile,
    start_hour: int,
    scores: np.ndarray,
    solar_kw: np.ndarray,
) -> CandidateWindow:
    duration = device.duration_hours
    start_offset = profile.offset_for_hour(start_hour)
    # offsets past the end of the profile contribute nothing
    total_score = float(scores[start_offset:start_offset + duration].sum())
    total_solar = float(solar_kw[start_offset:start_offset + duration].sum())

    avg_solar_kw = total_solar / duration
    coverage = min(1.0, avg_solar_kw / device.typical_kwh)
    avoided_kwh = device.typical_kwh * coverage
    if profile.anchor is not None:
        end_hour = profile.timestamp_at(start_offset + duration).hour
    else:
        end_hour = (start_hour + duration) % 24

    return CandidateWindow(
        start_hour=start_hour,
        end_hour=end_hour,
        start_offset=start_offset,
        duration_hours=duration,
        score=total_score / duration,
        avg_solar_kw=avg_solar_kw,
        solar_coverage_ratio=coverage,
        grid_avoidance_kwh=avoided_kwh,
        estimated_savings=avoided_kwh * household.tariff_per_kwh,
        estimated_co2_avoided=avoided_kwh * household.co2_factor_kg_per_kwh,
    )


def search_device_windows(
    device: Device,
    household: Household,
    profile: SuitabilityProfile,
    top_n: int = DEFAULT_TOP_N,
) -> List[CandidateWindow]:
    """Top ``top_n`` windows for one flexible device, best score first.

    Ties keep search order. Non-flexible devices get no windows.
    """
    if not device.flexible:
        return []
    scores = np.asarray([p.score for p in profile.points], dtype=float)
    solar_kw = np.asarray([p.solar_kw for p in profile.points], dtype=float)

    windows = [
        evaluate_window(device, household, profile, h, scores, solar_kw)
        for h in candidate_start_hours(device)
    ]
    windows.sort(key=lambda w: w.score, reverse=True)
    return windows[:top_n]
