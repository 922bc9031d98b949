"""Load scheduling: solar suitability, device window search, recommendations.

Windows are ranked purely on forecast solar availability relative to the
day's peak; savings and CO₂ figures are estimates from the household tariff
and grid emission factor.
"""

from .recommend import (
    DeviceRecommendationResult,
    local_hour_start,
    persist_recommendation,
    recommend_for_device,
    synthesize_recommendation,
)
from .suitability import SuitabilityPoint, SuitabilityProfile, build_suitability_profile
from .window_search import CandidateWindow, candidate_start_hours, search_device_windows

__all__ = [
    "CandidateWindow",
    "DeviceRecommendationResult",
    "SuitabilityPoint",
    "SuitabilityProfile",
    "build_suitability_profile",
    "candidate_start_hours",
    "local_hour_start",
    "persist_recommendation",
    "recommend_for_device",
    "search_device_windows",
    "synthesize_recommendation",
]
