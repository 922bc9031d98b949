"""Per-hour solar suitability scores relative to the forecast's own peak."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

import numpy as np

from solarshift.io.schema import PvForecastPoint

# Used for every hour when the series has no positive output to normalise against.
NEUTRAL_SCORE = 0.5

ONE_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class SuitabilityPoint:
    offset: int  # hours from the profile anchor
    score: float  # [0, 1]
    solar_kw: float


@dataclass
class SuitabilityProfile:
    """Scores indexed by hour offset; offset 0 is local clock hour ``anchor_hour``.

    With an ``anchor`` datetime, offsets are elapsed hours from that instant and
    clock hours are resolved in the anchor's timezone, so a DST change shifts
    the mapping instead of misplacing a window.
    """
    points: List[SuitabilityPoint] = field(default_factory=list)
    anchor_hour: int = 0
    max_ac_kw: float = 0.0
    anchor: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self.points)

    def offset_for_hour(self, clock_hour: int) -> int:
        """Offset of the next occurrence of ``clock_hour`` at or after the anchor."""
        clock_hour = int(clock_hour) % 24
        if self.anchor is not None:
            for k in range(48):
                if self.timestamp_at(k).hour == clock_hour:
                    return k
        return (clock_hour - self.anchor_hour) % 24

    def timestamp_at(self, offset: int) -> datetime:
        if self.anchor is None:
            raise ValueError("profile has no anchor timestamp")
        return (self.anchor.astimezone(timezone.utc) + offset * ONE_HOUR).astimezone(self.anchor.tzinfo)


def build_suitability_profile(
    points: Sequence[PvForecastPoint],
    anchor_hour: int = 0,
    anchor: Optional[datetime] = None,
) -> SuitabilityProfile:
    """Score each forecast hour against the series peak.

    Without ``anchor`` the points are taken as consecutive hours. With it, each
    point sits at ``(timestamp - anchor) // 1h``; points before the anchor are
    dropped and hours missing from the series score 0 with no solar.
    """
    if anchor is None:
        ac = np.asarray([p.ac_kw for p in points], dtype=float)
        present = np.ones(ac.shape, dtype=bool)
    else:
        if anchor.tzinfo is None:
            anchor = anchor.replace(tzinfo=timezone.utc)
        anchor_hour = anchor.hour
        placed = {}
        for p in points:
            offset = (p.timestamp - anchor) // ONE_HOUR
            if offset >= 0:
                placed.setdefault(int(offset), p.ac_kw)
        size = max(placed) + 1 if placed else 0
        ac = np.zeros(size, dtype=float)
        present = np.zeros(size, dtype=bool)
        for offset, value in placed.items():
            ac[offset] = value
            present[offset] = True

    max_ac = float(ac.max()) if ac.size else 0.0
    if max_ac > 0:
        scores = np.minimum(1.0, ac / max_ac)
    else:
        scores = np.full(ac.shape, NEUTRAL_SCORE)
    scores = np.where(present, scores, 0.0)

    return SuitabilityProfile(
        points=[
            SuitabilityPoint(offset=i, score=float(scores[i]), solar_kw=float(ac[i]))
            for i in range(ac.size)
        ],
        anchor_hour=int(anchor_hour) % 24,
        max_ac_kw=max_ac,
        anchor=anchor,
    )
