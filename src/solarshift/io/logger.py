from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List

import pandas as pd

from solarshift.io.schema import JobReport, Recommendation


@dataclass
class RunLogger:
    out_dir: Path

    def __post_init__(self) -> None:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._recommendations: List[Recommendation] = []
        self._reports: List[JobReport] = []

    def append_recommendation(self, rec: Recommendation) -> None:
        with self._lock:
            self._recommendations.append(rec)

    def append_report(self, report: JobReport) -> None:
        with self._lock:
            self._reports.append(report)

    def flush(self, prefix: str) -> dict:
        """Write CSV recommendation log and JSONL job-report log. Returns file paths."""
        with self._lock:
            recs = list(self._recommendations)
            reports = list(self._reports)
        if not recs and not reports:
            return {}

        paths = {}
        if recs:
            rec_path = self.out_dir / f"{prefix}_recommendations.csv"
            rows = [
                {
                    "id": r.id,
                    "household_id": r.household_id,
                    "device_id": r.device_id,
                    "created_ts": r.created_ts.isoformat(),
                    "start_ts": r.start_ts.isoformat(),
                    "end_ts": r.end_ts.isoformat(),
                    "estimated_savings": r.estimated_savings,
                    "estimated_co2_avoided": r.estimated_co2_avoided,
                    "reason": r.reason,
                }
                for r in recs
            ]
            pd.DataFrame(rows).to_csv(rec_path, index=False)
            paths["recommendations_csv"] = str(rec_path)

        if reports:
            jobs_path = self.out_dir / f"{prefix}_jobs.jsonl"
            with jobs_path.open("w", encoding="utf-8") as f:
                for rep in reports:
                    line = {**rep.model_dump(mode="json"), "ok": rep.ok}
                    f.write(json.dumps(line, ensure_ascii=False) + "\n")
            paths["jobs_jsonl"] = str(jobs_path)
        return paths
