"""Pairwise run comparison of a feature table.

Heights of rows detected in both runs are what a run-vs-run scatter plot
shows; the counts of rows present in only one of the runs tell how much a gap
filling pass still has to do.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np

from gapfill_app.engine.feature_table import FeatureTable
from gapfill_app.engine.peaks import PeakStatus
from gapfill_app.engine.raw_data import RawRun


@dataclass
class RunComparison:
    run_x: RawRun
    run_y: RawRun
    row_indices: List[int] = field(default_factory=list)
    heights_x: np.ndarray = field(default_factory=lambda: np.zeros(0))
    heights_y: np.ndarray = field(default_factory=lambda: np.zeros(0))
    only_x: int = 0
    only_y: int = 0

    @property
    def in_both(self) -> int:
        return len(self.row_indices)

    def height_limits(self) -> Tuple[float, float]:
        if not self.row_indices:
            return (float("nan"), float("nan"))
        both = np.concatenate([self.heights_x, self.heights_y])
        return float(both.min()), float(both.max())

    def describe(self, total_rows: int) -> str:
        return (
            f"{total_rows} total rows, {self.in_both} in both, "
            f"{self.only_x} only in {self.run_x}, {self.only_y} only in {self.run_y}"
        )


def compare_runs(table: FeatureTable, run_x: RawRun, run_y: RawRun) -> RunComparison:
    indices: List[int] = []
    heights_x: List[float] = []
    heights_y: List[float] = []
    only_x = only_y = 0
    for index, row in enumerate(table):
        peak_x = row.peak(run_x)
        peak_y = row.peak(run_y)
        if peak_x is not None and peak_y is not None:
            indices.append(index)
            heights_x.append(peak_x.height)
            heights_y.append(peak_y.height)
        elif peak_x is not None:
            only_x += 1
        elif peak_y is not None:
            only_y += 1
    return RunComparison(
        run_x=run_x,
        run_y=run_y,
        row_indices=indices,
        heights_x=np.asarray(heights_x, dtype=float),
        heights_y=np.asarray(heights_y, dtype=float),
        only_x=only_x,
        only_y=only_y,
    )


def gap_fill_summary(original: FeatureTable, filled: FeatureTable) -> Dict[str, Dict[str, int]]:
    """Per run: gaps in ``original`` and how many of them ``filled`` closed."""
    if [run.name for run in original.runs] != [run.name for run in filled.runs]:
        raise ValueError("Tables do not span the same runs")
    summary: Dict[str, Dict[str, int]] = {}
    for run, filled_run in zip(original.runs, filled.runs):
        gaps = filled_count = 0
        for source_row, new_row in zip(original, filled):
            if source_row.peak(run) is not None:
                continue
            gaps += 1
            peak = new_row.peak(filled_run)
            if peak is not None and peak.status is PeakStatus.ESTIMATED:
                filled_count += 1
        summary[run.name] = {"gaps": gaps, "filled": filled_count, "empty": gaps - filled_count}
    return summary
