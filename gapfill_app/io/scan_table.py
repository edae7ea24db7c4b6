"""Long-format scan exports: one line per centroid (``run, scan, rt, mz, intensity``).

Lines with an empty m/z or intensity declare a scan without centroids, which
keeps empty scans visible to the gap filler.
"""

from __future__ import annotations

import logging
import os
from typing import Dict

from gapfill_app.engine.raw_data import InMemoryRawRun, Scan
from gapfill_app.io.tabular import read_table

logger = logging.getLogger(__name__)

SCAN_COLUMNS = ("run", "scan", "rt", "mz", "intensity")


def read_raw_runs(path: str | os.PathLike[str]) -> Dict[str, InMemoryRawRun]:
    frame = read_table(path, SCAN_COLUMNS)
    if "ms_level" not in frame.columns:
        frame["ms_level"] = 1
    frame["run"] = frame["run"].astype(str)

    runs: Dict[str, InMemoryRawRun] = {}
    for (run_name, scan_number), group in frame.groupby(["run", "scan"], sort=True):
        rts = group["rt"].dropna().unique()
        if rts.size != 1:
            raise ValueError(f"Scan {scan_number} of run {run_name} has {rts.size} retention times")
        levels = group["ms_level"].dropna().unique()
        ms_level = int(levels[0]) if levels.size else 1
        points = group[["mz", "intensity"]].dropna()
        scan = Scan(
            scan_number=int(scan_number),
            rt=float(rts[0]),
            mz=points["mz"].to_numpy(dtype=float),
            intensity=points["intensity"].to_numpy(dtype=float),
            ms_level=ms_level,
        )
        run = runs.get(run_name)
        if run is None:
            run = runs[run_name] = InMemoryRawRun(run_name)
        run.add_scan(scan)

    logger.info("Loaded %d runs from %s", len(runs), path)
    return runs
