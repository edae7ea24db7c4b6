from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence, Tuple

from gapfill_app.engine.feature_table import FeatureTable
from gapfill_app.engine.peaks import DetectedPeak
from gapfill_app.engine.ranges import Range
from gapfill_app.engine.raw_data import InMemoryRawRun, make_scan

ScanSpec = Tuple[int, float, Sequence[Tuple[float, float]]]


def make_run(name: str, scans: Iterable[ScanSpec] = ()) -> InMemoryRawRun:
    return InMemoryRawRun(name, [make_scan(number, rt, points) for number, rt, points in scans])


def detected(run, mz: Tuple[float, float], rt: Tuple[float, float], *, height: float = 100.0, area: float = 1000.0) -> DetectedPeak:
    mz_range = Range(*mz)
    rt_range = Range(*rt)
    return DetectedPeak(
        run,
        mz=mz_range.average(),
        rt=rt_range.average(),
        height=height,
        area=area,
        mz_range=mz_range,
        rt_range=rt_range,
    )


def build_table(name: str, runs, rows: Sequence[Dict[object, Optional[DetectedPeak]]]) -> FeatureTable:
    table = FeatureTable(name, runs)
    for index, peaks in enumerate(rows, start=1):
        row = table.new_row(index)
        for run, peak in peaks.items():
            if peak is not None:
                row.add_peak(run, peak)
        table.add_row(row)
    return table


def scenario_a_runs():
    """Runs A and C carry the feature; B only has raw signal in 3 of 5 scans."""
    run_a = make_run("A")
    run_c = make_run("C")
    run_b = make_run(
        "B",
        [
            (1, 10.0, []),
            (2, 12.5, [(500.1, 50.0), (600.0, 1000.0)]),
            (3, 15.0, [(499.0, 80.0), (500.1, 50.0)]),
            (4, 17.5, [(500.1, 50.0)]),
            (5, 20.0, [(650.0, 10.0)]),
            (6, 25.0, [(500.1, 500.0)]),
        ],
    )
    return run_a, run_b, run_c


def scenario_a_table():
    run_a, run_b, run_c = scenario_a_runs()
    row = {
        run_a: detected(run_a, (500.0, 500.2), (10.0, 20.0), height=120.0, area=1000.0),
        run_b: None,
        run_c: detected(run_c, (500.05, 500.15), (11.0, 19.0), height=90.0, area=800.0),
    }
    return build_table("aligned", [run_a, run_b, run_c], [row]), run_a, run_b, run_c
