import math

import numpy as np
import pytest
from openpyxl import load_workbook

from gapfill_app.engine.gap_filling import GapFillingTask
from gapfill_app.engine.peaks import DetectedPeak
from gapfill_app.engine.ranges import Range
from gapfill_app.engine.table_export import (
    EXPORT_COLUMNS,
    feature_table_to_frame,
    write_feature_csv,
    write_feature_workbook,
)
from gapfill_app.io.feature_csv import read_feature_table
from gapfill_app.io.scan_table import read_raw_runs
from gapfill_app.io.tabular import read_table, sniff_locale
from gapfill_app.tests.feature_table_test_utils import scenario_a_table

SCANS_CSV = """run,scan,rt,mz,intensity
A,1,10.0,500.1,120
A,2,15.0,500.1,100
B,1,10.0,,
B,2,12.5,500.1,50
B,2,12.5,600.0,1000
B,3,15.0,500.1,50
B,4,17.5,500.1,50
B,5,20.0,650.0,10
C,1,11.0,500.1,90
"""

FEATURES_CSV = """row_id,run,mz,mz_min,mz_max,rt,rt_min,rt_max,height,area,comment,identity,preferred
7,A,500.1,500.0,500.2,15.0,10.0,20.0,120,1000,first,caffeine,
7,C,500.1,500.05,500.15,15.0,11.0,19.0,90,800,,theophylline,yes
3,,,,,,,,,,empty row,,
"""


def _write_inputs(tmp_path):
    scans = tmp_path / "scans.csv"
    features = tmp_path / "aligned.csv"
    scans.write_text(SCANS_CSV, encoding="utf-8")
    features.write_text(FEATURES_CSV, encoding="utf-8")
    return scans, features


def test_sniff_locale_detects_semicolon_and_decimal_comma():
    fmt = sniff_locale("run;scan;rt\nA;1;10,5\nA;2;11,5\n")
    assert fmt == {"decimal": ",", "delimiter": ";"}
    assert sniff_locale("") == {"decimal": ".", "delimiter": ","}


def test_read_table_reports_missing_columns(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("run,scan\nA,1\n", encoding="utf-8")
    with pytest.raises(ValueError, match="rt, mz, intensity"):
        read_table(path, ("run", "scan", "rt", "mz", "intensity"))


def test_read_raw_runs_groups_points_into_scans(tmp_path):
    scans, _ = _write_inputs(tmp_path)
    runs = read_raw_runs(scans)
    assert sorted(runs) == ["A", "B", "C"]
    run_b = runs["B"]
    assert run_b.scan_numbers(1, Range(10.0, 20.0)) == [1, 2, 3, 4, 5]
    assert len(run_b.get_scan(1)) == 0
    assert run_b.get_scan(2).mz.tolist() == [500.1, 600.0]


def test_read_feature_table_builds_rows_peaks_and_identities(tmp_path):
    scans, features = _write_inputs(tmp_path)
    runs = read_raw_runs(scans)
    table = read_feature_table(features, runs)

    assert table.name == "aligned"
    assert [run.name for run in table.runs] == ["A", "B", "C"]
    assert [row.id for row in table] == [7, 3]
    row = table.get_row(0)
    assert row.comment == "first"
    assert [i.name for i in row.identities] == ["caffeine", "theophylline"]
    assert row.preferred_identity.name == "theophylline"
    peak = row.peak(runs["A"])
    assert isinstance(peak, DetectedPeak)
    assert peak.mz_range == Range(500.0, 500.2)
    assert row.peak(runs["B"]) is None
    assert table.get_row(1).peaks() == []
    assert table.get_row(1).comment == "empty row"


def test_read_feature_table_rejects_unknown_run(tmp_path):
    scans, features = _write_inputs(tmp_path)
    runs = read_raw_runs(scans)
    del runs["C"]
    with pytest.raises(ValueError, match="unknown run 'C'"):
        read_feature_table(features, runs)


def test_read_feature_table_rejects_blank_range_bound(tmp_path):
    scans, features = _write_inputs(tmp_path)
    features.write_text(
        "row_id,run,mz,mz_min,mz_max,rt,rt_min,rt_max,height,area\n"
        "1,A,500.1,,500.2,15.0,10.0,20.0,120,1000\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="Row 1 has an invalid mz_min"):
        read_feature_table(features, read_raw_runs(scans))


def test_read_feature_table_rejects_inverted_rt_bounds(tmp_path):
    scans, features = _write_inputs(tmp_path)
    features.write_text(
        "row_id,run,mz,mz_min,mz_max,rt,rt_min,rt_max,height,area\n"
        "4,C,500.1,500.0,500.2,15.0,20.0,10.0,120,1000\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError, match="Row 4: rt_min/rt_max"):
        read_feature_table(features, read_raw_runs(scans))


def test_feature_table_to_frame_keeps_gaps_as_empty_lines():
    table, run_a, run_b, run_c = scenario_a_table()
    frame = feature_table_to_frame(table)
    assert list(frame.columns) == EXPORT_COLUMNS
    assert len(frame) == 3
    gap = frame[frame["run"] == "B"].iloc[0]
    assert np.isnan(gap["area"])
    assert gap["status"] is None

    filled = GapFillingTask(table).run()
    filled_frame = feature_table_to_frame(filled)
    row_b = filled_frame[filled_frame["run"] == "B"].iloc[0]
    assert row_b["status"] == "estimated"
    assert row_b["height"] == 50.0
    assert filled_frame[filled_frame["run"] == "A"].iloc[0]["status"] == "detected"


def test_writers_produce_csv_and_workbook(tmp_path):
    table, *_ = scenario_a_table()
    task = GapFillingTask(table)
    filled = task.run()
    filled.add_applied_method(task.applied_method())

    csv_path = write_feature_csv(filled, tmp_path / "out" / "filled.csv")
    assert csv_path.read_text(encoding="utf-8").splitlines()[0] == ",".join(EXPORT_COLUMNS)

    xlsx_path = write_feature_workbook(filled, tmp_path / "filled.xlsx")
    wb = load_workbook(xlsx_path)
    assert wb.sheetnames == ["Features", "Methods"]
    features = list(wb["Features"].values)
    assert list(features[0]) == EXPORT_COLUMNS
    assert len(features) == 4
    gap_area = features[2][EXPORT_COLUMNS.index("area")]
    assert gap_area is not None and not math.isnan(gap_area)
    methods = list(wb["Methods"].values)
    assert methods[1][0] == "Gap filling using RT and m/z range"
    assert "suffix=gap-filled" in methods[1][1]
