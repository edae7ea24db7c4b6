import math

import pytest

from gapfill_app.engine.gap_filling import GapFillingTask
from gapfill_app.engine.run_comparison import compare_runs, gap_fill_summary
from gapfill_app.tests.feature_table_test_utils import build_table, detected, make_run, scenario_a_table


def test_compare_runs_counts_shared_and_single_run_rows():
    run_x, run_y = make_run("X"), make_run("Y")
    table = build_table(
        "t",
        [run_x, run_y],
        [
            {run_x: detected(run_x, (1.0, 1.1), (1.0, 2.0), height=10.0), run_y: detected(run_y, (1.0, 1.1), (1.0, 2.0), height=30.0)},
            {run_x: detected(run_x, (2.0, 2.1), (1.0, 2.0), height=5.0)},
            {run_y: detected(run_y, (3.0, 3.1), (1.0, 2.0), height=7.0)},
            {run_y: detected(run_y, (4.0, 4.1), (1.0, 2.0), height=8.0)},
            {run_x: detected(run_x, (5.0, 5.1), (1.0, 2.0), height=2.0), run_y: detected(run_y, (5.0, 5.1), (1.0, 2.0), height=4.0)},
        ],
    )
    comparison = compare_runs(table, run_x, run_y)
    assert comparison.row_indices == [0, 4]
    assert comparison.in_both == 2
    assert comparison.heights_x.tolist() == [10.0, 2.0]
    assert comparison.heights_y.tolist() == [30.0, 4.0]
    assert comparison.only_x == 1
    assert comparison.only_y == 2
    assert comparison.height_limits() == (2.0, 30.0)
    assert comparison.describe(len(table)) == "5 total rows, 2 in both, 1 only in X, 2 only in Y"


def test_compare_runs_without_shared_rows_has_no_limits():
    run_x, run_y = make_run("X"), make_run("Y")
    table = build_table("t", [run_x, run_y], [{run_x: detected(run_x, (1.0, 1.1), (1.0, 2.0))}])
    low, high = compare_runs(table, run_x, run_y).height_limits()
    assert math.isnan(low) and math.isnan(high)


def test_gap_fill_summary_counts_filled_gaps_per_run():
    table, run_a, run_b, run_c = scenario_a_table()
    filled = GapFillingTask(table).run()
    summary = gap_fill_summary(table, filled)
    assert summary["A"] == {"gaps": 0, "filled": 0, "empty": 0}
    assert summary["B"] == {"gaps": 1, "filled": 1, "empty": 0}
    assert compare_runs(filled, run_a, run_b).in_both == 1
    assert compare_runs(table, run_a, run_b).only_x == 1


def test_gap_fill_summary_rejects_tables_over_other_runs():
    table, *_ = scenario_a_table()
    other = build_table("other", [make_run("Z")], [])
    with pytest.raises(ValueError):
        gap_fill_summary(table, other)
