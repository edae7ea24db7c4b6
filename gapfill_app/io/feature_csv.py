"""Reader for aligned feature tables exported one peak per line."""

from __future__ import annotations

import logging
import math
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pandas as pd

from gapfill_app.engine.feature_table import FeatureRow, FeatureTable, PeakIdentity
from gapfill_app.engine.peaks import DetectedPeak
from gapfill_app.engine.ranges import Range
from gapfill_app.engine.raw_data import RawRun
from gapfill_app.io.tabular import read_table

logger = logging.getLogger(__name__)

FEATURE_COLUMNS = ("row_id", "run", "mz", "mz_min", "mz_max", "rt", "rt_min", "rt_max", "height", "area")

_TRUTHY = {"1", "true", "yes", "y", "x"}


def _text(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def _bounds(record: Mapping, row_id: int, low_col: str, high_col: str) -> Range:
    for column in (low_col, high_col):
        value = record.get(column)
        try:
            finite = math.isfinite(float(value))
        except (TypeError, ValueError):
            finite = False
        if not finite:
            raise ValueError(f"Row {row_id} has an invalid {column} value {value!r}")
    try:
        return Range(record[low_col], record[high_col])
    except ValueError as exc:
        raise ValueError(f"Row {row_id}: {low_col}/{high_col} {exc}") from exc


def read_feature_table(
    path: str | os.PathLike[str],
    raw_runs: Mapping[str, RawRun],
    *,
    name: str | None = None,
) -> FeatureTable:
    """Build a :class:`FeatureTable` spanning ``raw_runs`` from a peak export.

    Lines without a run only declare the row (comment/identity); rows keep the
    order in which their id first appears.
    """
    frame = read_table(path, FEATURE_COLUMNS)
    table = FeatureTable(name or Path(path).stem, raw_runs.values())

    rows: Dict[int, FeatureRow] = {}
    order: List[int] = []
    for record in frame.to_dict(orient="records"):
        row_id = int(record["row_id"])
        row = rows.get(row_id)
        if row is None:
            row = rows[row_id] = table.new_row(row_id)
            order.append(row_id)

        comment = _text(record.get("comment"))
        if comment and not row.comment:
            row.comment = comment

        identity_name = _text(record.get("identity"))
        if identity_name:
            identity = next((i for i in row.identities if i.name == identity_name), None)
            if identity is None:
                identity = PeakIdentity(identity_name)
                row.identities.append(identity)
            preferred = (_text(record.get("preferred")) or "").lower() in _TRUTHY
            if preferred:
                row.preferred_identity = identity

        run_name = _text(record.get("run"))
        if run_name is None:
            continue
        run = raw_runs.get(run_name)
        if run is None:
            raise ValueError(f"Row {row_id} refers to unknown run {run_name!r}")
        if row.peak(run) is not None:
            raise ValueError(f"Row {row_id} has more than one peak in run {run_name!r}")
        row.add_peak(
            run,
            DetectedPeak(
                run,
                mz=record["mz"],
                rt=record["rt"],
                height=record["height"],
                area=record["area"],
                mz_range=_bounds(record, row_id, "mz_min", "mz_max"),
                rt_range=_bounds(record, row_id, "rt_min", "rt_max"),
            ),
        )

    for row_id in order:
        row = rows[row_id]
        if row.preferred_identity is None and row.identities:
            row.preferred_identity = row.identities[0]
        table.add_row(row)

    logger.info("Loaded feature table %s: %d rows, %d runs", table, table.row_count(), len(table.runs))
    return table
