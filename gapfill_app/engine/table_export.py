from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import pandas as pd
from openpyxl import Workbook

from gapfill_app.engine.audit import describe_parameters
from gapfill_app.engine.feature_table import FeatureTable

EXPORT_COLUMNS = [
    "row_id",
    "run",
    "status",
    "mz",
    "mz_min",
    "mz_max",
    "rt",
    "rt_min",
    "rt_max",
    "height",
    "area",
    "comment",
    "identity",
]


def _ensure_parent(path: Path) -> None:
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def _clean_value(value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, str) and value and value[0] in "=+-@":
        # keep spreadsheet apps from evaluating comments as formulas
        return "'" + value
    return value


def feature_table_to_frame(table: FeatureTable) -> pd.DataFrame:
    """One line per row and run; gaps keep their line with empty peak columns."""
    records: List[Dict[str, Any]] = []
    for row in table:
        identity = row.preferred_identity.name if row.preferred_identity is not None else None
        for run in table.runs:
            peak = row.peak(run)
            record: Dict[str, Any] = {
                "row_id": row.id,
                "run": run.name,
                "status": None,
                "mz": np.nan,
                "mz_min": np.nan,
                "mz_max": np.nan,
                "rt": np.nan,
                "rt_min": np.nan,
                "rt_max": np.nan,
                "height": np.nan,
                "area": np.nan,
                "comment": row.comment,
                "identity": identity,
            }
            if peak is not None:
                record.update(
                    status=peak.status.value,
                    mz=peak.mz,
                    mz_min=peak.mz_range.low,
                    mz_max=peak.mz_range.high,
                    rt=peak.rt,
                    rt_min=peak.rt_range.low,
                    rt_max=peak.rt_range.high,
                    height=peak.height,
                    area=peak.area,
                )
            records.append(record)
    return pd.DataFrame.from_records(records, columns=EXPORT_COLUMNS)


def write_feature_csv(table: FeatureTable, path: str | os.PathLike[str]) -> Path:
    path = Path(path)
    _ensure_parent(path)
    feature_table_to_frame(table).to_csv(path, index=False)
    return path


def write_feature_workbook(table: FeatureTable, path: str | os.PathLike[str]) -> Path:
    path = Path(path)
    _ensure_parent(path)
    frame = feature_table_to_frame(table)

    wb = Workbook()
    ws = wb.active
    ws.title = "Features"
    ws.append(list(frame.columns))
    for values in frame.itertuples(index=False, name=None):
        ws.append([_clean_value(v) for v in values])

    methods = wb.create_sheet("Methods")
    methods.append(["description", "parameters"])
    for method in table.applied_methods:
        methods.append([method.description, describe_parameters(dict(method.parameters))])

    wb.save(path)
    return path


def write_feature_output(table: FeatureTable, path: str | os.PathLike[str]) -> Path:
    if str(path).lower().endswith(".xlsx"):
        return write_feature_workbook(table, path)
    return write_feature_csv(table, path)
