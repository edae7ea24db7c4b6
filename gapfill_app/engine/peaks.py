from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from gapfill_app.engine.ranges import Range
from gapfill_app.engine.raw_data import DataPoint, RawRun


class PeakStatus(Enum):
    DETECTED = "detected"
    ESTIMATED = "estimated"


class ChromatographicPeak:
    """Capabilities shared by every peak kept in a feature table.

    Peaks are treated as opaque values by the table code: only the ranges,
    height and area below are read.
    """

    data_file: RawRun
    mz: float
    rt: float
    height: float
    area: float
    mz_range: Range
    rt_range: Range
    representative_scan: Optional[int] = None
    status: PeakStatus = PeakStatus.DETECTED

    @property
    def scan_numbers(self) -> List[int]:
        return []

    def data_point(self, scan_number: int) -> Optional[DataPoint]:
        return None

    def __str__(self) -> str:
        return f"m/z {self.mz:.4f} ({self.rt:.2f} min) : {self.data_file}"


class DetectedPeak(ChromatographicPeak):
    """Peak produced upstream by a detection step, stored as given."""

    def __init__(
        self,
        data_file: RawRun,
        *,
        mz: float,
        rt: float,
        height: float,
        area: float,
        mz_range: Range | None = None,
        rt_range: Range | None = None,
        representative_scan: int | None = None,
    ):
        self.data_file = data_file
        self.mz = float(mz)
        self.rt = float(rt)
        self.height = float(height)
        self.area = float(area)
        self.mz_range = mz_range.copy() if mz_range is not None else Range.from_value(self.mz)
        self.rt_range = rt_range.copy() if rt_range is not None else Range.from_value(self.rt)
        self.representative_scan = representative_scan
        self.status = PeakStatus.DETECTED

    def __repr__(self) -> str:
        return (
            f"DetectedPeak({self.data_file}, mz={self.mz!r}, rt={self.rt!r}, "
            f"height={self.height!r}, area={self.area!r})"
        )


def _trapezoid(y: np.ndarray, x: np.ndarray) -> float:
    if hasattr(np, "trapezoid"):
        return float(np.trapezoid(y, x))
    return float(np.trapz(y, x))


class SameRangePeak(ChromatographicPeak):
    """Peak rebuilt from the base peaks of consecutive scans of one run.

    Points are kept in the order they are added; callers feed them in
    ascending scan (and therefore retention time) order, which the area
    integration relies on.  ``finalize`` must be called exactly once.
    """

    def __init__(self, data_file: RawRun):
        self.data_file = data_file
        self.status = PeakStatus.ESTIMATED
        self.mz = float("nan")
        self.rt = float("nan")
        self.height = 0.0
        self.area = 0.0
        self.mz_range: Range | None = None
        self.rt_range: Range | None = None
        self.representative_scan = None
        self._scan_numbers: List[int] = []
        self._rts: List[float] = []
        self._points: List[DataPoint] = []
        self._by_scan: Dict[int, DataPoint] = {}
        self._finalized = False

    def add_data_point(self, scan_number: int, data_point: DataPoint, rt: float) -> None:
        if self._finalized:
            raise RuntimeError("Cannot add data points to a finalized peak")
        self._scan_numbers.append(int(scan_number))
        self._rts.append(float(rt))
        self._points.append(data_point)
        self._by_scan[int(scan_number)] = data_point
        if data_point.intensity > 0:
            if self.mz_range is None:
                self.mz_range = Range.from_value(data_point.mz)
            else:
                self.mz_range.extend_value(data_point.mz)

    @property
    def scan_numbers(self) -> List[int]:
        return list(self._scan_numbers)

    @property
    def data_points(self) -> Sequence[DataPoint]:
        return tuple(self._points)

    def data_point(self, scan_number: int) -> Optional[DataPoint]:
        return self._by_scan.get(scan_number)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def finalize(self) -> Optional["SameRangePeak"]:
        """Compute height, area and ranges; ``None`` when no usable peak."""
        if self._finalized:
            raise RuntimeError("Peak has already been finalized")
        self._finalized = True

        if not self._points or self.mz_range is None:
            return None

        intensities = np.asarray([p.intensity for p in self._points], dtype=float)
        rts = np.asarray(self._rts, dtype=float)

        best = int(np.argmax(intensities))
        self.height = float(intensities[best])
        self.mz = float(self._points[best].mz)
        self.rt = float(rts[best])
        self.representative_scan = self._scan_numbers[best]
        self.rt_range = Range(float(rts.min()), float(rts.max()))
        self.area = _trapezoid(intensities, rts) if intensities.size > 1 else 0.0

        if not self.area > 0:
            return None
        return self

    def __repr__(self) -> str:
        state = "final" if self._finalized else f"{len(self._points)} points"
        return f"SameRangePeak({self.data_file}, {state}, height={self.height!r}, area={self.area!r})"
