"""Raw LC-MS data seen by the gap filler.

Raw files are owned by the host; the filler only needs to enumerate scans of a
given MS level inside a retention-time window and to read the centroided
data points of one scan.  ``InMemoryRawRun`` is the reference implementation
used by the CSV loader and the tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from gapfill_app.engine.ranges import Range


@dataclass(frozen=True)
class DataPoint:
    mz: float
    intensity: float


@dataclass
class Scan:
    scan_number: int
    rt: float
    mz: np.ndarray
    intensity: np.ndarray
    ms_level: int = 1

    def __post_init__(self) -> None:
        mz = np.asarray(self.mz, dtype=float).ravel()
        intensity = np.asarray(self.intensity, dtype=float).ravel()
        if mz.shape != intensity.shape:
            raise ValueError(
                f"Scan {self.scan_number}: m/z and intensity arrays differ in length "
                f"({mz.size} != {intensity.size})"
            )
        order = np.argsort(mz, kind="stable")
        self.mz = mz[order]
        self.intensity = intensity[order]

    @property
    def data_points(self) -> List[DataPoint]:
        return [DataPoint(float(m), float(i)) for m, i in zip(self.mz, self.intensity)]

    def __len__(self) -> int:
        return int(self.mz.size)


class RawRun:
    """Read-only access to one acquired run."""

    name: str = "run"

    def scan_numbers(self, ms_level: int, rt_range: Range | None = None) -> List[int]:
        raise NotImplementedError

    def get_scan(self, scan_number: int) -> Scan:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.name


class InMemoryRawRun(RawRun):
    def __init__(self, name: str, scans: Iterable[Scan] = ()):
        self.name = str(name)
        self._scans: Dict[int, Scan] = {}
        for scan in scans:
            self.add_scan(scan)

    def add_scan(self, scan: Scan) -> None:
        if scan.scan_number in self._scans:
            raise ValueError(f"Duplicate scan number {scan.scan_number} in run {self.name}")
        self._scans[scan.scan_number] = scan

    def scan_numbers(self, ms_level: int, rt_range: Range | None = None) -> List[int]:
        numbers = []
        for number in sorted(self._scans):
            scan = self._scans[number]
            if scan.ms_level != ms_level:
                continue
            if rt_range is not None and not rt_range.contains(scan.rt):
                continue
            numbers.append(number)
        return numbers

    def get_scan(self, scan_number: int) -> Scan:
        try:
            return self._scans[scan_number]
        except KeyError:
            raise KeyError(f"Run {self.name} has no scan {scan_number}") from None

    def __len__(self) -> int:
        return len(self._scans)

    def __repr__(self) -> str:
        return f"InMemoryRawRun({self.name!r}, scans={len(self._scans)})"


def find_base_peak(scan: Scan, mz_range: Range) -> Optional[DataPoint]:
    """Most intense data point of ``scan`` inside ``mz_range``.

    Ties resolve to the lowest m/z.  Returns ``None`` when no point falls in
    the window.
    """
    if scan.mz.size == 0:
        return None
    mask = (scan.mz >= mz_range.low) & (scan.mz <= mz_range.high)
    if not np.any(mask):
        return None
    candidates_mz = scan.mz[mask]
    candidates_int = scan.intensity[mask]
    idx = int(np.argmax(candidates_int))
    return DataPoint(float(candidates_mz[idx]), float(candidates_int[idx]))


def make_scan(
    scan_number: int,
    rt: float,
    points: Sequence[tuple[float, float]] = (),
    *,
    ms_level: int = 1,
) -> Scan:
    mz = [float(p[0]) for p in points]
    intensity = [float(p[1]) for p in points]
    return Scan(scan_number=int(scan_number), rt=float(rt), mz=np.asarray(mz), intensity=np.asarray(intensity), ms_level=ms_level)
