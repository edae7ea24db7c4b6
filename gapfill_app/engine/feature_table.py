from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from gapfill_app.engine.peaks import ChromatographicPeak
from gapfill_app.engine.raw_data import RawRun


@dataclass
class PeakIdentity:
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class AppliedMethod:
    description: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.description


class FeatureRow:
    """One aligned feature: at most one peak per run of the owning table."""

    def __init__(self, row_id: int, runs: Sequence[RawRun]):
        self.id = int(row_id)
        self.comment: Optional[str] = None
        self.identities: List[PeakIdentity] = []
        self.preferred_identity: Optional[PeakIdentity] = None
        self._peaks: Dict[RawRun, Optional[ChromatographicPeak]] = {run: None for run in runs}

    @property
    def runs(self) -> Tuple[RawRun, ...]:
        return tuple(self._peaks)

    @property
    def peaks_by_run(self) -> Dict[RawRun, Optional[ChromatographicPeak]]:
        return dict(self._peaks)

    def peak(self, run: RawRun) -> Optional[ChromatographicPeak]:
        if run not in self._peaks:
            raise KeyError(f"Row {self.id} has no column for run {run}")
        return self._peaks[run]

    def add_peak(self, run: RawRun, peak: ChromatographicPeak) -> None:
        if run not in self._peaks:
            raise KeyError(f"Row {self.id} has no column for run {run}")
        self._peaks[run] = peak

    def peaks(self) -> List[ChromatographicPeak]:
        return [peak for peak in self._peaks.values() if peak is not None]

    def runs_with_peaks(self) -> List[RawRun]:
        return [run for run, peak in self._peaks.items() if peak is not None]

    def add_identity(self, identity: PeakIdentity, preferred: bool = False) -> None:
        self.identities.append(identity)
        if preferred or self.preferred_identity is None:
            self.preferred_identity = identity

    def set_preferred_identity(self, identity: Optional[PeakIdentity]) -> None:
        if identity is not None and identity not in self.identities:
            self.identities.append(identity)
        self.preferred_identity = identity

    def __repr__(self) -> str:
        return f"FeatureRow(id={self.id}, peaks={len(self.peaks())}/{len(self._peaks)})"

    def __str__(self) -> str:
        if self.preferred_identity is not None:
            return f"#{self.id} {self.preferred_identity.name}"
        return f"#{self.id}"


class FeatureTable:
    """Ordered feature rows spanning a fixed, ordered set of runs."""

    def __init__(self, name: str, runs: Iterable[RawRun], rows: Iterable[FeatureRow] = ()):
        self.name = str(name)
        self.runs: Tuple[RawRun, ...] = tuple(runs)
        if len(set(self.runs)) != len(self.runs):
            raise ValueError(f"Feature table {self.name!r} lists a run more than once")
        self._rows: List[FeatureRow] = []
        self.applied_methods: List[AppliedMethod] = []
        for row in rows:
            self.add_row(row)

    def new_row(self, row_id: int) -> FeatureRow:
        return FeatureRow(row_id, self.runs)

    def add_row(self, row: FeatureRow) -> None:
        if set(row.runs) != set(self.runs):
            raise ValueError(
                f"Row {row.id} does not span the runs of feature table {self.name!r}"
            )
        self._rows.append(row)

    def add_applied_method(self, method: AppliedMethod) -> None:
        self.applied_methods.append(method)

    @property
    def rows(self) -> List[FeatureRow]:
        return list(self._rows)

    def row_count(self) -> int:
        return len(self._rows)

    def get_row(self, index: int) -> FeatureRow:
        return self._rows[index]

    def peak(self, index: int, run: RawRun) -> Optional[ChromatographicPeak]:
        return self._rows[index].peak(run)

    def run_by_name(self, name: str) -> RawRun:
        for run in self.runs:
            if run.name == name:
                return run
        raise KeyError(f"Feature table {self.name!r} has no run named {name!r}")

    def __iter__(self) -> Iterator[FeatureRow]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FeatureTable({self.name!r}, runs={len(self.runs)}, rows={len(self._rows)})"
