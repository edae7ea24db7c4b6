"""Gap filling of feature tables using the RT and m/z range of sibling peaks.

For every row of a feature table, runs without a peak are re-scanned inside
the union of the retention-time and m/z ranges covered by the peaks the row
does have.  The most intense point of each scan inside the m/z window becomes
one point of a :class:`SameRangePeak`; scans without signal contribute a zero
intensity point so the chromatogram stays contiguous.  Windows without any
positive signal, and reconstructions integrating to zero area, leave the gap
empty.

The rebuild produces a new table; the input is never modified.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from gapfill_app.engine.audit import describe_parameters, log_step, start_audit
from gapfill_app.engine.feature_table import AppliedMethod, FeatureRow, FeatureTable
from gapfill_app.engine.peaks import ChromatographicPeak, SameRangePeak
from gapfill_app.engine.ranges import Range
from gapfill_app.engine.raw_data import DataPoint, RawRun, Scan, find_base_peak
from gapfill_app.engine.recipe_model import DEFAULT_MS_LEVEL, Recipe

__all__ = [
    "METHOD_DESCRIPTION",
    "TaskStatus",
    "fill_window",
    "GapFiller",
    "TableRebuilder",
    "GapFillingTask",
]

logger = logging.getLogger(__name__)

METHOD_DESCRIPTION = "Gap filling using RT and m/z range"

BasePeakSelector = Callable[[Scan, Range], Optional[DataPoint]]
ProgressCallback = Callable[[int, int], None]


class TaskStatus(Enum):
    WAITING = "waiting"
    PROCESSING = "processing"
    CANCELED = "canceled"
    FINISHED = "finished"
    ERROR = "error"


def _never() -> bool:
    return False


def fill_window(row: FeatureRow) -> Tuple[Optional[Range], Optional[Range]]:
    """Union of the m/z and RT ranges of every peak present in ``row``."""
    mz_range: Optional[Range] = None
    rt_range: Optional[Range] = None
    for peak in row.peaks():
        if mz_range is None:
            mz_range = peak.mz_range.copy()
            rt_range = peak.rt_range.copy()
        else:
            mz_range.extend(peak.mz_range)
            rt_range.extend(peak.rt_range)
    return mz_range, rt_range


class GapFiller:
    def __init__(
        self,
        *,
        ms_level: int = DEFAULT_MS_LEVEL,
        base_peak: BasePeakSelector = find_base_peak,
        should_stop: Callable[[], bool] = _never,
    ):
        self.ms_level = int(ms_level)
        self._base_peak = base_peak
        self._should_stop = should_stop

    def fill(self, row: FeatureRow, run: RawRun) -> Optional[SameRangePeak]:
        mz_range, rt_range = fill_window(row)
        if mz_range is None or rt_range is None:
            logger.debug("Row %s has no peaks to infer a window for %s", row.id, run)
            return None

        peak = SameRangePeak(run)
        data_point_found = False

        for scan_number in run.scan_numbers(self.ms_level, rt_range):
            if self._should_stop():
                return None

            scan = run.get_scan(scan_number)
            base_peak = self._base_peak(scan, mz_range)

            if base_peak is not None and base_peak.intensity > 0:
                data_point_found = True
                peak.add_data_point(scan.scan_number, base_peak, scan.rt)
            else:
                placeholder = DataPoint(mz_range.average(), 0.0)
                peak.add_data_point(scan.scan_number, placeholder, scan.rt)

        if not data_point_found:
            logger.debug(
                "No signal for row %s in %s (m/z %.4f-%.4f, RT %.3f-%.3f)",
                row.id, run, mz_range.low, mz_range.high, rt_range.low, rt_range.high,
            )
            return None

        finalized = peak.finalize()
        if finalized is None:
            logger.debug("Rejected zero-area reconstruction for row %s in %s", row.id, run)
        return finalized


class _Counter:
    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class TableRebuilder:
    """Copy a feature table row by row, filling gaps on the way.

    ``cancel_event`` is polled before every row, every run of a row and every
    scan read by the gap filler.  After a cancellation the returned table only
    holds the rows completed so far and must be discarded by the caller.
    """

    def __init__(
        self,
        suffix: str,
        *,
        ms_level: int = DEFAULT_MS_LEVEL,
        base_peak: BasePeakSelector = find_base_peak,
        cancel_event: threading.Event | None = None,
        workers: int = 1,
        progress_callback: ProgressCallback | None = None,
    ):
        self.suffix = suffix
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.workers = max(1, int(workers))
        self.progress_callback = progress_callback
        self._abort = threading.Event()
        self.gap_filler = GapFiller(ms_level=ms_level, base_peak=base_peak, should_stop=self.should_stop)
        self.total_rows = 0
        self._processed = _Counter()
        self._filled = _Counter()
        self._unfilled = _Counter()

    def should_stop(self) -> bool:
        return self.cancel_event.is_set() or self._abort.is_set()

    @property
    def processed_rows(self) -> int:
        return self._processed.value

    @property
    def filled_gaps(self) -> int:
        return self._filled.value

    @property
    def unfilled_gaps(self) -> int:
        return self._unfilled.value

    @property
    def progress(self) -> float:
        if self.total_rows == 0:
            return 0.0
        return self.processed_rows / self.total_rows

    def rebuild(self, table: FeatureTable) -> FeatureTable:
        self.total_rows = table.row_count()
        self._processed.reset()
        self._filled.reset()
        self._unfilled.reset()
        self._abort.clear()

        runs = table.runs
        output = FeatureTable(f"{table} {self.suffix}", runs)

        if self.workers > 1 and self.total_rows > 1:
            self._rebuild_parallel(table, output)
            return output

        for source_row in table:
            if self.should_stop():
                return output
            new_row = self._rebuild_row(source_row, runs)
            if new_row is None:
                return output
            output.add_row(new_row)
        return output

    def _rebuild_parallel(self, table: FeatureTable, output: FeatureTable) -> None:
        rows = table.rows
        built: List[Optional[FeatureRow]] = [None for _ in rows]
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            future_map = {
                executor.submit(self._rebuild_row, row, table.runs): idx
                for idx, row in enumerate(rows)
            }
            for future in as_completed(future_map):
                idx = future_map[future]
                try:
                    built[idx] = future.result()
                except Exception:
                    self._abort.set()
                    for pending in future_map:
                        pending.cancel()
                    raise
        for new_row in built:
            if new_row is None:
                return
            output.add_row(new_row)

    def _rebuild_row(self, source_row: FeatureRow, runs) -> Optional[FeatureRow]:
        if self.should_stop():
            return None

        new_row = FeatureRow(source_row.id, runs)
        new_row.comment = source_row.comment
        new_row.identities = list(source_row.identities)
        if source_row.preferred_identity is not None:
            new_row.preferred_identity = source_row.preferred_identity

        for run in runs:
            if self.should_stop():
                return None

            current: Optional[ChromatographicPeak] = source_row.peak(run)
            if current is None:
                current = self.gap_filler.fill(source_row, run)
                if self.should_stop():
                    return None
                if current is not None:
                    self._filled.increment()
                else:
                    self._unfilled.increment()

            if current is not None:
                new_row.add_peak(run, current)

        processed = self._processed.increment()
        if self.progress_callback is not None:
            self.progress_callback(processed, self.total_rows)
        return new_row


class GapFillingTask:
    """Status, progress and cancellation around one table rebuild."""

    def __init__(
        self,
        feature_table: FeatureTable,
        recipe: Recipe | Dict[str, Any] | None = None,
        *,
        base_peak: BasePeakSelector = find_base_peak,
        progress_callback: ProgressCallback | None = None,
    ):
        if recipe is None:
            recipe = Recipe()
        elif isinstance(recipe, dict):
            recipe = Recipe.from_dict(recipe)
        self.feature_table = feature_table
        self.recipe = recipe
        self.audit: List[str] = start_audit()
        self.error_message: Optional[str] = None
        self._status = TaskStatus.WAITING
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._result: Optional[FeatureTable] = None

        parallel_enabled, workers = recipe.parallel_settings()
        # invalid recipes are rejected in run(); fall back so construction succeeds
        ms_level = DEFAULT_MS_LEVEL if recipe.validate() else recipe.ms_level
        self.rebuilder = TableRebuilder(
            recipe.suffix,
            ms_level=ms_level,
            base_peak=base_peak,
            cancel_event=self._cancel,
            workers=workers if parallel_enabled else 1,
            progress_callback=progress_callback,
        )

    @property
    def status(self) -> TaskStatus:
        with self._lock:
            return self._status

    @property
    def result(self) -> Optional[FeatureTable]:
        return self._result

    @property
    def processed_rows(self) -> int:
        return self.rebuilder.processed_rows

    @property
    def total_rows(self) -> int:
        return self.rebuilder.total_rows

    def finished_percentage(self) -> float:
        return self.rebuilder.progress

    def task_description(self) -> str:
        return f"Gap filling {self.feature_table} using RT and m/z range"

    def applied_method(self) -> AppliedMethod:
        parameters = dict(self.recipe.params)
        parameters["suffix"] = self.recipe.suffix
        parameters["ms_level"] = self.rebuilder.gap_filler.ms_level
        return AppliedMethod(METHOD_DESCRIPTION, parameters)

    def created_objects(self) -> List[FeatureTable]:
        if self._result is None:
            return []
        return [self._result]

    def cancel(self) -> None:
        with self._lock:
            if self._status in (TaskStatus.FINISHED, TaskStatus.ERROR, TaskStatus.CANCELED):
                return
            self._cancel.set()
            self._status = TaskStatus.CANCELED
        logger.info("Cancellation requested for gap-filling %s", self.feature_table)

    def _fail(self, message: str) -> None:
        with self._lock:
            self._status = TaskStatus.ERROR
            self.error_message = message
        log_step(self.audit, f"Error: {message}")

    def run(self) -> Optional[FeatureTable]:
        with self._lock:
            if self._status is not TaskStatus.WAITING:
                return None
            self._status = TaskStatus.PROCESSING

        errs = self.recipe.validate()
        if errs:
            message = "; ".join(errs)
            logger.error("Invalid gap-filling parameters: %s", message)
            self._fail(message)
            return None

        logger.info("Started gap-filling %s", self.feature_table)
        log_step(
            self.audit,
            f"{METHOD_DESCRIPTION}: {self.feature_table} ({describe_parameters(self.applied_method().parameters)})",
        )

        try:
            output = self.rebuilder.rebuild(self.feature_table)
        except Exception as exc:
            message = f"{type(exc).__name__}: {exc}"
            logger.exception("Gap-filling %s failed", self.feature_table)
            if self._cancel.is_set():
                log_step(self.audit, f"Canceled; rebuild raised {message}")
                return None
            self._fail(message)
            return None

        with self._lock:
            if self._cancel.is_set():
                self._status = TaskStatus.CANCELED
            else:
                self._result = output
                self._status = TaskStatus.FINISHED

        if self._result is None:
            log_step(
                self.audit,
                f"Canceled after {self.processed_rows} of {self.total_rows} rows",
            )
            logger.info("Gap-filling %s canceled", self.feature_table)
            return None

        log_step(
            self.audit,
            f"Filled {self.rebuilder.filled_gaps} of "
            f"{self.rebuilder.filled_gaps + self.rebuilder.unfilled_gaps} gaps in {self.total_rows} rows",
        )
        logger.info(
            "Finished gap-filling %s: %d gaps filled, %d left empty",
            self.feature_table,
            self.rebuilder.filled_gaps,
            self.rebuilder.unfilled_gaps,
        )
        return output
