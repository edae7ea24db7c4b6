from PyQt6.QtCore import QObject, pyqtSignal, QThreadPool, QRunnable
from typing import Optional

from gapfill_app.engine.feature_table import FeatureTable
from gapfill_app.engine.gap_filling import GapFillingTask, TaskStatus
from gapfill_app.engine.recipe_model import Recipe

class JobSignals(QObject):
    progress = pyqtSignal(int)
    message = pyqtSignal(str)
    finished = pyqtSignal(object)  # FeatureTable, Exception, or None when cancelled

class GapFillRunnable(QRunnable):
    def __init__(self, feature_table: FeatureTable, recipe: Recipe):
        super().__init__()
        self.signals = JobSignals()
        self.task = GapFillingTask(feature_table, recipe, progress_callback=self._on_row)
        self._last_percent = -1

    def run(self):
        self._emit_message(self.task.task_description())
        self.signals.progress.emit(0)
        result = self.task.run()
        status = self.task.status
        if status is TaskStatus.FINISHED:
            self.signals.progress.emit(100)
            self._emit_message("Gap filling finished")
            self.signals.finished.emit(result)
        elif status is TaskStatus.ERROR:
            self._emit_message(f"Error: {self.task.error_message}")
            self.signals.finished.emit(RuntimeError(self.task.error_message))
        else:
            self._emit_message("Job cancelled.")
            self.signals.finished.emit(None)

    def cancel(self):
        self.task.cancel()
        self._emit_message("Cancellation requested")

    def _on_row(self, processed: int, total: int):
        percent = int(100 * processed / total) if total else 0
        if percent != self._last_percent:
            self._last_percent = percent
            self.signals.progress.emit(percent)

    def _emit_message(self, message: str):
        self.signals.message.emit(message)

class RunController(QObject):
    job_started = pyqtSignal()
    job_finished = pyqtSignal(object)
    job_progress = pyqtSignal(int)
    job_message = pyqtSignal(str)

    def __init__(self, appctx=None, parent=None):
        super().__init__(parent)
        self.appctx = appctx
        self.pool = QThreadPool.globalInstance()
        self._current_runnable: Optional[GapFillRunnable] = None

    def start(self, feature_table: FeatureTable, recipe: Recipe) -> GapFillRunnable:
        runnable = GapFillRunnable(feature_table, recipe)
        runnable.setAutoDelete(False)
        runnable.signals.finished.connect(self._on_finished)
        runnable.signals.progress.connect(self.job_progress)
        runnable.signals.message.connect(self.job_message)
        self._current_runnable = runnable
        if self.appctx is not None:
            self.appctx.set_job_running(True)
        self.job_started.emit()
        self.pool.start(runnable)
        return runnable

    def cancel(self) -> bool:
        if self._current_runnable is None:
            return False
        self._current_runnable.cancel()
        return True

    def _on_finished(self, result):
        runnable = self._current_runnable
        self._current_runnable = None
        if self.appctx is not None:
            self.appctx.set_job_running(False)
            if isinstance(result, FeatureTable) and runnable is not None:
                self.appctx.add_feature_table(result, runnable.task.applied_method(), runnable.task.audit)
        self.job_finished.emit(result)

    def is_running(self) -> bool:
        return self._current_runnable is not None
