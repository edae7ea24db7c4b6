from typing import Dict, List, Optional

from PyQt6.QtCore import QSettings

from gapfill_app.engine.feature_table import AppliedMethod, FeatureTable


class AppContext:
    def __init__(self, settings: Optional[QSettings] = None):
        # Company/app keys control where QSettings persists per OS
        self.settings = settings if settings is not None else QSettings("GapFillLab", "GapFillApp")
        self.feature_tables: List[FeatureTable] = []
        self.audits: Dict[str, List[str]] = {}
        self._job_running = False

    def add_feature_table(
        self,
        table: FeatureTable,
        method: Optional[AppliedMethod] = None,
        audit: Optional[List[str]] = None,
    ):
        if method is not None:
            table.add_applied_method(method)
            suffix = method.parameters.get("suffix")
            if suffix:
                self.settings.setValue("gapfill/last_suffix", str(suffix))
        if audit is not None:
            self.audits[table.name] = list(audit)
        self.feature_tables.append(table)

    def find_feature_table(self, name: str) -> Optional[FeatureTable]:
        for table in self.feature_tables:
            if table.name == name:
                return table
        return None

    def last_suffix(self, default: str = "gap-filled") -> str:
        value = self.settings.value("gapfill/last_suffix", default)
        return str(value) if value else default

    def set_job_running(self, running: bool):
        self._job_running = running

    def is_job_running(self) -> bool:
        return self._job_running

    def maybe_close(self) -> bool:
        return not self._job_running
