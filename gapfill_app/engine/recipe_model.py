from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_SUFFIX = "gap-filled"
DEFAULT_MS_LEVEL = 1


def default_parallel_workers() -> int:
    return max(1, min(4, os.cpu_count() or 1))


@dataclass
class Recipe:
    module: str = "samerange"
    params: Dict[str, Any] = field(default_factory=dict)
    version: str = "0.1.0"

    @property
    def suffix(self) -> str:
        value = self.params.get("suffix", DEFAULT_SUFFIX)
        return DEFAULT_SUFFIX if value is None else str(value)

    @property
    def ms_level(self) -> int:
        return int(self.params.get("ms_level", DEFAULT_MS_LEVEL))

    def parallel_settings(self) -> tuple[bool, int]:
        parallel_cfg = self.params.get("parallel")
        if not isinstance(parallel_cfg, dict):
            parallel_cfg = {}
        enabled = bool(parallel_cfg.get("enabled", False))
        workers_value = parallel_cfg.get("workers")
        try:
            workers = int(workers_value) if workers_value is not None else default_parallel_workers()
        except (TypeError, ValueError):
            workers = default_parallel_workers()
        if workers < 1:
            workers = default_parallel_workers()
        return enabled, workers

    def validate(self) -> list[str]:
        errs = []
        suffix = self.params.get("suffix", DEFAULT_SUFFIX)
        if not isinstance(suffix, str) or not suffix.strip():
            errs.append("Name suffix must be a non-empty string")

        ms_level = self.params.get("ms_level", DEFAULT_MS_LEVEL)
        try:
            if isinstance(ms_level, bool) or int(ms_level) != float(ms_level) or int(ms_level) < 1:
                errs.append("MS level must be a positive integer")
        except (TypeError, ValueError):
            errs.append("MS level must be a positive integer")

        parallel_cfg = self.params.get("parallel", {})
        if parallel_cfg is not None and not isinstance(parallel_cfg, dict):
            errs.append("Parallel settings must be a mapping with enabled/workers")
        elif parallel_cfg:
            workers = parallel_cfg.get("workers")
            if workers is not None:
                try:
                    if int(workers) < 1:
                        errs.append("Parallel worker count must be at least 1")
                except (TypeError, ValueError):
                    errs.append("Parallel worker count must be numeric")
        return errs

    def to_dict(self) -> Dict[str, Any]:
        return {"module": self.module, "version": self.version, "params": dict(self.params)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recipe":
        if not isinstance(data, dict):
            raise ValueError("Recipe must be a mapping")
        params = data.get("params")
        if params is None:
            params = {k: v for k, v in data.items() if k not in {"module", "version"}}
        return cls(
            module=str(data.get("module", "samerange")),
            params=dict(params),
            version=str(data.get("version", "0.1.0")),
        )


def load_recipe(path: str | os.PathLike[str]) -> Recipe:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Recipe file not found at: {path}")
    with path.open("r", encoding="utf-8") as handle:
        content = yaml.safe_load(handle) or {}
    return Recipe.from_dict(content)


def save_recipe(recipe: Recipe, path: str | os.PathLike[str]) -> Path:
    path = Path(path)
    if path.suffix.lower() not in {".yaml", ".yml"}:
        path = path.with_suffix(".yaml")
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(recipe.to_dict(), handle, sort_keys=False)
    return path
