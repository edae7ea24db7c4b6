#!/usr/bin/env python3
"""Fill gaps of an aligned feature table from long-format raw scan exports."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from gapfill_app.engine.gap_filling import GapFillingTask, TaskStatus
from gapfill_app.engine.recipe_model import Recipe, load_recipe
from gapfill_app.engine.run_comparison import gap_fill_summary
from gapfill_app.engine.table_export import write_feature_output
from gapfill_app.io.feature_csv import read_feature_table
from gapfill_app.io.scan_table import read_raw_runs

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--features", required=True, type=Path, help="Feature table, one detected peak per line")
    ap.add_argument("--scans", required=True, type=Path, help="Raw scans, one centroid per line")
    ap.add_argument("--recipe", type=Path, default=None, help="YAML recipe with gap-filling parameters")
    ap.add_argument("--suffix", default=None, help="Suffix appended to the output table name")
    ap.add_argument("--workers", type=int, default=None, help="Fill rows on this many threads")
    ap.add_argument("--out", type=Path, default=None, help="Output .csv or .xlsx (default: <features>_<suffix>.csv)")
    ap.add_argument("--verbose", action="store_true")
    return ap


def resolve_recipe(args: argparse.Namespace) -> Recipe:
    recipe = load_recipe(args.recipe) if args.recipe else Recipe()
    params = dict(recipe.params)
    if args.suffix is not None:
        params["suffix"] = args.suffix
    if args.workers is not None:
        params["parallel"] = {"enabled": args.workers > 1, "workers": args.workers}
    return Recipe(module=recipe.module, params=params, version=recipe.version)


def format_summary(summary: dict) -> List[str]:
    lines = []
    for run_name, counts in summary.items():
        lines.append(f"{run_name}: filled {counts['filled']} of {counts['gaps']} gaps")
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    try:
        recipe = resolve_recipe(args)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read recipe: %s", exc)
        return 1
    errs = recipe.validate()
    if errs:
        for err in errs:
            logger.error("Invalid recipe: %s", err)
        return 1

    try:
        raw_runs = read_raw_runs(args.scans)
        table = read_feature_table(args.features, raw_runs)
    except (OSError, ValueError) as exc:
        logger.error("Cannot load input: %s", exc)
        return 1

    task = GapFillingTask(table, recipe)
    result = task.run()
    if task.status is not TaskStatus.FINISHED or result is None:
        logger.error("Gap filling did not finish: %s", task.error_message or task.status.value)
        return 1
    result.add_applied_method(task.applied_method())

    out_path = args.out or args.features.with_name(f"{args.features.stem}_{recipe.suffix}.csv")
    write_feature_output(result, out_path)
    logger.info("Wrote %s to %s", result, out_path)
    for line in format_summary(gap_fill_summary(table, result)):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
