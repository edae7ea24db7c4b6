from __future__ import annotations

import csv
import os
import re
from pathlib import Path
from typing import Dict, Iterable

import pandas as pd


def sniff_locale(sample: str) -> Dict[str, str]:
    """Guess delimiter and decimal separator of an exported peak/scan table.

    Vendor exports written on European locales use decimal commas with a
    semicolon or tab delimiter; everything else is plain CSV.
    """

    if not sample:
        return {"decimal": ".", "delimiter": ","}

    lines = [ln for ln in sample.splitlines() if ln.strip()]
    trimmed = "\n".join(lines)

    comma_decimals = len(re.findall(r"\d,\d", trimmed))
    dot_decimals = len(re.findall(r"\d\.\d", trimmed))
    decimal = "," if comma_decimals > dot_decimals else "."

    delimiter = None
    try:
        delimiter = csv.Sniffer().sniff(trimmed, delimiters=",;\t").delimiter
    except (csv.Error, ValueError):
        pass

    if not delimiter:
        counts = {sep: trimmed.count(sep) for sep in (";", "\t", ",")}
        if decimal == ",":
            counts[","] = max(0, counts[","] - comma_decimals)
        delimiter = max(counts, key=counts.get)
        if counts[delimiter] == 0:
            delimiter = ","

    if delimiter == "," and decimal == ",":
        if ";" in trimmed:
            delimiter = ";"
        elif "\t" in trimmed:
            delimiter = "\t"
        else:
            decimal = "."

    return {"decimal": decimal, "delimiter": delimiter}


def read_table(path: str | os.PathLike[str], required: Iterable[str]) -> pd.DataFrame:
    """Read a delimited text table and check it carries ``required`` columns."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Table not found at: {path}")
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        sample = handle.read(8192)
    fmt = sniff_locale(sample)
    frame = pd.read_csv(path, sep=fmt["delimiter"], decimal=fmt["decimal"])
    frame.columns = [str(col).strip().lower() for col in frame.columns]
    missing = [col for col in required if col not in frame.columns]
    if missing:
        raise ValueError(f"{path.name} is missing required columns: {', '.join(missing)}")
    return frame
