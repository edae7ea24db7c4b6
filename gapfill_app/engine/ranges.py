from __future__ import annotations

import math


class Range:
    """Closed interval over a numeric axis (retention time or m/z)."""

    __slots__ = ("low", "high")

    def __init__(self, low: float, high: float | None = None):
        if high is None:
            high = low
        low = float(low)
        high = float(high)
        if not (math.isfinite(low) and math.isfinite(high)):
            raise ValueError(f"Range bounds must be finite, got {low} and {high}")
        if low > high:
            raise ValueError(f"Range low bound {low} exceeds high bound {high}")
        self.low = low
        self.high = high

    @classmethod
    def from_value(cls, value: float) -> "Range":
        return cls(value, value)

    def copy(self) -> "Range":
        return Range(self.low, self.high)

    def extend(self, other: "Range") -> "Range":
        """Grow in place to the union with ``other`` and return ``self``."""
        self.low = min(self.low, other.low)
        self.high = max(self.high, other.high)
        return self

    def extend_value(self, value: float) -> "Range":
        self.low = min(self.low, float(value))
        self.high = max(self.high, float(value))
        return self

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high

    def average(self) -> float:
        return (self.low + self.high) / 2.0

    def size(self) -> float:
        return self.high - self.low

    def as_tuple(self) -> tuple[float, float]:
        return (self.low, self.high)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Range):
            return NotImplemented
        return self.low == other.low and self.high == other.high

    def __hash__(self) -> int:
        return hash((self.low, self.high))

    def __repr__(self) -> str:
        return f"Range({self.low!r}, {self.high!r})"


def union(ranges) -> Range | None:
    """Return a new range covering every range in ``ranges`` or ``None``."""
    merged: Range | None = None
    for item in ranges:
        if item is None:
            continue
        if merged is None:
            merged = item.copy()
        else:
            merged.extend(item)
    return merged
