"""
Line-range algebra for partial selections.

Ranges are 1-based and inclusive. A stored selection is always normalized:
sorted by start, with overlapping and adjacent ranges merged.
"""

from typing import Iterable, NamedTuple


class LineRange(NamedTuple):
    start: int
    end: int

    @classmethod
    def from_dict(cls, data) -> "LineRange":
        if not isinstance(data, dict):
            raise ValueError(f"range must be an object with start/end, got {data!r}")
        start, end = data.get("start"), data.get("end")
        if isinstance(start, bool) or isinstance(end, bool) or not isinstance(start, int) or not isinstance(end, int):
            raise ValueError(f"range bounds must be integers, got {data!r}")
        if start < 1 or end < start:
            raise ValueError(f"invalid range {start}-{end}")
        return cls(start, end)

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


def merge_ranges(ranges: Iterable[LineRange]) -> list[LineRange]:
    merged: list[LineRange] = []
    for r in sorted(ranges):
        if merged and r.start <= merged[-1].end + 1:
            last = merged[-1]
            merged[-1] = LineRange(last.start, max(last.end, r.end))
        else:
            merged.append(LineRange(r.start, r.end))
    return merged


def subtract_range(r: LineRange, s: LineRange) -> list[LineRange]:
    """Remove `s` from `r`, leaving zero, one or two pieces."""
    if s.end < r.start or s.start > r.end:
        return [r]
    if s.start <= r.start and s.end >= r.end:
        return []
    if s.start > r.start and s.end < r.end:
        return [LineRange(r.start, s.start - 1), LineRange(s.end + 1, r.end)]
    if s.start <= r.start:
        return [LineRange(s.end + 1, r.end)]
    return [LineRange(r.start, s.start - 1)]


def subtract_ranges(existing: Iterable[LineRange], selections: Iterable[LineRange]) -> list[LineRange]:
    remaining = list(existing)
    for s in selections:
        remaining = [piece for r in remaining for piece in subtract_range(r, s)]
    return merge_ranges(remaining)


def clamp_ranges(ranges: Iterable[LineRange], line_count: int) -> list[LineRange]:
    """Drop ranges starting past `line_count` and cut the rest down to it."""
    return [LineRange(r.start, min(r.end, line_count)) for r in ranges if r.start <= line_count]


def format_ranges(ranges: Iterable[LineRange]) -> str:
    return ", ".join(str(r) for r in ranges)


def covered_lines(ranges: Iterable[LineRange], line_count: int):
    """Yield the 0-based line indexes covered by normalized `ranges`, within the file."""
    for r in ranges:
        yield from range(r.start - 1, min(r.end, line_count))
