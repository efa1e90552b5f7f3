"""
Line, character and file counts for the selection.
"""

import logging
from dataclasses import dataclass

from . import paths
from .ranges import covered_lines, merge_ranges
from .report import Report, read_text
from .resolver import ExclusionResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stats:
    lines: int = 0
    chars: int = 0
    files: int | None = None

    def __add__(self, other: "Stats") -> "Stats":
        return Stats(
            self.lines + other.lines,
            self.chars + other.chars,
            (self.files or 0) + (other.files or 0),
        )

    def to_dict(self) -> dict:
        data = {"lines": self.lines, "chars": self.chars}
        if self.files is not None:
            data["files"] = self.files
        return data


class StatsAggregator:
    """
    Counts per file (whole or partial) and per folder. Results are memoized
    until `invalidate()`, which the owner calls on every refresh.
    """

    def __init__(self, resolver: ExclusionResolver):
        self.resolver = resolver
        self._line_lengths: dict[str, tuple[list[int], int]] = {}
        self._folder_cache: dict[str, Stats] = {}

    def invalidate(self) -> None:
        self._line_lengths.clear()
        self._folder_cache.clear()

    def _read(self, path: str) -> tuple[list[int], int]:
        cached = self._line_lengths.get(path)
        if cached is None:
            try:
                text = read_text(path)
            except OSError as e:
                logger.debug("Counting %s as empty: %s", path, e)
                cached = ([], 0)
            else:
                cached = ([len(line) for line in text.split("\n")], len(text))
            self._line_lengths[path] = cached
        return cached

    def line_count(self, path: str) -> int:
        return len(self._read(path)[0])

    def file_stats(self, path: str) -> Stats:
        lengths, total_chars = self._read(path)
        ranges = self.resolver.overrides.partials.get(path)
        if not ranges:
            return Stats(len(lengths), total_chars)
        lines = chars = 0
        for i in covered_lines(merge_ranges(ranges), len(lengths)):
            lines += 1
            chars += lengths[i] + 1
        return Stats(lines, chars)

    def folder_stats(self, dir_path: str) -> Stats:
        key = paths.dir_key(dir_path)
        cached = self._folder_cache.get(key)
        if cached is not None:
            return cached
        total = Stats(files=0)
        for _, full, isdir in paths.scan_dir(dir_path):
            if self.resolver.visually_excluded(full):
                continue
            if isdir:
                total = total + self.folder_stats(full)
            else:
                s = self.file_stats(full)
                total = total + Stats(s.lines, s.chars, 1)
        self._folder_cache[key] = total
        return total

    @staticmethod
    def workspace_stats(report: Report) -> Stats:
        """Exact counts of the generated report text."""
        return Stats(len(report.text.split("\n")), len(report.text), len(report.files))
