"""
Manual overrides and their per-project persistence.
"""

import json
import logging
import os
import threading
from pathlib import Path

from . import paths
from .ranges import LineRange, merge_ranges

logger = logging.getLogger(__name__)

SESSION_STATE_KEY = "repotxt.sessionState"


class SessionStore:
    """
    Small key-value store scoped per project, backed by one JSON file.

    Writes are best effort: a failed write is logged and otherwise ignored.
    With `path=None` the store only lives in memory.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._lock = threading.Lock()
        self._data = self._read()

    def _read(self) -> dict:
        if self.path is None or not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session store %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, project: str, key: str, default=None):
        with self._lock:
            scope = self._data.get(project)
            if not isinstance(scope, dict):
                return default
            return scope.get(key, default)

    def update(self, project: str, key: str, value) -> None:
        with self._lock:
            self._data.setdefault(project, {})[key] = value
            self._write()

    def _write(self) -> None:
        if self.path is None:
            return
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not persist session state to %s: %s", self.path, e)


class ManualOverrides:
    """
    The user's decisions: manual includes, manual excludes and partial line
    selections. A path key is never in both includes and excludes.
    """

    def __init__(self):
        self.includes: set[str] = set()
        self.excludes: set[str] = set()
        self.partials: dict[str, list[LineRange]] = {}

    def clear(self) -> None:
        self.includes.clear()
        self.excludes.clear()
        self.partials.clear()

    def set_rule(self, path: str, include: bool) -> None:
        """
        Record a manual rule on `path`. For a directory, conflicting rules on
        its descendants in the opposite set are purged.
        """
        key = paths.key_for(path)
        paths.discard(key, self.includes)
        paths.discard(key, self.excludes)
        target, opposite = (self.includes, self.excludes) if include else (self.excludes, self.includes)
        target.add(key)
        if key.endswith(paths.SEP):
            for p in [p for p in opposite if p.startswith(key)]:
                opposite.discard(p)

    def ranges(self, path: str) -> list[LineRange]:
        return list(self.partials.get(path, ()))

    def set_ranges(self, path: str, ranges) -> None:
        merged = merge_ranges(ranges)
        if merged:
            self.partials[path] = merged
        else:
            self.partials.pop(path, None)

    def to_state(self) -> dict:
        return {
            "includes": sorted(self.includes),
            "excludes": sorted(self.excludes),
            "partialIncludes": {
                p: [r.to_dict() for r in ranges] for p, ranges in sorted(self.partials.items())
            },
        }

    @classmethod
    def from_state(cls, state) -> "ManualOverrides":
        overrides = cls()
        if not isinstance(state, dict):
            return overrides
        overrides.includes = {p for p in state.get("includes") or () if isinstance(p, str)}
        overrides.excludes = {p for p in state.get("excludes") or () if isinstance(p, str)}
        # Includes win if a stale state holds the same key twice.
        overrides.excludes -= overrides.includes
        for p, raw_ranges in (state.get("partialIncludes") or {}).items():
            try:
                ranges = [LineRange.from_dict(r) for r in raw_ranges]
            except (TypeError, ValueError) as e:
                logger.warning("Dropping invalid stored ranges for %s: %s", p, e)
                continue
            overrides.set_ranges(p, ranges)
        return overrides
