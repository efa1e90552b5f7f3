"""
Exclusion verdicts for a path.

The effective verdict is what goes into the report: the nearest manual rule
on the path or an ancestor wins (an include and an exclude on the same path
cannot coexist), otherwise the nearest auto-excluded ancestor excludes.

The visual verdict keeps a node reachable in the tree: a directory holding a
manual include or a partial selection below it is shown, and a partially
selected file is always shown.
"""

import logging

from . import paths
from .session import ManualOverrides

logger = logging.getLogger(__name__)


class ExclusionResolver:
    def __init__(self, overrides: ManualOverrides, auto_excludes: set[str] | None = None):
        self.overrides = overrides
        self.auto_excludes: set[str] = auto_excludes if auto_excludes is not None else set()
        self._has_includes_cache: dict[str, bool] = {}
        self._has_partial_cache: dict[str, bool] = {}

    def invalidate(self) -> None:
        self._has_includes_cache.clear()
        self._has_partial_cache.clear()

    def manual_rule(self, path: str) -> bool | None:
        """True/False for the nearest manual exclude/include, None when there is none."""
        includes, excludes = self.overrides.includes, self.overrides.excludes
        for p in paths.ancestors(path):
            if paths.in_set(p, includes):
                return False
            if paths.in_set(p, excludes):
                return True
        return None

    def auto_excluded(self, path: str) -> bool:
        return any(paths.in_set(p, self.auto_excludes) for p in paths.ancestors(path))

    def effectively_excluded(self, path: str) -> bool:
        rule = self.manual_rule(path)
        if rule is not None:
            return rule
        return self.auto_excluded(path)

    def has_partial(self, path: str) -> bool:
        return bool(self.overrides.partials.get(path.rstrip(paths.SEP)))

    def has_included_descendants(self, dir_path: str) -> bool:
        return self._scan_below(dir_path, self.overrides.includes, self._has_includes_cache)

    def has_partial_descendants(self, dir_path: str) -> bool:
        return self._scan_below(dir_path, self.overrides.partials, self._has_partial_cache)

    def has_overrides_below(self, dir_path: str) -> bool:
        return self.has_included_descendants(dir_path) or self.has_partial_descendants(dir_path)

    def _scan_below(self, dir_path, keys, cache) -> bool:
        prefix = paths.dir_key(dir_path)
        hit = cache.get(prefix)
        if hit is None:
            hit = any(k.startswith(prefix) and k != prefix for k in keys)
            cache[prefix] = hit
        return hit

    def visually_excluded(self, path: str) -> bool:
        if self.has_partial(path):
            return False
        if not self.effectively_excluded(path):
            return False
        if paths.is_dir(path) and self.has_overrides_below(path):
            return False
        return True
