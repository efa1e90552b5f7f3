"""
RepoCore: the resolution context shared by every reader.

It owns the rule sets, the partial selections and all caches, and funnels
every mutation (toggles, range edits, reset, configuration and file events)
through one lock so the include/exclude sets stay disjoint and caches never
outlive the state they were computed from.
"""

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path

from . import paths
from .patterns import build_auto_excludes
from .ranges import LineRange, clamp_ranges, subtract_ranges
from .report import NO_WORKSPACE_MESSAGE, Report, ReportGenerator
from .resolver import ExclusionResolver
from .session import SESSION_STATE_KEY, ManualOverrides, SessionStore
from .settings import DEFAULT_DEBOUNCE_MS, Settings, load_settings, settings_path_for
from .stats import Stats, StatsAggregator

logger = logging.getLogger(__name__)

FILE_EVENT_KINDS = ("create", "change", "delete")


class RepoCore:
    def __init__(
        self,
        root=None,
        store: SessionStore | None = None,
        settings: Settings | None = None,
        settings_path: Path | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_MS / 1000,
    ):
        self._lock = threading.RLock()
        self.store = store if store is not None else SessionStore()
        self._settings_path_arg = settings_path
        self.settings_path = settings_path
        self._fixed_settings = settings is not None
        self.settings = settings if settings is not None else Settings()
        self.debounce_seconds = debounce_seconds

        self.root: str | None = None
        self.overrides = ManualOverrides()
        self.resolver = ExclusionResolver(self.overrides)
        self.stats = StatsAggregator(self.resolver)
        self._report: Report | None = None

        self.revision = 0
        self._listeners = []
        self._depth = 0
        self._changed = False
        self._timer: threading.Timer | None = None
        self._pending = 0

        if root is not None:
            self.open_workspace(root)

    # ------------------------------------------------------------------
    # Workspace lifecycle
    # ------------------------------------------------------------------
    def open_workspace(self, root) -> None:
        with self._locked():
            self._cancel_timer()
            self.root = paths.normalize(root)
            self.settings_path = self._settings_path_arg or settings_path_for(Path(self.root))
            if not self._fixed_settings:
                self.settings = load_settings(self.settings_path)
            self._load_state()
            logger.info("Opened workspace %s", self.root)
            self._rebuild_auto_excludes()
            self.refresh()

    def close_workspace(self) -> None:
        with self._locked():
            self._cancel_timer()
            if self.root is not None:
                logger.info("Closed workspace %s", self.root)
            self.root = None
            self.overrides.clear()
            self.resolver.auto_excludes = set()
            self.refresh()

    def dispose(self) -> None:
        with self._locked():
            self._cancel_timer()
            self._listeners.clear()

    def _load_state(self) -> None:
        state = self.store.get(self.root, SESSION_STATE_KEY)
        loaded = ManualOverrides.from_state(state)
        self.overrides.includes = loaded.includes
        self.overrides.excludes = loaded.excludes
        self.overrides.partials = loaded.partials

    def _save_state(self) -> None:
        if self.root is not None:
            self.store.update(self.root, SESSION_STATE_KEY, self.overrides.to_state())

    def state(self) -> dict:
        with self._locked():
            data = self.overrides.to_state()
            data["revision"] = self.revision
            return data

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------
    @contextmanager
    def _locked(self):
        """
        Hold the state lock. Listeners queued by `refresh()` run once the
        outermost holder has released it, one call per batch of refreshes.
        """
        with self._lock:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                listeners = []
                if self._depth == 0 and self._changed:
                    self._changed = False
                    listeners = list(self._listeners)
        for callback in listeners:
            callback()

    def on_did_change(self, callback):
        """
        Register `callback()` to run after a refresh; returns an unsubscribe
        callable. Callbacks run without the state lock held.
        """
        with self._locked():
            self._listeners.append(callback)

        def unsubscribe():
            with self._locked():
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def refresh(self) -> None:
        with self._locked():
            self.resolver.invalidate()
            self.stats.invalidate()
            self._report = None
            self.revision += 1
            self._changed = True

    def _rebuild_auto_excludes(self) -> None:
        if self.root is None:
            return
        self.resolver.auto_excludes = build_auto_excludes(Path(self.root), self.settings)
        logger.info("Auto-excluded %d paths in %s", len(self.resolver.auto_excludes), self.root)

    def rebuild(self) -> None:
        """Recompute the auto-exclusion set and refresh."""
        with self._locked():
            self._rebuild_auto_excludes()
            self.refresh()

    # ------------------------------------------------------------------
    # Configuration and file-system events
    # ------------------------------------------------------------------
    def update_settings(self, data: dict) -> Settings:
        with self._locked():
            self.settings = self.settings.updated(data)
            self.rebuild()
            return self.settings

    def reload_settings(self) -> None:
        with self._locked():
            self.settings = load_settings(self.settings_path)
            self.rebuild()

    def notify_file_event(self, kind: str, path) -> None:
        if kind not in FILE_EVENT_KINDS:
            raise ValueError(f"unknown file event {kind!r}")
        with self._locked():
            if self.root is None:
                return
            target = paths.normalize(path, self.root)
            self.stats.invalidate()
            self._report = None
            if self._validate_ranges(target):
                self._save_state()
                self.refresh()
            if self.settings_path is not None and target == paths.normalize(self.settings_path):
                if not self._fixed_settings:
                    self.reload_settings()
                    return
            self._schedule_rebuild()

    def _validate_ranges(self, target: str) -> bool:
        prefix = paths.dir_key(target)
        changed = False
        for p in [p for p in self.overrides.partials if p == target or p.startswith(prefix)]:
            current = self.overrides.partials[p]
            clamped = clamp_ranges(current, self.stats.line_count(p))
            if clamped != current:
                logger.debug("Clamped ranges of %s to %s", p, clamped)
                self.overrides.set_ranges(p, clamped)
                changed = True
        return changed

    def _schedule_rebuild(self) -> None:
        self._cancel_timer()
        self._pending += 1
        timer = threading.Timer(self.debounce_seconds, self._run_scheduled, args=(self._pending,))
        timer.daemon = True
        self._timer = timer
        timer.start()
        logger.debug("Scheduled rebuild #%d in %.3fs", self._pending, self.debounce_seconds)

    def _run_scheduled(self, generation: int) -> None:
        with self._locked():
            if self._timer is None or generation != self._pending:
                return
            self._timer = None
            if self.root is not None:
                self.rebuild()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def rebuild_pending(self) -> bool:
        return self._timer is not None

    def flush(self) -> None:
        """Run a pending debounced rebuild now."""
        with self._locked():
            if self._timer is None:
                return
            self._cancel_timer()
            self.rebuild()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def _path(self, path) -> str:
        full = paths.normalize(path, self.root)
        if not paths.is_relative_to(full, self.root):
            raise ValueError(f"{path} is outside the workspace")
        return full

    def effectively_excluded(self, path) -> bool:
        with self._locked():
            if self.root is None:
                return False
            return self.resolver.effectively_excluded(paths.normalize(path, self.root))

    def visually_excluded(self, path) -> bool:
        with self._locked():
            if self.root is None:
                return False
            return self.resolver.visually_excluded(paths.normalize(path, self.root))

    def has_partial(self, path) -> bool:
        with self._locked():
            if self.root is None:
                return False
            return self.resolver.has_partial(paths.normalize(path, self.root))

    def get_ranges(self, path) -> list[LineRange]:
        with self._locked():
            if self.root is None:
                return []
            return self.overrides.ranges(paths.normalize(path, self.root))

    def node_states(self, items) -> list[dict]:
        with self._locked():
            return [{"path": p, "excluded": self.visually_excluded(p)} for p in items]

    def list_children(self, dir_path=None, offset: int = 0, limit: int = 500) -> dict:
        """Immediate children of a directory with their verdicts. Paginated."""
        with self._locked():
            if self.root is None:
                return {"children": [], "offset": offset, "limit": limit, "total": 0, "has_more": False}
            base = self._path(dir_path) if dir_path else self.root
            entries = paths.scan_dir(base, dirs_first=True)
            items = []
            for name, full, isdir in entries[offset : offset + limit]:
                node = {
                    "name": name,
                    "path": paths.relative_posix(full, self.root),
                    "fullPath": full,
                    "isDirectory": isdir,
                    "excluded": self.resolver.visually_excluded(full),
                    "partial": self.resolver.has_partial(full),
                }
                if isdir:
                    node["hasChildren"] = bool(paths.scan_dir(full))
                else:
                    try:
                        node["size"] = os.stat(full, follow_symlinks=False).st_size
                    except OSError:
                        node["size"] = 0
                items.append(node)
            total = len(entries)
            return {
                "children": items,
                "offset": offset,
                "limit": limit,
                "total": total,
                "has_more": (offset + limit) < total,
            }

    # ------------------------------------------------------------------
    # Manual overrides
    # ------------------------------------------------------------------
    def _toggle(self, full: str) -> None:
        excluded = self.resolver.effectively_excluded(full)
        self.overrides.set_rule(full, include=excluded)

    def toggle_exclude(self, path) -> None:
        with self._locked():
            if self.root is None:
                return
            self._toggle(self._path(path))
            self._save_state()
            self.refresh()

    def toggle_exclude_multiple(self, items) -> None:
        with self._locked():
            if self.root is None:
                return
            targets = [self._path(p) for p in items]
            for full in targets:
                self._toggle(full)
            self._save_state()
            self.refresh()

    def reset_exclusions(self) -> None:
        with self._locked():
            if self.root is None:
                return
            self.overrides.clear()
            self._save_state()
            logger.info("Manual exclusions have been reset for %s", self.root)
            self.refresh()

    def _file_path(self, path) -> str:
        full = self._path(path)
        if paths.is_dir(full):
            raise ValueError(f"{path} is a directory; line ranges apply to files")
        return full

    def add_ranges(self, path, selections) -> list[LineRange]:
        with self._locked():
            if self.root is None:
                return []
            full = self._file_path(path)
            self.overrides.set_ranges(full, self.overrides.ranges(full) + list(selections))
            self._save_state()
            self.refresh()
            return self.overrides.ranges(full)

    def remove_ranges(self, path, selections) -> list[LineRange]:
        with self._locked():
            if self.root is None:
                return []
            full = self._file_path(path)
            self.overrides.set_ranges(full, subtract_ranges(self.overrides.ranges(full), selections))
            self._save_state()
            self.refresh()
            return self.overrides.ranges(full)

    def clear_ranges(self, path) -> None:
        with self._locked():
            if self.root is None:
                return
            self.overrides.partials.pop(self._path(path), None)
            self._save_state()
            self.refresh()

    def clear_all_ranges(self) -> None:
        with self._locked():
            if self.root is None:
                return
            self.overrides.partials.clear()
            self._save_state()
            self.refresh()

    # ------------------------------------------------------------------
    # Report and stats
    # ------------------------------------------------------------------
    def report(self) -> Report | None:
        with self._locked():
            if self.root is None:
                return None
            if self._report is None:
                self._report = ReportGenerator(self.root, self.resolver, self.settings).generate()
            return self._report

    def generate_report(self) -> str:
        with self._locked():
            if self.root is None:
                return NO_WORKSPACE_MESSAGE
            self._report = None
            return self.report().text

    def get_stats(self, path=None) -> Stats:
        """
        Stats for a file, a folder, or (no path / the root) the whole report.
        """
        with self._locked():
            if self.root is None:
                return Stats()
            full = self._path(path) if path else self.root
            if full == self.root:
                return StatsAggregator.workspace_stats(self.report())
            if paths.is_dir(full):
                return self.stats.folder_stats(full)
            return self.stats.file_stats(full)
