import os
import tempfile
import unittest
from pathlib import Path

from repotxt.core import RepoCore
from repotxt.session import SessionStore
from repotxt.settings import Settings


class TreeTestCase(unittest.TestCase):
    """Builds a throwaway project directory named `proj`."""

    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.base = Path(os.path.realpath(self.temp_dir.name))
        self.root = self.base / "proj"
        self.root.mkdir()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def write_file(self, rel_path: str, content: str = "") -> Path:
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def make_dir(self, rel_path: str) -> Path:
        path = self.root / rel_path
        path.mkdir(parents=True, exist_ok=True)
        return path

    def p(self, rel_path: str) -> str:
        return str(self.root / rel_path)

    def make_core(self, patterns=(), store: SessionStore | None = None, **settings) -> RepoCore:
        core = RepoCore(
            self.root,
            store=store if store is not None else SessionStore(),
            settings=Settings(auto_exclude_patterns=tuple(patterns), **settings),
            debounce_seconds=0.05,
        )
        self.addCleanup(core.dispose)
        return core
