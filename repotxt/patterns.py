"""
Pattern matching and the auto-exclusion set.

Patterns are flat globs, not the full gitignore grammar:
  - `name/`      matches directories only
  - `*.ext`      (no slash) matches entry names at any depth
  - `src/*.gen`  (with a slash) matches the root-relative posix path
  - `**/x`       also matches `x` at the root
Each pattern is additionally tried as a literal root-relative path.
"""

import fnmatch
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from .paths import SEP, is_relative_to, normalize
from .settings import Settings, normalize_ext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pattern:
    raw: str
    regex: re.Pattern
    dir_only: bool
    anchored: bool

    def matches(self, rel_posix: str, name: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        target = rel_posix if self.anchored else name
        return self.regex.match(target) is not None


def compile_pattern(raw: str) -> Pattern | None:
    """Compile one configured pattern; None when it can never match."""
    text = raw.strip()
    dir_only = text.endswith("/")
    body = text.rstrip("/")
    if body.startswith("/"):
        body = body.lstrip("/")
        anchored = True
    else:
        anchored = "/" in body
    if not body:
        return None
    source = fnmatch.translate(body)
    if body.startswith("**/"):
        source = "(?:%s)|(?:%s)" % (source, fnmatch.translate(body[3:]))
    try:
        regex = re.compile(source)
    except re.error as e:
        logger.debug("Skipping unusable pattern %r: %s", raw, e)
        return None
    return Pattern(raw=raw, regex=regex, dir_only=dir_only, anchored=anchored)


def read_ignore_file(path: Path) -> list[str]:
    """Non-blank, non-comment lines of an ignore file."""
    patterns = []
    try:
        text = path.read_text(encoding="utf-8", errors="ignore")
    except OSError as e:
        logger.warning("Error reading ignore file %s: %s", path, e)
        return patterns
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


def collect_patterns(root: Path, settings: Settings) -> list[str]:
    """Configured patterns plus ignore-file entries, first occurrence wins."""
    seen = {}
    if settings.auto_exclude_enabled:
        for pat in settings.auto_exclude_patterns:
            seen.setdefault(pat, None)
    if settings.respect_ignore_files:
        for file_name in settings.ignore_file_names:
            ignore_file = root / file_name
            if ignore_file.is_file():
                for pat in read_ignore_file(ignore_file):
                    seen.setdefault(pat, None)
    return list(seen)


def _direct_path(root: str, raw: str) -> str | None:
    body = raw.strip().strip("/")
    if not body:
        return None
    candidate = normalize(os.path.join(root, body))
    if candidate == root or not is_relative_to(candidate, root):
        return None
    return candidate if os.path.lexists(candidate) else None


def resolve_patterns(root, patterns, binary_extensions=()) -> set[str]:
    """
    Resolve patterns against the whole tree below `root`.

    Returns absolute path keys, directories with a trailing separator. The walk
    does not descend into a directory once it matched, since everything below
    it is covered by ancestry.
    """
    root = normalize(root)
    compiled = [p for p in (compile_pattern(raw) for raw in patterns) if p is not None]
    exts = {normalize_ext(e) for e in binary_extensions if e.strip()}
    found: set[str] = set()

    for raw in patterns:
        direct = _direct_path(root, raw)
        if direct is not None:
            found.add(direct + SEP if os.path.isdir(direct) else direct)

    if not compiled and not exts:
        return found

    stack = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError:
            continue
        for e in entries:
            try:
                isdir = e.is_dir(follow_symlinks=False)
            except OSError:
                continue
            full = os.path.join(current, e.name)
            rel = Path(os.path.relpath(full, root)).as_posix()
            hit = any(p.matches(rel, e.name, isdir) for p in compiled)
            if not hit and not isdir and exts:
                hit = os.path.splitext(e.name)[1].lower() in exts
            if hit:
                found.add(full + SEP if isdir else full)
            elif isdir:
                stack.append(full)
    return found


def resolve_pattern(root, pattern: str) -> set[str]:
    return resolve_patterns(root, [pattern])


def build_auto_excludes(root: Path, settings: Settings) -> set[str]:
    """Rebuild the auto-exclusion set from scratch for `root`."""
    patterns = collect_patterns(root, settings)
    extensions = settings.binary_file_extensions if settings.exclude_binary_files else ()
    excludes = resolve_patterns(root, patterns, extensions)
    logger.debug(
        "Resolved %d patterns and %d extensions to %d auto-excluded paths",
        len(patterns),
        len(extensions),
        len(excludes),
    )
    return excludes
