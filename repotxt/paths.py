"""
Path keys used by the rule sets.

Every path is absolute and normalized. Directories are stored with a trailing
separator so `foo/` never collides with a file `foo` and a plain prefix test
finds descendants.
"""

import os
from pathlib import Path

SEP = os.sep


def normalize(path, root: str | None = None) -> str:
    """Absolute, normalized form without a trailing separator."""
    path = os.fspath(path)
    if root is not None and not os.path.isabs(path):
        path = os.path.join(root, path)
    return os.path.normpath(os.path.abspath(path))


def is_dir(path: str) -> bool:
    # A vanished path counts as a plain file.
    try:
        return os.path.isdir(path)
    except OSError:
        return False


def dir_key(path: str) -> str:
    return path if path.endswith(SEP) else path + SEP


def key_for(path: str) -> str:
    """The form stored in a rule set: directory-marked when it is a directory."""
    bare = path.rstrip(SEP) or SEP
    return dir_key(bare) if is_dir(bare) else bare


def ancestors(path: str):
    """Yield `path` then each parent up to the filesystem root."""
    current = path.rstrip(SEP) or SEP
    while True:
        yield current
        parent = os.path.dirname(current)
        if parent == current:
            return
        current = parent


def in_set(path: str, rules) -> bool:
    """True when the bare or directory-marked form of `path` is in `rules`."""
    return path in rules or dir_key(path) in rules


def discard(path: str, rules: set) -> None:
    bare = path.rstrip(SEP) or SEP
    rules.discard(bare)
    rules.discard(dir_key(bare))


def is_relative_to(path, parent) -> bool:
    try:
        Path(path).relative_to(parent)
        return True
    except ValueError:
        return False


def relative_posix(path: str, root: str) -> str:
    return Path(os.path.relpath(path, root)).as_posix()


def scan_dir(dir_path: str, dirs_first: bool = False) -> list[tuple[str, str, bool]]:
    """
    Immediate children of `dir_path` as (name, full path, is_dir), sorted by
    case-insensitive name, optionally directories first. Unreadable
    directories list as empty.
    """
    entries = []
    try:
        with os.scandir(dir_path) as it:
            for e in it:
                try:
                    isdir = e.is_dir(follow_symlinks=False)
                except OSError:
                    continue
                entries.append((e.name, os.path.join(dir_path, e.name), isdir))
    except OSError:
        return []
    if dirs_first:
        entries.sort(key=lambda t: (not t[2], t[0].lower(), t[0]))
    else:
        entries.sort(key=lambda t: (t[0].lower(), t[0]))
    return entries
