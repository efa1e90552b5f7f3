"""
repotxt: curate a subset of a directory tree and flatten it into one text report.
"""

from .core import RepoCore
from .ranges import LineRange, merge_ranges, subtract_range, subtract_ranges
from .session import SessionStore
from .settings import Settings

__version__ = "0.3.0"

__all__ = [
    "LineRange",
    "RepoCore",
    "SessionStore",
    "Settings",
    "merge_ranges",
    "subtract_range",
    "subtract_ranges",
]
