"""
Configuration for repotxt: the exclusion toggles, pattern lists and report
options, read from a JSON settings file keyed with the extension option names.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = ".repotxt.json"
DEFAULT_STATE_FILE = Path.home() / ".repotxt" / "state.json"
DEFAULT_DEBOUNCE_MS = 300

DEFAULT_AUTO_EXCLUDE_PATTERNS = (
    "node_modules",
    ".git",
    "dist",
    "build",
    "out",
    "coverage",
    ".env",
    "*.log",
    "package-lock.json",
    "yarn.lock",
)

DEFAULT_BINARY_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tiff", ".ico", ".pdf",
    ".zip", ".gz", ".rar", ".7z",
    ".mp3", ".wav", ".ogg", ".mp4", ".mov", ".avi", ".mkv",
    ".exe", ".dll", ".so", ".app", ".dmg",
    ".woff", ".woff2", ".eot", ".ttf", ".otf",
    ".class", ".jar", ".pyc", ".pyo",
    ".db", ".sqlite", ".sqlite3",
)

DEFAULT_AI_PROMPT = (
    "Prompt: Analyze the ${workspaceName} folder to understand its structure, purpose, and functionality.\n"
    "Follow these steps to study the codebase:\n\n"
    "1. Read the README file to gain an overview of the project, its goals, and any setup instructions.\n\n"
    "2. Examine the folder structure to understand how the files and directories are organized.\n\n"
    "3. Identify the main entry point of the application and start analyzing the code flow from there.\n\n"
    "4. Study the dependencies and libraries used in the project.\n\n"
    "5. Analyze the core functionality of the project.\n\n"
    "6. Look for any configuration files to understand project settings.\n\n"
    "7. Investigate any tests or test directories.\n\n"
    "8. Review documentation and inline comments.\n\n"
    "9. Identify potential areas for improvement.\n\n"
    "10. Provide a summary of findings."
)

# JSON key -> dataclass field
_KEYS = {
    "autoExcludeEnabled": "auto_exclude_enabled",
    "autoExcludePatterns": "auto_exclude_patterns",
    "respectIgnoreFiles": "respect_ignore_files",
    "ignoreFileNames": "ignore_file_names",
    "excludeBinaryFiles": "exclude_binary_files",
    "binaryFileExtensions": "binary_file_extensions",
    "aiStyle": "ai_style",
    "aiPrompt": "ai_prompt",
}


@dataclass(frozen=True)
class Settings:
    auto_exclude_enabled: bool = True
    auto_exclude_patterns: tuple[str, ...] = DEFAULT_AUTO_EXCLUDE_PATTERNS
    respect_ignore_files: bool = True
    ignore_file_names: tuple[str, ...] = (".gitignore",)
    exclude_binary_files: bool = True
    binary_file_extensions: tuple[str, ...] = DEFAULT_BINARY_EXTENSIONS
    ai_style: bool = False
    ai_prompt: str = DEFAULT_AI_PROMPT
    _binary_exts: frozenset = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        exts = frozenset(normalize_ext(e) for e in self.binary_file_extensions if e.strip())
        object.__setattr__(self, "_binary_exts", exts)

    @classmethod
    def from_dict(cls, data: dict, base: "Settings | None" = None) -> "Settings":
        """Build settings from option-name keys on top of `base`, keeping its values for bad input."""
        kwargs = {}
        defaults = base if base is not None else cls()
        for key, value in data.items():
            name = _KEYS.get(key, key if key in _field_names() else None)
            if name is None:
                continue
            default = getattr(defaults, name)
            coerced = _coerce(value, default)
            if coerced is None:
                logger.warning("Ignoring invalid value for setting %s: %r", key, value)
                continue
            kwargs[name] = coerced
        return replace(defaults, **kwargs)

    def to_dict(self) -> dict:
        return {
            key: list(getattr(self, name)) if isinstance(getattr(self, name), tuple) else getattr(self, name)
            for key, name in _KEYS.items()
        }

    def updated(self, data: dict) -> "Settings":
        return Settings.from_dict(data, base=self)

    def is_binary(self, path: str) -> bool:
        _, ext = os.path.splitext(path)
        return bool(ext) and ext.lower() in self._binary_exts


def _field_names():
    return {f.name for f in fields(Settings) if f.init}


def normalize_ext(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else "." + ext


def _coerce(value, default):
    if isinstance(default, bool):
        return value if isinstance(value, bool) else None
    if isinstance(default, tuple):
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            return tuple(value)
        return None
    if isinstance(default, str):
        return value if isinstance(value, str) else None
    return None


def load_settings(path: Path | None) -> Settings:
    """
    Read settings from a JSON file. A missing or unreadable file yields the
    defaults; a file that is not a JSON object is reported and ignored.
    """
    if path is None or not path.is_file():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Could not read settings file %s: %s", path, e)
        return Settings()
    if not isinstance(data, dict):
        logger.warning("Settings file %s does not hold a JSON object", path)
        return Settings()
    return Settings.from_dict(data)


def settings_path_for(root: Path | None) -> Path | None:
    env = os.getenv("REPOTXT_CONFIG")
    if env:
        return Path(env).expanduser().resolve()
    if root is None:
        return None
    return root / SETTINGS_FILE_NAME
