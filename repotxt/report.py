"""
Flattened report: folder structure listing followed by file content blocks.

    [AI prompt]\n\n
    Folder Structure: {name}\n
    {rel/dir/}\n{rel/file}\n...\n
    \n
    File: {rel}[ (lines a-b, c-d)]\nContent: {content}\n
    \n
    File: ...
"""

import logging
import os
from dataclasses import dataclass, field

from . import paths
from .ranges import covered_lines, format_ranges, merge_ranges
from .resolver import ExclusionResolver
from .settings import Settings

logger = logging.getLogger(__name__)

NO_WORKSPACE_MESSAGE = "No workspace folder opened"
UNREADABLE_PLACEHOLDER = "[Unable to read file content]"
BINARY_PLACEHOLDER = "[Binary file, content not displayed]"
WORKSPACE_NAME_TOKEN = "${workspaceName}"


@dataclass
class Report:
    text: str
    structure: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)


def read_text(path: str) -> str:
    with open(path, "rb") as f:
        data = f.read()
    return data.decode("utf-8", errors="replace")


def read_file_content(path: str, settings: Settings) -> str:
    if settings.is_binary(path):
        return BINARY_PLACEHOLDER
    try:
        return read_text(path)
    except OSError as e:
        logger.debug("Unreadable file %s: %s", path, e)
        return UNREADABLE_PLACEHOLDER


class ReportGenerator:
    def __init__(self, root: str, resolver: ExclusionResolver, settings: Settings):
        self.root = root
        self.resolver = resolver
        self.settings = settings

    @property
    def workspace_name(self) -> str:
        return os.path.basename(self.root) or self.root

    def _rel(self, full: str) -> str:
        return paths.relative_posix(full, self.root)

    def structure(self) -> list[str]:
        listing: list[str] = []
        self._walk_structure(self.root, listing)
        return listing

    def _walk_structure(self, dir_path: str, listing: list[str]) -> None:
        for _, full, isdir in paths.scan_dir(dir_path, dirs_first=True):
            visible = not self.resolver.visually_excluded(full)
            if visible:
                listing.append(self._rel(full) + ("/" if isdir else ""))
            if isdir and (visible or self.resolver.has_overrides_below(full)):
                self._walk_structure(full, listing)

    def content_blocks(self, emitted: list[str] | None = None) -> list[str]:
        blocks: list[str] = []
        self._walk_content(self.root, blocks, emitted if emitted is not None else [])
        return blocks

    def _walk_content(self, dir_path: str, blocks: list[str], emitted: list[str]) -> None:
        resolver = self.resolver
        for _, full, isdir in paths.scan_dir(dir_path):
            if isdir:
                if not resolver.effectively_excluded(full) or resolver.has_overrides_below(full):
                    self._walk_content(full, blocks, emitted)
                continue
            ranges = resolver.overrides.partials.get(full)
            if ranges:
                blocks.append(self._partial_block(full, ranges))
            elif resolver.effectively_excluded(full):
                continue
            else:
                content = read_file_content(full, self.settings)
                blocks.append(f"File: {self._rel(full)}\nContent: {content}\n")
            emitted.append(full)

    def _partial_block(self, full: str, ranges) -> str:
        merged = merge_ranges(ranges)
        if self.settings.is_binary(full):
            content = BINARY_PLACEHOLDER
        else:
            try:
                lines = read_text(full).split("\n")
            except OSError:
                content = UNREADABLE_PLACEHOLDER
            else:
                content = "\n".join(lines[i] for i in covered_lines(merged, len(lines)))
        return f"File: {self._rel(full)} (lines {format_ranges(merged)})\nContent: {content}\n"

    def prompt(self) -> str:
        if not self.settings.ai_style:
            return ""
        return self.settings.ai_prompt.replace(WORKSPACE_NAME_TOKEN, self.workspace_name) + "\n\n"

    def generate(self) -> Report:
        structure = self.structure()
        emitted: list[str] = []
        blocks = self.content_blocks(emitted)
        text = (
            self.prompt()
            + f"Folder Structure: {self.workspace_name}\n"
            + "\n".join(structure)
            + "\n\n"
            + "\n".join(blocks)
        )
        logger.debug("Report for %s: %d listed paths, %d files", self.root, len(structure), len(emitted))
        return Report(text=text, structure=structure, files=emitted)
