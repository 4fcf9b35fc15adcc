"""
vlayer File Selector

Enumerates the files eligible for scanning under a root directory.
Exclude patterns are globs matched against POSIX paths relative to the
root; `**` spans directories, `*` and `?` stay within one segment, and a
pattern without a slash matches any single path segment.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 1024 * 1024


@dataclass
class FileSelection:
    files: list[Path] = field(default_factory=list)
    skipped_large: int = 0
    skipped_unreadable: list[str] = field(default_factory=list)


@lru_cache(maxsize=512)
def _glob_regex(pattern: str) -> re.Pattern:
    out = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(out) + "$")


def matches_glob(rel_path: str, pattern: str) -> bool:
    """Match a relative POSIX path against a glob pattern."""
    pattern = pattern.strip()
    if pattern.startswith("./"):
        pattern = pattern[2:]
    if "/" not in pattern:
        return any(fnmatch.fnmatchcase(part, pattern) for part in rel_path.split("/"))
    return bool(_glob_regex(pattern).match(rel_path))


def matches_path(rel_path: str, pattern: str) -> bool:
    """Anchored match against the whole relative path, even for slashless patterns."""
    pattern = pattern.strip()
    if pattern.startswith("./"):
        pattern = pattern[2:]
    return bool(_glob_regex(pattern).match(rel_path))


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    return any(matches_glob(rel_path, p) for p in patterns)


def relative_posix(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _dir_excluded(rel_dir: str, patterns: list[str]) -> bool:
    # A directory is pruned when everything beneath it would be excluded.
    probe = f"{rel_dir}/\x00"
    for pattern in patterns:
        if "/" not in pattern:
            if any(fnmatch.fnmatchcase(part, pattern) for part in rel_dir.split("/")):
                return True
        elif pattern.endswith("/**") and _glob_regex(pattern).match(probe):
            return True
    return False


def select_files(
    root: Path,
    exclude: list[str],
    is_ignored: Optional[Callable[[str], bool]] = None,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
) -> FileSelection:
    """Walk `root` and return the eligible files in sorted order.

    Args:
        root: Directory to walk.
        exclude: Glob patterns relative to root.
        is_ignored: Extra predicate on the relative path (config ignorePaths).
        max_file_size: Files larger than this many bytes are skipped.
    """
    selection = FileSelection()
    candidates: list[Path] = []

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        kept_dirs = []
        for name in dirnames:
            rel_dir = relative_posix(current / name, root)
            if not _dir_excluded(rel_dir, exclude):
                kept_dirs.append(name)
        dirnames[:] = sorted(kept_dirs)

        for name in filenames:
            file_path = current / name
            rel = relative_posix(file_path, root)
            if matches_any(rel, exclude):
                continue
            if is_ignored is not None and is_ignored(rel):
                continue
            candidates.append(file_path)

    for file_path in sorted(candidates):
        try:
            size = file_path.stat().st_size
        except OSError as exc:
            logger.debug("Cannot stat %s: %s", file_path, exc)
            selection.skipped_unreadable.append(relative_posix(file_path, root))
            continue
        if size > max_file_size:
            selection.skipped_large += 1
            continue
        selection.files.append(file_path)

    if selection.skipped_large:
        logger.info(
            "Skipped %d file(s) larger than %d bytes", selection.skipped_large, max_file_size
        )
    logger.debug("Selected %d file(s) under %s", len(selection.files), root)
    return selection


def batched(items: list[Path], size: int) -> Iterable[list[Path]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]
