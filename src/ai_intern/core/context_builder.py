"""Bounded textual snapshot of a repository for the change generator."""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

SKIP_DIRS = frozenset({
    ".git", "vendor", "node_modules", ".idea", ".vscode", "build", "dist", "out",
    "__pycache__", ".venv", ".tox",
})
BINARY_SUFFIXES = (
    ".png", ".jpg", ".jpeg", ".gif", ".pdf", ".zip", ".exe", ".bin", ".mp4",
    ".mov", ".dll", ".so", ".dylib", ".ico", ".gz", ".tar", ".jar", ".pyc",
)
FILE_HEADER = "\n\n# FILE: "


def _walk_order(rel: str):
    """Sort key matching a sorted top-down walk: a directory's files before its subdirectories."""
    parts = rel.split("/")
    return tuple((1, part) for part in parts[:-1]) + ((0, parts[-1]),)


def iter_context_files(repo_root: Path, tracked: Optional[Iterable[str]] = None) -> List[Path]:
    """
    Candidate files in deterministic (sorted, depth-first) order.

    Args:
        repo_root: Checkout root
        tracked: Paths relative to the root (e.g. from ``git ls-files``); when
            given, only these are considered instead of walking the tree
    """
    repo_root = Path(repo_root)
    files: List[Path] = []
    if tracked is not None:
        for rel in sorted(set(tracked), key=_walk_order):
            parts = rel.split("/")
            if any(part.lower() in SKIP_DIRS for part in parts[:-1]):
                continue
            if parts[-1].lower().endswith(BINARY_SUFFIXES):
                continue
            files.append(repo_root / rel)
        return files

    for dirpath, dirnames, filenames in os.walk(repo_root):
        dirnames[:] = sorted(d for d in dirnames if d.lower() not in SKIP_DIRS)
        for name in sorted(filenames):
            if name.lower().endswith(BINARY_SUFFIXES):
                continue
            files.append(Path(dirpath) / name)
    return files


def build_repo_context(
    repo_root: Path,
    max_files: int,
    max_bytes_per_file: int,
    tracked: Optional[Iterable[str]] = None,
) -> str:
    """
    Concatenate up to ``max_files`` small text files, each cut at ``max_bytes_per_file``.

    Args:
        repo_root: Checkout to snapshot
        max_files: Maximum number of files included
        max_bytes_per_file: Per-file byte cap
        tracked: Restrict the snapshot to these relative paths

    Returns:
        Blocks of ``# FILE: <relative path>`` followed by the (possibly cut) content
    """
    repo_root = Path(repo_root)
    if not repo_root.is_dir():
        logger.warning(f"Cannot build repository context, {repo_root} is not a directory")
        return ""

    parts: List[str] = []
    count = 0
    for path in iter_context_files(repo_root, tracked):
        if count >= max_files:
            break
        try:
            with open(path, "rb") as f:
                data = f.read(max_bytes_per_file)
        except OSError as e:
            logger.debug(f"Skipping unreadable file {path}: {e}")
            continue
        if b"\x00" in data:
            continue
        rel = path.relative_to(repo_root).as_posix()
        parts.append(FILE_HEADER + rel + "\n" + data.decode("utf-8", errors="replace"))
        count += 1

    logger.debug(f"Built repository context from {count} files")
    return "".join(parts)
