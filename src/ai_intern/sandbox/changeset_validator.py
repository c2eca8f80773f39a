"""Sandbox for generator-proposed file writes.

The generator is treated as untrusted: its output may try to write above the
repository root, into absolute locations, or outside the directories the
operator allowed. Every candidate goes through the checks below, in order,
and only normalized relative paths under an allowlisted top-level directory
survive.
"""

import logging
import posixpath
import re
from pathlib import Path
from typing import Iterable, List, Sequence

from ..core.models import CodeChange, RejectedChange, ValidatedChangeSet
from ..errors import ChangesetValidationError
from ..utils.atomic_io import atomic_write_text

logger = logging.getLogger(__name__)

ROOT_ALLOWANCE = "."

_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:")


def is_absolute_path(path: str) -> bool:
    """True for POSIX absolute, Windows drive and UNC/backslash-rooted paths."""
    return (
        path.startswith("/")
        or path.startswith("\\")
        or bool(_WINDOWS_DRIVE.match(path))
    )


def normalize_path(path: str) -> str:
    """Clean a relative path into POSIX form (``a/./b//c`` -> ``a/b/c``)."""
    return posixpath.normpath(path.replace("\\", "/"))


def is_traversal(clean_path: str) -> bool:
    return clean_path == ".." or clean_path.startswith("../")


def first_segment(clean_path: str) -> str:
    head, sep, _ = clean_path.partition("/")
    return head if sep else clean_path


def _normalize_allowed(allowed_dirs: Iterable[str]) -> List[str]:
    normalized = []
    for entry in allowed_dirs:
        entry = (entry or "").strip()
        if not entry:
            continue
        if entry != ROOT_ALLOWANCE:
            entry = entry.replace("\\", "/").strip("/")
        normalized.append(entry)
    return normalized


def is_allowed(clean_path: str, allowed_dirs: Sequence[str]) -> bool:
    """Allowlist check on the first path segment.

    Root-level files (no separator) are allowed when "." is in the allowlist.
    """
    if first_segment(clean_path) in allowed_dirs:
        return True
    return "/" not in clean_path and ROOT_ALLOWANCE in allowed_dirs


def _escapes_root(repo_root: Path, clean_path: str) -> bool:
    """Resolve the target and make sure symlinks do not lead outside the checkout."""
    root = repo_root.resolve()
    target = (root / clean_path).resolve()
    try:
        target.relative_to(root)
    except ValueError:
        return True
    return False


def validate_changes(
    repo_root: Path,
    changes: Sequence[CodeChange],
    allowed_dirs: Iterable[str],
    max_files: int,
) -> ValidatedChangeSet:
    """
    Filter proposed changes down to the ones that are safe to write.

    Args:
        repo_root: Checkout root the paths are relative to
        changes: Generator output, in generator order
        allowed_dirs: Top-level directories writes may go into ("." allows root files)
        max_files: Only the first ``max_files`` candidates are considered

    Returns:
        ValidatedChangeSet with normalized paths and the rejected candidates

    Raises:
        ChangesetValidationError: If no candidate survives
    """
    allowed = _normalize_allowed(allowed_dirs)
    repo_root = Path(repo_root)
    total = len(changes)
    logger.debug(f"Validating {total} planned changes (allowed dirs: {allowed})")

    if max_files < 0:
        max_files = 0
    if total > max_files:
        logger.debug(f"Truncating changes from {total} to max {max_files} files")
    candidates = list(changes[:max_files])

    accepted: List[CodeChange] = []
    rejected: List[RejectedChange] = []

    def reject(path: str, reason: str) -> None:
        logger.debug(f"Skipping change {path!r}: {reason}")
        rejected.append(RejectedChange(path=path, reason=reason))

    for change in candidates:
        raw = (change.path or "").strip()
        if not raw:
            reject(raw, "empty path")
            continue
        if is_absolute_path(raw):
            reject(raw, "absolute path")
            continue
        clean = normalize_path(raw)
        if is_traversal(clean):
            reject(raw, "path escapes repository root")
            continue
        if clean == ".":
            reject(raw, "path does not name a file")
            continue
        if not is_allowed(clean, allowed):
            reject(raw, f"top-level directory '{first_segment(clean)}' not allowed")
            continue
        if not change.content.strip():
            reject(clean, "empty content")
            continue
        if _escapes_root(repo_root, clean):
            reject(clean, "resolves outside repository root")
            continue

        logger.debug(f"Accepting change {clean} ({change.operation.value})")
        accepted.append(CodeChange(path=clean, operation=change.operation, content=change.content))

    logger.info(
        f"Changeset validation: {len(accepted)} accepted, {len(rejected)} rejected "
        f"({total} proposed, {len(candidates)} considered)"
    )

    if not accepted:
        logger.warning(
            f"No safe changes to apply: {total} proposed, {len(rejected)} rejected "
            f"({', '.join(sorted({r.reason for r in rejected})) or 'nothing proposed'})"
        )
        raise ChangesetValidationError(total=total, considered=len(candidates), rejected=rejected)

    return ValidatedChangeSet(changes=accepted, rejected=rejected, total_candidates=total)


def write_changes(repo_root: Path, changeset: ValidatedChangeSet) -> List[str]:
    """
    Materialize a validated changeset into the checkout.

    Args:
        repo_root: Checkout root
        changeset: Output of validate_changes

    Returns:
        Relative paths written, in changeset order
    """
    written = []
    for change in changeset.changes:
        target = Path(repo_root) / change.path
        atomic_write_text(target, change.content)
        logger.debug(f"Wrote {change.path} ({len(change.content)} chars)")
        written.append(change.path)
    return written
