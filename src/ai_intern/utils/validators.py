"""Checks applied to names that end up in git commands and GitHub API paths."""

import re

_BRANCH_CHARS = re.compile(r"^[a-zA-Z0-9/_.-]+$")
_REPO_NAME = re.compile(r"^[a-zA-Z0-9_.-]+/[a-zA-Z0-9_.-]+$")
# Sequences git check-ref-format refuses
_FORBIDDEN_REF_PARTS = ("..", "@{", "//", "/.", ".lock/")
MAX_BRANCH_LENGTH = 255


def validate_branch_name(branch_name: str) -> str:
    """
    Reject branch names git would refuse or that could be read as options.

    Returns:
        The branch name unchanged

    Raises:
        ValueError: If the name is unusable
    """
    if not branch_name:
        raise ValueError("Branch name cannot be empty")
    if len(branch_name) > MAX_BRANCH_LENGTH:
        raise ValueError(f"Branch name too long ({len(branch_name)} > {MAX_BRANCH_LENGTH})")
    if not _BRANCH_CHARS.match(branch_name):
        raise ValueError(f"Invalid characters in branch name: {branch_name!r}")
    if branch_name[0] in "-/." or branch_name[-1] in "/.":
        raise ValueError(f"Branch name has an invalid start or end: {branch_name!r}")
    if branch_name.endswith(".lock") or any(part in branch_name for part in _FORBIDDEN_REF_PARTS):
        raise ValueError(f"Branch name contains an invalid sequence: {branch_name!r}")
    return branch_name


def validate_owner_repo(owner_repo: str) -> str:
    """Require the ``owner/repo`` form GitHub expects."""
    if not owner_repo or not _REPO_NAME.match(owner_repo) or ".." in owner_repo:
        raise ValueError(f"Repository must be in owner/repo format: {owner_repo!r}")
    return owner_repo
