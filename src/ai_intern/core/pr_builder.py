"""Branch names, commit messages and pull request text for a ticket."""

import re
from typing import List, Sequence

from .models import CodeChange
from ..utils.validators import validate_branch_name

_NON_SLUG = re.compile(r"[^a-z0-9\-]+")
MAX_SLUG_LENGTH = 30


def build_branch_name(prefix: str, ticket_key: str) -> str:
    """
    Build the working branch for a ticket: ``<prefix>/<slug>``.

    Example:
        >>> build_branch_name("feature", "PROJ-12")
        'feature/proj-12'
    """
    slug = ticket_key.strip().lower().replace(" ", "-")
    slug = _NON_SLUG.sub("", slug)[:MAX_SLUG_LENGTH].strip("-")
    if not slug:
        raise ValueError(f"Cannot derive a branch name from ticket key {ticket_key!r}")

    prefix = (prefix or "").strip().strip("/-")
    branch = f"{prefix}/{slug}" if prefix else slug
    return validate_branch_name(branch)


def build_commit_message(ticket_key: str, summary: str) -> str:
    summary = " ".join((summary or "").split())
    if not summary:
        return f"feat({ticket_key}): apply planned changes"
    return f"feat({ticket_key}): {summary}"


def build_pr_title(ticket_key: str, summary: str) -> str:
    if not (summary or "").strip():
        return ticket_key
    return f"{ticket_key}: {summary.strip()}"


def build_pr_body(
    ticket_key: str,
    summary: str,
    description: str,
    changes: Sequence[CodeChange],
    notes: Sequence[str] = (),
) -> str:
    """Render the markdown PR body: ticket, description, changeset, gate notes."""
    lines: List[str] = ["## Ticket", f"- Key: {ticket_key}"]
    if (summary or "").strip():
        lines.append(f"- Summary: {summary.strip()}")

    lines.extend(["", "## Description"])
    lines.append(description.strip() if (description or "").strip() else "(no description provided)")

    lines.extend(["", "## Changeset"])
    if changes:
        lines.extend(f"- {c.path} ({c.operation.value})" for c in changes)
    else:
        lines.append("(no changes)")

    if notes:
        lines.extend(["", "## Notes"])
        # Fenced output blocks stay unbulleted
        lines.extend(note if note.startswith("```") else f"- {note}" for note in notes)

    lines.extend([
        "",
        "## Checklist",
        "- [ ] Code compiles",
        "- [ ] Tests (if any) pass locally",
        "- [ ] Review requested",
    ])
    return "\n".join(lines) + "\n"
