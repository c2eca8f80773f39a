"""Shared utility functions."""

from .atomic_io import atomic_write_json, atomic_write_text
from .subprocess_utils import SubprocessError, run_command, run_git_command, truncate_middle

__all__ = [
    "SubprocessError",
    "atomic_write_json",
    "atomic_write_text",
    "run_command",
    "run_git_command",
    "truncate_middle",
]
