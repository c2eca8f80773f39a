"""Exceptions raised by the orchestration engine."""

from typing import List, Optional


class RunCancelled(Exception):
    """The run was asked to stop while an operation was waiting."""


class ConfigError(Exception):
    """Configuration is missing required values or is inconsistent."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


class GenerationParseError(Exception):
    """The change generator returned something that is not a changeset."""

    def __init__(self, message: str, raw: str = ""):
        self.raw = raw
        super().__init__(message)


class ChangesetValidationError(Exception):
    """No proposed change survived the sandbox checks."""

    def __init__(self, total: int, considered: int, rejected: Optional[list] = None):
        self.total = total
        self.considered = considered
        self.rejected = list(rejected or [])
        super().__init__(
            f"no valid changes after validation "
            f"({total} proposed, {considered} considered, {len(self.rejected)} rejected)"
        )


class WorkflowError(Exception):
    """A per-ticket workflow step failed."""

    def __init__(self, ticket_key: str, step: str, cause: BaseException, retries: int = 0):
        self.ticket_key = ticket_key
        self.step = step
        self.cause = cause
        self.retries = retries
        super().__init__(f"{ticket_key}: {step} failed: {cause}")
        self.__cause__ = cause
