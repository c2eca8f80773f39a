"""Error taxonomy for the orchestration engine."""

from .classification import (
    ClassifiedError,
    ErrorClass,
    classify,
    is_permanent,
    is_transient,
    make_permanent,
    make_transient,
    unwrap,
)
from .classifier import classify_exception, tag_error
from .exceptions import (
    ChangesetValidationError,
    ConfigError,
    GenerationParseError,
    RunCancelled,
    WorkflowError,
)

__all__ = [
    "ChangesetValidationError",
    "ClassifiedError",
    "ConfigError",
    "ErrorClass",
    "GenerationParseError",
    "RunCancelled",
    "WorkflowError",
    "classify",
    "classify_exception",
    "is_permanent",
    "is_transient",
    "make_permanent",
    "make_transient",
    "tag_error",
    "unwrap",
]
