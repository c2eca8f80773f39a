"""Retry classification attached to arbitrary exceptions.

A classification never replaces the original error: ``ClassifiedError`` keeps
the original exception as ``cause`` and chains it as ``__cause__`` so logging
and ``raise ... from`` chains still show what actually went wrong.
"""

from enum import Enum
from typing import Optional


class ErrorClass(str, Enum):
    """How safe it is to retry an operation that raised."""
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNCLASSIFIED = "unclassified"


class ClassifiedError(Exception):
    """An exception tagged with an ErrorClass."""

    def __init__(self, error_class: ErrorClass, cause: BaseException):
        self.error_class = ErrorClass(error_class)
        self.cause = cause
        super().__init__(f"{self.error_class.value}: {cause}")
        self.__cause__ = cause

    def __repr__(self) -> str:
        return f"ClassifiedError({self.error_class.value!r}, {self.cause!r})"


def make_transient(error: Optional[BaseException]) -> Optional[ClassifiedError]:
    """Tag an error as retry-safe. ``None`` stays ``None``."""
    if error is None:
        return None
    return ClassifiedError(ErrorClass.TRANSIENT, error)


def make_permanent(error: Optional[BaseException]) -> Optional[ClassifiedError]:
    """Tag an error as never-retry. ``None`` stays ``None``."""
    if error is None:
        return None
    return ClassifiedError(ErrorClass.PERMANENT, error)


def _iter_chain(error: BaseException):
    """Yield the error and everything it was raised from, guarding against cycles."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def classify(error: Optional[BaseException]) -> ErrorClass:
    """Return the class of the outermost tagged error in the chain.

    Errors without any tag are UNCLASSIFIED.
    """
    if error is None:
        return ErrorClass.UNCLASSIFIED
    for link in _iter_chain(error):
        if isinstance(link, ClassifiedError):
            return link.error_class
    return ErrorClass.UNCLASSIFIED


def is_transient(error: Optional[BaseException]) -> bool:
    return error is not None and classify(error) == ErrorClass.TRANSIENT


def is_permanent(error: Optional[BaseException]) -> bool:
    return error is not None and classify(error) == ErrorClass.PERMANENT


def unwrap(error: BaseException) -> BaseException:
    """Strip classification wrappers and return the underlying cause."""
    while isinstance(error, ClassifiedError):
        error = error.cause
    return error
