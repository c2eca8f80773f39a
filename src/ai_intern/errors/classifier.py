"""Map vendor exceptions to a retry classification.

JIRA (``jira.JIRAError``), GitHub (``github.GithubException``), ``requests``
and LiteLLM all expose an HTTP status or a distinctive exception type. The
status decides whether an error is worth retrying.
"""

import asyncio
import logging
from typing import Optional

import requests

from .classification import ClassifiedError, ErrorClass, make_permanent, make_transient
from .exceptions import GenerationParseError

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})
PERMANENT_STATUSES = frozenset({400, 401, 403, 404, 405, 409, 410, 422})

# LiteLLM exception class names, matched by name so the mapping does not
# depend on which litellm release is installed.
TRANSIENT_EXCEPTION_NAMES = frozenset({
    "RateLimitError",
    "APIConnectionError",
    "Timeout",
    "ServiceUnavailableError",
    "InternalServerError",
    "RateLimitExceededException",
})
PERMANENT_EXCEPTION_NAMES = frozenset({
    "AuthenticationError",
    "PermissionDeniedError",
    "BadRequestError",
    "NotFoundError",
    "BadCredentialsException",
    "UnknownObjectException",
})


def http_status_of(error: BaseException) -> Optional[int]:
    """Extract an HTTP status code from a vendor exception, if it carries one."""
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
    return None


def classify_exception(error: BaseException) -> ErrorClass:
    """Decide the retry class of a raw (untagged) exception."""
    if isinstance(error, ClassifiedError):
        return error.error_class

    if isinstance(error, GenerationParseError):
        return ErrorClass.TRANSIENT

    name = type(error).__name__
    if name in TRANSIENT_EXCEPTION_NAMES:
        return ErrorClass.TRANSIENT
    if name in PERMANENT_EXCEPTION_NAMES:
        return ErrorClass.PERMANENT

    status = http_status_of(error)
    if status is not None:
        if status in TRANSIENT_STATUSES:
            return ErrorClass.TRANSIENT
        if status in PERMANENT_STATUSES:
            return ErrorClass.PERMANENT

    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return ErrorClass.TRANSIENT
    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TRANSIENT

    return ErrorClass.UNCLASSIFIED


def tag_error(error: BaseException) -> BaseException:
    """Wrap a vendor exception in its classification.

    Already-classified and unclassifiable errors are returned unchanged.
    """
    if isinstance(error, ClassifiedError):
        return error
    error_class = classify_exception(error)
    if error_class == ErrorClass.TRANSIENT:
        return make_transient(error)
    if error_class == ErrorClass.PERMANENT:
        return make_permanent(error)
    logger.debug(f"Leaving {type(error).__name__} unclassified: {error}")
    return error
