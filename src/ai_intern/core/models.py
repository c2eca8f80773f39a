"""Ticket and changeset models shared by the orchestrator and its collaborators."""

import base64
import binascii
import logging
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class Ticket(BaseModel):
    """Snapshot of a tracker work item, fetched once per poll cycle."""
    model_config = ConfigDict(frozen=True)

    key: str
    summary: str = ""
    description: str = ""
    status: Optional[str] = None
    assignee: Optional[str] = None


class ChangeOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class CodeChange(BaseModel):
    """A single file write proposed by the generator. Untrusted until validated."""

    path: str
    operation: ChangeOperation = ChangeOperation.UPDATE
    content: str = ""
    content_b64: Optional[str] = Field(default=None, exclude=True)

    @field_validator("operation", mode="before")
    @classmethod
    def normalize_operation(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, v: Any) -> Any:
        return "" if v is None else v

    @model_validator(mode="after")
    def decode_b64_content(self) -> "CodeChange":
        """Fill ``content`` from ``content_b64`` when only the encoded form was sent."""
        if not self.content and self.content_b64:
            try:
                decoded = base64.b64decode(self.content_b64, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError, ValueError) as e:
                logger.debug(f"Ignoring undecodable content_b64 for {self.path}: {e}")
            else:
                self.content = decoded
        return self


class RejectedChange(BaseModel):
    """A proposed change the sandbox refused, with the reason."""
    path: str
    reason: str


class ValidatedChangeSet(BaseModel):
    """Changes that passed the sandbox: relative, non-traversing, allowlisted, non-empty."""

    changes: List[CodeChange] = Field(default_factory=list)
    rejected: List[RejectedChange] = Field(default_factory=list)
    total_candidates: int = 0

    @property
    def paths(self) -> List[str]:
        return [c.path for c in self.changes]


class TicketStatus(str, Enum):
    """Terminal state of one ticket workflow."""
    COMPLETED = "completed"  # PR opened
    NO_CHANGES = "no_changes"  # Changes matched the base branch; nothing to open
    GENERATION_FAILED = "generation_failed"
    INVALID = "invalid"  # No change survived the sandbox
    GATE_FAILED = "gate_failed"
    PR_FAILED = "pr_failed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TicketOutcome(BaseModel):
    """Result of one ticket workflow."""
    ticket_key: str
    status: TicketStatus
    branch: Optional[str] = None
    pr_url: Optional[str] = None
    step: Optional[str] = None  # Step that failed, if any
    error: Optional[str] = None
    retries: int = 0

    @property
    def completed(self) -> bool:
        """Whether the ticket may be marked processed."""
        return self.status in (TicketStatus.COMPLETED, TicketStatus.NO_CHANGES)
