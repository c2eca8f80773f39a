"""Core models and configuration."""

from .config import InternConfig, load_config
from .models import CodeChange, Ticket, TicketOutcome, TicketStatus, ValidatedChangeSet

__all__ = [
    "CodeChange",
    "InternConfig",
    "Ticket",
    "TicketOutcome",
    "TicketStatus",
    "ValidatedChangeSet",
    "load_config",
]
