"""Ticketing and repository integrations."""

from .base import RepositoryClient, TicketingClient

__all__ = ["RepositoryClient", "TicketingClient"]
