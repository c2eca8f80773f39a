"""Ticket-to-pull-request orchestration engine."""

__version__ = "0.1.0"
