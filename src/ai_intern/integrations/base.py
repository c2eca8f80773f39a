"""Collaborator contracts the orchestrator depends on.

Implementations are synchronous (vendor SDKs and git are blocking); the
coordinator runs them in worker threads.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

from ..core.models import Ticket


class TicketingClient(ABC):
    """Issue tracker access."""

    @abstractmethod
    def health_check(self) -> None:
        """Raise if the tracker cannot be reached with the configured credentials."""

    @abstractmethod
    def get_tickets(self, assignee: str, project: str) -> List[Ticket]:
        """Tickets assigned to ``assignee`` in ``project`` that are ready for work."""

    @abstractmethod
    def update_ticket_status(self, ticket_key: str, status: str, transitions: Dict[str, str]) -> None:
        """
        Move a ticket to a logical status.

        Args:
            ticket_key: Ticket key (e.g., PROJ-12)
            status: Logical status name ("To Do", "In Progress", "Done")
            transitions: Logical status -> tracker transition id
        """

    def add_comment(self, ticket_key: str, body: str) -> None:
        """Add a comment to a ticket. Default no-op for trackers without comments."""


class RepositoryClient(ABC):
    """A single local checkout plus its hosting service.

    The checkout location is fixed at construction time; no call takes it
    as an argument.
    """

    repo_path: Path

    @abstractmethod
    def health_check(self) -> None:
        """Raise if the hosting service cannot be reached."""

    @abstractmethod
    def clone_repository(self) -> None:
        """Clone the remote into ``repo_path``."""

    @abstractmethod
    def sync_with_remote(self) -> None:
        """Fast-forward the current branch from the remote."""

    @abstractmethod
    def list_files(self, path: str = "") -> List[str]:
        """Tracked files under ``path``, relative to the checkout root."""

    @abstractmethod
    def create_branch(self, branch_name: str, base_branch: str) -> None:
        """Create (or reset) ``branch_name`` at the tip of ``base_branch``."""

    @abstractmethod
    def switch_branch(self, branch_name: str) -> None:
        """Check out an existing branch."""

    @abstractmethod
    def add_file(self, file_path: str) -> None:
        """Stage a file relative to the checkout root."""

    @abstractmethod
    def has_local_changes(self) -> bool:
        """True if the checkout has staged or unstaged changes."""

    @abstractmethod
    def discard_local_changes(self) -> None:
        """Drop staged, unstaged and untracked changes in the checkout."""

    @abstractmethod
    def commit(self, message: str) -> None:
        """Commit staged changes."""

    @abstractmethod
    def push(self, branch_name: str) -> None:
        """Push ``branch_name`` to the remote."""

    @abstractmethod
    def create_pull_request(self, base_branch: str, head_branch: str, title: str, body: str) -> str:
        """Open a pull request and return its URL."""
