"""Base change generator interface."""

from abc import ABC, abstractmethod
from typing import List

from ..core.models import CodeChange


class ChangeGenerator(ABC):
    """Abstract base class for changeset generators."""

    @abstractmethod
    async def plan_changes(
        self,
        ticket_key: str,
        summary: str,
        description: str,
        repo_context: str,
    ) -> List[CodeChange]:
        """
        Propose file-level changes implementing a ticket.

        Args:
            ticket_key: Ticket key (e.g., PROJ-12)
            summary: Ticket summary
            description: Ticket description (free text)
            repo_context: Bounded snapshot of repository files

        Returns:
            Proposed changes. Callers validate them before writing anything.
        """
