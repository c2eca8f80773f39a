"""Bounded-concurrency fan-out of ticket workflows."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from .models import Ticket, TicketOutcome
from .state import ProcessedStore

logger = logging.getLogger(__name__)

Workflow = Callable[[Ticket], Awaitable[TicketOutcome]]


@dataclass
class DispatchReport:
    """What happened to each ticket in one batch."""
    launched: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)  # Already processed
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    not_launched: List[str] = field(default_factory=list)  # Cancelled before a slot opened
    outcomes: Dict[str, TicketOutcome] = field(default_factory=dict)

    def summary(self) -> str:
        return (
            f"launched={len(self.launched)} completed={len(self.completed)} "
            f"failed={len(self.failed)} skipped={len(self.skipped)} "
            f"not_launched={len(self.not_launched)}"
        )


class TicketDispatcher:
    """
    Runs one workflow per unprocessed ticket, at most ``max_concurrent_tickets`` at a time.

    A ticket is marked processed only when its workflow returns a completed
    outcome. Exceptions from a workflow are logged and leave the ticket
    unprocessed; siblings keep running.
    """

    def __init__(
        self,
        state: ProcessedStore,
        max_concurrent_tickets: int,
        workflow: Workflow,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        if max_concurrent_tickets < 1:
            raise ValueError(f"max_concurrent_tickets must be >= 1, got {max_concurrent_tickets}")
        self.state = state
        self.max_concurrent_tickets = max_concurrent_tickets
        self.workflow = workflow
        self.cancel_event = cancel_event
        self._semaphore = asyncio.Semaphore(max_concurrent_tickets)

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    async def dispatch(self, tickets: Iterable[Ticket]) -> DispatchReport:
        """Launch workflows for the batch and wait for all of them."""
        report = DispatchReport()
        seen = set()
        tasks: List[asyncio.Task] = []

        try:
            for ticket in tickets:
                if ticket.key in seen:
                    logger.debug(f"Ignoring duplicate ticket {ticket.key} in batch")
                    continue
                seen.add(ticket.key)

                if self.state.is_processed(ticket.key):
                    logger.debug(f"Skipping {ticket.key}: already processed")
                    report.skipped.append(ticket.key)
                    continue
                if self._cancelled():
                    report.not_launched.append(ticket.key)
                    continue

                await self._semaphore.acquire()
                if self._cancelled():
                    self._semaphore.release()
                    report.not_launched.append(ticket.key)
                    continue

                report.launched.append(ticket.key)
                tasks.append(asyncio.create_task(self._run(ticket, report)))

            if tasks:
                await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if report.not_launched:
            logger.info(f"Run cancelled, {len(report.not_launched)} tickets not launched")
        return report

    async def _run(self, ticket: Ticket, report: DispatchReport) -> None:
        """Run one workflow in its slot and record the result."""
        try:
            outcome = await self.workflow(ticket)
        except Exception as e:
            logger.error(f"Workflow for {ticket.key} failed: {e}", exc_info=True)
            report.failed.append(ticket.key)
            return
        finally:
            self._semaphore.release()

        report.outcomes[ticket.key] = outcome
        if not outcome.completed:
            report.failed.append(ticket.key)
            return

        try:
            await asyncio.to_thread(self.state.mark_processed, ticket.key)
        except OSError as e:
            logger.error(f"Could not record {ticket.key} as processed: {e}")
            report.failed.append(ticket.key)
            return
        report.completed.append(ticket.key)
