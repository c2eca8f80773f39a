"""Poll-cycle control loop and the per-ticket workflow."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from .config import InternConfig
from .context_builder import build_repo_context
from .dispatcher import DispatchReport, TicketDispatcher
from .metrics import RunMetrics
from .models import CodeChange, Ticket, TicketOutcome, TicketStatus
from .pr_builder import build_branch_name, build_commit_message, build_pr_body, build_pr_title
from .state import ProcessedStore
from ..errors import ChangesetValidationError, RunCancelled, WorkflowError, tag_error
from ..integrations.base import RepositoryClient, TicketingClient
from ..llm.base import ChangeGenerator
from ..safeguards.retry_handler import RetryOutcome, retry
from ..sandbox.changeset_validator import validate_changes, write_changes
from ..sandbox.quality_gates import run_quality_gates
from ..utils.rich_logging import TicketLogger

logger = logging.getLogger(__name__)

# Floor for the wait after a cycle that could not prepare the repository or fetch tickets
MIN_DEFER_SECONDS = 5.0


@dataclass
class CycleResult:
    """Outcome of one poll cycle."""
    report: Optional[DispatchReport] = None
    deferred: bool = False  # Repository or ticket fetch failed; wait before the next cycle
    error: Optional[str] = None


class Coordinator:
    """
    Drives PREPARE_REPO -> FETCH_TICKETS -> DISPATCH -> SLEEP until cancelled.

    Per ticket: BRANCH -> GENERATE -> VALIDATE -> WRITE+COMMIT -> GATE -> PUSH
    -> OPEN_PR -> TRANSITION_STATUS. Git-mutating phases hold the checkout
    lock, so concurrent workflows never interleave on the shared working
    copy; generation, PR creation and ticket updates run concurrently.
    """

    def __init__(
        self,
        ticketing: TicketingClient,
        repository: RepositoryClient,
        generator: ChangeGenerator,
        config: InternConfig,
        state: ProcessedStore,
        metrics: Optional[RunMetrics] = None,
    ):
        self.ticketing = ticketing
        self.repository = repository
        self.generator = generator
        self.config = config
        self.state = state
        self.metrics = metrics or RunMetrics()
        self.backoff = config.orchestrator.retry.to_backoff()
        self.cancel_event = asyncio.Event()
        self._checkout_lock = asyncio.Lock()

    @property
    def base_branch(self) -> str:
        return self.config.repository.base_branch or "main"

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    async def run(self, cancel_event: Optional[asyncio.Event] = None, once: bool = False) -> None:
        """Run poll cycles until ``cancel_event`` is set (or after one cycle with ``once``)."""
        if cancel_event is not None:
            self.cancel_event = cancel_event
        poll_interval = self.config.orchestrator.poll_interval
        logger.info(
            f"Coordinator started (poll every {poll_interval}s, "
            f"up to {self.config.orchestrator.max_concurrent_tickets} tickets at a time)"
        )

        while not self.cancel_event.is_set():
            result = await self.run_cycle()
            if once:
                break
            delay = max(poll_interval, MIN_DEFER_SECONDS) if result.deferred else poll_interval
            if await self._sleep(delay):
                break

        logger.info(f"Coordinator stopped. {self.metrics.snapshot().summary()}")

    async def run_cycle(self) -> CycleResult:
        """One poll cycle. Never raises for collaborator failures."""
        try:
            await self.prepare_repository()
        except Exception as e:
            logger.error(f"Repository preparation failed, deferring cycle: {e}")
            return CycleResult(deferred=True, error=str(e))

        jira = self.config.jira
        fetched = await self._retry(
            lambda: self._call(self.ticketing.get_tickets, jira.assignee, jira.project),
            "fetch tickets",
        )
        if not fetched.succeeded:
            if isinstance(fetched.error, RunCancelled):
                return CycleResult()
            logger.error(f"Fetching tickets failed, deferring cycle: {fetched.error}")
            return CycleResult(deferred=True, error=str(fetched.error))

        tickets: List[Ticket] = fetched.value or []
        if not tickets:
            logger.info("No tickets ready for work")
            return CycleResult()

        logger.info(f"Fetched {len(tickets)} tickets")
        dispatcher = TicketDispatcher(
            self.state,
            self.config.orchestrator.max_concurrent_tickets,
            self.process_ticket,
            cancel_event=self.cancel_event,
        )
        report = await dispatcher.dispatch(tickets)
        logger.info(f"Cycle finished: {report.summary()}")
        logger.info(f"Run metrics: {self.metrics.snapshot().summary()}")
        return CycleResult(report=report)

    async def prepare_repository(self) -> None:
        """Clone on first use, then best-effort switch to base and sync.

        Raises:
            Exception: If the clone fails
        """
        if not (self.repository.repo_path / ".git").exists():
            logger.info(f"No checkout at {self.repository.repo_path}, cloning")
            cloned = await self._retry(lambda: self._call(self.repository.clone_repository), "clone repository")
            cloned.unwrap()

        async with self._checkout_lock:
            await self._best_effort("switch to base branch", self.repository.switch_branch, self.base_branch)
            await self._best_effort("sync with remote", self.repository.sync_with_remote)

    async def _sleep(self, delay: float) -> bool:
        """Wait for ``delay`` seconds. Returns True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Per-ticket workflow
    # ------------------------------------------------------------------

    async def process_ticket(self, ticket: Ticket) -> TicketOutcome:
        """
        Run the full workflow for one ticket.

        Failures are returned as non-completed outcomes rather than raised,
        so the dispatcher leaves the ticket unprocessed. A ticket moved to the
        start status is moved back to the reset status unless it completes,
        so the next fetch picks it up again.

        Returns:
            TicketOutcome; ``completed`` only when a PR was opened or the
            changes turned out to be empty
        """
        log = TicketLogger(logger, ticket.key)
        log.info(f"Starting: {ticket.summary}")
        started = await self._transition_to_start(ticket)
        outcome: Optional[TicketOutcome] = None
        try:
            outcome = await self._run_workflow(ticket, log)
        finally:
            if started and (outcome is None or not outcome.completed):
                await self._transition_to_reset(log, ticket)
        return outcome

    async def _run_workflow(self, ticket: Ticket, log: TicketLogger) -> TicketOutcome:
        repo_path = self.repository.repo_path
        retries = 0

        try:
            branch = build_branch_name(self.config.repository.branch_prefix, ticket.key)
        except ValueError as e:
            return self._failed(log, ticket, TicketStatus.FAILED, "branch", e)

        # BRANCH: fresh branch at base, context taken from the base tree
        log.set_step("branch")
        try:
            async with self._checkout_lock:
                await self._restore_base()
                await self._call(self.repository.create_branch, branch, self.base_branch)
                tracked = await self._call(self.repository.list_files)
                repo_context = await asyncio.to_thread(
                    build_repo_context,
                    repo_path,
                    self.config.context.max_files,
                    self.config.context.max_bytes,
                    tracked,
                )
        except Exception as e:
            return self._failed(log, ticket, TicketStatus.FAILED, "branch", e, branch=branch)

        # GENERATE
        log.set_step("generate")
        generated = await self._retry(
            lambda: self._tagged(
                self.generator.plan_changes(ticket.key, ticket.summary, ticket.description, repo_context)
            ),
            f"{ticket.key}: generate changes",
        )
        retries += generated.attempts
        if not generated.succeeded:
            if isinstance(generated.error, RunCancelled):
                return self._cancelled(log, ticket, "generate", branch, retries)
            self.metrics.inc_generation_failures()
            return self._failed(
                log, ticket, TicketStatus.GENERATION_FAILED, "generate", generated.error,
                branch=branch, retries=retries,
            )
        changes: List[CodeChange] = generated.value or []

        # VALIDATE
        log.set_step("validate")
        try:
            changeset = validate_changes(
                repo_path,
                changes,
                self.config.repository.allowed_write_dirs,
                self.config.repository.max_files_per_changeset,
            )
        except ChangesetValidationError as e:
            self.metrics.inc_validation_failures()
            return self._failed(log, ticket, TicketStatus.INVALID, "validate", e, branch=branch, retries=retries)

        # WRITE+COMMIT -> GATE -> PUSH
        async with self._checkout_lock:
            try:
                log.set_step("commit")
                await self._call(self.repository.switch_branch, branch)
                written = await asyncio.to_thread(write_changes, repo_path, changeset)
                for path in written:
                    await self._call(self.repository.add_file, path)

                if not await self._call(self.repository.has_local_changes):
                    log.info("No effective changes; skipping push and PR")
                    return TicketOutcome(
                        ticket_key=ticket.key, status=TicketStatus.NO_CHANGES,
                        branch=branch, retries=retries,
                    )
                await self._call(self.repository.commit, build_commit_message(ticket.key, ticket.summary))

                log.set_step("gates")
                gates = await run_quality_gates(self.config.quality_gates, repo_path)
                if not gates.ok:
                    self.metrics.inc_quality_gate_failures()
                    log.error(f"Quality gates failed ({', '.join(gates.failed_gates)}); skipping push and PR")
                    return TicketOutcome(
                        ticket_key=ticket.key, status=TicketStatus.GATE_FAILED, branch=branch,
                        step="gates", error=", ".join(gates.failed_gates), retries=retries,
                    )

                log.set_step("push")
                pushed = await self._retry(
                    lambda: self._call(self.repository.push, branch),
                    f"{ticket.key}: push",
                )
                retries += pushed.attempts
                if not pushed.succeeded:
                    if isinstance(pushed.error, RunCancelled):
                        return self._cancelled(log, ticket, "push", branch, retries)
                    return self._failed(
                        log, ticket, TicketStatus.FAILED, "push", pushed.error, branch=branch, retries=retries,
                    )
            except Exception as e:
                return self._failed(log, ticket, TicketStatus.FAILED, log.step, e, branch=branch, retries=retries)
            finally:
                # Staged or stray files must not leak into the next ticket's commit
                await self._restore_base()

        # OPEN_PR
        log.set_step("open_pr")
        title = build_pr_title(ticket.key, ticket.summary)
        body = build_pr_body(ticket.key, ticket.summary, ticket.description, changeset.changes, gates.notes)
        opened = await self._retry(
            lambda: self._call(self.repository.create_pull_request, self.base_branch, branch, title, body),
            f"{ticket.key}: open pull request",
        )
        retries += opened.attempts
        if not opened.succeeded:
            if isinstance(opened.error, RunCancelled):
                return self._cancelled(log, ticket, "open_pr", branch, retries)
            return self._failed(
                log, ticket, TicketStatus.PR_FAILED, "open_pr", opened.error, branch=branch, retries=retries,
            )
        pr_url = opened.value
        self.metrics.inc_prs_created()
        log.info(f"Opened pull request {pr_url}")
        await self._best_effort(
            f"{ticket.key}: comment with PR link",
            self.ticketing.add_comment,
            ticket.key,
            f"Pull request opened: {pr_url}",
        )

        # TRANSITION_STATUS
        log.set_step("transition")
        retries += await self._transition_to_done(log, ticket)

        self.metrics.inc_tickets_processed()
        log.set_step(None)
        log.info(f"Completed with {retries} retries")
        return TicketOutcome(
            ticket_key=ticket.key, status=TicketStatus.COMPLETED,
            branch=branch, pr_url=pr_url, retries=retries,
        )

    async def _restore_base(self) -> None:
        """Drop uncommitted work in the checkout and return to the base branch. Caller holds the lock."""
        await self._best_effort("discard local changes", self.repository.discard_local_changes)
        await self._best_effort("switch to base branch", self.repository.switch_branch, self.base_branch)

    async def _transition_to_start(self, ticket: Ticket) -> bool:
        """Move the ticket to the start status. Returns True if it moved.

        Skipped unless a reset transition is configured too; otherwise a
        failed ticket would sit outside the fetch query forever.
        """
        jira = self.config.jira
        if not (jira.start_status and jira.start_status in jira.transitions):
            return False
        if not (jira.reset_status and jira.reset_status in jira.transitions):
            logger.debug(f"No transition id for '{jira.reset_status}', not moving {ticket.key} to {jira.start_status}")
            return False
        return await self._best_effort(
            f"{ticket.key}: move to {jira.start_status}",
            self.ticketing.update_ticket_status,
            ticket.key,
            jira.start_status,
            jira.transitions,
        )

    async def _transition_to_reset(self, log: TicketLogger, ticket: Ticket) -> None:
        """Return an unfinished ticket to the reset status so the next cycle fetches it again."""
        jira = self.config.jira
        moved = await self._retry(
            lambda: self._call(self.ticketing.update_ticket_status, ticket.key, jira.reset_status, jira.transitions),
            f"{ticket.key}: move back to {jira.reset_status}",
        )
        if not moved.succeeded:
            log.error(f"Failed to move ticket back to {jira.reset_status}; it will not be fetched again: {moved.error}")

    async def _transition_to_done(self, log: TicketLogger, ticket: Ticket) -> int:
        """Move the ticket to the done status. Failure is logged, never fatal. Returns retries used."""
        jira = self.config.jira
        if not jira.done_status:
            return 0
        moved = await self._retry(
            lambda: self._call(self.ticketing.update_ticket_status, ticket.key, jira.done_status, jira.transitions),
            f"{ticket.key}: move to {jira.done_status}",
        )
        if not moved.succeeded:
            log.error(f"Failed to move ticket to {jira.done_status} (pull request exists): {moved.error}")
        return moved.attempts

    def _failed(
        self,
        log: TicketLogger,
        ticket: Ticket,
        status: TicketStatus,
        step: Optional[str],
        error: Optional[BaseException],
        branch: Optional[str] = None,
        retries: int = 0,
    ) -> TicketOutcome:
        failure = WorkflowError(ticket.key, step or "workflow", error, retries=retries)
        log.error(f"{failure} (after {retries} retries)")
        return TicketOutcome(
            ticket_key=ticket.key, status=status, branch=branch,
            step=step, error=str(error), retries=retries,
        )

    def _cancelled(self, log: TicketLogger, ticket: Ticket, step: str, branch: str, retries: int) -> TicketOutcome:
        log.info("Cancelled during backoff")
        return TicketOutcome(
            ticket_key=ticket.key, status=TicketStatus.CANCELLED, branch=branch,
            step=step, error="cancelled", retries=retries,
        )

    # ------------------------------------------------------------------
    # Call helpers
    # ------------------------------------------------------------------

    async def _tagged(self, awaitable: Awaitable[Any]) -> Any:
        """Await a collaborator call, classifying vendor errors for retry."""
        try:
            return await awaitable
        except Exception as e:
            tagged = tag_error(e)
            if tagged is e:
                raise
            raise tagged from e

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking collaborator call in a worker thread."""
        return await self._tagged(asyncio.to_thread(fn, *args))

    async def _retry(self, operation: Callable[[], Awaitable[Any]], description: str) -> RetryOutcome:
        outcome = await retry(operation, self.backoff, cancel_event=self.cancel_event, description=description)
        self.metrics.add_retries(outcome.attempts)
        return outcome

    async def _best_effort(self, step: str, fn: Callable[..., Any], *args: Any) -> bool:
        """Run an optional step. Failures are logged at WARNING and reported as False."""
        try:
            await self._call(fn, *args)
        except Exception as e:
            logger.warning(f"{step} failed (continuing): {e}")
            return False
        return True
