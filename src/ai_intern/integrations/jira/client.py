"""JIRA client for ticket intake and status updates."""

import logging
from typing import Any, Dict, List, Optional

from jira import JIRA
from jira.resources import Issue

from ..base import TicketingClient
from ...core.config import JIRAConfig
from ...core.models import Ticket
from ...errors import make_permanent

logger = logging.getLogger(__name__)

TICKET_FIELDS = "summary,description,status,assignee"


def _escape_jql(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_ticket_jql(assignee: str, project: str) -> str:
    """JQL selecting the assignee's ready-for-work tickets, highest priority first."""
    return (
        f"assignee = '{_escape_jql(assignee)}' AND project = '{_escape_jql(project)}' "
        f"AND statusCategory = 'To Do' ORDER BY priority ASC"
    )


def flatten_adf(node: Any) -> str:
    """Flatten an Atlassian Document Format tree into plain text.

    Plain strings pass through unchanged, so v2 (wiki markup) descriptions
    work as well.
    """
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(flatten_adf(child) for child in node)
    if not isinstance(node, dict):
        # jira's PropertyHolder for ADF documents
        raw = getattr(node, "raw", None)
        return flatten_adf(raw) if raw is not None else str(node)

    node_type = node.get("type")
    if node_type == "text":
        return node.get("text", "")
    if node_type == "hardBreak":
        return "\n"
    text = flatten_adf(node.get("content", []))
    if node_type in ("paragraph", "heading", "codeBlock", "blockquote", "rule"):
        return text + "\n"
    if node_type == "listItem":
        return "- " + text
    return text


def _user_name(user: Any) -> Optional[str]:
    if user is None:
        return None
    for attr in ("name", "emailAddress", "displayName", "accountId"):
        value = getattr(user, attr, None)
        if value:
            return str(value)
    return None


class JIRAClient(TicketingClient):
    """JIRA API client for ticket operations."""

    def __init__(self, config: JIRAConfig, jira: Optional[JIRA] = None):
        self.config = config
        # Retries are handled by the orchestrator's backoff policy
        self.jira = jira or JIRA(
            server=config.server,
            basic_auth=(config.email, config.api_token),
            timeout=config.timeout,
            max_retries=0,
        )

    def health_check(self) -> None:
        """Verify credentials by fetching the authenticated user."""
        me = self.jira.myself()
        logger.info(f"Connected to JIRA as {me.get('displayName') or me.get('name', '?')}")

    def get_tickets(self, assignee: str, project: str) -> List[Ticket]:
        jql = build_ticket_jql(assignee, project)
        logger.debug(f"Searching JIRA: {jql}")
        issues = self.jira.search_issues(
            jql_str=jql,
            maxResults=self.config.max_results,
            fields=TICKET_FIELDS,
        )
        return [self.issue_to_ticket(issue) for issue in issues]

    def update_ticket_status(self, ticket_key: str, status: str, transitions: Dict[str, str]) -> None:
        """Transition ticket to a logical status.

        Raises:
            ClassifiedError: Permanent, when no transition id is configured for ``status``
        """
        transition_id = transitions.get(status)
        if not transition_id:
            raise make_permanent(ValueError(f"no transition id configured for status '{status}'"))

        self.jira.transition_issue(ticket_key, transition_id)
        logger.info(f"Transitioned {ticket_key} to {status}")

    def add_comment(self, ticket_key: str, body: str) -> None:
        self.jira.add_comment(ticket_key, body)

    @staticmethod
    def issue_to_ticket(issue: Issue) -> Ticket:
        """Convert a JIRA issue to an immutable Ticket snapshot."""
        fields = issue.fields
        status = getattr(fields, "status", None)
        return Ticket(
            key=issue.key,
            summary=getattr(fields, "summary", None) or "",
            description=flatten_adf(getattr(fields, "description", None)).strip(),
            status=getattr(status, "name", None),
            assignee=_user_name(getattr(fields, "assignee", None)),
        )
