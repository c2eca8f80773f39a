"""Tests for the JIRA ticketing client (SDK mocked)."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from ai_intern.core.config import JIRAConfig
from ai_intern.errors import ClassifiedError, is_permanent
from ai_intern.integrations.jira.client import JIRAClient, build_ticket_jql, flatten_adf


def _issue(key, summary="Do it", description="Details", status="To Do", assignee="ai-intern"):
    fields = SimpleNamespace(
        summary=summary,
        description=description,
        status=SimpleNamespace(name=status),
        assignee=SimpleNamespace(name=assignee),
    )
    return SimpleNamespace(key=key, fields=fields)


@pytest.fixture
def jira():
    return MagicMock()


@pytest.fixture
def client(jira):
    return JIRAClient(JIRAConfig(server="https://acme.atlassian.net", project="PROJ"), jira=jira)


def test_jql_selects_ready_tickets_by_priority():
    assert build_ticket_jql("ai-intern", "PROJ") == (
        "assignee = 'ai-intern' AND project = 'PROJ' "
        "AND statusCategory = 'To Do' ORDER BY priority ASC"
    )


def test_jql_escapes_quotes():
    assert "assignee = 'o\\'brien'" in build_ticket_jql("o'brien", "PROJ")


def test_get_tickets_maps_issues(client, jira):
    jira.search_issues.return_value = [_issue("PROJ-12", summary="Add health endpoint")]

    tickets = client.get_tickets("ai-intern", "PROJ")

    assert [t.key for t in tickets] == ["PROJ-12"]
    assert tickets[0].summary == "Add health endpoint"
    assert tickets[0].status == "To Do"
    assert tickets[0].assignee == "ai-intern"
    kwargs = jira.search_issues.call_args.kwargs
    assert kwargs["maxResults"] == 100
    assert "statusCategory = 'To Do'" in kwargs["jql_str"]


def test_adf_description_flattened(client, jira):
    adf = {
        "type": "doc",
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": "Expose "}, {"type": "text", "text": "/healthz"}]},
            {"type": "bulletList", "content": [
                {"type": "listItem", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "return 200"}]}]},
            ]},
        ],
    }
    jira.search_issues.return_value = [_issue("PROJ-1", description=adf)]

    ticket = client.get_tickets("a", "PROJ")[0]

    assert ticket.description == "Expose /healthz\n- return 200"


def test_flatten_adf_passthrough():
    assert flatten_adf("plain text") == "plain text"
    assert flatten_adf(None) == ""


def test_update_status_uses_configured_transition(client, jira):
    client.update_ticket_status("PROJ-12", "Done", {"Done": "31"})

    jira.transition_issue.assert_called_once_with("PROJ-12", "31")


def test_update_status_without_transition_is_permanent(client, jira):
    with pytest.raises(ClassifiedError) as exc_info:
        client.update_ticket_status("PROJ-12", "Done", {"In Progress": "21"})

    assert is_permanent(exc_info.value)
    jira.transition_issue.assert_not_called()


def test_add_comment(client, jira):
    client.add_comment("PROJ-12", "PR: https://example/pr/1")

    jira.add_comment.assert_called_once_with("PROJ-12", "PR: https://example/pr/1")


def test_health_check_fetches_current_user(client, jira):
    jira.myself.return_value = {"displayName": "AI Intern"}

    client.health_check()

    jira.myself.assert_called_once()
