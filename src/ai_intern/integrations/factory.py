"""Build the live collaborators selected by configuration."""

import logging
from typing import Callable, Dict

from .base import RepositoryClient, TicketingClient
from ..core.config import InternConfig
from ..llm.base import ChangeGenerator

logger = logging.getLogger(__name__)


def _jira(config: InternConfig) -> TicketingClient:
    from .jira.client import JIRAClient
    return JIRAClient(config.jira)


def _github(config: InternConfig) -> RepositoryClient:
    from .github.client import GitHubRepositoryClient
    return GitHubRepositoryClient(
        config.github,
        config.checkout_path,
        git_timeout=config.repository.git_timeout,
    )


def _litellm(config: InternConfig) -> ChangeGenerator:
    from ..llm.litellm_generator import LiteLLMGenerator
    return LiteLLMGenerator(config.llm)


TICKETING_PROVIDERS: Dict[str, Callable[[InternConfig], TicketingClient]] = {"jira": _jira}
REPOSITORY_PROVIDERS: Dict[str, Callable[[InternConfig], RepositoryClient]] = {"github": _github}
GENERATOR_MODES: Dict[str, Callable[[InternConfig], ChangeGenerator]] = {"litellm": _litellm}


def _select(registry: Dict[str, Callable], kind: str, name: str):
    try:
        return registry[name]
    except KeyError:
        raise ValueError(f"Unknown {kind} '{name}'. Available: {', '.join(sorted(registry))}") from None


def create_ticketing_client(config: InternConfig) -> TicketingClient:
    return _select(TICKETING_PROVIDERS, "ticketing provider", config.jira.provider)(config)


def create_repository_client(config: InternConfig) -> RepositoryClient:
    return _select(REPOSITORY_PROVIDERS, "repository provider", config.repository.provider)(config)


def create_generator(config: InternConfig) -> ChangeGenerator:
    return _select(GENERATOR_MODES, "generator mode", config.llm.mode)(config)
