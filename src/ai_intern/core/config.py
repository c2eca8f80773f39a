"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigError
from ..safeguards.retry_handler import BackoffConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/intern.yaml")


class JIRAConfig(BaseModel):
    """JIRA configuration."""
    provider: Literal["jira"] = "jira"
    server: str = ""
    email: Optional[str] = None
    api_token: Optional[str] = None
    project: str = ""
    assignee: str = ""  # Tickets assigned to this user are picked up
    # Logical status -> tracker transition id
    transitions: Dict[str, str] = Field(default_factory=dict)
    start_status: Optional[str] = "In Progress"
    # Unfinished tickets return here; must be a status the ticket query selects
    reset_status: Optional[str] = "To Do"
    done_status: str = "Done"
    max_results: int = 100
    timeout: int = 30


class GitHubConfig(BaseModel):
    """GitHub configuration."""
    token: Optional[str] = None
    owner: str = ""
    repo: str = ""
    api_url: Optional[str] = None  # GitHub Enterprise base URL
    commit_author_name: str = "AI Intern Agent"
    commit_author_email: str = "ai-intern@example.com"
    labels: List[str] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class LLMConfig(BaseModel):
    """Change generator configuration."""
    mode: Literal["litellm"] = "litellm"
    model: str = "claude-sonnet-4-5-20250929"
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    max_tokens: int = 8000
    temperature: float = 0.2
    timeout: float = 300
    allow_base64: bool = True
    language_hint: str = "software"  # Used in the prompt: "You are a senior <hint> engineer"


class RepositoryConfig(BaseModel):
    """Local checkout and write-sandbox configuration."""
    provider: Literal["github"] = "github"
    working_dir: Path = Field(default=Path("./workspace"))
    base_branch: str = "main"
    branch_prefix: str = "feature"
    allowed_write_dirs: List[str] = Field(default_factory=lambda: ["internal", "cmd", "pkg", "docs"])
    max_files_per_changeset: int = 20
    git_timeout: int = 120

    @field_validator("allowed_write_dirs", mode="before")
    @classmethod
    def split_allowed_dirs(cls, v: Any) -> Any:
        # Accept the comma-separated env form: "internal,cmd,."
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("allowed_write_dirs")
    @classmethod
    def validate_allowed_dirs(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("allowed_write_dirs must name at least one directory")
        return v

    @field_validator("max_files_per_changeset")
    @classmethod
    def validate_max_files(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_files_per_changeset must be >= 1, got {v}")
        return v

    def checkout_path(self, repo_name: str) -> Path:
        """The single on-disk checkout shared by every ticket workflow."""
        return Path(self.working_dir).expanduser() / repo_name


class ContextConfig(BaseModel):
    """Bounds on the repository snapshot sent to the generator."""
    max_files: int = 40
    max_bytes: int = 32 * 1024


class GateConfig(BaseModel):
    """A single quality gate command."""
    enabled: bool = False
    command: List[str] = Field(default_factory=list)
    timeout: int = 600

    @field_validator("command", mode="before")
    @classmethod
    def split_command(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.split()
        return v


class QualityGatesConfig(BaseModel):
    """Build/test checks that must pass before pushing."""
    static_check: GateConfig = Field(
        default_factory=lambda: GateConfig(command=["go", "vet", "./..."])
    )
    tests: GateConfig = Field(
        default_factory=lambda: GateConfig(command=["go", "test", "./..."])
    )
    max_output_chars: int = 8000


class RetryConfig(BaseModel):
    """Backoff settings for retry-safe vendor calls (seconds)."""
    initial: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.2
    max_retries: int = 3

    @field_validator("jitter")
    @classmethod
    def validate_jitter(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError(f"jitter must be 0..1, got {v}")
        return v

    def to_backoff(self) -> BackoffConfig:
        return BackoffConfig(
            initial=self.initial,
            max_delay=self.max_delay,
            multiplier=self.multiplier,
            jitter=self.jitter,
            max_retries=self.max_retries,
        )


class OrchestratorConfig(BaseModel):
    """Poll loop and concurrency settings."""
    poll_interval: float = 30.0
    max_concurrent_tickets: int = 1
    state_file: Path = Field(default=Path("agent_state.json"))
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("max_concurrent_tickets")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_concurrent_tickets must be >= 1, got {v}")
        return v

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"poll_interval must be positive, got {v}")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    use_file: bool = True
    use_json: bool = False


class InternConfig(BaseSettings):
    """Main configuration."""
    model_config = SettingsConfigDict(
        env_prefix="INTERN_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    workspace: Path = Field(default=Path("."))
    jira: JIRAConfig = Field(default_factory=JIRAConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    quality_gates: QualityGatesConfig = Field(default_factory=QualityGatesConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def checkout_path(self) -> Path:
        return self.repository.checkout_path(self.github.repo or "repo")

    @property
    def state_path(self) -> Path:
        state_file = self.orchestrator.state_file
        return state_file if state_file.is_absolute() else self.workspace / state_file

    def validate_for_run(self) -> None:
        """Check that every credential the live collaborators need is present.

        Raises:
            ConfigError: Listing every missing value
        """
        problems = []
        if not (self.jira.server and self.jira.email and self.jira.api_token and self.jira.project):
            problems.append("missing JIRA configuration (server, email, api_token, project)")
        if not self.jira.assignee:
            problems.append("missing jira.assignee (agent username)")
        if not (self.github.token and self.github.owner and self.github.repo):
            problems.append("missing GitHub configuration (token, owner, repo)")
        if not self.llm.model:
            problems.append("missing llm.model")
        if self.jira.done_status and self.jira.done_status not in self.jira.transitions:
            problems.append(f"no transition id configured for done status '{self.jira.done_status}'")
        jira = self.jira
        if jira.start_status in jira.transitions and jira.reset_status not in jira.transitions:
            problems.append(
                f"start status '{jira.start_status}' needs a transition id for reset status '{jira.reset_status}'"
            )
        if problems:
            raise ConfigError(problems)


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> InternConfig:
    """Load configuration from a YAML file, falling back to defaults + env."""
    if not config_path.exists():
        logger.warning(
            f"Config file not found: {config_path}. Using default configuration. "
            "Run 'intern init' to create one."
        )
        return InternConfig()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    data = _expand_env_vars(data)
    return InternConfig(**data)


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand ``${VAR}`` strings from the environment.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "jira.api_token")
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used, which may cause errors."
            )
            return data
        return value
    return data
