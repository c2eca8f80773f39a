"""Main CLI for the AI intern."""

import asyncio
import signal
from pathlib import Path

import click
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..core.config import DEFAULT_CONFIG_PATH, InternConfig, load_config
from ..core.coordinator import Coordinator
from ..core.metrics import RunMetrics
from ..core.state import ProcessedStore
from ..errors import ConfigError
from ..integrations.factory import create_generator, create_repository_client, create_ticketing_client
from ..utils.atomic_io import atomic_write_json
from ..utils.rich_logging import setup_rich_logging


console = Console()

SAMPLE_CONFIG = """\
# AI intern configuration. ${VAR} values are read from the environment (.env is loaded).
jira:
  server: ${JIRA_URL}
  email: ${JIRA_USER}
  api_token: ${JIRA_TOKEN}
  project: ${JIRA_PROJECT_KEY}
  assignee: ${JIRA_ASSIGNEE}
  # Logical status -> JIRA transition id (see /rest/api/2/issue/<key>/transitions)
  transitions:
    To Do: "11"
    In Progress: "21"
    Done: "31"
  start_status: In Progress
  reset_status: To Do  # where failed tickets go back to
  done_status: Done

github:
  token: ${GITHUB_TOKEN}
  owner: ${GITHUB_OWNER}
  repo: ${GITHUB_REPO}

llm:
  mode: litellm
  model: claude-sonnet-4-5-20250929
  api_key: ${ANTHROPIC_API_KEY}
  max_tokens: 8000
  timeout: 300

repository:
  provider: github
  working_dir: ./workspace
  base_branch: main
  branch_prefix: feature
  allowed_write_dirs: [internal, cmd, pkg, docs]
  max_files_per_changeset: 20

context:
  max_files: 40
  max_bytes: 32768

quality_gates:
  static_check:
    enabled: false
    command: [go, vet, ./...]
    timeout: 600
  tests:
    enabled: false
    command: [go, test, ./...]
    timeout: 600

orchestrator:
  poll_interval: 30
  max_concurrent_tickets: 1
  state_file: agent_state.json
  retry:
    initial: 1.0
    max_delay: 10.0
    multiplier: 2.0
    jitter: 0.2
    max_retries: 3

logging:
  level: INFO
  use_file: true
  use_json: false
"""

SAMPLE_ENV = """\
JIRA_URL=https://your-company.atlassian.net
JIRA_USER=agent@your-company.com
JIRA_TOKEN=
JIRA_PROJECT_KEY=PROJ
JIRA_ASSIGNEE=ai-intern
GITHUB_TOKEN=
GITHUB_OWNER=your-org
GITHUB_REPO=your-repo
ANTHROPIC_API_KEY=
"""


def _load_config(ctx) -> InternConfig:
    """Load .env and the YAML config for the selected workspace."""
    workspace = ctx.obj["workspace"]
    load_dotenv(workspace / ".env")
    config_path = ctx.obj["config_path"]
    if not config_path.is_absolute():
        config_path = workspace / config_path
    config = load_config(config_path)
    config.workspace = workspace
    return config


def _fail(ctx, message: str) -> None:
    console.print(f"[red]Error: {message}[/]")
    ctx.exit(1)


@click.group()
@click.option("--workspace", "-w", default=".", help="Workspace directory")
@click.option("--config", "-c", "config_path", default=str(DEFAULT_CONFIG_PATH), help="Config file (relative to workspace)")
@click.version_option(__version__, prog_name="intern")
@click.pass_context
def cli(ctx, workspace, config_path):
    """AI Intern - turns assigned JIRA tickets into GitHub pull requests."""
    ctx.ensure_object(dict)
    ctx.obj["workspace"] = Path(workspace)
    ctx.obj["config_path"] = Path(config_path)


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite existing files")
@click.pass_context
def init(ctx, force):
    """Write a sample config, .env.example and an empty state file."""
    workspace = ctx.obj["workspace"]
    console.print("[bold green]Initializing AI intern workspace...[/]")

    config_path = ctx.obj["config_path"]
    if not config_path.is_absolute():
        config_path = workspace / config_path

    for path, content in ((config_path, SAMPLE_CONFIG), (workspace / ".env.example", SAMPLE_ENV)):
        if path.exists() and not force:
            console.print(f"  [dim]Skipped {path} (exists)[/]")
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        console.print(f"  Created {path}")

    state_path = workspace / "agent_state.json"
    if state_path.exists() and not force:
        console.print(f"  [dim]Skipped {state_path} (exists)[/]")
    else:
        atomic_write_json(state_path, {"processed": {}})
        console.print(f"  Created {state_path}")

    console.print("[green]✓ Initialization complete![/]")
    console.print("\nNext steps:")
    console.print("1. Copy .env.example to .env and fill in credentials")
    console.print(f"2. Set JIRA transition ids in {config_path}")
    console.print("3. Run 'intern validate-config', then 'intern run'")


@cli.command("validate-config")
@click.pass_context
def validate_config(ctx):
    """Load the configuration and check that every credential is present."""
    try:
        config = _load_config(ctx)
        config.validate_for_run()
    except ConfigError as e:
        console.print("[red]Configuration is incomplete:[/]")
        for problem in e.problems:
            console.print(f"  [red]✗[/] {problem}")
        ctx.exit(1)
    except (ValidationError, yaml.YAMLError) as e:
        _fail(ctx, f"invalid configuration: {e}")

    table = Table(title="Configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("JIRA", f"{config.jira.server} (project {config.jira.project}, assignee {config.jira.assignee})")
    table.add_row("GitHub", config.github.full_name)
    table.add_row("Model", f"{config.llm.mode}: {config.llm.model}")
    table.add_row("Checkout", str(config.checkout_path))
    table.add_row("Allowed dirs", ", ".join(config.repository.allowed_write_dirs))
    table.add_row("Concurrency", str(config.orchestrator.max_concurrent_tickets))
    table.add_row("State file", str(config.state_path))
    console.print(table)
    console.print("[green]✓ Configuration is valid[/]")


@cli.command()
@click.pass_context
def status(ctx):
    """Show tickets already processed."""
    try:
        config = _load_config(ctx)
    except (ValidationError, yaml.YAMLError) as e:
        _fail(ctx, f"invalid configuration: {e}")

    store = ProcessedStore(config.state_path)
    store.load()
    keys = store.processed_keys()

    console.print(f"[bold]Processed tickets: {len(keys)}[/] ({config.state_path})")
    if not keys:
        return
    table = Table()
    table.add_column("Ticket")
    table.add_column("Branch")
    prefix = config.repository.branch_prefix
    for key in keys:
        table.add_row(key, f"{prefix}/{key.lower()}" if prefix else key.lower())
    console.print(table)


@cli.command()
@click.option("--once", is_flag=True, help="Run a single poll cycle and exit")
@click.pass_context
def run(ctx, once):
    """Poll JIRA and turn assigned tickets into pull requests."""
    try:
        config = _load_config(ctx)
        config.validate_for_run()
    except ConfigError as e:
        _fail(ctx, str(e))
    except (ValidationError, yaml.YAMLError) as e:
        _fail(ctx, f"invalid configuration: {e}")

    setup_rich_logging(
        config.workspace,
        log_level=config.logging.level,
        use_file=config.logging.use_file,
        use_json=config.logging.use_json,
    )

    state = ProcessedStore(config.state_path)
    state.load()
    try:
        ticketing = create_ticketing_client(config)
        repository = create_repository_client(config)
        generator = create_generator(config)
        ticketing.health_check()
        repository.health_check()
    except Exception as e:
        _fail(ctx, f"startup failed: {e}")

    coordinator = Coordinator(ticketing, repository, generator, config, state, RunMetrics())
    console.print(f"[bold green]Starting AI intern[/] for {config.github.full_name}")
    asyncio.run(_run_until_signalled(coordinator, once))

    snapshot = coordinator.metrics.snapshot()
    console.print(f"[green]✓ Stopped.[/] {snapshot.summary()}")


async def _run_until_signalled(coordinator: Coordinator, once: bool) -> None:
    """Run the coordinator; SIGINT/SIGTERM stop it after running workflows drain."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass
    await coordinator.run(cancel_event, once=once)


if __name__ == "__main__":
    cli()
