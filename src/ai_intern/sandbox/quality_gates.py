"""Build/test gates that must pass before a changeset is pushed."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from ..core.config import GateConfig, QualityGatesConfig
from ..utils.subprocess_utils import SubprocessError, run_command, truncate_middle

logger = logging.getLogger(__name__)


@dataclass
class GateReport:
    """Notes for the PR body and the overall verdict."""
    notes: List[str] = field(default_factory=list)
    ok: bool = True
    failed_gates: List[str] = field(default_factory=list)


def _last_line(output: str) -> str:
    for line in reversed(output.strip().splitlines()):
        if line.strip():
            return line.strip()
    return ""


def _run_gate(gate: GateConfig, repo_root: Path) -> Tuple[bool, str, bool]:
    """Run one gate command. Returns (passed, combined output, timed_out)."""
    try:
        result = run_command(
            gate.command,
            cwd=repo_root,
            check=False,
            timeout=gate.timeout,
        )
    except SubprocessError as e:
        return False, (e.stdout or "") + (e.stderr or ""), e.timed_out
    except OSError as e:
        return False, f"cannot run {' '.join(gate.command)}: {e}", False
    output = (result.stdout or "") + (result.stderr or "")
    return result.returncode == 0, output, False


async def run_gate(name: str, gate: GateConfig, repo_root: Path, max_output_chars: int) -> Tuple[bool, List[str]]:
    """Run a single gate in a worker thread and render its notes."""
    if not gate.enabled:
        return True, [f"{name}: skipped"]
    if not gate.command:
        logger.error(f"Quality gate {name} is enabled but has no command")
        return False, [f"{name}: FAILED (no command configured)"]

    logger.info(f"Running quality gate {name}: {' '.join(gate.command)}")
    passed, output, timed_out = await asyncio.to_thread(_run_gate, gate, Path(repo_root))

    if passed:
        summary = _last_line(output)
        note = f"{name}: PASSED ({summary})" if summary else f"{name}: PASSED"
        return True, [note]

    status = f"FAILED (timed out after {gate.timeout}s)" if timed_out else "FAILED"
    logger.warning(f"Quality gate {name} {status}")
    notes = [f"{name}: {status}"]
    trimmed = truncate_middle(output.strip(), max_output_chars)
    if trimmed:
        notes.append(f"```\n{trimmed}\n```")
    return False, notes


async def run_quality_gates(config: QualityGatesConfig, repo_root: Path) -> GateReport:
    """
    Run every configured gate against the checkout.

    Disabled gates add a "skipped" note and never affect the verdict. Each
    enabled gate runs under its own timeout.

    Returns:
        GateReport; ``ok`` is False if any enabled gate failed
    """
    report = GateReport()
    for name, gate in (("static check", config.static_check), ("tests", config.tests)):
        passed, notes = await run_gate(name, gate, repo_root, config.max_output_chars)
        report.notes.extend(notes)
        if not passed:
            report.ok = False
            report.failed_gates.append(name)
    return report
