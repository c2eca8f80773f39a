"""Running git and quality gate commands with redacted, contextual errors."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n...\n"

# Never let git block on a username/password prompt
GIT_ENV_OVERRIDES = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}


class SubprocessError(Exception):
    """A command exited non-zero or ran past its timeout."""

    def __init__(
        self,
        cmd: str,
        returncode: int,
        stderr: str,
        stdout: str = "",
        cwd: Optional[Path] = None,
        timed_out: bool = False,
    ):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        self.cwd = cwd
        self.timed_out = timed_out
        where = f" (in {cwd})" if cwd else ""
        if timed_out:
            message = f"Command timed out{where}: {cmd}"
        else:
            message = f"Command failed with exit code {returncode}{where}: {cmd}\nstderr: {stderr}"
        super().__init__(message)


def redact(text: str, secrets: Iterable[str]) -> str:
    """Mask every secret occurring in text."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


def truncate_middle(text: str, max_chars: int) -> str:
    """Keep the head and tail of long output and elide the middle.

    Setup context lives at the top of build/test output and the failure
    summary at the bottom, so both ends survive.
    """
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    head = max_chars // 2
    tail = max_chars - head
    return text[:head] + TRUNCATION_MARKER + text[len(text) - tail:]


def _text(output) -> str:
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output or ""


def run_command(
    cmd: List[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = None,
    env: Optional[dict] = None,
    secrets: Iterable[str] = (),
) -> subprocess.CompletedProcess:
    """
    Run a command and capture its text output.

    Args:
        cmd: Argument vector; never passed through a shell
        cwd: Working directory
        check: Raise on non-zero exit
        timeout: Seconds before the process is killed
        env: Extra environment variables layered over the current environment
        secrets: Values masked in error messages and logs

    Raises:
        SubprocessError: On timeout, or on non-zero exit when ``check`` is set
    """
    secrets = list(secrets)
    cmd_str = redact(" ".join(str(part) for part in cmd), secrets)
    full_env = {**os.environ, **env} if env else None
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=full_env,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout}s: {cmd_str}")
        raise SubprocessError(
            cmd=cmd_str,
            returncode=-1,
            stderr=redact(_text(e.stderr), secrets),
            stdout=redact(_text(e.stdout), secrets),
            cwd=cwd,
            timed_out=True,
        ) from e

    if check and result.returncode != 0:
        raise SubprocessError(
            cmd=cmd_str,
            returncode=result.returncode,
            stderr=redact(result.stderr or "", secrets),
            stdout=redact(result.stdout or "", secrets),
            cwd=cwd,
        )
    return result


def run_git_command(
    args: List[str],
    *,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = 30,
    secrets: Iterable[str] = (),
) -> subprocess.CompletedProcess:
    """Run ``git <args>`` non-interactively; see ``run_command``."""
    try:
        return run_command(
            ["git", *args],
            cwd=cwd,
            check=check,
            timeout=timeout,
            env=GIT_ENV_OVERRIDES,
            secrets=secrets,
        )
    except SubprocessError:
        logger.error(f"Git command failed in {cwd}: {redact(' '.join(args), secrets)}")
        raise
