"""GitHub repository client: local git checkout plus PR management."""

import logging
from pathlib import Path
from typing import List, Optional

from github import Auth, Github, GithubException
from github.Repository import Repository

from ..base import RepositoryClient
from ...core.config import GitHubConfig
from ...utils.subprocess_utils import run_git_command
from ...utils.validators import validate_branch_name, validate_owner_repo

logger = logging.getLogger(__name__)


class GitHubRepositoryClient(RepositoryClient):
    """Operates on one checkout at ``repo_path``; PRs go through the GitHub API."""

    def __init__(
        self,
        config: GitHubConfig,
        checkout_path: Path,
        git_timeout: int = 120,
        remote_url: Optional[str] = None,
        gh: Optional[Github] = None,
    ):
        self.config = config
        self.repo_path = Path(checkout_path)
        self.git_timeout = git_timeout
        self._remote_url = remote_url
        self._secrets = [config.token] if config.token else []
        if gh is None:
            kwargs = {"auth": Auth.Token(config.token)} if config.token else {}
            if config.api_url:
                kwargs["base_url"] = config.api_url
            gh = Github(**kwargs)
        self.gh = gh
        self._repo: Optional[Repository] = None

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self._repo = self.gh.get_repo(validate_owner_repo(self.config.full_name))
        return self._repo

    @property
    def remote_url(self) -> str:
        """Clone URL; carries the token, so it only ever reaches git through ``secrets``."""
        if self._remote_url:
            return self._remote_url
        auth = f"x-access-token:{self.config.token}@" if self.config.token else ""
        return f"https://{auth}github.com/{self.config.full_name}.git"

    def _git(self, *args: str, cwd: Optional[Path] = None, check: bool = True):
        return run_git_command(
            list(args),
            cwd=cwd or self.repo_path,
            check=check,
            timeout=self.git_timeout,
            secrets=self._secrets,
        )

    def health_check(self) -> None:
        if not self.repo.name:
            raise RuntimeError(f"GitHub health check: repository info missing for {self.config.full_name}")
        logger.info(f"Connected to GitHub repository {self.repo.full_name}")

    def clone_repository(self) -> None:
        self.repo_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cloning {self.config.full_name} into {self.repo_path}")
        self._git("clone", self.remote_url, str(self.repo_path), cwd=self.repo_path.parent)

    def sync_with_remote(self) -> None:
        self._git("pull", "--ff-only")

    def list_files(self, path: str = "") -> List[str]:
        args = ["ls-files", "-z"]
        if path:
            args.extend(["--", path])
        result = self._git(*args)
        return [f for f in result.stdout.split("\0") if f]

    def create_branch(self, branch_name: str, base_branch: str) -> None:
        validate_branch_name(branch_name)
        validate_branch_name(base_branch)
        # -f resets a branch left over from an earlier attempt
        self._git("branch", "-f", branch_name, base_branch)
        logger.debug(f"Branch {branch_name} now at {base_branch}")

    def switch_branch(self, branch_name: str) -> None:
        self._git("checkout", validate_branch_name(branch_name))

    def add_file(self, file_path: str) -> None:
        self._git("add", "--", file_path)

    def has_local_changes(self) -> bool:
        result = self._git("status", "--porcelain")
        return bool(result.stdout.strip())

    def discard_local_changes(self) -> None:
        self._git("reset", "--hard", "--quiet")
        # Ignored files (build caches) are kept
        self._git("clean", "-fd", "--quiet")

    def commit(self, message: str) -> None:
        self._git(
            "-c", f"user.name={self.config.commit_author_name}",
            "-c", f"user.email={self.config.commit_author_email}",
            "commit", "-m", message,
        )

    def push(self, branch_name: str) -> None:
        validate_branch_name(branch_name)
        refspec = f"refs/heads/{branch_name}:refs/heads/{branch_name}"
        self._git("push", "--force", "origin", refspec)
        logger.info(f"Pushed {branch_name}")

    def _resolve_base(self, base_branch: str) -> str:
        """Use ``base_branch`` if it exists on the remote, else the default branch."""
        if base_branch:
            try:
                self.repo.get_git_ref(f"heads/{base_branch}")
                return base_branch
            except GithubException as e:
                if e.status != 404:
                    raise
        default = self.repo.default_branch or "main"
        logger.warning(f"Base branch {base_branch!r} not found, using default branch {default}")
        return default

    def _find_open_pr_url(self, head_branch: str) -> Optional[str]:
        pulls = self.repo.get_pulls(state="open", head=f"{self.config.owner}:{head_branch}")
        for pr in pulls:
            return pr.html_url
        return None

    def create_pull_request(self, base_branch: str, head_branch: str, title: str, body: str) -> str:
        """Open a pull request, or return the URL of the one already open for ``head_branch``."""
        base = self._resolve_base(base_branch)
        try:
            pr = self.repo.create_pull(title=title, body=body, head=head_branch, base=base)
        except GithubException as e:
            if e.status == 422 and "already exists" in str(e.data):
                url = self._find_open_pr_url(head_branch)
                if url:
                    logger.info(f"Pull request for {head_branch} already exists: {url}")
                    return url
            raise

        if self.config.labels:
            pr.add_to_labels(*self.config.labels)
        if not pr.html_url:
            raise RuntimeError("pull request created but URL missing")
        return pr.html_url
