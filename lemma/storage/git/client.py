"""Git client backed by the ``git`` executable.

Each operation runs ``git`` as a subprocess inside the workspace root with:

- a clean environment (inherited ``GIT_*`` variables dropped, terminal
  prompts disabled, C locale so stderr can be classified),
- a per-call timeout, so a stuck remote cannot hold the workspace lock
  forever,
- credentials passed per network command as an HTTP ``Authorization``
  header through ``GIT_CONFIG_*`` environment variables, so the token
  never shows up in argv or ``.git/config``.  It is also redacted from
  every error message.

Failures are mapped onto the ``GitOperationError`` hierarchy by matching
git's stderr (see ``classify_git_error``).
"""

from __future__ import annotations

import base64
import os
import shutil
import subprocess  # nosec: B404
from collections.abc import Mapping, Sequence
from pathlib import Path

from loguru import logger

from lemma.storage.errors import (
    GitAuthError,
    GitConflictError,
    GitNetworkError,
    GitOperationError,
    GitUnknownError,
)
from lemma.storage.models.enums import GitAttachPolicy, GitOperation
from lemma.storage.models.git import GitConfig

REMOTE_NAME = "origin"
_CHECKOUT_CHUNK = 100

_AUTH_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "invalid username or password",
    "terminal prompts disabled",
    "returned error: 401",
    "returned error: 403",
    "access denied",
    "permission denied (publickey",
)
_CONFLICT_MARKERS = (
    "[rejected]",
    "non-fast-forward",
    "fetch first",
    "not possible to fast-forward",
    "diverging branches",
    "conflict",
    "would be overwritten",
    "uncommitted changes",
)
_NETWORK_MARKERS = (
    "could not resolve host",
    "unable to access",
    "connection refused",
    "connection timed out",
    "operation timed out",
    "network is unreachable",
    "no route to host",
    "failed to connect",
    "could not read from remote repository",
    "does not appear to be a git repository",
    "repository not found",
)


def git_env(config: Mapping[str, str] | None = None) -> dict[str, str]:
    """Create a clean environment for git subprocesses.

    Removes GIT_* environment variables so a parent git process (hooks,
    CI) cannot redirect our commands, and disables interactive prompts.
    *config* entries are passed as ``GIT_CONFIG_KEY_n``/``GIT_CONFIG_VALUE_n``
    pairs, which keeps them out of the process argv.
    """
    env = {k: v for k, v in os.environ.items() if not k.startswith("GIT_")}
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["LC_ALL"] = "C"
    if config:
        for index, (key, value) in enumerate(config.items()):
            env[f"GIT_CONFIG_KEY_{index}"] = key
            env[f"GIT_CONFIG_VALUE_{index}"] = value
        env["GIT_CONFIG_COUNT"] = str(len(config))
    return env


def classify_git_error(operation: str, stderr: str) -> GitOperationError:
    """Pick the ``GitOperationError`` subclass that best matches *stderr*."""
    detail = stderr.strip() or "unknown error"
    lowered = detail.lower()
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return GitAuthError(operation, detail)
    if any(marker in lowered for marker in _CONFLICT_MARKERS):
        return GitConflictError(operation, detail)
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return GitNetworkError(operation, detail)
    return GitUnknownError(operation, detail)


class SubprocessGitClient:
    """``GitClient`` implementation driving the git CLI in ``work_dir``."""

    def __init__(
        self,
        config: GitConfig,
        work_dir: str | Path,
        *,
        git_binary: str = "git",
        timeout: float | None = 120.0,
        attach_policy: GitAttachPolicy = GitAttachPolicy.REFUSE,
        default_branch: str = "main",
    ) -> None:
        self._config = config
        self._work_dir = Path(work_dir)
        self._git = git_binary
        self._timeout = timeout
        self._attach_policy = GitAttachPolicy(attach_policy)
        self._default_branch = default_branch

    @property
    def work_dir(self) -> Path:
        return self._work_dir

    # -- Protocol --------------------------------------------------------------

    def clone(self) -> None:
        self._work_dir.mkdir(parents=True, exist_ok=True)
        had_git = self._is_repo()
        try:
            self._run(
                [
                    "-c",
                    f"init.defaultBranch={self._default_branch}",
                    "clone",
                    "--origin",
                    REMOTE_NAME,
                    self._remote_url,
                    ".",
                ],
                operation=GitOperation.CLONE,
                network=True,
            )
        except GitOperationError:
            if not had_git:
                remove_git_metadata(self._work_dir)
            raise
        logger.info("Git: cloned {} into {}", self._remote_url, self._work_dir)

    def pull(self) -> None:
        self._require_repo(GitOperation.PULL)
        if self._is_dirty():
            raise GitConflictError(
                GitOperation.PULL,
                "working tree has uncommitted changes; commit or discard them before pulling",
            )

        self._fetch(GitOperation.PULL)
        branch = self._current_branch()
        if not self._ref_exists(f"refs/remotes/{REMOTE_NAME}/{branch}"):
            logger.debug("Git: remote has no branch {} yet, nothing to pull", branch)
            return

        self._run(["merge", "--ff-only", f"{REMOTE_NAME}/{branch}"], operation=GitOperation.PULL)
        logger.info("Git: pulled {}/{} into {}", REMOTE_NAME, branch, self._work_dir)

    def commit(self, message: str) -> str:
        self._require_repo(GitOperation.COMMIT)
        self._run(["add", "-A"], operation=GitOperation.COMMIT)

        has_head = self._has_commits()
        if has_head and not self._has_staged_changes():
            logger.debug("Git: nothing to commit in {}", self._work_dir)
            return self._head()

        args = [*self._identity(), "commit", "--no-gpg-sign", "-m", message]
        if not has_head:
            args.append("--allow-empty")
        self._run(args, operation=GitOperation.COMMIT)
        commit_hash = self._head()
        logger.info("Git: committed {} in {}", commit_hash[:12], self._work_dir)
        return commit_hash

    def push(self) -> None:
        self._require_repo(GitOperation.PUSH)
        if not self._has_commits():
            raise GitUnknownError(GitOperation.PUSH, "nothing to push: repository has no commits")
        branch = self._current_branch()
        self._run(
            ["push", REMOTE_NAME, f"HEAD:refs/heads/{branch}"],
            operation=GitOperation.PUSH,
            network=True,
        )
        logger.info("Git: pushed {} to {}", branch, self._remote_url)

    def ensure_repo(self) -> None:
        self._work_dir.mkdir(parents=True, exist_ok=True)
        if self._is_repo():
            self._sync_remote_url()
            if self._is_dirty():
                # Unsaved local edits win; the next explicit pull reports the conflict.
                logger.info("Git: {} has uncommitted changes, skipping pull on setup", self._work_dir)
                return
            self.pull()
            return
        if not any(self._work_dir.iterdir()):
            self.clone()
            return
        self._attach()

    # -- Attach ----------------------------------------------------------------

    def _attach(self) -> None:
        """Put git metadata under an already-populated workspace.

        Working-tree files are never modified.  If anything fails, the
        ``.git`` created here is removed again.
        """
        op = GitOperation.ENSURE_REPO
        try:
            self._run(["init", f"--initial-branch={self._default_branch}"], operation=op)
            self._run(["remote", "add", REMOTE_NAME, self._remote_url], operation=op)
            self._fetch(op)

            heads = self._remote_heads()
            if heads:
                if self._attach_policy is GitAttachPolicy.REFUSE:
                    raise GitConflictError(
                        op,
                        "remote already has content and the workspace is not empty "
                        f"(attach policy '{self._attach_policy}')",
                    )
                self._adopt_remote(heads)
        except BaseException:
            logger.warning("Git: attach failed for {}, removing new git metadata", self._work_dir)
            remove_git_metadata(self._work_dir)
            raise
        logger.info("Git: attached {} to {} (policy={})", self._work_dir, self._remote_url, self._attach_policy)

    def _adopt_remote(self, heads: Sequence[str]) -> None:
        """Point the local branch at the remote one and restore files missing locally."""
        op = GitOperation.ENSURE_REPO
        branch = self._default_branch if self._default_branch in heads else sorted(heads)[0]

        self._run(["update-ref", f"refs/heads/{branch}", f"refs/remotes/{REMOTE_NAME}/{branch}"], operation=op)
        self._run(["symbolic-ref", "HEAD", f"refs/heads/{branch}"], operation=op)
        # Mixed reset: index follows the remote tree, working tree untouched.
        self._run(["reset", "--mixed", "--quiet"], operation=op)

        result = self._run(["ls-files", "-z", "--deleted"], operation=op)
        missing = [p for p in result.stdout.split("\0") if p]
        for start in range(0, len(missing), _CHECKOUT_CHUNK):
            chunk = missing[start : start + _CHECKOUT_CHUNK]
            self._run(["checkout", "--", *chunk], operation=op)
        logger.debug("Git: restored {} remote-only files into {}", len(missing), self._work_dir)

    # -- Helpers ---------------------------------------------------------------

    @property
    def _remote_url(self) -> str:
        return self._config.remote_url

    def _is_repo(self) -> bool:
        return (self._work_dir / ".git").exists()

    def _require_repo(self, operation: str) -> None:
        if not self._is_repo():
            raise GitUnknownError(operation, "repository not initialized")

    def _identity(self) -> list[str]:
        return [
            "-c",
            f"user.name={self._config.commit_name}",
            "-c",
            f"user.email={self._config.commit_email}",
        ]

    def _auth_config(self) -> dict[str, str]:
        token = self._config.token.get_secret_value()
        if not (self._config.username and token):
            return {}
        credentials = base64.b64encode(f"{self._config.username}:{token}".encode()).decode("ascii")
        return {"http.extraHeader": f"Authorization: Basic {credentials}"}

    def _redact(self, text: str) -> str:
        token = self._config.token.get_secret_value()
        if token:
            text = text.replace(token, "***")
        return text

    def _fetch(self, operation: str) -> None:
        self._run(["fetch", "--prune", REMOTE_NAME], operation=operation, network=True)

    def _sync_remote_url(self) -> None:
        op = GitOperation.ENSURE_REPO
        current = self._run(["remote", "get-url", REMOTE_NAME], operation=op, check=False)
        if current.returncode != 0:
            self._run(["remote", "add", REMOTE_NAME, self._remote_url], operation=op)
        elif current.stdout.strip() != self._remote_url:
            self._run(["remote", "set-url", REMOTE_NAME, self._remote_url], operation=op)

    def _current_branch(self) -> str:
        result = self._run(["symbolic-ref", "--short", "HEAD"], operation="branch", check=False)
        return result.stdout.strip() or self._default_branch

    def _ref_exists(self, ref: str) -> bool:
        result = self._run(["rev-parse", "--verify", "--quiet", ref], operation="rev-parse", check=False)
        return result.returncode == 0

    def _has_commits(self) -> bool:
        return self._ref_exists("HEAD")

    def _head(self) -> str:
        return self._run(["rev-parse", "HEAD"], operation="rev-parse").stdout.strip()

    def _has_staged_changes(self) -> bool:
        result = self._run(["diff", "--cached", "--quiet"], operation=GitOperation.COMMIT, check=False)
        return result.returncode != 0

    def _is_dirty(self) -> bool:
        result = self._run(["status", "--porcelain", "--untracked-files=no"], operation=GitOperation.PULL)
        return bool(result.stdout.strip())

    def _remote_heads(self) -> list[str]:
        result = self._run(
            ["for-each-ref", "--format=%(refname)", f"refs/remotes/{REMOTE_NAME}"],
            operation=GitOperation.ENSURE_REPO,
        )
        prefix = f"refs/remotes/{REMOTE_NAME}/"
        return [
            ref[len(prefix) :]
            for ref in result.stdout.split()
            if ref.startswith(prefix) and not ref.endswith("/HEAD")
        ]

    def _run(
        self,
        args: Sequence[str],
        *,
        operation: str,
        check: bool = True,
        network: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command in the workspace and return the completed process.

        Raises the classified ``GitOperationError`` when *check* is set and
        git exits non-zero.
        """
        cmd: list[str] = [self._git, *args]
        try:
            result = subprocess.run(  # nosec B603
                cmd,
                cwd=self._work_dir,
                check=False,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                env=git_env(self._auth_config() if network else None),
            )
        except FileNotFoundError:
            raise GitUnknownError(operation, f"git executable not found: {self._git}") from None
        except subprocess.TimeoutExpired:
            raise GitNetworkError(operation, f"timed out after {self._timeout}s") from None

        if check and result.returncode != 0:
            raise classify_git_error(operation, self._redact(result.stderr or result.stdout))
        return result


def remove_git_metadata(work_dir: Path) -> bool:
    """Remove ``work_dir/.git`` (directory or gitfile).  Returns True if something was removed."""
    git_path = work_dir / ".git"
    if git_path.is_dir() and not git_path.is_symlink():
        shutil.rmtree(git_path)
        return True
    if git_path.exists() or git_path.is_symlink():
        git_path.unlink()
        return True
    return False
