"""Fixtures for storage engine tests.

``FakeGitClient`` stands in for ``SubprocessGitClient`` so the coordinator
and service can be exercised without a git binary or network: it records
every call and commit message, and can be told to fail a given operation.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest
from pydantic import SecretStr

from lemma.storage.errors import GitOperationError
from lemma.storage.models.git import GitConfig
from lemma.storage.service import StorageService


class FakeGitClient:
    def __init__(
        self,
        config: GitConfig,
        work_dir: Path,
        *,
        fail: dict[str, GitOperationError] | None = None,
        delay: float = 0.0,
        on_commit=None,
    ) -> None:
        self.config = config
        self.work_dir = Path(work_dir)
        self.fail = dict(fail or {})
        self.delay = delay
        self.on_commit = on_commit
        self.calls: list[str] = []
        self.messages: list[str] = []
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()
        self._commits = 0

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.fail.get(operation)
        if error is not None:
            raise error

    def clone(self) -> None:
        self._record("clone")

    def pull(self) -> None:
        self._record("pull")

    def commit(self, message: str) -> str:
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            self._record("commit")
            if self.on_commit is not None:
                self.on_commit(self)
            time.sleep(self.delay)
            self.messages.append(message)
            self._commits += 1
            return f"{self._commits:040x}"
        finally:
            with self._guard:
                self.active -= 1

    def push(self) -> None:
        self._record("push")

    def ensure_repo(self) -> None:
        self._record("ensure_repo")
        (self.work_dir / ".git").mkdir(parents=True, exist_ok=True)

    @property
    def last_message(self) -> str | None:
        return self.messages[-1] if self.messages else None


class FakeGitFactory:
    """``GitClientFactory`` handing out ``FakeGitClient``s and remembering them."""

    def __init__(self) -> None:
        self.clients: list[FakeGitClient] = []
        self.fail: dict[str, GitOperationError] = {}
        self.delay = 0.0
        self.on_commit = None

    def __call__(self, config: GitConfig, work_dir: Path) -> FakeGitClient:
        client = FakeGitClient(config, work_dir, fail=self.fail, delay=self.delay, on_commit=self.on_commit)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeGitClient:
        return self.clients[-1]


@pytest.fixture
def git_factory() -> FakeGitFactory:
    return FakeGitFactory()


@pytest.fixture
def git_config() -> GitConfig:
    return GitConfig(
        remote_url="https://git.example.com/alice/notes.git",
        username="alice",
        token=SecretStr("s3cret-token"),
        commit_name="Alice",
        commit_email="alice@example.com",
    )


@pytest.fixture
def data_root(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def service(data_root: Path, git_factory: FakeGitFactory) -> StorageService:
    svc = StorageService(data_root, client_factory=git_factory)
    svc.initialize_user_workspace(1, 1)
    return svc
