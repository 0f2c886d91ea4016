"""Async facade over ``StorageService`` for async web layers.

Every call runs the blocking operation in a worker thread via
``anyio.to_thread.run_sync`` so the event loop is never blocked by disk or
git I/O.  Semantics (errors included) are exactly those of the wrapped
service.
"""

from __future__ import annotations

from functools import partial
from pathlib import Path

from anyio import to_thread

from lemma.storage.models.enums import FileAction
from lemma.storage.models.files import FileCountStats, FileNode
from lemma.storage.models.git import GitConfig
from lemma.storage.service import StorageService


class AsyncStorageService:
    def __init__(self, service: StorageService) -> None:
        self._service = service

    @property
    def sync(self) -> StorageService:
        return self._service

    # -- Paths and lifecycle ---------------------------------------------------

    async def validate_path(self, user_id: int | str, workspace_id: int | str, path: str) -> Path:
        return await to_thread.run_sync(partial(self._service.validate_path, user_id, workspace_id, path))

    async def get_workspace_path(self, user_id: int | str, workspace_id: int | str) -> Path:
        return self._service.get_workspace_path(user_id, workspace_id)

    async def initialize_user_workspace(self, user_id: int | str, workspace_id: int | str) -> Path:
        return await to_thread.run_sync(partial(self._service.initialize_user_workspace, user_id, workspace_id))

    async def delete_user_workspace(self, user_id: int | str, workspace_id: int | str) -> None:
        await to_thread.run_sync(partial(self._service.delete_user_workspace, user_id, workspace_id))

    # -- Files -----------------------------------------------------------------

    async def list_files(
        self,
        user_id: int | str,
        workspace_id: int | str,
        *,
        show_hidden: bool | None = None,
    ) -> list[FileNode]:
        return await to_thread.run_sync(
            partial(self._service.list_files, user_id, workspace_id, show_hidden=show_hidden)
        )

    async def find_file_by_name(
        self,
        user_id: int | str,
        workspace_id: int | str,
        filename: str,
        *,
        case_sensitive: bool = False,
    ) -> list[str]:
        return await to_thread.run_sync(
            partial(self._service.find_file_by_name, user_id, workspace_id, filename, case_sensitive=case_sensitive)
        )

    async def get_file_content(self, user_id: int | str, workspace_id: int | str, path: str) -> bytes:
        return await to_thread.run_sync(partial(self._service.get_file_content, user_id, workspace_id, path))

    async def save_file(self, user_id: int | str, workspace_id: int | str, path: str, content: bytes) -> None:
        await to_thread.run_sync(partial(self._service.save_file, user_id, workspace_id, path, content))

    async def delete_file(self, user_id: int | str, workspace_id: int | str, path: str) -> None:
        await to_thread.run_sync(partial(self._service.delete_file, user_id, workspace_id, path))

    async def move_file(
        self,
        user_id: int | str,
        workspace_id: int | str,
        src: str,
        dest: str,
        *,
        overwrite: bool | None = None,
    ) -> None:
        await to_thread.run_sync(
            partial(self._service.move_file, user_id, workspace_id, src, dest, overwrite=overwrite)
        )

    # -- Stats -----------------------------------------------------------------

    async def get_file_stats(self, user_id: int | str, workspace_id: int | str) -> FileCountStats:
        return await to_thread.run_sync(partial(self._service.get_file_stats, user_id, workspace_id))

    async def get_total_file_stats(self) -> FileCountStats:
        return await to_thread.run_sync(self._service.get_total_file_stats)

    # -- Git -------------------------------------------------------------------

    async def setup_git_repo(self, user_id: int | str, workspace_id: int | str, config: GitConfig) -> None:
        await to_thread.run_sync(partial(self._service.setup_git_repo, user_id, workspace_id, config))

    async def disable_git_repo(self, user_id: int | str, workspace_id: int | str) -> None:
        await to_thread.run_sync(partial(self._service.disable_git_repo, user_id, workspace_id))

    async def stage_commit_and_push(self, user_id: int | str, workspace_id: int | str, message: str) -> str:
        return await to_thread.run_sync(partial(self._service.stage_commit_and_push, user_id, workspace_id, message))

    async def pull(self, user_id: int | str, workspace_id: int | str) -> None:
        await to_thread.run_sync(partial(self._service.pull, user_id, workspace_id))

    async def auto_commit(
        self,
        user_id: int | str,
        workspace_id: int | str,
        action: FileAction | str,
        filename: str,
    ) -> str | None:
        return await to_thread.run_sync(partial(self._service.auto_commit, user_id, workspace_id, action, filename))
