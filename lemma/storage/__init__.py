"""Workspace-scoped storage engine with git sync."""

from lemma.storage.aio import AsyncStorageService
from lemma.storage.errors import (
    FileConflictError,
    GitAuthError,
    GitConflictError,
    GitNetworkError,
    GitNotConfiguredError,
    GitOperationError,
    GitUnknownError,
    InvalidCommitMessageError,
    NotFoundError,
    PathValidationError,
    StorageError,
    StorageIOError,
    WorkspaceBusyError,
    is_path_validation_error,
)
from lemma.storage.service import StorageService

__all__ = [
    "AsyncStorageService",
    # Errors
    "FileConflictError",
    "GitAuthError",
    "GitConflictError",
    "GitNetworkError",
    "GitNotConfiguredError",
    "GitOperationError",
    "GitUnknownError",
    "InvalidCommitMessageError",
    "NotFoundError",
    "PathValidationError",
    "StorageError",
    "StorageIOError",
    # Service
    "StorageService",
    "WorkspaceBusyError",
    "is_path_validation_error",
]
