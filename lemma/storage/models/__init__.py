"""Data models for the storage engine."""

from lemma.storage.models.enums import FileAction, GitAttachPolicy, GitOperation
from lemma.storage.models.files import FileCountStats, FileNode
from lemma.storage.models.git import DEFAULT_COMMIT_MESSAGE_TEMPLATE, GitConfig

__all__ = [
    "DEFAULT_COMMIT_MESSAGE_TEMPLATE",
    # Enums
    "FileAction",
    # Files
    "FileCountStats",
    "FileNode",
    "GitAttachPolicy",
    # Git
    "GitConfig",
    "GitOperation",
]
