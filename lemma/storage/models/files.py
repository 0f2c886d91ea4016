"""File tree and statistics models.

Both serialize with camelCase keys (``isDirectory``, ``totalFiles``) since
they are handed straight to the web layer; construct them with snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class FileNode(BaseModel):
    """One file or directory in a workspace listing.

    ``path`` is relative to the workspace root and always uses forward
    slashes.  Directories carry ``size == 0`` and their ``children``; files
    never have children.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    path: str
    is_directory: bool = False
    size: int = 0
    modified_at: datetime | None = None
    children: list[FileNode] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def id(self) -> str:
        return self.path

    @computed_field  # type: ignore[prop-decorator]
    @property
    def type(self) -> Literal["file", "dir"]:
        return "dir" if self.is_directory else "file"


class FileCountStats(BaseModel):
    """File count and byte size, recomputed on demand."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_files: int = 0
    total_size: int = 0

    def __add__(self, other: FileCountStats) -> FileCountStats:
        return FileCountStats(
            total_files=self.total_files + other.total_files,
            total_size=self.total_size + other.total_size,
        )
