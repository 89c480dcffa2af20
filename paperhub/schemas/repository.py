"""Repository, revision and document schemas."""

from enum import Enum
from typing import Any

from pydantic import Field

from paperhub.schemas.common import BaseSchema, SnapshotSchema


class RepositoryInfo(SnapshotSchema):
    """Repository a client works on."""

    name: str
    full_name: str
    owner: str
    default_branch: str = "main"

    @classmethod
    def from_github(cls, data: dict[str, Any]) -> "RepositoryInfo":
        """Build from a GitHub repository payload."""
        owner = data.get("owner") or {}
        full_name = data.get("full_name") or f"{owner.get('login', '')}/{data['name']}"
        return cls(
            name=data["name"],
            full_name=full_name,
            owner=owner.get("login") or full_name.split("/", 1)[0],
            default_branch=data.get("default_branch") or "main",
        )


class Branch(SnapshotSchema):
    """Branch name and head commit."""

    name: str
    commit_sha: str

    @classmethod
    def from_github(cls, data: dict[str, Any]) -> "Branch":
        """Build from a GitHub branch payload."""
        return cls(name=data["name"], commit_sha=data["commit"]["sha"])


class TreeEntry(SnapshotSchema):
    """One entry of a git tree."""

    path: str
    type: str
    sha: str
    mode: str | None = None
    size: int | None = None

    @property
    def is_file(self) -> bool:
        return self.type == "blob"


class Tree(SnapshotSchema):
    """A git tree and its entries."""

    sha: str
    entries: list[TreeEntry] = Field(default_factory=list)


class Revision(SnapshotSchema):
    """One historical version of a tracked path.

    content stays None until the revision is first resolved.
    """

    sha: str
    prev_sha: str | None = None
    content: str | None = None

    @classmethod
    def from_github_commit(cls, commit: dict[str, Any]) -> "Revision":
        """Build from a GitHub commit payload, keeping only the first parent."""
        parents = commit.get("parents") or []
        return cls(
            sha=commit["sha"],
            prev_sha=parents[0]["sha"] if parents else None,
        )


class DocumentRef(BaseSchema):
    """Identity of a collaborative document and the file it tracks."""

    document_id: str
    repository: str  # full name, e.g. "octocat/papers"
    path: str


class RenderStage(str, Enum):
    """Render pipeline stage, inferred from the artifacts on disk."""

    NO_LOCAL_COPY = "no_local_copy"
    MATERIALIZED = "materialized"
    CONVERTED = "converted"
    PREVIEW_EXTRACTED = "preview_extracted"
