"""Revision resolution for tracked files.

The history of a tracked path is cached as a newest-first list of revisions
under the "revisions" bucket of the client's cache scope, keyed by the
repository full name and the path. The content of a revision is fetched at
most once: the first successful resolution stores an updated snapshot of the
list with that revision's content filled in.

To avoid a full blob download for every revision, the resolver first compares
the revision against its parent. When the comparison reports the commits as
identical, the content is read through the contents endpoint; otherwise it is
downloaded from the raw location of the path's entry in the changed-file list.
"""

import hashlib
import logging

from paperhub.core.errors import ChangedFileNotFoundError, RevisionNotFoundError
from paperhub.schemas.repository import RepositoryInfo, Revision
from paperhub.services.cache_scope import CacheScope
from paperhub.services.github import GitHubService

logger = logging.getLogger(__name__)

REVISIONS_BUCKET = "revisions"

# Comparison status GitHub reports when head and base are the same commit.
IDENTICAL_STATUS = "identical"


def document_id(blob_sha: str, revision_id: str | None = None) -> str:
    """Compute the collaborative document identity of a file.

    The head revision reuses the blob SHA, so one canonical document serves
    every request for it. Explicit revisions map to sha1("<blob>_<revision>"),
    so distinct revisions get distinct documents.
    """
    if not revision_id:
        return blob_sha
    return hashlib.sha1(f"{blob_sha}_{revision_id}".encode()).hexdigest()


class RevisionResolver:
    """Resolves tracked paths of one repository to revision content."""

    document_id = staticmethod(document_id)

    def __init__(self, github: GitHubService, scope: CacheScope, repository: RepositoryInfo):
        self._github = github
        self._scope = scope
        self.repository = repository

    def _entry_key(self, path: str) -> str:
        return f"{self.repository.full_name}:{path}"

    async def get_revisions(self, path: str) -> list[Revision]:
        """Get the revisions of a path, newest first.

        Args:
            path: Tracked file path.

        Returns:
            Cached revision list, or a fresh one built from commit history.
        """
        key = self._entry_key(path)
        revisions = await self._scope.retrieve(REVISIONS_BUCKET)
        if revisions and key in revisions:
            return [Revision.model_validate(item) for item in revisions[key]]

        commits = await self._github.list_file_commits(self.repository.owner, self.repository.name, path)
        history = [Revision.from_github_commit(commit) for commit in commits]

        updated = dict(revisions or {})
        updated[key] = [revision.model_dump() for revision in history]
        await self._scope.store(REVISIONS_BUCKET, updated)
        logger.info(f"Cached {len(history)} revisions of {self.repository.full_name}:{path}")
        return history

    async def resolve(self, path: str, revision_id: str | None = None) -> Revision:
        """Find a revision of a path.

        Args:
            path: Tracked file path.
            revision_id: Commit SHA of the revision. None selects the most recent one.

        Raises:
            RevisionNotFoundError: If the revision is not in the path's history,
                or the history is empty.
        """
        revisions = await self.get_revisions(path)

        if revision_id:
            for revision in revisions:
                if revision.sha == revision_id:
                    return revision
            raise RevisionNotFoundError(path, revision_id)

        if not revisions:
            raise RevisionNotFoundError(path)
        return revisions[0]

    async def get_content(self, path: str, revision_id: str | None = None) -> str:
        """Get the content of a path at a revision.

        Cached content is returned without any network call.

        Args:
            path: Tracked file path.
            revision_id: Commit SHA of the revision. None selects the most recent one.

        Returns:
            File content as text.

        Raises:
            RevisionNotFoundError: If the revision does not exist.
            ChangedFileNotFoundError: If the comparison does not list the path.
            GitHubAPIError: If a GitHub call fails.
            CacheError: If the cache service fails.
        """
        revision = await self.resolve(path, revision_id)
        if revision.content is not None:
            logger.debug(f"Content cache hit: {path}@{revision.sha[:7]}")
            return revision.content

        owner, repo = self.repository.owner, self.repository.name
        comparison = await self._github.compare_commits(
            owner,
            repo,
            base=revision.prev_sha or revision.sha,
            head=revision.sha,
        )

        if comparison.get("status") == IDENTICAL_STATUS:
            logger.debug(f"{path}@{revision.sha[:7]} identical to base, reading contents endpoint")
            content = await self._github.get_file_content(owner, repo, path, ref=revision.sha)
        else:
            changed = next(
                (entry for entry in comparison.get("files") or [] if entry.get("filename") == path),
                None,
            )
            if changed is None:
                raise ChangedFileNotFoundError(path, revision.sha)
            logger.debug(f"{path}@{revision.sha[:7]} changed, downloading raw content")
            content = await self._github.download_raw(changed["raw_url"])

        await self._store_content(path, revision.sha, content)
        return content

    async def _store_content(self, path: str, revision_id: str, content: str) -> None:
        """Store an updated snapshot of a path's revisions with one content filled in.

        The bucket is re-read first; if the path's history is no longer
        cached there is nothing to update.
        """
        key = self._entry_key(path)
        revisions = await self._scope.retrieve(REVISIONS_BUCKET)
        if not revisions or key not in revisions:
            logger.debug(f"Revisions of {path} no longer cached, skipping content store")
            return

        history = [Revision.model_validate(item) for item in revisions[key]]
        snapshot = [
            revision.model_copy(update={"content": content}) if revision.sha == revision_id else revision
            for revision in history
        ]

        updated = dict(revisions)
        updated[key] = [revision.model_dump() for revision in snapshot]
        await self._scope.store(REVISIONS_BUCKET, updated)
