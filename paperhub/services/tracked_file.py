"""Handle of a repository file tracked in both GitHub and Etherpad."""

import logging
from pathlib import Path

from paperhub.schemas.repository import DocumentRef, RenderStage, RepositoryInfo, Revision, TreeEntry
from paperhub.services.document_sync import DocumentSync
from paperhub.services.render_pipeline import RenderPipeline
from paperhub.services.revisions import RevisionResolver, document_id

logger = logging.getLogger(__name__)


class TrackedFile:
    """A file of a repository and the collaborative document it is edited in.

    The file must be initialized before its document can be rendered. Its id
    is the blob SHA until it is initialized at an explicit revision.
    """

    def __init__(
        self,
        entry: TreeEntry,
        repository: RepositoryInfo,
        resolver: RevisionResolver,
        sync: DocumentSync,
        pipeline: RenderPipeline,
    ):
        self.entry = entry
        self.repository = repository
        self.id = entry.sha
        self._resolver = resolver
        self._sync = sync
        self._pipeline = pipeline

    @property
    def path(self) -> str:
        return self.entry.path

    @property
    def document(self) -> DocumentRef:
        return DocumentRef(
            document_id=self.id,
            repository=self.repository.full_name,
            path=self.entry.path,
        )

    async def initialize(self, revision_id: str | None = None) -> str:
        """Seed the file's document with its content at a revision.

        Args:
            revision_id: Commit SHA of the revision. None selects the head.

        Returns:
            The document id.
        """
        content = await self._resolver.get_content(self.entry.path, revision_id)
        self.id = document_id(self.entry.sha, revision_id)
        created = await self._sync.ensure(self.id, content)
        logger.debug(f"Initialized {self.entry.path} as {self.id} (created={created})")
        return self.id

    async def get_revisions(self) -> list[Revision]:
        return await self._resolver.get_revisions(self.entry.path)

    async def convert(self) -> Path:
        return await self._pipeline.convert(self.document)

    async def preview(self, page: int) -> Path:
        return await self._pipeline.preview(self.document, page)

    def stage(self) -> RenderStage:
        return self._pipeline.stage(self.document)
