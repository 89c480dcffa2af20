"""Business logic services."""

from paperhub.services.cache_scope import CacheScope
from paperhub.services.document_sync import DocumentSync
from paperhub.services.render_pipeline import RenderPipeline
from paperhub.services.repository_index import RepositoryIndex
from paperhub.services.revisions import RevisionResolver
from paperhub.services.workspace import Workspace

__all__ = [
    "CacheScope",
    "DocumentSync",
    "RenderPipeline",
    "RepositoryIndex",
    "RevisionResolver",
    "Workspace",
]
