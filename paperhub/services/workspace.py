"""Composition root of the paperhub services.

A Workspace is built once per client. It owns the Redis client and the GitHub
and Etherpad services, and injects them into the components that need them.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis

from paperhub.core.config import Settings, settings as default_settings
from paperhub.core.redis import close_redis_client, create_redis_client
from paperhub.schemas.repository import Branch, RepositoryInfo
from paperhub.services.cache_scope import CacheScope
from paperhub.services.document_sync import DocumentSync
from paperhub.services.etherpad import EtherpadService
from paperhub.services.github import GitHubService
from paperhub.services.render_pipeline import RenderPipeline
from paperhub.services.repository_index import RepositoryIndex
from paperhub.services.revisions import RevisionResolver
from paperhub.services.tracked_file import TrackedFile

logger = logging.getLogger(__name__)

REPO_BUCKET = "repo"


class Workspace:
    """Services of one client, keyed by its scope id.

    The scope id names the client's context repository after its last "/",
    e.g. "octocat/papers" works on the "papers" repository.
    """

    def __init__(
        self,
        scope_id: str,
        access_token: str | None = None,
        username: str | None = None,
        config: Settings | None = None,
        redis_client: aioredis.Redis | None = None,
        github: GitHubService | None = None,
        etherpad: EtherpadService | None = None,
    ):
        config = config or default_settings
        self.scope_id = scope_id
        self.username = username
        self._owns_redis = redis_client is None
        self.redis = redis_client or create_redis_client(str(config.redis_url))
        self.github = github or GitHubService(access_token, base_url=config.github_api_url)
        self.etherpad = etherpad or EtherpadService(
            base_url=config.etherpad_url,
            api_key=config.etherpad_api_key,
            api_version=config.etherpad_api_version,
        )
        self.scope = CacheScope(
            self.redis,
            scope_id,
            ttl_seconds=config.cache_ttl_seconds,
            key_prefix=config.cache_key_prefix,
        )
        self.sync = DocumentSync(self.etherpad)
        self.pipeline = RenderPipeline(
            self.etherpad,
            workspace_dir=config.workspace_dir,
            render_command=config.render_command,
            image_command=config.image_command,
        )

    async def __aenter__(self) -> Workspace:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the Redis client if this workspace created it."""
        if self._owns_redis:
            await close_redis_client(self.redis)

    @property
    def context_repository_name(self) -> str:
        return self.scope_id[self.scope_id.rfind("/") + 1:]

    async def get_context_repository(self) -> RepositoryInfo:
        """Get the repository named by the scope id, from cache if possible."""
        cached = await self.scope.retrieve(REPO_BUCKET)
        if cached:
            return RepositoryInfo.model_validate(cached)

        data = await self.github.get_repository(self.username or "", self.context_repository_name)
        repository = RepositoryInfo.from_github(data)
        await self.scope.store(REPO_BUCKET, repository.model_dump())
        logger.info(f"Cached context repository {repository.full_name} for {self.scope_id}")
        return repository

    async def list_repositories(self) -> list[RepositoryInfo]:
        """List the repositories available to the user."""
        repos = await self.github.list_user_repositories()
        return [RepositoryInfo.from_github(repo) for repo in repos]

    def index(self, repository: RepositoryInfo) -> RepositoryIndex:
        return RepositoryIndex(self.github, self.scope, repository)

    def resolver(self, repository: RepositoryInfo) -> RevisionResolver:
        return RevisionResolver(self.github, self.scope, repository)

    async def get_files(
        self,
        repository: RepositoryInfo,
        branch: str | Branch | None = None,
        recursive: bool = True,
    ) -> list[TrackedFile]:
        """List the files of a branch as tracked file handles.

        Args:
            repository: Repository to list.
            branch: Branch name or branch; the default branch when None.
            recursive: Whether to list files recursively.
        """
        entries = await self.index(repository).get_files(branch or repository.default_branch, recursive)
        resolver = self.resolver(repository)
        return [
            TrackedFile(entry, repository, resolver, self.sync, self.pipeline)
            for entry in entries
        ]
