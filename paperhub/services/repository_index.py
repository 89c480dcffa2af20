"""Cached branch and tree index of a GitHub repository.

Branches and trees are kept in the client's cache scope under the "branches"
and "trees" buckets. One scope serves every repository of a client, so bucket
entries are keyed by the repository full name. The cache is append-only: a
branch whose head moves upstream keeps its cached head until the scope expires.
"""

import logging

from paperhub.schemas.repository import Branch, RepositoryInfo, Tree, TreeEntry
from paperhub.services.cache_scope import CacheScope
from paperhub.services.github import GitHubService

logger = logging.getLogger(__name__)

BRANCHES_BUCKET = "branches"
TREES_BUCKET = "trees"


class RepositoryIndex:
    """Branch and tree lookups for one repository, backed by a cache scope."""

    def __init__(self, github: GitHubService, scope: CacheScope, repository: RepositoryInfo):
        self._github = github
        self._scope = scope
        self.repository = repository

    def _entry_key(self, name: str) -> str:
        return f"{self.repository.full_name}:{name}"

    def _tree_key(self, sha: str, recursive: bool) -> str:
        return self._entry_key(f"{sha}:{'recursive' if recursive else 'root'}")

    async def get_branch(self, name: str) -> Branch:
        """Get a branch, from cache if possible.

        Args:
            name: Branch name.

        Returns:
            The branch and its head commit.

        Raises:
            GitHubNotFoundError: If the branch does not exist.
            CacheError: If the cache service fails.
        """
        key = self._entry_key(name)
        branches = await self._scope.retrieve(BRANCHES_BUCKET)
        if branches and key in branches:
            return Branch.model_validate(branches[key])

        data = await self._github.get_branch(self.repository.owner, self.repository.name, name)
        branch = Branch.from_github(data)

        updated = dict(branches or {})
        updated[key] = branch.model_dump()
        await self._scope.store(BRANCHES_BUCKET, updated)
        logger.debug(f"Cached branch {self.repository.full_name}@{branch.name}: {branch.commit_sha[:7]}")
        return branch

    async def get_default_branch(self) -> Branch:
        """Get the repository default branch."""
        return await self.get_branch(self.repository.default_branch)

    async def get_tree(self, sha: str, recursive: bool = True) -> Tree:
        """Get a tree, from cache if possible.

        Recursive and first-level listings are cached separately.

        Args:
            sha: Tree (or commit) SHA.
            recursive: Whether to fetch the full tree or only the first level.

        Returns:
            The tree with its entries. Its sha is always the tree SHA GitHub
            reports, even when looked up by commit.
        """
        key = self._tree_key(sha, recursive)
        trees = await self._scope.retrieve(TREES_BUCKET)
        if trees and key in trees:
            return Tree.model_validate(trees[key])

        data = await self._github.get_tree(self.repository.owner, self.repository.name, sha, recursive)
        tree = Tree(
            sha=data.get("sha") or sha,
            entries=[TreeEntry.model_validate(entry) for entry in data.get("tree", [])],
        )

        cached = tree.model_dump()
        updated = dict(trees or {})
        updated[self._tree_key(tree.sha, recursive)] = cached
        # Commit SHAs resolve to a tree with a different SHA; cache under both.
        if sha != tree.sha:
            updated[key] = cached
        await self._scope.store(TREES_BUCKET, updated)
        logger.debug(f"Cached tree {tree.sha[:7]} of {self.repository.full_name} ({len(tree.entries)} entries)")
        return tree

    async def get_files(self, branch: str | Branch, recursive: bool = True) -> list[TreeEntry]:
        """List the files of a branch.

        Args:
            branch: Branch name, or a branch whose head commit holds the tree.
            recursive: Whether to list files recursively or only the root directory.

        Returns:
            One entry per file; directories and submodules are excluded.
        """
        if isinstance(branch, str):
            branch = await self.get_branch(branch)

        tree = await self.get_tree(branch.commit_sha, recursive)
        return [entry for entry in tree.entries if entry.is_file]
