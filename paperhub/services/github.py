"""GitHub API service for repository history and content."""

import base64
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from paperhub.core.config import settings
from paperhub.core.errors import NotFoundError, RemoteAPIError

logger = logging.getLogger(__name__)


class GitHubAPIError(RemoteAPIError):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message, status_code=status_code)


class GitHubNotFoundError(GitHubAPIError, NotFoundError):
    """Exception raised when a repository, branch, tree or path does not exist."""

    def __init__(self, message: str = "Resource not found or access denied."):
        super().__init__(message, status_code=404)


class GitHubRateLimitError(GitHubAPIError):
    """Exception raised when GitHub API rate limit is exceeded."""

    def __init__(self, reset_at: datetime | None = None, message: str | None = None):
        self.reset_at = reset_at
        if message is None:
            if reset_at:
                now = datetime.now(UTC)
                diff = reset_at - now
                minutes = max(1, int(diff.total_seconds() / 60))
                message = f"GitHub API rate limit exceeded. Please try again in {minutes} minute{'s' if minutes != 1 else ''}."
            else:
                message = "GitHub API rate limit exceeded. Please try again later."
        super().__init__(message, status_code=403)


class GitHubPermissionError(GitHubAPIError):
    """Exception raised when user lacks permission to access a resource."""

    def __init__(self, message: str = "You don't have permission to access this resource."):
        super().__init__(message, status_code=403)


class GitHubAuthenticationError(GitHubAPIError):
    """Exception raised when GitHub authentication fails."""

    def __init__(self, message: str = "GitHub authentication failed. Please re-authenticate."):
        super().__init__(message, status_code=401)


class GitHubTimeoutError(GitHubAPIError):
    """Exception raised when GitHub API request times out."""

    def __init__(self, message: str = "GitHub API request timed out. Please try again."):
        super().__init__(message, status_code=504)


class GitHubContentError(GitHubAPIError):
    """Exception raised when a path does not hold readable text.

    Covers directories, submodules and symlinks, and blobs that are not UTF-8.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read '{path}' as text: {reason}", status_code=422)


class GitHubService:
    """Service for interacting with GitHub API."""

    # Timeout configuration: 30s connect, 60s read
    DEFAULT_TIMEOUT = httpx.Timeout(connect=30.0, read=60.0, write=30.0, pool=30.0)

    def __init__(self, access_token: str | None = None, base_url: str | None = None):
        """Initialize GitHub service.

        Args:
            access_token: GitHub OAuth access token. Anonymous requests are
                made when it is empty.
            base_url: API root (default from settings).
        """
        self.access_token = access_token
        self.base_url = (base_url or settings.github_api_url).rstrip("/")

    def _get_headers(self) -> dict[str, str]:
        """Get headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _handle_response_error(self, response: httpx.Response) -> None:
        """Handle GitHub API error responses.

        Args:
            response: The HTTP response from GitHub API.

        Raises:
            GitHubRateLimitError: When rate limit is exceeded (403 with rate limit headers).
            GitHubAuthenticationError: When authentication fails (401).
            GitHubPermissionError: When user lacks permission (403 without rate limit).
            GitHubNotFoundError: When the resource does not exist (404).
            GitHubAPIError: For other API errors.
        """
        if response.is_success:
            return

        status_code = response.status_code

        if status_code == 403:
            remaining = response.headers.get("x-ratelimit-remaining")
            reset_timestamp = response.headers.get("x-ratelimit-reset")

            if remaining == "0" or "rate limit" in response.text.lower():
                reset_at = None
                if reset_timestamp:
                    try:
                        reset_at = datetime.fromtimestamp(int(reset_timestamp), tz=UTC)
                    except (ValueError, TypeError):
                        pass
                raise GitHubRateLimitError(reset_at=reset_at)

            raise GitHubPermissionError()

        if status_code == 401:
            raise GitHubAuthenticationError()

        # Not found - could be permission issue or actual 404
        if status_code == 404:
            raise GitHubNotFoundError()

        try:
            error_data = response.json()
            message = error_data.get("message", response.text)
        except ValueError:
            message = response.text or f"GitHub API error: {status_code}"

        raise GitHubAPIError(message, status_code=status_code)

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """Issue a GET request and map failures to GitHubAPIError subclasses."""
        try:
            async with httpx.AsyncClient(timeout=self.DEFAULT_TIMEOUT) as client:
                response = await client.get(
                    url,
                    headers=self._get_headers(),
                    params=params or {},
                    follow_redirects=True,
                )
                self._handle_response_error(response)
                return response
        except httpx.TimeoutException:
            logger.warning(f"GitHub request timed out: {url}")
            raise GitHubTimeoutError()
        except httpx.TransportError as e:
            logger.error(f"GitHub request failed: {url}: {e}")
            raise GitHubAPIError(f"GitHub request failed: {e}", status_code=502) from e

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """Get a specific repository.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Returns:
            Repository data dict.
        """
        response = await self._get(f"{self.base_url}/repos/{owner}/{repo}")
        return response.json()

    async def list_user_repositories(
        self,
        per_page: int = 100,
        page: int = 1,
        sort: str = "updated",
        affiliation: str = "owner,collaborator,organization_member",
    ) -> list[dict[str, Any]]:
        """List repositories for the authenticated user.

        Args:
            per_page: Number of results per page (max 100).
            page: Page number.
            sort: Sort field (created, updated, pushed, full_name).
            affiliation: Comma-separated list of affiliations.

        Returns:
            List of repository data dicts.
        """
        response = await self._get(
            f"{self.base_url}/user/repos",
            params={
                "per_page": min(per_page, 100),
                "page": page,
                "sort": sort,
                "affiliation": affiliation,
            },
        )
        return response.json()

    async def get_branch(
        self,
        owner: str,
        repo: str,
        branch: str,
    ) -> dict[str, Any]:
        """Get branch information.

        Args:
            owner: Repository owner.
            repo: Repository name.
            branch: Branch name.

        Returns:
            Branch data dict with the head commit under "commit".
        """
        response = await self._get(f"{self.base_url}/repos/{owner}/{repo}/branches/{branch}")
        return response.json()

    async def get_tree(
        self,
        owner: str,
        repo: str,
        tree_sha: str,
        recursive: bool = True,
    ) -> dict[str, Any]:
        """Get a git tree.

        Args:
            owner: Repository owner.
            repo: Repository name.
            tree_sha: Tree SHA, commit SHA or branch name.
            recursive: Whether to get tree recursively.

        Returns:
            Tree data dict with "sha" and "tree" (list of entries).
        """
        params = {"recursive": "1"} if recursive else {}
        response = await self._get(
            f"{self.base_url}/repos/{owner}/{repo}/git/trees/{tree_sha}",
            params=params,
        )
        data = response.json()
        if data.get("truncated"):
            logger.warning(f"Tree {tree_sha} of {owner}/{repo} was truncated by GitHub")
        return data

    async def list_file_commits(
        self,
        owner: str,
        repo: str,
        path: str,
        per_page: int = 100,
    ) -> list[dict[str, Any]]:
        """List the commits that touched a path, newest first.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: File path within the repository.
            per_page: Number of commits to return (max 100).

        Returns:
            Raw commit objects, each with "sha" and "parents".
        """
        response = await self._get(
            f"{self.base_url}/repos/{owner}/{repo}/commits",
            params={"path": path, "per_page": min(per_page, 100)},
        )
        return response.json()

    async def compare_commits(
        self,
        owner: str,
        repo: str,
        base: str,
        head: str,
    ) -> dict[str, Any]:
        """Compare two commits.

        Args:
            owner: Repository owner.
            repo: Repository name.
            base: Base commit SHA.
            head: Head commit SHA.

        Returns:
            Comparison dict with "status" ("identical", "ahead", "behind",
            "diverged") and "files" (changed files with "filename" and
            "raw_url").
        """
        response = await self._get(f"{self.base_url}/repos/{owner}/{repo}/compare/{base}...{head}")
        return response.json()

    async def get_repository_contents(
        self,
        owner: str,
        repo: str,
        path: str = "",
        ref: str | None = None,
    ) -> list[dict[str, Any]] | dict[str, Any]:
        """Get contents of a repository path.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: Path within the repository.
            ref: Git reference (branch, tag, commit).

        Returns:
            List of content items for directories, or single item for files.
        """
        params = {}
        if ref:
            params["ref"] = ref

        response = await self._get(
            f"{self.base_url}/repos/{owner}/{repo}/contents/{path}",
            params=params,
        )
        return response.json()

    @staticmethod
    def _decode_text(data: bytes, path: str) -> str:
        """Decode file bytes as UTF-8 text."""
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Content of {path} is not UTF-8 text: {e}")
            raise GitHubContentError(path, "content is not UTF-8 text") from e

    async def get_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> str:
        """Get the decoded content of a file.

        Files too large for the contents endpoint come back without inline
        content; they are downloaded from their download_url instead.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: File path within the repository.
            ref: Git reference.

        Returns:
            Decoded file content as string.

        Raises:
            GitHubContentError: If the path is not a file or is not UTF-8 text.
        """
        result = await self.get_repository_contents(owner, repo, path, ref)

        if isinstance(result, list):
            raise GitHubContentError(path, "path is a directory")

        if result.get("type") != "file":
            raise GitHubContentError(path, f"path is a {result.get('type') or 'non-file entry'}")

        encoding = result.get("encoding", "base64")

        if encoding == "none":
            download_url = result.get("download_url")
            if not download_url:
                raise GitHubContentError(path, "file is too large and has no download URL")
            logger.debug(f"{path} too large for the contents endpoint, downloading {download_url}")
            return await self.download_raw(download_url)

        if encoding != "base64":
            raise GitHubContentError(path, f"unsupported encoding {encoding!r}")

        try:
            data = base64.b64decode(result.get("content", ""))
        except ValueError as e:
            raise GitHubContentError(path, "content is not valid base64") from e
        return self._decode_text(data, path)

    async def download_raw(self, url: str) -> str:
        """Download raw file content, e.g. from a raw_url of a comparison entry.

        Args:
            url: Raw content location.

        Returns:
            File content as string.

        Raises:
            GitHubContentError: If the content is not UTF-8 text.
        """
        response = await self._get(url)
        return self._decode_text(response.content, url)
