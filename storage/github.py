"""
GitHub repository storage provider.

Commits uploads to a GitHub repository through the contents REST API and
serves them via raw.githubusercontent.com, the jsDelivr CDN, or GitHub Pages.
"""
import base64
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import structlog

from storage.base import (
    DeleteResult,
    DeleteStatus,
    StorageConfig,
    StorageConfigError,
    StorageProvider,
    StorageUploadError,
    UploadFileInput,
    UploadResult,
    join_key,
)

logger = structlog.get_logger()

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


class GithubStorageProvider(StorageProvider):
    """GitHub-repository-as-CDN storage provider."""

    name = "github"

    def __init__(
        self,
        config: StorageConfig,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = GITHUB_API_URL,
        timeout: Optional[float] = None,
    ):
        """
        Initialize GitHub storage provider.

        Args:
            config: Configuration with:
                - github_token: Personal access token with contents write scope
                - github_repo: Repository as "owner/repo"
                - github_path: Base folder inside the repository (default "uploads")
                - github_branch: Branch to commit to (default "main")
                - github_access_method: raw, jsdelivr or pages (default "jsdelivr")
                - github_pages_url: Pages base URL, required for "pages"
            client: Optional HTTP client, created lazily when omitted
            api_url: GitHub REST API root
            timeout: Request timeout in seconds, transport default when None
        """
        super().__init__(config)

        self.owner, self.repo = config.github_repo.split("/", 1)
        self.base_path = config.github_path
        self.branch = config.github_branch
        self.access_method = config.github_access_method
        self.pages_url = config.github_pages_url
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

        self._client = client
        self._owns_client = client is None

    def validate_config(self) -> None:
        config = self.config

        if not config.github_token:
            raise StorageConfigError(
                "GitHub token is required",
                "GITHUB_TOKEN_MISSING",
            )

        parts = (config.github_repo or "").split("/")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise StorageConfigError(
                'GitHub repo must be in format "owner/repo"',
                "GITHUB_REPO_INVALID",
            )

        if config.github_access_method == "pages" and not config.github_pages_url:
            raise StorageConfigError(
                "GitHub Pages URL is required when using pages access method",
                "GITHUB_PAGES_URL_MISSING",
            )

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.github_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            kwargs: Dict[str, Any] = {}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    def _contents_url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/contents/{quote(path, safe='/')}"

    def build_path(self, filename: str, subfolder: Optional[str] = None) -> str:
        """
        Build the repository path for a file.

        Joins [base_path, subfolder, filename] the same way every
        provider derives keys.
        """
        return join_key(self.base_path, subfolder, filename)

    async def _get_sha(self, path: str) -> Optional[str]:
        """
        Fetch the blob sha of the file at path on the configured branch.

        Returns:
            The sha, or None if the file does not exist

        Raises:
            httpx.HTTPStatusError: For any error other than 404
        """
        response = await self._get_client().get(
            self._contents_url(path),
            params={"ref": self.branch},
            headers=self._headers,
        )

        if response.status_code == 404:
            return None

        response.raise_for_status()
        data = response.json()

        # A directory listing comes back as a list
        if isinstance(data, dict):
            return data.get("sha")
        return None

    async def _upload_to_github(self, path: str, buffer: bytes, message: str) -> None:
        payload: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(buffer).decode("ascii"),
            "branch": self.branch,
        }

        # Existing files must be updated by sha
        sha = await self._get_sha(path)
        if sha:
            payload["sha"] = sha

        response = await self._get_client().put(
            self._contents_url(path),
            json=payload,
            headers=self._headers,
        )
        response.raise_for_status()

    async def _delete_from_github(self, path: str) -> DeleteStatus:
        sha = await self._get_sha(path)

        if not sha:
            logger.info("File not found on GitHub", path=path)
            return DeleteStatus.NOT_FOUND

        response = await self._get_client().request(
            "DELETE",
            self._contents_url(path),
            json={
                "message": f"Delete: {path}",
                "sha": sha,
                "branch": self.branch,
            },
            headers=self._headers,
        )

        if response.status_code == 404:
            logger.info("File not found on GitHub", path=path)
            return DeleteStatus.NOT_FOUND

        response.raise_for_status()
        return DeleteStatus.DELETED

    async def upload(
        self,
        file: UploadFileInput,
        thumbnail: Optional[UploadFileInput] = None,
    ) -> UploadResult:
        try:
            file_path = self.build_path(file.filename, file.path)
            await self._upload_to_github(file_path, file.buffer, f"Upload: {file.filename}")

            result = UploadResult(url=self.get_url(file_path), key=file_path)

            if thumbnail:
                thumb_path = self.build_path(thumbnail.filename, thumbnail.path)
                await self._upload_to_github(
                    thumb_path,
                    thumbnail.buffer,
                    f"Upload thumbnail: {thumbnail.filename}",
                )
                result.thumbnail_url = self.get_url(thumb_path)
                result.thumbnail_key = thumb_path

            logger.info(
                "Committed file to GitHub",
                repo=f"{self.owner}/{self.repo}",
                branch=self.branch,
                key=file_path,
                thumbnail_key=result.thumbnail_key,
            )
            return result
        except Exception as e:
            logger.error(
                "GitHub upload failed",
                repo=f"{self.owner}/{self.repo}",
                filename=file.filename,
                error=str(e),
            )
            raise StorageUploadError(
                "Failed to upload to GitHub",
                "GITHUB_UPLOAD_FAILED",
                e,
            ) from e

    async def delete(self, key: str, thumbnail_key: Optional[str] = None) -> DeleteResult:
        result = DeleteResult()

        for path in (key, thumbnail_key):
            if not path:
                continue
            try:
                result.statuses[path] = await self._delete_from_github(path)
            except Exception as e:
                # Deletion is best-effort and must not block record cleanup
                logger.error("Failed to delete from GitHub", path=path, error=str(e))
                result.statuses[path] = DeleteStatus.FAILED

        return result

    def get_url(self, key: str) -> str:
        if self.access_method == "raw":
            return f"https://raw.githubusercontent.com/{self.owner}/{self.repo}/{self.branch}/{key}"

        if self.access_method == "pages":
            base_url = re.sub(r"/+$", "", self.pages_url)
            return f"{base_url}/{key}"

        return f"https://cdn.jsdelivr.net/gh/{self.owner}/{self.repo}@{self.branch}/{key}"

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
        self._client = None
