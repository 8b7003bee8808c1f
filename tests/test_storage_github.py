"""
Tests for the GitHub storage provider against an in-memory contents API.
"""
import asyncio
import base64
import hashlib
import json

import httpx
import pytest

from storage import DeleteStatus, StorageConfig, StorageConfigError, StorageUploadError, UploadFileInput
from storage.github import GithubStorageProvider

CONTENTS_PREFIX = "/repos/octo/gallery/contents/"


class FakeGithubRepo:
    """Minimal stand-in for the GitHub contents API."""

    def __init__(self):
        self.files = {}  # path -> (sha, bytes)
        self.requests = []
        self.fail_writes = set()
        self.fail_reads = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        assert request.url.path.startswith(CONTENTS_PREFIX)
        path = request.url.path[len(CONTENTS_PREFIX):]

        if request.method == "GET":
            if path in self.fail_reads:
                return httpx.Response(500, json={"message": "Server Error"})
            if path in self.files:
                return httpx.Response(200, json={"type": "file", "path": path, "sha": self.files[path][0]})
            return httpx.Response(404, json={"message": "Not Found"})

        body = json.loads(request.content)
        if path in self.fail_writes:
            return httpx.Response(500, json={"message": "Server Error"})

        if request.method == "PUT":
            existing = self.files.get(path)
            if existing and body.get("sha") != existing[0]:
                return httpx.Response(409, json={"message": "sha mismatch"})
            content = base64.b64decode(body["content"])
            sha = hashlib.sha1(content).hexdigest()
            self.files[path] = (sha, content)
            return httpx.Response(201 if not existing else 200, json={"content": {"path": path, "sha": sha}})

        if request.method == "DELETE":
            existing = self.files.get(path)
            if not existing:
                return httpx.Response(404, json={"message": "Not Found"})
            if body.get("sha") != existing[0]:
                return httpx.Response(409, json={"message": "sha mismatch"})
            del self.files[path]
            return httpx.Response(200, json={"commit": {}})

        return httpx.Response(405)

    def writes(self, method: str):
        return [r for r in self.requests if r.method == method]


def make_config(**overrides) -> StorageConfig:
    values = {"provider": "github", "github_token": "ghp_test", "github_repo": "octo/gallery"}
    values.update(overrides)
    return StorageConfig(**values)


@pytest.fixture
def repo():
    return FakeGithubRepo()


@pytest.fixture
async def provider(repo):
    client = httpx.AsyncClient(transport=httpx.MockTransport(repo.handler))
    github = GithubStorageProvider(make_config(), client=client)
    yield github
    await client.aclose()


class TestValidateConfig:
    """Configuration is checked at construction time."""

    def test_missing_token(self):
        with pytest.raises(StorageConfigError) as exc:
            GithubStorageProvider(make_config(github_token=None))
        assert exc.value.code == "GITHUB_TOKEN_MISSING"

    def test_blank_token_counts_as_missing(self):
        with pytest.raises(StorageConfigError) as exc:
            GithubStorageProvider(make_config(github_token=""))
        assert exc.value.code == "GITHUB_TOKEN_MISSING"

    @pytest.mark.parametrize("repo_name", [None, "gallery", "octo/", "/gallery", "octo/gallery/extra"])
    def test_invalid_repo(self, repo_name):
        with pytest.raises(StorageConfigError) as exc:
            GithubStorageProvider(make_config(github_repo=repo_name))
        assert exc.value.code == "GITHUB_REPO_INVALID"

    def test_pages_requires_url(self):
        with pytest.raises(StorageConfigError) as exc:
            GithubStorageProvider(make_config(github_access_method="pages"))
        assert exc.value.code == "GITHUB_PAGES_URL_MISSING"

    def test_valid_config(self):
        github = GithubStorageProvider(make_config(github_access_method="pages", github_pages_url="https://octo.github.io/gallery"))
        assert github.owner == "octo"
        assert github.repo == "gallery"
        assert github.branch == "main"
        assert github.base_path == "uploads"


class TestBuildPath:

    def test_default_base_path(self):
        assert GithubStorageProvider(make_config()).build_path("a.jpg") == "uploads/a.jpg"

    def test_subfolder(self):
        assert GithubStorageProvider(make_config()).build_path("a.jpg", "2024/06") == "uploads/2024/06/a.jpg"

    def test_collapses_slashes(self):
        github = GithubStorageProvider(make_config(github_path="photos/"))
        assert github.build_path("a.jpg", "/2024//06/") == "photos/2024/06/a.jpg"


class TestGetUrl:
    """URL templates per access method; no network involved."""

    def test_jsdelivr_is_default(self):
        github = GithubStorageProvider(make_config())
        assert github.get_url("uploads/a.jpg") == "https://cdn.jsdelivr.net/gh/octo/gallery@main/uploads/a.jpg"

    def test_raw(self):
        github = GithubStorageProvider(make_config(github_access_method="raw", github_branch="assets"))
        assert github.get_url("uploads/a.jpg") == "https://raw.githubusercontent.com/octo/gallery/assets/uploads/a.jpg"

    def test_pages_strips_trailing_slashes(self):
        github = GithubStorageProvider(
            make_config(github_access_method="pages", github_pages_url="https://img.example.com///")
        )
        assert github.get_url("uploads/a.jpg") == "https://img.example.com/uploads/a.jpg"

    def test_unknown_method_falls_back_to_jsdelivr(self):
        github = GithubStorageProvider(make_config(github_access_method="ftp"))
        assert github.get_url("k.png") == "https://cdn.jsdelivr.net/gh/octo/gallery@main/k.png"

    def test_no_network_call(self, repo):
        client = httpx.AsyncClient(transport=httpx.MockTransport(repo.handler))
        github = GithubStorageProvider(make_config(), client=client)
        github.get_url("uploads/a.jpg")
        assert repo.requests == []


class TestUpload:

    async def test_creates_file_and_thumbnail(self, provider, repo):
        result = await provider.upload(
            UploadFileInput(filename="a.jpg", buffer=b"original", path="2024"),
            UploadFileInput(filename="thumb-a.jpg", buffer=b"thumb", path="2024"),
        )

        assert result.key == "uploads/2024/a.jpg"
        assert result.thumbnail_key == "uploads/2024/thumb-a.jpg"
        assert result.url == "https://cdn.jsdelivr.net/gh/octo/gallery@main/uploads/2024/a.jpg"
        assert result.thumbnail_url == provider.get_url(result.thumbnail_key)
        assert repo.files["uploads/2024/a.jpg"][1] == b"original"
        assert repo.files["uploads/2024/thumb-a.jpg"][1] == b"thumb"

        messages = [json.loads(r.content)["message"] for r in repo.writes("PUT")]
        assert messages == ["Upload: a.jpg", "Upload thumbnail: thumb-a.jpg"]

    async def test_request_shape(self, provider, repo):
        await provider.upload(UploadFileInput(filename="a.jpg", buffer=b"data"))

        get_request = repo.requests[0]
        assert get_request.method == "GET"
        assert get_request.url.params["ref"] == "main"
        assert get_request.headers["Authorization"] == "Bearer ghp_test"

        body = json.loads(repo.writes("PUT")[0].content)
        assert body["branch"] == "main"
        assert body["content"] == base64.b64encode(b"data").decode()
        assert "sha" not in body

    async def test_updates_existing_file_with_sha(self, provider, repo):
        repo.files["uploads/a.jpg"] = ("oldsha", b"old")

        await provider.upload(UploadFileInput(filename="a.jpg", buffer=b"new"))

        body = json.loads(repo.writes("PUT")[0].content)
        assert body["sha"] == "oldsha"
        assert repo.files["uploads/a.jpg"][1] == b"new"

    async def test_lookup_error_propagates_as_upload_failure(self, provider, repo):
        repo.fail_reads.add("uploads/a.jpg")

        with pytest.raises(StorageUploadError) as exc:
            await provider.upload(UploadFileInput(filename="a.jpg", buffer=b"data"))

        assert exc.value.code == "GITHUB_UPLOAD_FAILED"
        assert isinstance(exc.value.cause, httpx.HTTPStatusError)
        assert repo.writes("PUT") == []

    async def test_thumbnail_failure_keeps_original(self, provider, repo):
        repo.fail_writes.add("uploads/thumb-a.jpg")

        with pytest.raises(StorageUploadError) as exc:
            await provider.upload(
                UploadFileInput(filename="a.jpg", buffer=b"original"),
                UploadFileInput(filename="thumb-a.jpg", buffer=b"thumb"),
            )

        assert exc.value.code == "GITHUB_UPLOAD_FAILED"
        assert exc.value.cause is not None
        assert "uploads/a.jpg" in repo.files
        assert "uploads/thumb-a.jpg" not in repo.files

    async def test_concurrent_uploads_do_not_interfere(self, provider, repo):
        first, second = await asyncio.gather(
            provider.upload(UploadFileInput(filename="one.jpg", buffer=b"1")),
            provider.upload(UploadFileInput(filename="two.jpg", buffer=b"2"), UploadFileInput(filename="thumb-two.jpg", buffer=b"t2")),
        )

        assert first.key == "uploads/one.jpg"
        assert first.thumbnail_key is None
        assert second.key == "uploads/two.jpg"
        assert second.thumbnail_key == "uploads/thumb-two.jpg"
        assert repo.files["uploads/one.jpg"][1] == b"1"
        assert repo.files["uploads/two.jpg"][1] == b"2"


class TestDelete:

    async def test_deletes_file_and_thumbnail(self, provider, repo):
        result = await provider.upload(
            UploadFileInput(filename="a.jpg", buffer=b"original"),
            UploadFileInput(filename="thumb-a.jpg", buffer=b"thumb"),
        )

        outcome = await provider.delete(result.key, result.thumbnail_key)

        assert outcome.ok
        assert outcome.statuses == {result.key: DeleteStatus.DELETED, result.thumbnail_key: DeleteStatus.DELETED}
        assert repo.files == {}
        assert json.loads(repo.writes("DELETE")[0].content)["message"] == "Delete: uploads/a.jpg"

    async def test_missing_file_is_success(self, provider, repo):
        outcome = await provider.delete("uploads/missing.jpg")

        assert outcome.ok
        assert outcome.statuses["uploads/missing.jpg"] == DeleteStatus.NOT_FOUND
        assert repo.writes("DELETE") == []

    async def test_delete_twice_is_idempotent(self, provider, repo):
        result = await provider.upload(UploadFileInput(filename="a.jpg", buffer=b"x"))

        first = await provider.delete(result.key)
        second = await provider.delete(result.key)

        assert first.statuses[result.key] == DeleteStatus.DELETED
        assert second.statuses[result.key] == DeleteStatus.NOT_FOUND
        assert second.ok

    async def test_errors_are_swallowed(self, provider, repo):
        repo.files["uploads/a.jpg"] = ("sha1", b"a")
        repo.files["uploads/thumb-a.jpg"] = ("sha2", b"t")
        repo.fail_writes.add("uploads/a.jpg")

        outcome = await provider.delete("uploads/a.jpg", "uploads/thumb-a.jpg")

        assert not outcome.ok
        assert outcome.statuses["uploads/a.jpg"] == DeleteStatus.FAILED
        # Thumbnail is still attempted after the primary fails
        assert outcome.statuses["uploads/thumb-a.jpg"] == DeleteStatus.DELETED

    async def test_lookup_error_is_swallowed(self, provider, repo):
        repo.fail_reads.add("uploads/a.jpg")

        outcome = await provider.delete("uploads/a.jpg")

        assert outcome.statuses["uploads/a.jpg"] == DeleteStatus.FAILED

    async def test_transport_error_is_swallowed(self):
        def broken(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(broken)) as client:
            github = GithubStorageProvider(make_config(), client=client)
            outcome = await github.delete("uploads/a.jpg")

        assert outcome.statuses["uploads/a.jpg"] == DeleteStatus.FAILED


async def test_aclose_leaves_injected_client_open(repo):
    client = httpx.AsyncClient(transport=httpx.MockTransport(repo.handler))
    github = GithubStorageProvider(make_config(), client=client)

    await github.aclose()

    assert not client.is_closed
    await client.aclose()
