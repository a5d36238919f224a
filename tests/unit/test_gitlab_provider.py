"""Unit tests for the GitLab provider (httpx.MockTransport)."""

from __future__ import annotations

import httpx
import pytest

from erd.core.config import Artifact, Source
from erd.core.credentials import Credential
from erd.core.exceptions import InvalidCredentialError, RemoteRequestError, UnknownProviderError
from erd.providers import GitLabProvider, get_provider
from tests.helpers import job_json, make_zip

API = "https://git.example.com/api/v4"


def _provider(source: Source, handler) -> GitLabProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
    return GitLabProvider(source, client=client)


class TestFetchArtifact:
    def test_latest_by_ref(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        """buildId省略時は latest-by-ref エンドポイントを使うこと."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=make_zip({"build/svc.jar": b"jar"}))

        extracted = _provider(source, handler).fetch_artifact(artifact, credential)

        assert extracted.file_name == "svc.jar"
        assert extracted.data == b"jar"
        request = seen[0]
        assert request.url.path == "/api/v4/projects/42/jobs/artifacts/main/download"
        assert request.url.params["job"] == "build"
        assert request.headers["PRIVATE-TOKEN"] == "glpat-token"

    def test_by_build_id(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=make_zip({"svc.jar": b"old"}))

        extracted = _provider(source, handler).fetch_artifact(artifact, credential, build_id="1001")

        assert extracted.data == b"old"
        assert seen[0].url.path == "/api/v4/projects/42/jobs/1001/artifacts"

    def test_no_matching_entry(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=make_zip({"other.jar": b"x"}))

        assert _provider(source, handler).fetch_artifact(artifact, credential) is None

    def test_follows_redirect(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        """オブジェクトストレージへのリダイレクトを追従すること."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "storage.example.com":
                return httpx.Response(200, content=make_zip({"svc.jar": b"stored"}))
            return httpx.Response(302, headers={"Location": "https://storage.example.com/blob"})

        assert _provider(source, handler).fetch_artifact(artifact, credential).data == b"stored"

    def test_project_path_is_encoded(self, source: Source, credential: Credential) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=make_zip({"lib.jar": b"l"}))

        artifact = Artifact(id="lib", project_id="group/lib", branch="feature/x", pattern="lib.jar")
        _provider(source, handler).fetch_artifact(artifact, credential)

        assert b"/projects/group%2Flib/jobs/artifacts/feature%2Fx/download" in seen[0].url.raw_path


class TestErrors:
    def test_http_error_status(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "404 Not found"})

        with pytest.raises(RemoteRequestError) as exc_info:
            _provider(source, handler).fetch_artifact(artifact, credential)

        err = exc_info.value
        assert err.source == "example"
        assert "/projects/42/jobs/artifacts/main/download" in err.url
        assert "404" in err.description

    def test_transport_error(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteRequestError, match="Transport error"):
            _provider(source, handler).fetch_artifact(artifact, credential)

    def test_deserialization_error(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>not json</html>")

        with pytest.raises(RemoteRequestError, match="deserialize"):
            _provider(source, handler).fetch_history(artifact, credential)

    def test_unexpected_shape(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"id": 1}])

        with pytest.raises(RemoteRequestError, match="Unexpected response shape"):
            _provider(source, handler).fetch_history(artifact, credential)

    @pytest.mark.parametrize("token", ["", "tök", "line\nbreak"])
    def test_invalid_credential(self, source: Source, artifact: Artifact, token: str) -> None:
        """ヘッダに載せられないトークンは送信前に InvalidCredentialError になること."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request should be sent")

        credential = Credential(url=source.url, username="dev", password=token)
        with pytest.raises(InvalidCredentialError):
            _provider(source, handler).fetch_artifact(artifact, credential)


class TestProjects:
    def test_list_projects(self, source: Source, credential: Credential) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {
                        "id": 42,
                        "path_with_namespace": "group/svc",
                        "default_branch": "main",
                        "web_url": "https://git.example.com/group/svc",
                    }
                ],
            )

        projects = _provider(source, handler).list_projects(credential, "svc")

        assert [p.path_with_namespace for p in projects] == ["group/svc"]
        params = seen[0].url.params
        assert seen[0].url.path == "/api/v4/projects"
        assert params["membership"] == "true"
        assert params["order_by"] == "last_activity_at"
        assert params["per_page"] == "30"
        assert params["search"] == "svc"

    def test_get_project(self, source: Source, credential: Credential) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v4/projects/42"
            return httpx.Response(
                200,
                json={"id": 42, "path_with_namespace": "group/svc", "default_branch": None, "web_url": "u"},
            )

        project = _provider(source, handler).get_project(credential, "42")

        assert project.id == 42
        assert project.default_branch is None


class TestJobs:
    def test_fetch_history(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[job_json(3), job_json(2, artifacts=False)])

        jobs = _provider(source, handler).fetch_history(artifact, credential, limit=5)

        assert [j.id for j in jobs] == [3, 2]
        assert [j.has_artifacts for j in jobs] == [True, False]
        assert jobs[0].commit.short_id == "00000003"
        params = seen[0].url.params
        assert seen[0].url.path == "/api/v4/projects/42/jobs"
        assert params["ref"] == "main"
        assert params["name"] == "build"
        assert params["order_by"] == "updated_at"
        assert params["per_page"] == "5"

    @pytest.mark.parametrize(("limit", "per_page"), [(100, "10"), (0, "1")])
    def test_fetch_history_page_size_is_bounded(
        self, source: Source, artifact: Artifact, credential: Credential, limit: int, per_page: str
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        _provider(source, handler).fetch_history(artifact, credential, limit=limit)

        assert seen[0].url.params["per_page"] == per_page

    def test_trigger_rebuild(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        """パイプライン作成後、そのパイプラインのジョブ一覧を取得すること."""
        seen: list[tuple[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            if request.method == "POST":
                assert request.url.params["ref"] == "release"
                return httpx.Response(201, json={"id": 777, "status": "created"})
            return httpx.Response(200, json=[job_json(5, ref="release"), job_json(6, name="test", ref="release")])

        pipeline_id, jobs = _provider(source, handler).trigger_rebuild(artifact, credential, "release")

        assert pipeline_id == 777
        assert [j.name for j in jobs] == ["build", "test"]
        assert seen == [
            ("POST", "/api/v4/projects/42/pipeline"),
            ("GET", "/api/v4/projects/42/pipelines/777/jobs"),
        ]

    def test_get_job(self, source: Source, artifact: Artifact, credential: Credential) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v4/projects/42/jobs/9"
            return httpx.Response(200, json=job_json(9, ref="hotfix"))

        assert _provider(source, handler).get_job(artifact, credential, "9").ref == "hotfix"


class TestRegistry:
    def test_get_gitlab_provider(self, source: Source) -> None:
        provider = get_provider(source)
        try:
            assert isinstance(provider, GitLabProvider)
            assert provider.api_url == API
        finally:
            provider.close()

    def test_unknown_kind(self, source: Source) -> None:
        source.kind = "jenkins"

        with pytest.raises(UnknownProviderError):
            get_provider(source)
