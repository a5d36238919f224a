"""GitLab互換APIのクライアント.

REST API v4 を使用し、認証は ``PRIVATE-TOKEN`` ヘッダで行います。

使用例:
    >>> with GitLabProvider(source) as provider:
    ...     extracted = provider.fetch_artifact(artifact, credential)
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from erd.core.archive import ExtractedFile, extract_file
from erd.core.config import Artifact, Source
from erd.core.credentials import Credential
from erd.core.exceptions import InvalidCredentialError, RemoteRequestError

from .base_provider import (
    HISTORY_PAGE_SIZE,
    JOB_NAME,
    PROJECTS_PAGE_SIZE,
    BaseProvider,
    JobCommit,
    JobRecord,
    ProjectSummary,
)

TOKEN_HEADER = "PRIVATE-TOKEN"
DEFAULT_TIMEOUT = 30.0
DEFAULT_DOWNLOAD_TIMEOUT = 300.0


def _segment(value: str) -> str:
    # "group/project" 形式のIDも1つのパス要素として渡す
    return quote(str(value), safe="")


def _parse_project(data: dict[str, Any]) -> ProjectSummary:
    return ProjectSummary(
        id=int(data["id"]),
        path_with_namespace=str(data["path_with_namespace"]),
        default_branch=data.get("default_branch"),
        web_url=str(data["web_url"]),
    )


def _parse_job(data: dict[str, Any]) -> JobRecord:
    commit = data["commit"]
    return JobRecord(
        id=int(data["id"]),
        name=str(data["name"]),
        status=str(data["status"]),
        stage=str(data.get("stage", "")),
        ref=str(data["ref"]),
        created_at=str(data["created_at"]),
        web_url=str(data.get("web_url", "")),
        commit=JobCommit(
            id=str(commit["id"]),
            short_id=str(commit["short_id"]),
            title=str(commit["title"]),
            author_email=str(commit["author_email"]),
            created_at=commit.get("created_at"),
        ),
        has_artifacts=data.get("artifacts_file") is not None,
    )


class GitLabProvider(BaseProvider):
    """GitLab (gitlab.com / セルフホスト) 用プロバイダ.

    Args:
        source: ソース設定（``url`` がAPIのベースURLになる）
        timeout: API呼び出しのタイムアウト秒数
        download_timeout: アーカイブダウンロードのタイムアウト秒数
        client: 利用する httpx.Client（テスト用に差し替え可能）
    """

    kind = "gitlab"

    def __init__(
        self,
        source: Source,
        timeout: float = DEFAULT_TIMEOUT,
        download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(source)
        self.api_url = f"{source.url.rstrip('/')}/api/v4"
        self.download_timeout = download_timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _auth_headers(self, credential: Credential) -> dict[str, str]:
        token = credential.password
        if not token:
            raise InvalidCredentialError(credential.url, "token is empty")
        if not token.isascii() or not token.isprintable():
            raise InvalidCredentialError(credential.url, "token contains characters not allowed in a header")
        return {TOKEN_HEADER: token}

    def _request(
        self,
        method: str,
        path: str,
        credential: Credential,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        url = f"{self.api_url}{path}"
        headers = self._auth_headers(credential)
        logger.debug(f"{method} {url} {params or ''}")

        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteRequestError(self.source.id, url, f"Transport error: {e}") from e

        if not response.is_success:
            body = response.text[:200].strip()
            raise RemoteRequestError(
                self.source.id,
                str(response.request.url),
                f"HTTP {response.status_code} {response.reason_phrase}" + (f": {body}" if body else ""),
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.debug(f"Received response from {self.source.id}: {response.text[:500]}")
            raise RemoteRequestError(
                self.source.id, str(response.request.url), f"Failed to deserialize response ({e})"
            ) from e

    def _parse(self, response: httpx.Response, parser, many: bool = False):
        data = self._json(response)
        try:
            if many:
                if not isinstance(data, list):
                    raise TypeError(f"expected a list, got {type(data).__name__}")
                return [parser(item) for item in data]
            return parser(data)
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteRequestError(
                self.source.id, str(response.request.url), f"Unexpected response shape ({e!r})"
            ) from e

    def list_projects(self, credential: Credential, search: str | None = None) -> list[ProjectSummary]:
        # https://docs.gitlab.com/ee/api/projects.html#list-all-projects
        response = self._request(
            "GET",
            "/projects",
            credential,
            params={
                "membership": "true",
                "order_by": "last_activity_at",
                "per_page": PROJECTS_PAGE_SIZE,
                "search": search or "",
                "search_namespaces": "true",
            },
        )
        projects = self._parse(response, _parse_project, many=True)
        logger.debug(f"Found {len(projects)} projects on {self.source.id}")
        return projects

    def get_project(self, credential: Credential, project_id: str) -> ProjectSummary:
        response = self._request("GET", f"/projects/{_segment(project_id)}", credential)
        return self._parse(response, _parse_project)

    def fetch_artifact(
        self,
        artifact: Artifact,
        credential: Credential,
        build_id: str | None = None,
    ) -> ExtractedFile | None:
        project = _segment(artifact.project_id)
        if build_id is None:
            path = f"/projects/{project}/jobs/artifacts/{_segment(artifact.branch)}/download"
            params = {"job": JOB_NAME}
        else:
            path = f"/projects/{project}/jobs/{_segment(build_id)}/artifacts"
            params = None

        response = self._request("GET", path, credential, params=params, timeout=self.download_timeout)
        logger.debug(f"{len(response.content)} bytes read for {artifact.id}")
        return extract_file(response.content, artifact.pattern)

    def fetch_history(
        self,
        artifact: Artifact,
        credential: Credential,
        limit: int = HISTORY_PAGE_SIZE,
    ) -> list[JobRecord]:
        response = self._request(
            "GET",
            f"/projects/{_segment(artifact.project_id)}/jobs",
            credential,
            params={
                "order_by": "updated_at",
                "ref": artifact.branch,
                "name": JOB_NAME,
                "per_page": max(1, min(limit, HISTORY_PAGE_SIZE)),
            },
        )
        return self._parse(response, _parse_job, many=True)

    def get_job(self, artifact: Artifact, credential: Credential, job_id: str) -> JobRecord:
        response = self._request(
            "GET",
            f"/projects/{_segment(artifact.project_id)}/jobs/{_segment(job_id)}",
            credential,
        )
        return self._parse(response, _parse_job)

    def trigger_rebuild(
        self,
        artifact: Artifact,
        credential: Credential,
        ref: str,
    ) -> tuple[int, list[JobRecord]]:
        project = _segment(artifact.project_id)
        response = self._request("POST", f"/projects/{project}/pipeline", credential, params={"ref": ref})
        pipeline_id = self._parse(response, lambda data: int(data["id"]))
        logger.info(f"Created pipeline {pipeline_id} for {artifact.id} on {ref}")

        response = self._request("GET", f"/projects/{project}/pipelines/{pipeline_id}/jobs", credential)
        return pipeline_id, self._parse(response, _parse_job, many=True)
