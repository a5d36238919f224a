"""アーティファクト取得のオーケストレーター.

認証情報の解決 → プロバイダからの取得・抽出 → 保存済みファイルとのハッシュ比較 → 書き込み、
の一連を担い、各取得結果を NotFound / NewArtifact / UpToDate に分類する。
ソース・アーティファクトの走査順は常に設定順で、リモート呼び出しは1件ずつ順番に行う。
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from erd.core.config import Artifact, Config, Source
from erd.core.credentials import Credential, CredentialStore
from erd.core.exceptions import MissingCredentialError
from erd.core.store import ArtifactStore
from erd.providers import BaseProvider, JobRecord, ProjectSummary, get_provider
from erd.providers.base_provider import HISTORY_PAGE_SIZE

DEFAULT_PATTERN = ".jar"


class FetchStatus(Enum):
    NOT_FOUND = "not_found"
    NEW_ARTIFACT = "new_artifact"
    UP_TO_DATE = "up_to_date"


@dataclass(frozen=True)
class FetchOutcome:
    """1回の取得結果の分類.

    Attributes:
        status: 分類
        file_name: 抽出したファイル名（NOT_FOUND の場合は None）
    """

    status: FetchStatus
    file_name: str | None = None

    @classmethod
    def not_found(cls) -> FetchOutcome:
        return cls(FetchStatus.NOT_FOUND)

    @classmethod
    def new_artifact(cls, file_name: str) -> FetchOutcome:
        return cls(FetchStatus.NEW_ARTIFACT, file_name)

    @classmethod
    def up_to_date(cls, file_name: str) -> FetchOutcome:
        return cls(FetchStatus.UP_TO_DATE, file_name)

    def describe(self) -> str:
        if self.status is FetchStatus.NEW_ARTIFACT:
            return f"New artifact: {self.file_name}"
        if self.status is FetchStatus.UP_TO_DATE:
            return f"Up to date: {self.file_name}"
        return "No matching file in job artifacts"


ProviderFactory = Callable[[Source], BaseProvider]


class ArtifactFetcher:
    """設定・認証情報・ローカル保存先を束ねて各操作を実行する.

    プロバイダはソースごとに1つだけ生成して使い回します。``close()`` で解放してください。

    Args:
        config: アーティファクト設定
        credentials: 認証情報ストア
        store: ダウンロード先
        provider_factory: Source からプロバイダを生成する関数（既定は種別による選択）
    """

    def __init__(
        self,
        config: Config,
        credentials: CredentialStore,
        store: ArtifactStore,
        provider_factory: ProviderFactory = get_provider,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self.store = store
        self._provider_factory = provider_factory
        self._providers: dict[str, BaseProvider] = {}

    def close(self) -> None:
        for provider in self._providers.values():
            provider.close()
        self._providers.clear()

    def __enter__(self) -> ArtifactFetcher:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _provider(self, source: Source) -> BaseProvider:
        if source.id not in self._providers:
            self._providers[source.id] = self._provider_factory(source)
        return self._providers[source.id]

    def resolve_credential(self, source: Source) -> Credential:
        """ソースURLに対する認証情報を解決する.

        Raises:
            MissingCredentialError: 一致する認証情報が無い場合
        """
        credential = self.credentials.find(source.url)
        if credential is None:
            raise MissingCredentialError(source.url)
        return credential

    def _fetch(self, source: Source, artifact: Artifact, build_id: str | None = None) -> FetchOutcome:
        credential = self.resolve_credential(source)
        extracted = self._provider(source).fetch_artifact(artifact, credential, build_id)
        if extracted is None:
            logger.debug(f"No file matching '{artifact.pattern}' for {artifact.id}")
            return FetchOutcome.not_found()

        if not self.store.is_new(extracted):
            return FetchOutcome.up_to_date(extracted.file_name)

        self.store.write(extracted)
        return FetchOutcome.new_artifact(extracted.file_name)

    def fetch_one(self, artifact_id: str, build_id: str | None = None) -> FetchOutcome:
        """アーティファクト1件を取得する.

        Args:
            artifact_id: 設定上のアーティファクトID
            build_id: ジョブID（None の場合はブランチの最新）

        Raises:
            UnknownArtifactError: 設定に存在しない場合（リモート呼び出しは行わない）
            MissingCredentialError: 認証情報が無い場合
            RemoteRequestError: リモート呼び出しに失敗した場合
            LocalIOError: ローカルの読み書きに失敗した場合
        """
        source, artifact = self.config.find_artifact(artifact_id)
        logger.debug(f"Retrieving {artifact.id} from {source.id}" + (f" (build {build_id})" if build_id else ""))
        return self._fetch(source, artifact, build_id)

    def fetch_all(self) -> list[tuple[str, FetchOutcome]]:
        """全ソースの全アーティファクトを設定順に取得する.

        最初に発生したエラーで全体を中断します（部分結果は返しません）。
        """
        outcomes: list[tuple[str, FetchOutcome]] = []
        for source, artifact in self.config.iter_artifacts():
            logger.debug(f"Retrieving {artifact.id} from {source.id}")
            outcomes.append((artifact.id, self._fetch(source, artifact)))
        return outcomes

    def history(self, artifact_id: str, limit: int = HISTORY_PAGE_SIZE) -> tuple[Artifact, list[JobRecord]]:
        source, artifact = self.config.find_artifact(artifact_id)
        credential = self.resolve_credential(source)
        return artifact, self._provider(source).fetch_history(artifact, credential, limit)

    def rebuild(self, artifact_id: str, build_id: str) -> tuple[int, list[JobRecord]]:
        """指定ジョブと同じ ref でパイプラインを再実行する."""
        source, artifact = self.config.find_artifact(artifact_id)
        credential = self.resolve_credential(source)
        provider = self._provider(source)
        job = provider.get_job(artifact, credential, build_id)
        logger.info(f"Rebuilding {artifact.id} on {job.ref} (from build {job.id})")
        return provider.trigger_rebuild(artifact, credential, job.ref)

    def scan(self, source_id: str, search: str | None = None) -> list[ProjectSummary]:
        source = self.config.find_source(source_id)
        credential = self.resolve_credential(source)
        return self._provider(source).list_projects(credential, search)

    def add(
        self,
        source_id: str,
        project_id: str,
        artifact_id: str | None = None,
        branch: str | None = None,
        pattern: str = DEFAULT_PATTERN,
    ) -> Artifact:
        """プロジェクトをアーティファクトとして設定に追加し、保存する.

        ID・ブランチが省略された場合はリモートのプロジェクト情報から補完します。
        """
        source = self.config.find_source(source_id)
        credential = self.resolve_credential(source)
        project = self._provider(source).get_project(credential, project_id)

        artifact = Artifact(
            id=artifact_id or project.path_with_namespace.rsplit("/", 1)[-1],
            project_id=str(project_id),
            branch=branch or project.default_branch or "main",
            pattern=pattern,
        )
        self.config.add_artifact(source_id, artifact)
        self.config.save()
        return artifact
