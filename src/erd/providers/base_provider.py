"""CIプロバイダ用クライアント（基底クラス）.

各種CIプラットフォームを共通インターフェースで扱うための抽象基底クラスと、
プロバイダが返すレコード型を定義します。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from erd.core.archive import ExtractedFile
from erd.core.config import Artifact, Source
from erd.core.credentials import Credential

# 成果物アーカイブを生成するジョブ名
JOB_NAME = "build"

PROJECTS_PAGE_SIZE = 30
HISTORY_PAGE_SIZE = 10


@dataclass(frozen=True)
class ProjectSummary:
    id: int
    path_with_namespace: str
    default_branch: str | None
    web_url: str


@dataclass(frozen=True)
class JobCommit:
    id: str
    short_id: str
    title: str
    author_email: str
    created_at: str | None = None


@dataclass(frozen=True)
class JobRecord:
    """CI上のジョブ1件.

    Attributes:
        has_artifacts: ジョブにダウンロード可能なアーカイブが残っているか
    """

    id: int
    name: str
    status: str
    stage: str
    ref: str
    created_at: str
    web_url: str
    commit: JobCommit
    has_artifacts: bool


class BaseProvider(ABC):
    """リモートCIプロバイダのクライアント基底クラス.

    全てのプロバイダはこのクラスを継承し、各操作を実装します。
    リモート呼び出しの失敗は全て RemoteRequestError として送出します。

    Args:
        source: 接続先のソース設定
    """

    kind: str = ""

    def __init__(self, source: Source) -> None:
        self.source = source

    def close(self) -> None:
        """保持しているコネクションを解放する（必要なら）."""

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @abstractmethod
    def list_projects(self, credential: Credential, search: str | None = None) -> list[ProjectSummary]:
        """メンバーになっているプロジェクトを最終アクティビティ順に返す."""
        ...

    @abstractmethod
    def get_project(self, credential: Credential, project_id: str) -> ProjectSummary:
        """プロジェクト1件を取得する."""
        ...

    @abstractmethod
    def fetch_artifact(
        self,
        artifact: Artifact,
        credential: Credential,
        build_id: str | None = None,
    ) -> ExtractedFile | None:
        """ジョブ出力アーカイブをダウンロードし、パターンに一致するファイルを取り出す.

        Args:
            artifact: 取得対象
            credential: 認証情報
            build_id: ジョブID。None の場合はブランチの最新アーカイブを取得

        Returns:
            抽出結果。一致するエントリが無い場合は None
        """
        ...

    @abstractmethod
    def fetch_history(
        self,
        artifact: Artifact,
        credential: Credential,
        limit: int = HISTORY_PAGE_SIZE,
    ) -> list[JobRecord]:
        """ブランチとジョブ名で絞ったジョブ履歴を新しい順に返す."""
        ...

    @abstractmethod
    def get_job(self, artifact: Artifact, credential: Credential, job_id: str) -> JobRecord:
        """ジョブ1件を取得する."""
        ...

    @abstractmethod
    def trigger_rebuild(
        self,
        artifact: Artifact,
        credential: Credential,
        ref: str,
    ) -> tuple[int, list[JobRecord]]:
        """ref に対して新しいパイプラインを作成し、そのジョブ一覧を返す."""
        ...
