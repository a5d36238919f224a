"""erd exceptions.

カスタム例外クラスを定義します。CLI 以外では捕捉せず、呼び出し元へそのまま伝播させます。
"""

from __future__ import annotations

from pathlib import Path


class ErdError(Exception):
    """erd が送出する全ての例外の基底クラス."""


class ConfigurationError(ErdError):
    """アーティファクト設定に関する例外."""


class UnknownArtifactError(ConfigurationError):
    """設定に存在しないアーティファクトIDが指定された場合の例外.

    Attributes:
        artifact_id: 見つからなかったアーティファクトID
    """

    def __init__(self, artifact_id: str) -> None:
        self.artifact_id = artifact_id
        super().__init__(f"No such artifact: '{artifact_id}'")


class UnknownSourceError(ConfigurationError):
    """設定に存在しないソースIDが指定された場合の例外.

    Attributes:
        source_id: 見つからなかったソースID
    """

    def __init__(self, source_id: str) -> None:
        self.source_id = source_id
        super().__init__(f"No such source: '{source_id}'")


class DuplicateArtifactError(ConfigurationError):
    """同一ソース内で重複するアーティファクトIDを追加しようとした場合の例外."""

    def __init__(self, source_id: str, artifact_id: str) -> None:
        self.source_id = source_id
        self.artifact_id = artifact_id
        super().__init__(f"Artifact '{artifact_id}' already exists in source '{source_id}'")


class UnknownProviderError(ConfigurationError):
    """未対応のプロバイダ種別が指定された場合の例外."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unsupported source kind: '{kind}'")


class CredentialError(ErdError):
    """認証情報に関する例外."""


class MissingCredentialError(CredentialError):
    """ソースURLに一致する認証情報が存在しない場合の例外.

    Attributes:
        source_url: 認証情報を探したソースURL
    """

    def __init__(self, source_url: str) -> None:
        self.source_url = source_url
        super().__init__(f"No login found for {source_url}. Run 'erd auth {source_url}' first")


class InvalidCredentialError(CredentialError):
    """認証情報をリクエストヘッダに変換できない場合の例外."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid credential for {url}: {reason}")


class RemoteRequestError(ErdError):
    """リモートCI APIへのリクエストが失敗した場合の例外.

    通信エラー、非2xxステータス、レスポンスのデシリアライズ失敗を全てこの例外で表します。

    Attributes:
        source: リクエスト先のソースID
        url: リクエストURL
        description: 失敗内容
    """

    def __init__(self, source: str, url: str, description: str) -> None:
        self.source = source
        self.url = url
        self.description = description
        super().__init__(f"Request to {source} failed ({url}): {description}")


class LocalIOError(ErdError):
    """ローカルファイルシステム操作の失敗."""

    def __init__(self, path: Path | str, description: str) -> None:
        self.path = Path(path)
        self.description = description
        super().__init__(f"{description}: {self.path}")


class ArchiveFormatError(LocalIOError):
    """ジョブ出力アーカイブが壊れている、またはzip形式でない場合の例外."""


class SerializationError(ErdError):
    """設定ファイル・認証ファイルの書き出しに失敗した場合の例外."""

    def __init__(self, path: Path | str, description: str) -> None:
        self.path = Path(path)
        self.description = description
        super().__init__(f"{description}: {self.path}")


class DeserializationError(SerializationError):
    """設定ファイル・認証ファイルの読み込み（パース）に失敗した場合の例外."""
