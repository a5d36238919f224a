"""ユーザー単位の認証情報ストア.

ソースURLごとのログイン情報（URLプレフィックス、ユーザー名、シークレット）を
プロジェクトとは別の場所（ユーザー設定ディレクトリ）に保存します。

ファイル形式:
    logins:
      - url: https://gitlab.com/
        username: alice
        password: glpat-xxxxxxxx

使用例:
    >>> store = CredentialStore.load(default_logins_path())
    >>> credential = store.find("https://gitlab.com/")
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path

import yaml
from loguru import logger

from .exceptions import DeserializationError, LocalIOError, SerializationError

LOGINS_FILE = "erd-logins.yml"


@dataclass(frozen=True)
class Credential:
    """URLプレフィックスに紐づく認証情報."""

    url: str
    username: str
    password: str

    def matches(self, url: str) -> bool:
        """このURLプレフィックスが対象URLに一致するか."""
        return url.startswith(self.url)


def _default_config_dir() -> Path:
    app_data = os.environ.get("APPDATA")
    if app_data:
        return Path(app_data)
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config)
    return Path.home() / ".config"


def _text(entry: dict, key: str) -> str:
    value = entry[key]
    # 数値として読まれたトークン（例: 0755）は元の文字列を復元できない
    if not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def default_logins_path() -> Path:
    """認証ファイルの既定パスを返す.

    ``ERD_LOGINS_FILE`` が設定されていればそれを優先します。
    """
    explicit_path = os.environ.get("ERD_LOGINS_FILE")
    if explicit_path:
        return Path(explicit_path).expanduser()
    return _default_config_dir() / LOGINS_FILE


class CredentialStore:
    """認証情報の順序付きコレクション.

    Args:
        credentials: 初期レコード（保存順）
        path: 保存先ファイルパス（``save()`` で使用）
    """

    def __init__(self, credentials: list[Credential] | None = None, path: Path | None = None) -> None:
        self._credentials: list[Credential] = list(credentials or [])
        self.path = path

    def __len__(self) -> int:
        return len(self._credentials)

    def __iter__(self):
        return iter(self._credentials)

    @classmethod
    def load(cls, path: Path | str) -> CredentialStore:
        """認証ファイルを読み込む.

        ファイルが存在しない場合は空のストアを返します（エラーではありません）。

        Args:
            path: 認証ファイルのパス

        Returns:
            読み込んだストア

        Raises:
            DeserializationError: YAML形式が不正、または必須キーが欠けている場合
            LocalIOError: ファイルを読めない場合
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"No logins file found at {path}, continuing without authentication")
            return cls(path=path)

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DeserializationError(path, f"Invalid YAML in logins file ({e})") from e
        except OSError as e:
            raise LocalIOError(path, f"Failed to read logins file ({e})") from e

        if data is None:
            return cls(path=path)
        if not isinstance(data, dict) or not isinstance(data.get("logins", []), list):
            raise DeserializationError(path, "Logins file must contain a 'logins' list")

        credentials = []
        for entry in data.get("logins") or []:
            try:
                credentials.append(
                    Credential(
                        url=_text(entry, "url"),
                        username=_text(entry, "username"),
                        password=_text(entry, "password"),
                    )
                )
            except (KeyError, TypeError) as e:
                raise DeserializationError(path, f"Malformed login entry ({e})") from e

        logger.debug(f"Loaded {len(credentials)} logins from {path}")
        return cls(credentials, path=path)

    def find(self, url: str) -> Credential | None:
        """URLに対して最長一致するプレフィックスの認証情報を返す.

        同じ長さのプレフィックスが複数一致した場合は、ストア内で先に現れたものを返します。

        Args:
            url: ソースまたはリクエストのURL

        Returns:
            一致した認証情報、一致しない場合は None
        """
        best_match: Credential | None = None
        for credential in self._credentials:
            if not credential.matches(url):
                continue
            if best_match is None or len(credential.url) > len(best_match.url):
                logger.debug(f"Better login match found (length {len(credential.url)}) '{credential.url}'")
                best_match = credential
        logger.debug(f"Best login match for {url}: {best_match.url if best_match else None}")
        return best_match

    def set(self, credential: Credential) -> Credential | None:
        """認証情報を追加または置換する.

        Returns:
            同一URLの既存レコードを置き換えた場合はその旧レコード、追加した場合は None
        """
        for i, existing in enumerate(self._credentials):
            if existing.url == credential.url:
                self._credentials[i] = credential
                return existing
        self._credentials.append(credential)
        return None

    def save(self, path: Path | str | None = None) -> Path:
        """ストア全体をファイルに書き出す（既存ファイルは上書き）.

        Raises:
            SerializationError: 書き出し先が決まっていない、またはシリアライズに失敗した場合
            LocalIOError: ファイルを書けない場合
        """
        target = Path(path) if path is not None else self.path
        if target is None:
            raise SerializationError("<unset>", "No path to save logins to")

        try:
            content = yaml.safe_dump(
                {"logins": [asdict(c) for c in self._credentials]},
                sort_keys=False,
                allow_unicode=True,
            )
        except yaml.YAMLError as e:
            raise SerializationError(target, f"Failed to serialize logins ({e})") from e

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            # シークレットを含むので所有者のみ読み書き可能にする
            os.chmod(target, 0o600)
        except OSError as e:
            raise LocalIOError(target, f"Failed to save logins ({e})") from e

        logger.debug(f"Saved {len(self._credentials)} logins to {target}")
        return target
