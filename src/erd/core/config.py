"""アーティファクト設定（.erd/artifacts.yml）の読み込みと管理.

ファイル形式:
    sources:
      - id: gitlab
        url: https://gitlab.com/
        kind: gitlab
        artifacts:
          - id: svc
            project_id: "1234"
            branch: main
            pattern: svc.jar
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml
from loguru import logger

from .exceptions import (
    ConfigurationError,
    DeserializationError,
    DuplicateArtifactError,
    LocalIOError,
    SerializationError,
    UnknownArtifactError,
    UnknownSourceError,
)

LOCAL_DIR = Path(".erd")
ARTIFACTS_FILE = "artifacts.yml"
DOWNLOADS_DIR = "downloads"
DEFAULT_GITLAB_URL = "https://gitlab.com/"


@dataclass
class Artifact:
    """ソース上の取得対象ビルド成果物."""

    id: str
    project_id: str
    branch: str
    pattern: str


@dataclass
class Source:
    """CI/バージョン管理のエンドポイント1つ分の設定."""

    id: str
    url: str
    kind: str
    artifacts: list[Artifact] = field(default_factory=list)


@dataclass
class Config:
    """アーティファクト設定全体.

    Attributes:
        sources: 設定順のソース一覧
        path: 読み込み元（保存先）のファイルパス
    """

    sources: list[Source] = field(default_factory=list)
    path: Path | None = None

    def find_source(self, source_id: str) -> Source:
        """ソースIDからソースを引く.

        Raises:
            UnknownSourceError: 該当するソースが無い場合
        """
        for source in self.sources:
            if source.id == source_id:
                return source
        raise UnknownSourceError(source_id)

    def find_artifact(self, artifact_id: str) -> tuple[Source, Artifact]:
        """全ソースを設定順に走査し、最初に一致したアーティファクトを返す.

        Raises:
            UnknownArtifactError: 該当するアーティファクトが無い場合
        """
        for source in self.sources:
            for artifact in source.artifacts:
                if artifact.id == artifact_id:
                    return source, artifact
        raise UnknownArtifactError(artifact_id)

    def iter_artifacts(self):
        """(Source, Artifact) を設定順に列挙する."""
        for source in self.sources:
            for artifact in source.artifacts:
                yield source, artifact

    def add_artifact(self, source_id: str, artifact: Artifact) -> Source:
        """ソースにアーティファクトを追加する（永続化は ``save()`` で行う）.

        Raises:
            UnknownSourceError: ソースが無い場合
            DuplicateArtifactError: 同じIDのアーティファクトが既にある場合
        """
        source = self.find_source(source_id)
        if any(a.id == artifact.id for a in source.artifacts):
            raise DuplicateArtifactError(source_id, artifact.id)
        source.artifacts.append(artifact)
        logger.info(f"Added artifact {artifact.id} ({artifact.project_id}@{artifact.branch}) to {source_id}")
        return source

    def to_dict(self) -> dict:
        return {
            "sources": [
                {
                    "id": s.id,
                    "url": s.url,
                    "kind": s.kind,
                    "artifacts": [
                        {
                            "id": a.id,
                            "project_id": a.project_id,
                            "branch": a.branch,
                            "pattern": a.pattern,
                        }
                        for a in s.artifacts
                    ],
                }
                for s in self.sources
            ]
        }

    def save(self, path: Path | str | None = None) -> Path:
        """設定をYAMLとして書き出す.

        Raises:
            SerializationError: 保存先が無い、またはシリアライズに失敗した場合
            LocalIOError: ファイルを書けない場合
        """
        target = Path(path) if path is not None else self.path
        if target is None:
            raise SerializationError("<unset>", "No path to save artifact configuration to")

        try:
            content = yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)
        except yaml.YAMLError as e:
            raise SerializationError(target, f"Failed to serialize configuration ({e})") from e

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            raise LocalIOError(target, f"Failed to write configuration ({e})") from e

        logger.debug(f"Configuration written to {target}")
        return target


def default_config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()) / LOCAL_DIR / ARTIFACTS_FILE


def default_output_dir(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()) / LOCAL_DIR / DOWNLOADS_DIR


def _scalar(value, key: str) -> str:
    # 数値のプロジェクトIDは許容するが、null・真偽値・リスト等は拒否する
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise TypeError(f"'{key}' must be a string or number, got {value!r}")
    return str(value)


def _parse_artifact(entry: dict) -> Artifact:
    return Artifact(
        id=_scalar(entry["id"], "id"),
        project_id=_scalar(entry["project_id"], "project_id"),
        branch=_scalar(entry["branch"], "branch"),
        pattern=_scalar(entry["pattern"], "pattern"),
    )


def _parse_source(entry: dict) -> Source:
    artifacts = entry.get("artifacts") or []
    if not isinstance(artifacts, list):
        raise TypeError(f"artifacts of source {entry.get('id')!r} must be a list")
    return Source(
        id=_scalar(entry["id"], "id"),
        url=_scalar(entry["url"], "url"),
        kind=_scalar(entry.get("kind", "gitlab"), "kind").lower(),
        artifacts=[_parse_artifact(a) for a in artifacts],
    )


def load_config(config_path: Path | str) -> Config:
    """アーティファクト設定を読み込む.

    Args:
        config_path: artifacts.yml のパス

    Returns:
        設定オブジェクト

    Raises:
        ConfigurationError: ファイルが無い（未初期化）場合
        DeserializationError: YAML形式が不正、または必須キーが欠けている場合
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Artifact configuration not found: {config_path}. Run 'erd init' first")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise DeserializationError(config_path, f"Invalid YAML in configuration ({e})") from e
    except OSError as e:
        raise LocalIOError(config_path, f"Failed to read configuration ({e})") from e

    if not isinstance(data, dict):
        raise DeserializationError(config_path, "Configuration must contain a mapping")

    try:
        sources = [_parse_source(s) for s in data.get("sources") or []]
    except (KeyError, TypeError, AttributeError) as e:
        raise DeserializationError(config_path, f"Malformed configuration ({e})") from e

    logger.debug(f"Loaded {len(sources)} sources from {config_path}")
    return Config(sources=sources, path=config_path)
