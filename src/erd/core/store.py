"""ダウンロード済みアーティファクトのローカル保存とハッシュ比較."""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path

from loguru import logger

from .archive import ExtractedFile
from .exceptions import LocalIOError

_CHUNK_SIZE = 1024 * 1024


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ArtifactStore:
    """アーティファクト名ごとに1コピーだけを保持する出力ディレクトリ.

    Args:
        output_dir: 保存先ディレクトリ（無ければ書き込み時に作成）
    """

    def __init__(self, output_dir: Path | str) -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, file_name: str) -> Path:
        return self.output_dir / file_name

    def is_new(self, extracted: ExtractedFile) -> bool:
        """保存済みの同名ファイルと内容が異なる（または存在しない）か.

        Raises:
            LocalIOError: 既存ファイルを読めない場合
        """
        output_file = self.path_for(extracted.file_name)
        if not output_file.exists():
            return True

        logger.debug(f"{extracted.file_name} already exists, checking if same")
        try:
            existing_hash = sha256_file(output_file)
        except OSError as e:
            raise LocalIOError(output_file, f"Failed to read existing file ({e})") from e
        return existing_hash != sha256_bytes(extracted.data)

    def write(self, extracted: ExtractedFile) -> Path:
        """一時ファイルに書いてからリネームで置き換える.

        Raises:
            LocalIOError: 書き込みに失敗した場合
        """
        output_file = self.path_for(extracted.file_name)
        tmp_name = None
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=self.output_dir, prefix=f".{extracted.file_name}.", suffix=".part", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(extracted.data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, output_file)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise LocalIOError(output_file, f"Failed to write artifact ({e})") from e

        logger.debug(f"Wrote {len(extracted.data)} bytes to {output_file}")
        return output_file
