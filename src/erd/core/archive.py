"""ジョブ出力アーカイブ（zip）からのファイル抽出."""

from __future__ import annotations

import io
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import PurePosixPath

from loguru import logger

from .exceptions import ArchiveFormatError


@dataclass(frozen=True)
class ExtractedFile:
    """アーカイブから取り出した1ファイル.

    Attributes:
        file_name: 出力ファイル名（一致したエントリ名の最終パス要素）
        data: 展開済みの内容
    """

    file_name: str
    data: bytes


def find_entry(names: list[str], pattern: str) -> str | None:
    """パターンで終わるエントリ名を探す.

    列挙順に走査し、複数一致した場合は最後に一致したものを返します。
    """
    found = None
    for name in names:
        if name.endswith(pattern):
            logger.debug(f"Archive entry matches '{pattern}': {name}")
            found = name
    return found


def extract_file(data: bytes, pattern: str) -> ExtractedFile | None:
    """圧縮バイト列からパターンに一致するエントリを1つ取り出す.

    Args:
        data: zipアーカイブのバイト列
        pattern: エントリ名のサフィックス（例: ``"svc.jar"``）

    Returns:
        抽出結果。一致するエントリが無い場合は None

    Raises:
        ArchiveFormatError: zipとして読めない場合、未対応の圧縮方式・暗号化エントリ、
            またはエントリ名からファイル名を決められない場合
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            entry = find_entry(archive.namelist(), pattern)
            if entry is None:
                logger.debug(f"No archive entry ends with '{pattern}'")
                return None
            file_name = PurePosixPath(entry).name
            if file_name in ("", ".", ".."):
                raise ArchiveFormatError("<archive>", f"Entry '{entry}' has no usable file name")
            content = archive.read(entry)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError) as e:
        raise ArchiveFormatError("<archive>", f"Invalid zip archive ({e})") from e
    except NotImplementedError as e:
        # 未対応の圧縮方式
        raise ArchiveFormatError("<archive>", f"Unsupported archive entry ({e})") from e
    except RuntimeError as e:
        # パスワード付きエントリ
        raise ArchiveFormatError("<archive>", f"Unreadable archive entry ({e})") from e

    logger.debug(f"Extracted {entry} as {file_name} ({len(content)} bytes)")
    return ExtractedFile(file_name=file_name, data=content)
