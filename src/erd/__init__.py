"""erd: CIのビルド成果物を取得・同期するツール.

認証情報の解決、ジョブ出力アーカイブからのファイル抽出、
ハッシュ比較による重複書き込みの回避を提供する。
"""

__version__ = "0.1.0"

from erd.fetcher import ArtifactFetcher, FetchOutcome, FetchStatus

__all__ = [
    "ArtifactFetcher",
    "FetchOutcome",
    "FetchStatus",
    "__version__",
]
