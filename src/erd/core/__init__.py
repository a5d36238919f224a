"""アーティファクト取得のコア処理群.

- 認証情報の解決（URLプレフィックスの最長一致）
- アーカイブからのファイル抽出
- ハッシュ比較による重複書き込みの回避
"""

from .archive import ExtractedFile, extract_file
from .config import Artifact, Config, Source, load_config
from .credentials import Credential, CredentialStore, default_logins_path
from .store import ArtifactStore

__all__ = [
    "Artifact",
    "ArtifactStore",
    "Config",
    "Credential",
    "CredentialStore",
    "ExtractedFile",
    "Source",
    "default_logins_path",
    "extract_file",
    "load_config",
]
