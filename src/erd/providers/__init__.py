"""CIプロバイダ用クライアント群."""

from __future__ import annotations

from erd.core.config import Source
from erd.core.exceptions import UnknownProviderError

from .base_provider import JOB_NAME, BaseProvider, JobCommit, JobRecord, ProjectSummary
from .gitlab_provider import GitLabProvider

PROVIDERS: dict[str, type[BaseProvider]] = {
    GitLabProvider.kind: GitLabProvider,
}


def get_provider(source: Source, **kwargs) -> BaseProvider:
    """ソースの種別に対応するプロバイダを生成する.

    Raises:
        UnknownProviderError: 未対応の種別の場合
    """
    try:
        provider_cls = PROVIDERS[source.kind]
    except KeyError:
        raise UnknownProviderError(source.kind) from None
    return provider_cls(source, **kwargs)


__all__ = [
    "BaseProvider",
    "GitLabProvider",
    "JOB_NAME",
    "JobCommit",
    "JobRecord",
    "PROVIDERS",
    "ProjectSummary",
    "get_provider",
]
