"""ジョブ履歴の整形.

short 形式は ``JOB_NAME`` のジョブだけに絞り込み、long 形式は絞り込まずに全件を表示する。
"""

from __future__ import annotations

from dataclasses import dataclass

from erd.core.config import Artifact
from erd.providers import JOB_NAME, JobRecord


@dataclass(frozen=True)
class JobHistoryEntry:
    id: str
    ref: str
    timestamp: str
    status: str
    has_artifacts: bool
    web_url: str
    commit_short_id: str
    commit_title: str
    commit_author: str

    @classmethod
    def from_job(cls, job: JobRecord) -> JobHistoryEntry:
        return cls(
            id=str(job.id),
            ref=job.ref,
            timestamp=job.created_at,
            status=job.status,
            has_artifacts=job.has_artifacts,
            web_url=job.web_url,
            commit_short_id=job.commit.short_id,
            commit_title=job.commit.title,
            commit_author=job.commit.author_email,
        )

    @property
    def status_text(self) -> str:
        return self.status if self.has_artifacts else f"{self.status} (no artifacts)"

    def format_short(self) -> str:
        return f"{self.id} - {self.timestamp} - ({self.commit_short_id}) {self.status_text}"

    def format_long(self) -> str:
        return "\n".join(
            [
                f"{self.commit_short_id} ({self.ref}) - {self.commit_title}",
                f"\tBuild id: {self.id}",
                f"\tTimestamp: {self.timestamp}",
                f"\tStatus: {self.status_text}",
                f"\tURL: {self.web_url}",
                f"\tAuthor: {self.commit_author}",
            ]
        )


def render_history(artifact: Artifact, jobs: list[JobRecord], short: bool = False) -> list[str]:
    """ジョブ履歴を表示用の行に変換する.

    Args:
        artifact: 対象アーティファクト（見出しに使用）
        jobs: プロバイダが返したジョブ一覧（新しい順）
        short: 1ジョブ1行の短い形式にするか

    Returns:
        出力行のリスト（見出しを含む）
    """
    lines = [f"Showing {JOB_NAME} jobs for {artifact.id} on branch {artifact.branch}"]
    if short:
        lines.append("Id - When - (Commit) Status")
        lines.extend(JobHistoryEntry.from_job(job).format_short() for job in jobs if job.name == JOB_NAME)
    else:
        for job in jobs:
            lines.extend(JobHistoryEntry.from_job(job).format_long().splitlines())
    return lines
