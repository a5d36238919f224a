"""Test helpers shared by unit and integration tests."""

from __future__ import annotations

import io
import zipfile


def make_zip(entries: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def job_json(job_id: int, name: str = "build", ref: str = "main", artifacts: bool = True, **extra) -> dict:
    data = {
        "id": job_id,
        "name": name,
        "status": "success",
        "stage": "build",
        "ref": ref,
        "created_at": f"2024-05-0{job_id % 9 + 1}T10:00:00.000Z",
        "web_url": f"https://git.example.com/group/svc/-/jobs/{job_id}",
        "commit": {
            "id": f"{job_id:040d}",
            "short_id": f"{job_id:08d}",
            "title": f"Commit {job_id}",
            "author_email": "dev@example.com",
            "created_at": "2024-05-01T09:00:00.000Z",
        },
        "artifacts_file": {"filename": "artifacts.zip", "size": 10} if artifacts else None,
    }
    data.update(extra)
    return data
