"""Shared fixtures for erd tests."""

from __future__ import annotations

import pytest

from erd.core.config import Artifact, Source
from erd.core.credentials import Credential


@pytest.fixture
def source() -> Source:
    return Source(
        id="example",
        url="https://git.example.com/",
        kind="gitlab",
        artifacts=[Artifact(id="svc", project_id="42", branch="main", pattern="svc.jar")],
    )


@pytest.fixture
def artifact(source: Source) -> Artifact:
    return source.artifacts[0]


@pytest.fixture
def credential() -> Credential:
    return Credential(url="https://git.example.com/", username="dev", password="glpat-token")
