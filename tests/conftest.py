from __future__ import annotations

from pathlib import Path

import pytest

from releasepack.models import ReleaseMetadata
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a throwaway project tree rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def jx_metadata() -> ReleaseMetadata:
    """Release metadata matching the committed jx 1.0.1 golden formula."""
    return ReleaseMetadata(
        binary_name="jx",
        version="1.0.1",
        artifact_url_template=(
            "https://github.com/jenkins-x/jx/releases/download/"
            "v{{ version }}/{{ binary_name }}-darwin-amd64.tar.gz"
        ),
        checksum_algorithm="sha256",
        checksum="e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
        completion_shells=frozenset({"bash", "zsh"}),
        extra={
            "description": "A tool to install and interact with Jenkins X on your Kubernetes cluster.",
            "homepage": "https://jenkins-x.io/",
        },
    )
