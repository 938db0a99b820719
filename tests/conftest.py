"""Shared fixtures: a local bare 'upstream' repository and a config pointing at it."""

import subprocess
from pathlib import Path

import pytest

from content_sync.config import Config
from content_sync.repository import RepositoryDescriptor

BALOR_FILE = "content/balor-fomorian-event.md"
BALOR_CONTENT = (
    "---\n"
    "title: Balor Fomorian\n"
    "eventPlace: []\n"
    "---\n"
    "\n"
    "Where to find the Balor Fomorian.\n"
)


def git(cwd: Path, *args: str) -> str:
    """Runs git with a throwaway identity and returns stripped stdout."""
    res = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return res.stdout.strip()


@pytest.fixture
def remote(tmp_path: Path) -> Path:
    """A bare repository on branch 'develop' holding one content file."""
    seed = tmp_path / "seed"
    (seed / "content").mkdir(parents=True)
    git(seed, "init", "-b", "develop")
    (seed / BALOR_FILE).write_text(BALOR_CONTENT)
    git(seed, "add", "--all")
    git(seed, "commit", "-m", "Initial content")

    bare = tmp_path / "remote.git"
    git(tmp_path, "clone", "--bare", str(seed), str(bare))
    return bare


@pytest.fixture
def descriptor(remote: Path) -> RepositoryDescriptor:
    return RepositoryDescriptor(url=str(remote), directory="blog", branch="develop")


@pytest.fixture
def config(tmp_path: Path, descriptor: RepositoryDescriptor) -> Config:
    """A Config rooted in tmp_path with no credentials and TLS checks on."""
    conf = Config()
    conf.core.base_dir = str(tmp_path / "work")
    conf.core.repos_folder = "repos"
    conf.git.token = None
    conf.git.verify_ssl = True
    conf.git.timeout = 60
    conf.repositories = [descriptor]
    return conf


def push_upstream_change(tmp_path: Path, remote: Path, name: str, text: str) -> str:
    """Commits a new file to the remote from a separate clone; returns its SHA."""
    other = tmp_path / "other"
    if not other.exists():
        git(tmp_path, "clone", "--branch", "develop", str(remote), str(other))
    else:
        git(other, "pull", "--no-edit", "origin", "develop")
    (other / name).write_text(text)
    git(other, "add", "--all")
    git(other, "commit", "-m", f"Add {name}")
    git(other, "push", "origin", "develop")
    return git(other, "rev-parse", "HEAD")
