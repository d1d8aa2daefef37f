"""
Shared fixtures: throwaway git repositories with a fixed identity.

Every test that touches git gets an isolated HOME and git config so the
developer's own settings (signing, default branch, hooks) can't leak in.
"""

import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import pytest

from compver.api import ComponentRepo
from compver.config import get_default_config


class GitRepo:
    """Small driver for a scratch repository."""

    def __init__(self, path: Path):
        self.path = path
        self._tick = 0

    def git(self, *args: str, date: Optional[str] = None) -> str:
        env = os.environ.copy()
        if date:
            env["GIT_AUTHOR_DATE"] = date
            env["GIT_COMMITTER_DATE"] = date
        result = subprocess.run(["git", *args], cwd=self.path, env=env,
                                capture_output=True, text=True, check=True)
        return result.stdout.strip()

    def write(self, rel: str, content: str) -> Path:
        full = self.path / rel
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(content)
        return full

    def read(self, rel: str) -> str:
        return (self.path / rel).read_text()

    def commit(self, message: str, *paths: str, date: Optional[str] = None) -> str:
        """Stage `paths` (everything if none) and commit; returns the commit id."""
        if date is None:
            # Distinct, increasing dates keep log order deterministic
            self._tick += 1
            date = f"2024-01-{self._tick:02d}T10:00:00+00:00"
        self.git("add", *(paths or ["-A"]))
        self.git("commit", "-q", "-m", message, date=date)
        return self.git("rev-parse", "HEAD")

    def commit_file(self, rel: str, content: str, message: Optional[str] = None,
                    date: Optional[str] = None) -> str:
        self.write(rel, content)
        return self.commit(message or f"Update {rel}", rel, date=date)

    def open(self) -> ComponentRepo:
        return ComponentRepo(str(self.path), config=get_default_config())


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch):
    """Keep user config and git settings out of every test."""
    home = tmp_path_factory.mktemp("home")
    gitconfig = home / ".gitconfig"
    gitconfig.write_text("")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Author")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "author@example.com")
    for key in list(os.environ):
        if key.startswith("COMPVER_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def git_repo(tmp_path):
    """An empty repository on branch main."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    path = tmp_path / "repo"
    path.mkdir()
    repo = GitRepo(path)
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    return repo


@pytest.fixture
def prompt_repo(git_repo):
    """A repository with one committed prompt and an initialized registry."""
    git_repo.commit_file("prompts/greeting.md", "Hello there.\n", "Add greeting")
    git_repo.open().init()
    return git_repo
