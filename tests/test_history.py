"""Tests for version history derived from the commit log."""

from compver.domain.component import VersionEntry
from compver.infra.git_client import GitClient
from compver.services.history_service import HistoryBuilder, parse_timestamp


def builder(git_repo, initial="1.0.0"):
    return HistoryBuilder(GitClient(str(git_repo.path)), initial)


class TestHistoryBuilder:

    def test_build_follows_renames(self, git_repo):
        first = git_repo.commit_file("prompts/old.md", "same text\n", "Add")
        git_repo.git("mv", "prompts/old.md", "prompts/new.md")
        git_repo.commit("Rename")

        entries = builder(git_repo).build("prompts/new.md")

        assert [e.version for e in entries] == ["1.0.0", "1.0.1"]
        assert entries[0].commit == first
        assert entries[0].path == "prompts/old.md"
        assert entries[1].path == "prompts/new.md"

    def test_custom_initial_version(self, git_repo):
        git_repo.commit_file("a.md", "1\n")
        git_repo.commit_file("a.md", "2\n")
        assert [e.version for e in builder(git_repo, "0.1.0").build("a.md")] == ["0.1.0", "0.1.1"]

    def test_untracked_file_has_no_history(self, git_repo):
        git_repo.commit_file("a.md", "1\n")
        git_repo.write("b.md", "untracked\n")
        assert builder(git_repo).build("b.md") == []

    def test_verify(self, git_repo):
        sha = git_repo.commit_file("a.md", "1\n")
        history = builder(git_repo)
        assert history.verify(VersionEntry("1.0.0", sha, "", "a.md"))
        assert not history.verify(VersionEntry("1.0.0", sha, "", "b.md"))

    def test_repair_tries_current_path(self, git_repo):
        """An entry recorded under a path that never existed is matched by the current one."""
        sha = git_repo.commit_file("a.md", "1\n", date="2024-05-01T08:00:00+00:00")
        entry = VersionEntry("1.0.3", "0" * 40, "2024-05-01T09:00:00+00:00", "typo.md", "kept")

        repaired = builder(git_repo).repair(entry, "a.md", window_hours=2)

        assert repaired.commit == sha
        assert repaired.path == "a.md"
        assert repaired.message == "kept"

    def test_repair_needs_parseable_timestamp(self, git_repo):
        git_repo.commit_file("a.md", "1\n")
        entry = VersionEntry("1.0.3", "0" * 40, "yesterday-ish", "a.md")
        assert builder(git_repo).repair(entry, "a.md") is None


def test_parse_timestamp():
    assert parse_timestamp("2024-01-01T00:00:00Z").tzinfo is not None
    assert parse_timestamp("2024-01-01T00:00:00").utcoffset().total_seconds() == 0
    assert parse_timestamp("not a date") is None
