"""Tests for GitClient against real scratch repositories."""

import pytest

from compver.exit_codes import GitCommandError, NotAGitRepository
from compver.infra.git_client import GitClient


class TestGitClient:
    """GitClient wraps git invocations for one repository."""

    def test_find_repo_root_from_subdirectory(self, git_repo):
        git_repo.commit_file("prompts/a.md", "a\n")
        root = GitClient.find_repo_root(str(git_repo.path / "prompts"))
        assert root == str(git_repo.path.resolve())

    def test_find_repo_root_outside_repository(self, tmp_path):
        outside = tmp_path / "plain"
        outside.mkdir()
        with pytest.raises(NotAGitRepository):
            GitClient.find_repo_root(str(outside))

    def test_rev_parse_and_head(self, git_repo):
        client = GitClient(str(git_repo.path))
        assert client.head() is None

        sha = git_repo.commit_file("a.md", "a\n")

        assert client.head() == sha
        assert client.rev_parse(sha[:8]) == sha
        assert client.rev_parse("no-such-branch") is None

    def test_file_exists_at_commit(self, git_repo):
        first = git_repo.commit_file("a.md", "a\n")
        git_repo.git("rm", "-q", "a.md")
        second = git_repo.commit("Remove a")

        client = GitClient(str(git_repo.path))
        assert client.file_exists_at_commit(first, "a.md")
        assert not client.file_exists_at_commit(second, "a.md")
        assert not client.file_exists_at_commit("0" * 40, "a.md")

    def test_show_file_keeps_content_exact(self, git_repo):
        first = git_repo.commit_file("a.md", "line one\n\n")
        git_repo.commit_file("a.md", "changed\n")

        client = GitClient(str(git_repo.path))
        assert client.show_file(first, "a.md") == "line one\n\n"
        with pytest.raises(GitCommandError):
            client.show_file(first, "missing.md")

    def test_annotated_tag_info(self, git_repo):
        sha = git_repo.commit_file("a.md", "a\n")
        client = GitClient(str(git_repo.path))

        client.create_tag("components/prompts/a-prompt/v1.0.0", sha, "Release a-prompt v1.0.0\n\nDetails")

        info = client.tag_info("components/prompts/a-prompt/v1.0.0")
        # The peeled commit, not the tag object
        assert info.commit == sha
        assert info.tagger == "Test Author"
        assert info.message.startswith("Release a-prompt v1.0.0")
        assert "Details" in info.message
        assert client.tag_info("components/prompts/a-prompt/v9.9.9") is None

    def test_lightweight_tag_info_uses_author(self, git_repo):
        sha = git_repo.commit_file("a.md", "a\n")
        git_repo.git("tag", "light")
        info = GitClient(str(git_repo.path)).tag_info("light")
        assert info.commit == sha
        assert info.tagger == "Test Author"

    def test_create_tag_without_force_fails_on_existing(self, git_repo):
        sha = git_repo.commit_file("a.md", "a\n")
        client = GitClient(str(git_repo.path))
        client.create_tag("x/v1", sha, "one")
        with pytest.raises(GitCommandError):
            client.create_tag("x/v1", sha, "two")
        client.create_tag("x/v1", sha, "three", force=True)
        assert client.tag_info("x/v1").message == "three"

    def test_list_and_points_at(self, git_repo):
        first = git_repo.commit_file("a.md", "a\n")
        second = git_repo.commit_file("a.md", "b\n")
        client = GitClient(str(git_repo.path))
        client.create_tag("components/prompts/a/v1.0.0", first, "m")
        client.create_tag("components/prompts/a/v1.1.0", second, "m")
        client.create_tag("components/prompts/ab/v1.0.0", second, "m")

        assert sorted(client.list_tags("components/prompts/a/")) == [
            "components/prompts/a/v1.0.0", "components/prompts/a/v1.1.0"]
        assert client.tags_at_commit(second, "components/prompts/a/") == ["components/prompts/a/v1.1.0"]

        client.delete_tag("components/prompts/a/v1.0.0")
        assert not client.tag_exists("components/prompts/a/v1.0.0")

    def test_log_path_follows_renames(self, git_repo):
        first = git_repo.commit_file("prompts/old.md", "a\n", "Add")
        git_repo.git("mv", "prompts/old.md", "prompts/new.md")
        second = git_repo.commit("Rename")
        third = git_repo.commit_file("prompts/new.md", "b\n", "Edit")

        client = GitClient(str(git_repo.path))
        commits = client.log_path("prompts/new.md", follow=True, reverse=True)

        assert [c.hash for c in commits] == [first, second, third]
        assert commits[0].path == "prompts/old.md"
        assert commits[-1].path == "prompts/new.md"
        assert commits[0].message == "Add"

    def test_log_path_time_window(self, git_repo):
        git_repo.commit_file("a.md", "1\n", date="2024-03-01T10:00:00+00:00")
        middle = git_repo.commit_file("a.md", "2\n", date="2024-03-05T10:00:00+00:00")
        git_repo.commit_file("a.md", "3\n", date="2024-03-09T10:00:00+00:00")

        commits = GitClient(str(git_repo.path)).log_path(
            since="2024-03-04T00:00:00+00:00", until="2024-03-06T00:00:00+00:00")
        assert [c.hash for c in commits] == [middle]

    def test_ls_files_handles_spaces(self, git_repo):
        git_repo.commit_file("prompts/hello world.md", "a\n")
        assert GitClient(str(git_repo.path)).ls_files() == ["prompts/hello world.md"]
