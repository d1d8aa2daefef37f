"""
End-to-end CLI tests through click's CliRunner.

Each test runs against a real scratch repository selected with -C.
"""

import json

import pytest
from click.testing import CliRunner

from compver.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, repo, *args):
    return runner.invoke(cli, ["-C", str(repo.path), *args])


def as_json(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


@pytest.fixture
def synced(runner, prompt_repo):
    """Initialized and resynced repository with greeting-prompt registered."""
    result = invoke(runner, prompt_repo, "resync")
    assert result.exit_code == 0, result.output
    return prompt_repo


class TestInitAndResync:

    def test_version_option(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "version" in result.output

    def test_init(self, runner, git_repo):
        result = invoke(runner, git_repo, "init", "-f", "json")
        data = as_json(result)
        assert data["created"] is True
        assert (git_repo.path / ".compver" / "components.json").exists()
        assert (git_repo.path / ".compver" / "config.json").exists()

        again = as_json(invoke(runner, git_repo, "init", "-f", "json"))
        assert again["created"] is False

    def test_outside_git_repository(self, runner, tmp_path):
        result = runner.invoke(cli, ["-C", str(tmp_path), "init"])
        assert result.exit_code == 74
        assert "Error:" in result.output
        assert "Hint:" in result.output

    def test_resync_json_report(self, runner, prompt_repo):
        data = as_json(invoke(runner, prompt_repo, "resync", "-f", "json"))
        assert data["added"] == 1
        assert data["header_updates"] == 1
        assert data["saved"] is True

    def test_resync_dry_run_table(self, runner, prompt_repo):
        result = invoke(runner, prompt_repo, "resync", "--dry-run")
        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert "added" in result.output
        assert "compver:" not in prompt_repo.read("prompts/greeting.md")

    def test_resync_twice_is_consistent(self, runner, synced):
        result = invoke(runner, synced, "resync")
        assert result.exit_code == 0
        assert "consistent" in result.output


class TestComponents:

    def test_list_and_show(self, runner, synced):
        rows = as_json(invoke(runner, synced, "components", "list", "-f", "json"))
        assert [r["name"] for r in rows] == ["greeting-prompt"]

        detail = as_json(invoke(runner, synced, "components", "show", "greeting-prompt", "-f", "json"))
        assert detail["namespace"] == "components/prompts/greeting-prompt"
        assert len(detail["version_history"]) == 1

    def test_unknown_component(self, runner, synced):
        result = invoke(runner, synced, "components", "show", "nope")
        assert result.exit_code == 72
        assert "Known components: greeting-prompt" in result.output

    def test_commands_need_init(self, runner, git_repo):
        git_repo.commit_file("prompts/a.md", "a\n")
        result = invoke(runner, git_repo, "components", "list")
        assert result.exit_code == 66
        assert "compver init" in result.output

    def test_register(self, runner, synced):
        synced.commit_file("docs/system.txt", "Be brief.\n")
        data = as_json(invoke(runner, synced, "components", "register", "docs/system.txt",
                              "--type", "prompt", "-f", "json"))
        assert data["name"] == "system-prompt"
        assert "compver:" in synced.read("docs/system.txt")

    def test_register_from_subdirectory(self, runner, synced, monkeypatch):
        """A relative PATH starts from where the command runs, like git."""
        synced.commit_file("notes/system.txt", "Be brief.\n")
        monkeypatch.chdir(synced.path / "notes")

        result = runner.invoke(cli, ["components", "register", "system.txt",
                                     "--type", "prompt", "-f", "json"])

        data = as_json(result)
        assert data["path"] == "notes/system.txt"
        assert "compver:" in synced.read("notes/system.txt")

    def test_register_relative_to_repo_dir_option(self, runner, synced):
        synced.commit_file("notes/system.txt", "Be brief.\n")
        result = runner.invoke(cli, ["-C", str(synced.path / "notes"), "components", "register",
                                     "system.txt", "--type", "prompt", "-f", "json"])
        assert as_json(result)["path"] == "notes/system.txt"

    def test_register_outside_repository(self, runner, synced, tmp_path_factory):
        outside = tmp_path_factory.mktemp("elsewhere") / "stray.md"
        outside.write_text("stray\n")
        result = invoke(runner, synced, "components", "register", str(outside))
        assert result.exit_code == 2
        assert "outside the repository" in result.output

    def test_register_missing_file(self, runner, synced):
        result = invoke(runner, synced, "components", "register", "prompts/nope.md")
        assert result.exit_code == 72
        assert "No such file: prompts/nope.md" in result.output

    def test_list_yaml(self, runner, synced):
        result = invoke(runner, synced, "components", "list", "-f", "yaml")
        assert result.exit_code == 0
        assert "name: greeting-prompt" in result.output

    def test_checkout_version_and_working_tree(self, runner, synced):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        synced.commit_file("prompts/greeting.md", "Hi.\n")

        released = invoke(runner, synced, "components", "checkout", "greeting-prompt@v1.0.0")
        assert released.exit_code == 0, released.output
        assert released.output == "Hello there.\n"

        current = invoke(runner, synced, "components", "checkout", "greeting-prompt")
        assert current.output == "Hi.\n"

    def test_checkout_to_file(self, runner, synced, tmp_path):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        invoke(runner, synced, "deploy", "set", "greeting-prompt", "v1.0.0", "--to", "prod")
        target = tmp_path / "live.md"

        data = as_json(invoke(runner, synced, "components", "checkout", "greeting-prompt@prod",
                              "-o", str(target), "-f", "json"))

        assert data["path"] == "prompts/greeting.md"
        assert data["content"] is None
        assert target.read_text() == "Hello there.\n"
        assert "compver:" not in target.read_text()

    def test_checkout_follows_moved_file(self, runner, synced):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        synced.git("mv", "prompts/greeting.md", "prompts/hello.md")
        synced.commit("Rename greeting")
        invoke(runner, synced, "resync")

        data = as_json(invoke(runner, synced, "components", "checkout", "greeting-prompt@v1.0.0",
                              "-f", "json"))
        assert data["path"] == "prompts/greeting.md"
        assert data["content"] == "Hello there.\n"

    def test_checkout_unknown_ref(self, runner, synced):
        result = invoke(runner, synced, "components", "checkout", "greeting-prompt@v9.9.9")
        assert result.exit_code == 72
        assert "v9.9.9" in result.output


class TestTagCommands:

    def test_create_list_show(self, runner, synced):
        created = as_json(invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0", "-f", "json"))
        assert created["tag"] == "components/prompts/greeting-prompt/v1.0.0"

        rows = as_json(invoke(runner, synced, "tag", "list", "-f", "json"))
        assert [(r["component"], r["slot"], r["kind"]) for r in rows] == [
            ("greeting-prompt", "v1.0.0", "version")]

        shown = as_json(invoke(runner, synced, "tag", "show", "greeting-prompt@v1.0.0", "-f", "json"))
        assert shown["commit"] == created["commit"]

    def test_duplicate_version_exit_code(self, runner, synced):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        result = invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        assert result.exit_code == 73
        assert "already exists" in result.output
        assert "Hint:" in result.output

    def test_invalid_version_hint(self, runner, synced):
        result = invoke(runner, synced, "tag", "create", "greeting-prompt", "1.0.0")
        assert result.exit_code == 70
        assert "Hint: Use v1.0.0" in result.output

    def test_bump_and_set(self, runner, synced):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        bumped = as_json(invoke(runner, synced, "tag", "bump", "greeting-prompt", "minor", "-f", "json"))
        assert bumped["slot"] == "v1.1.0"

        moved = as_json(invoke(runner, synced, "tag", "set", "greeting-prompt", "dev", "-f", "json"))
        assert moved["kind"] == "deployment"

    def test_show_needs_tag(self, runner, synced):
        result = invoke(runner, synced, "tag", "show", "greeting-prompt")
        assert result.exit_code == 2

    def test_delete(self, runner, synced):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        data = as_json(invoke(runner, synced, "tag", "delete", "greeting-prompt", "v1.0.0", "-f", "json"))
        assert data["deleted"] is True
        missing = invoke(runner, synced, "tag", "show", "greeting-prompt@v1.0.0")
        assert missing.exit_code == 72


class TestDeployCommands:

    def test_set_promote_status(self, runner, synced):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")

        staging = as_json(invoke(runner, synced, "deploy", "set", "greeting-prompt", "v1.0.0",
                                 "--to", "staging", "-f", "json"))
        prod = as_json(invoke(runner, synced, "deploy", "promote", "greeting-prompt",
                              "--from", "staging", "--to", "prod", "-f", "json"))
        assert staging["commit"] == prod["commit"]

        status = as_json(invoke(runner, synced, "deploy", "status", "greeting-prompt", "-f", "json"))
        assert {s["environment"]: s["version"] for s in status} == {"prod": "v1.0.0", "staging": "v1.0.0"}

        listed = as_json(invoke(runner, synced, "deploy", "list", "prod", "-f", "json"))
        assert [d["environment"] for d in listed] == ["prod"]

    def test_rollback_without_previous(self, runner, synced):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        invoke(runner, synced, "deploy", "set", "greeting-prompt", "v1.0.0", "--to", "prod")
        result = invoke(runner, synced, "deploy", "rollback", "greeting-prompt", "--env", "prod")
        assert result.exit_code == 72
        assert "--to" in result.output

    def test_deploy_unknown_reference(self, runner, synced):
        result = invoke(runner, synced, "deploy", "set", "greeting-prompt", "v7.0.0", "--to", "prod")
        assert result.exit_code == 72
        assert "Reference 'v7.0.0' not found" in result.output

    def test_table_output(self, runner, synced):
        invoke(runner, synced, "tag", "create", "greeting-prompt", "v1.0.0")
        invoke(runner, synced, "deploy", "set", "greeting-prompt", "v1.0.0", "--to", "prod")
        result = invoke(runner, synced, "deploy", "status")
        assert result.exit_code == 0
        assert "prod" in result.output


def test_format_from_environment(runner, synced, monkeypatch):
    monkeypatch.setenv("COMPVER_FORMAT", "json")
    rows = as_json(invoke(runner, synced, "components", "list"))
    assert rows[0]["name"] == "greeting-prompt"


class TestDiscovery:

    def test_detect(self, runner, synced):
        synced.write("settings.yaml", "debug: true\n")
        results = as_json(invoke(runner, synced, "detect", "prompts/greeting.md", "settings.yaml",
                                 "-f", "json"))

        greeting, settings = results
        assert greeting["detected"]["type"] == "prompt"
        assert greeting["registered"] == "greeting-prompt"
        assert greeting["header"]["component"] == "greeting-prompt"
        assert settings["detected"] is None
        assert settings["registered"] is None

    def test_detect_min_confidence(self, runner, synced):
        synced.write("settings.yaml", "debug: true\n")
        results = as_json(invoke(runner, synced, "detect", "settings.yaml",
                                 "--min-confidence", "low", "-f", "json"))
        assert results[0]["detected"]["type"] == "config"
        assert results[0]["detected"]["confidence"] == "low"

    def test_detect_table_and_missing_file(self, runner, synced):
        result = invoke(runner, synced, "detect", "prompts/greeting.md")
        assert result.exit_code == 0
        assert "greeting-prompt" in result.output

        missing = invoke(runner, synced, "detect", "prompts/nope.md")
        assert missing.exit_code == 72

    def test_discover_does_not_write(self, runner, synced):
        synced.commit_file("queries/users.sql", "select 1;\n")
        before = (synced.path / ".compver" / "components.json").read_text()

        rows = as_json(invoke(runner, synced, "discover", "-f", "json"))

        assert {r["path"]: r["registered"] for r in rows} == {
            "prompts/greeting.md": "greeting-prompt",
            "queries/users.sql": None,
        }
        assert (synced.path / ".compver" / "components.json").read_text() == before
        assert "compver:" not in synced.read("queries/users.sql")

    def test_scan_alias_filters_unregistered(self, runner, synced):
        synced.commit_file("queries/users.sql", "select 1;\n")
        rows = as_json(invoke(runner, synced, "scan", "--unregistered", "-f", "json"))
        assert [(r["path"], r["type"], r["name"]) for r in rows] == [
            ("queries/users.sql", "query", "users-query")]
