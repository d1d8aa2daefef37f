"""Tests for deploy, promote, rollback and status."""

import pytest

from compver.domain.tag import ComponentType, TagNamespace
from compver.exit_codes import NoPreviousVersion, TagNotFound
from compver.infra.git_client import GitClient
from compver.services import DeployService, ReferenceResolver, TagService
from compver.services.deploy_service import version_from_message

NS = TagNamespace("components", ComponentType.PROMPT, "greeting-prompt")


@pytest.fixture
def released(git_repo):
    """v1.0.0 and v1.1.0 on consecutive commits."""
    first = git_repo.commit_file("prompts/greeting.md", "one\n")
    client = GitClient(str(git_repo.path))
    tags = TagService(client, ReferenceResolver(client))
    tags.create_version_tag(NS, "v1.0.0")
    second = git_repo.commit_file("prompts/greeting.md", "two\n")
    tags.create_version_tag(NS, "v1.1.0")
    return DeployService(tags), first, second


class TestDeploy:

    def test_deploy_then_promote_lands_on_same_commit(self, released):
        deploy, _, second = released

        staging = deploy.deploy(NS, "v1.1.0", "staging")
        prod = deploy.promote(NS, "staging", "prod")

        assert staging.commit == prod.commit == second
        assert "promoted from staging" in prod.message
        assert version_from_message(prod.message) == "v1.1.0"

    def test_deploy_accepts_bare_version(self, released):
        deploy, first, _ = released
        info = deploy.deploy(NS, "1.0.0", "staging")
        assert info.commit == first
        # The message has no v-version, so status falls back to the commit's tags
        assert deploy.status(NS)[0].version == "v1.0.0"

    def test_promote_from_empty_environment(self, released):
        deploy, _, _ = released
        with pytest.raises(TagNotFound):
            deploy.promote(NS, "staging", "prod")

    def test_rollback_to_previous_version(self, released):
        deploy, first, _ = released
        deploy.deploy(NS, "v1.1.0", "prod")

        info = deploy.rollback(NS, "prod")

        assert info.commit == first
        assert "rollback from v1.1.0" in info.message
        assert version_from_message(info.message) == "v1.0.0"

    def test_rollback_past_first_version(self, released):
        deploy, _, _ = released
        deploy.deploy(NS, "v1.0.0", "prod")
        with pytest.raises(NoPreviousVersion):
            deploy.rollback(NS, "prod")

    def test_rollback_from_unversioned_commit_uses_second_highest(self, released, git_repo):
        deploy, first, _ = released
        third = git_repo.commit_file("prompts/greeting.md", "three\n")
        deploy.deploy(NS, third, "prod")

        info = deploy.rollback(NS, "prod")

        assert info.commit == first

    def test_rollback_to_explicit_version(self, released):
        deploy, first, second = released
        deploy.deploy(NS, "v1.1.0", "prod")
        assert deploy.rollback(NS, "prod", to="v1.0.0").commit == first

    def test_status_and_list(self, released):
        deploy, _, second = released
        deploy.deploy(NS, "v1.1.0", "staging")
        deploy.promote(NS, "staging", "prod")

        status = {s.environment: s for s in deploy.status(NS)}
        assert set(status) == {"prod", "staging"}
        assert status["prod"].version == "v1.1.0"
        assert status["prod"].commit == second

        listed = deploy.list_deployments([(None, NS)], environment="prod")
        assert [s.environment for s in listed] == ["prod"]
        assert listed[0].to_dict()["component"] == "greeting-prompt"


def test_version_from_message():
    assert version_from_message("Deploy a@v1.2.3-rc.1 to prod at 2024") == "v1.2.3-rc.1"
    assert version_from_message("Deploy a@main to prod at 2024") is None
    assert version_from_message("") is None
