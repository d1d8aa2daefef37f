"""Tests for reference resolution order."""

import pytest

from compver.domain.tag import ComponentType, TagNamespace
from compver.exit_codes import ReferenceNotFound
from compver.infra.git_client import GitClient
from compver.services.reference_resolver import ReferenceResolver

NS = TagNamespace("components", ComponentType.PROMPT, "greeting-prompt")


@pytest.fixture
def tagged(git_repo):
    """Two commits; v1.0.0 and prod on the first, a branch named prod on the second."""
    first = git_repo.commit_file("prompts/greeting.md", "one\n")
    second = git_repo.commit_file("prompts/greeting.md", "two\n")
    client = GitClient(str(git_repo.path))
    client.create_tag(NS.tag_name("v1.0.0"), first, "release")
    client.create_tag(NS.tag_name("prod"), first, "deploy")
    git_repo.git("branch", "prod", second)
    return ReferenceResolver(client), first, second


class TestReferenceResolver:

    def test_full_and_short_commit_ids(self, tagged):
        resolver, first, _ = tagged
        assert resolver.resolve(NS, first) == first
        assert resolver.resolve(NS, first[:7]) == first

    def test_version_with_and_without_v(self, tagged):
        resolver, first, _ = tagged
        assert resolver.resolve(NS, "v1.0.0") == first
        assert resolver.resolve(NS, "1.0.0") == first

    def test_component_tag_beats_branch(self, tagged):
        """A namespace tag wins over a branch with the same name."""
        resolver, first, _ = tagged
        assert resolver.resolve(NS, "prod") == first

    def test_falls_through_to_git(self, tagged):
        resolver, _, second = tagged
        assert resolver.resolve(NS, "HEAD") == second
        assert resolver.resolve(NS, "main") == second

    def test_other_namespace_tags_are_not_consulted(self, tagged):
        resolver, _, _ = tagged
        other = TagNamespace("components", ComponentType.PROMPT, "farewell-prompt")
        with pytest.raises(ReferenceNotFound):
            resolver.resolve(other, "v1.0.0")

    def test_unknown_reference(self, tagged):
        resolver, _, _ = tagged
        with pytest.raises(ReferenceNotFound) as info:
            resolver.resolve(NS, "v9.9.9")
        assert info.value.exit_code == 72
        with pytest.raises(ReferenceNotFound):
            resolver.resolve(NS, "")
