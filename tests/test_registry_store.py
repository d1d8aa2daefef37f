"""Tests for registry persistence."""

import json

import pytest

from compver.domain.component import Component, Registry
from compver.exit_codes import RegistryCorrupt
from compver.infra.registry_store import RegistryStore


@pytest.fixture
def store(tmp_path):
    return RegistryStore(tmp_path / ".compver" / "components.json")


class TestRegistryStore:
    """Atomic JSON persistence with a forgiving load path."""

    def test_missing_file_loads_empty(self, store):
        assert not store.exists()
        assert store.load().components == {}
        assert store.last_error is None

    def test_save_creates_directory_and_stamps_updated(self, store):
        registry = Registry()
        registry.add(Component(id="abc123", name="greeting-prompt", type="prompt",
                               path="prompts/greeting.md"))

        store.save(registry)

        data = json.loads(store.path.read_text())
        assert data["components"]["abc123"]["name"] == "greeting-prompt"
        assert registry.updated is not None
        assert data["updated"] == registry.updated
        # No temp files left behind
        assert [p.name for p in store.path.parent.iterdir()] == ["components.json"]

    def test_load_strict_raises_on_garbage(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        with pytest.raises(RegistryCorrupt) as info:
            store.load_strict()
        assert "resync" in info.value.suggestion

    def test_load_falls_back_and_remembers_error(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"components": ["wrong"]}))

        registry = store.load()

        assert registry.components == {}
        assert isinstance(store.last_error, RegistryCorrupt)
        # The bad file is left alone until the next save
        assert json.loads(store.path.read_text()) == {"components": ["wrong"]}

    def test_top_level_must_be_object(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("[]")
        with pytest.raises(RegistryCorrupt):
            store.load_strict()
