"""
Component and registry domain objects for compver.

The registry is a cache: it maps stable component ids to their current
name, type, path and a best-effort version history. Git tags remain the
source of truth and the registry can always be rebuilt from them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import secrets
import string

from .tag import ComponentType, TagNamespace, prefix_for_path, DEFAULT_LOGIC_PATHS

ACTIVE = "active"
REMOVED = "removed"

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 6

SCHEMA_VERSION = "1.0.0"

# Metadata key holding the namespace the component's tags were created under
TAG_NAMESPACE_KEY = "tag_namespace"


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def generate_component_id(taken: Optional[set] = None) -> str:
    """Random 6-character id from [a-z0-9], never one already in `taken`."""
    taken = taken or set()
    while True:
        candidate = "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))
        if candidate not in taken:
            return candidate


@dataclass
class VersionEntry:
    """One cached history entry: a version bound to a commit and path."""

    version: str
    commit: str
    timestamp: str
    path: str
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VersionEntry':
        return cls(
            version=str(data.get("version", "")),
            commit=str(data.get("commit", "")),
            timestamp=str(data.get("timestamp", "")),
            path=str(data.get("path", "")),
            message=str(data.get("message", "") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "commit": self.commit,
            "timestamp": self.timestamp,
            "path": self.path,
            "message": self.message,
        }


@dataclass
class Component:
    """
    A tracked file in the repository.

    Attributes:
        id: Stable random identifier, the join key to everything else
        name: Human label, unique among active components
        type: Component type value (see ComponentType)
        path: Current path relative to the repository root
        version: Current version without the `v` prefix
        version_history: Cached history, oldest first
        status: "active" or "removed"
        removed_at: When the deletion sweep marked it removed
    """

    id: str
    name: str
    type: str
    path: str
    version: str = "1.0.0"
    version_history: List[VersionEntry] = field(default_factory=list)
    status: str = ACTIVE
    removed_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    def tag_namespace(self, logic_paths: Iterable[str] = DEFAULT_LOGIC_PATHS) -> TagNamespace:
        """
        Namespace holding this component's tags.

        The pinned namespace wins; later path, type or name changes don't
        move existing tags. Components without one derive it.
        """
        pinned = TagNamespace.parse(str(self.metadata.get(TAG_NAMESPACE_KEY) or ""))
        if pinned is not None:
            return pinned
        return TagNamespace(
            prefix_for_path(self.path, logic_paths),
            ComponentType.from_value(self.type),
            self.name,
        )

    def pin_tag_namespace(self, logic_paths: Iterable[str] = DEFAULT_LOGIC_PATHS) -> TagNamespace:
        """Record the current namespace so it survives renames and moves."""
        namespace = self.tag_namespace(logic_paths)
        self.metadata[TAG_NAMESPACE_KEY] = str(namespace)
        return namespace

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Component':
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            type=str(data.get("type", "config")),
            path=str(data.get("path", "")),
            version=str(data.get("version", "1.0.0")),
            version_history=[VersionEntry.from_dict(e) for e in data.get("version_history", [])
                             if isinstance(e, dict)],
            status=str(data.get("status", ACTIVE)),
            removed_at=data.get("removed_at"),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "path": self.path,
            "version": self.version,
            "version_history": [e.to_dict() for e in self.version_history],
            "status": self.status,
        }
        if self.removed_at:
            result["removed_at"] = self.removed_at
        if self.metadata:
            result["metadata"] = self.metadata
        return result

    def summary(self) -> Dict[str, Any]:
        """Flat view for listings."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "path": self.path,
            "version": self.version,
            "versions": len(self.version_history),
            "status": self.status,
        }


@dataclass
class Registry:
    """The side-registry document."""

    components: Dict[str, Component] = field(default_factory=dict)
    version: str = SCHEMA_VERSION
    updated: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Registry':
        raw = data.get("components") or {}
        if not isinstance(raw, dict):
            raise ValueError("'components' must be an object")
        components = {}
        for cid, entry in raw.items():
            entry = dict(entry)
            entry.setdefault("id", cid)
            components[cid] = Component.from_dict(entry)
        return cls(
            components=components,
            version=str(data.get("version", SCHEMA_VERSION)),
            updated=data.get("updated"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "components": {cid: c.to_dict() for cid, c in self.components.items()},
            "updated": self.updated,
        }

    def active(self) -> List[Component]:
        return [c for c in self.components.values() if c.is_active]

    def find_by_name(self, name: str, include_removed: bool = False) -> Optional[Component]:
        """Find a component by name, preferring active ones."""
        removed = None
        for component in self.components.values():
            if component.name != name:
                continue
            if component.is_active:
                return component
            removed = removed or component
        return removed if include_removed else None

    def find_by_path(self, path: str) -> Optional[Component]:
        """Find the component registered at `path`, preferring active ones."""
        match = None
        for component in self.components.values():
            if component.path == path:
                if component.is_active:
                    return component
                match = match or component
        return match

    def get(self, key: str) -> Optional[Component]:
        """Look up by id, then by active name."""
        return self.components.get(key) or self.find_by_name(key)

    def new_id(self) -> str:
        return generate_component_id(set(self.components))

    def add(self, component: Component) -> Component:
        self.components[component.id] = component
        return component

    def active_names(self) -> set:
        return {c.name for c in self.active()}
