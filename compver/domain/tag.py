"""
Tag hierarchy domain objects for compver.

Component tags use a four-segment wire format:

    <components|logic>/<type-plural>/<name>/<slot>

where the slot is either a version (``v1.2.3``) or an environment name
(``prod``, ``staging``). Tags with any other shape are not component tags.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from .version import Slot, VersionSlot, EnvironmentSlot, classify_slot

COMPONENTS_PREFIX = "components"
LOGIC_PREFIX = "logic"
TAG_PREFIXES = (COMPONENTS_PREFIX, LOGIC_PREFIX)

DEFAULT_LOGIC_PATHS = ("logic/", "src/logic/")


class ComponentType(Enum):
    """Closed set of component content categories."""
    PROMPT = "prompt"
    SCHEMA = "schema"
    QUERY = "query"
    CONFIG = "config"
    SCRIPT = "script"
    TEMPLATE = "template"
    AGENT_DEFINITION = "agent-definition"
    ENSEMBLE = "ensemble"
    TOOL = "tool"

    @property
    def plural(self) -> str:
        """Namespace segment used in tag names."""
        if self is ComponentType.QUERY:
            return "queries"
        if self is ComponentType.AGENT_DEFINITION:
            return "agents"
        return f"{self.value}s"

    @property
    def suffix(self) -> str:
        """Suffix appended to generated component names."""
        if self is ComponentType.AGENT_DEFINITION:
            return "agent"
        return self.value

    @classmethod
    def from_value(cls, value: str) -> 'ComponentType':
        """Look up a type by value or plural; raises ValueError if unknown."""
        for member in cls:
            if value in (member.value, member.plural):
                return member
        raise ValueError(f"Unknown component type: {value}")

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        return tuple(m.value for m in cls)


def prefix_for_path(path: str, logic_paths: Iterable[str] = DEFAULT_LOGIC_PATHS) -> str:
    """Pick the tag prefix for a component living at `path`."""
    normalized = path.replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    for logic in logic_paths:
        logic = logic if logic.endswith("/") else logic + "/"
        if normalized.startswith(logic):
            return LOGIC_PREFIX
    return COMPONENTS_PREFIX


@dataclass(frozen=True)
class TagNamespace:
    """
    The three leading segments shared by all of one component's tags.

    Example:
        ns = TagNamespace("components", ComponentType.PROMPT, "greeting-prompt")
        ns.tag_name("v1.0.0")  -> "components/prompts/greeting-prompt/v1.0.0"
    """

    prefix: str
    component_type: ComponentType
    name: str

    @classmethod
    def parse(cls, text: str) -> Optional['TagNamespace']:
        """Parse `<prefix>/<plural>/<name>`; None for anything else."""
        parts = text.strip("/").split("/")
        if len(parts) != 3 or not all(parts) or parts[0] not in TAG_PREFIXES:
            return None
        try:
            component_type = ComponentType.from_value(parts[1])
        except ValueError:
            return None
        return cls(parts[0], component_type, parts[2])

    def __str__(self) -> str:
        return f"{self.prefix}/{self.component_type.plural}/{self.name}"

    @property
    def ref_prefix(self) -> str:
        return f"refs/tags/{self}/"

    def tag_name(self, slot: str) -> str:
        return f"{self}/{slot}"


@dataclass(frozen=True)
class TagPath:
    """A parsed four-segment component tag."""

    namespace: TagNamespace
    raw_slot: str
    slot: Slot

    @classmethod
    def parse(cls, full: str) -> Optional['TagPath']:
        """
        Parse a full tag name.

        Returns None for anything that isn't exactly four non-empty segments
        with a known prefix and component type.
        """
        if full.startswith("refs/tags/"):
            full = full[len("refs/tags/"):]
        parts = full.split("/")
        if len(parts) != 4 or not all(parts):
            return None
        prefix, plural, name, slot = parts
        if prefix not in TAG_PREFIXES:
            return None
        try:
            component_type = ComponentType.from_value(plural)
        except ValueError:
            return None
        return cls(TagNamespace(prefix, component_type, name), slot, classify_slot(slot))

    @property
    def name(self) -> str:
        return self.namespace.tag_name(self.raw_slot)

    @property
    def is_version(self) -> bool:
        return isinstance(self.slot, VersionSlot)

    @property
    def is_deployment(self) -> bool:
        return isinstance(self.slot, EnvironmentSlot)


@dataclass(frozen=True)
class TagInfo:
    """Details of one component tag as recorded by git."""

    tag: str
    slot: str
    commit: str
    author: str
    date: str
    message: str = ""

    @property
    def is_version(self) -> bool:
        return isinstance(classify_slot(self.slot), VersionSlot)

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "slot": self.slot,
            "kind": "version" if self.is_version else "deployment",
            "commit": self.commit,
            "author": self.author,
            "date": self.date,
            "message": self.message,
        }
