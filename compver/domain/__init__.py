"""
Domain layer for compver.

Contains pure domain objects with no I/O or side effects:
- SemVer and slot classification (version vs. environment)
- ComponentType, TagNamespace, TagPath: the tag hierarchy wire format
- Component, VersionEntry, Registry: the side-registry document
"""

from .version import (
    SemVer,
    VersionSlot,
    EnvironmentSlot,
    classify_slot,
    is_valid_environment,
    version_sort_key,
    max_version,
    BUMP_LEVELS,
)
from .tag import (
    ComponentType,
    TagNamespace,
    TagPath,
    TagInfo,
    prefix_for_path,
    COMPONENTS_PREFIX,
    LOGIC_PREFIX,
)
from .component import (
    Component,
    VersionEntry,
    Registry,
    generate_component_id,
    utc_now,
    ACTIVE,
    REMOVED,
    TAG_NAMESPACE_KEY,
)

__all__ = [
    'SemVer',
    'VersionSlot',
    'EnvironmentSlot',
    'classify_slot',
    'is_valid_environment',
    'version_sort_key',
    'max_version',
    'BUMP_LEVELS',
    'ComponentType',
    'TagNamespace',
    'TagPath',
    'TagInfo',
    'prefix_for_path',
    'COMPONENTS_PREFIX',
    'LOGIC_PREFIX',
    'Component',
    'VersionEntry',
    'Registry',
    'generate_component_id',
    'utc_now',
    'ACTIVE',
    'REMOVED',
    'TAG_NAMESPACE_KEY',
]
