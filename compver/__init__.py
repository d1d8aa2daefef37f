"""
compver - Component-level semantic versioning on top of git tags.

Individual files in a repository (prompts, schemas, queries, configs, ...)
are versioned and deployed independently. Versions and deployments live
entirely in git tags:

    components/prompts/greeting-prompt/v1.2.0   immutable release
    components/prompts/greeting-prompt/prod     moves on every deploy

A small JSON registry in `.compver/components.json` caches ids, names,
types and paths; `compver resync` can always rebuild it from git.

Quick Start:
    import compver

    repo = compver.ComponentRepo.open(".")
    repo.resync_service.run()

    component = repo.get_component("greeting-prompt")
    ns = repo.namespace_for(component)
    repo.tag_service.create_version_tag(ns, "v1.0.0")
    repo.deploy_service.deploy(ns, "v1.0.0", "prod")
"""

__version__ = "0.1.0"

# High-level API
from .api import ComponentRepo

# Domain objects
from .domain import (
    SemVer,
    VersionSlot,
    EnvironmentSlot,
    classify_slot,
    ComponentType,
    TagNamespace,
    TagPath,
    Component,
    VersionEntry,
    Registry,
)

# Services (for advanced use)
from .services import (
    ReferenceResolver,
    TagService,
    DeployService,
    ResyncService,
    ResyncOptions,
)

# Configuration
from .config import load_config, save_config

__all__ = [
    "__version__",
    "ComponentRepo",
    "SemVer",
    "VersionSlot",
    "EnvironmentSlot",
    "classify_slot",
    "ComponentType",
    "TagNamespace",
    "TagPath",
    "Component",
    "VersionEntry",
    "Registry",
    "ReferenceResolver",
    "TagService",
    "DeployService",
    "ResyncService",
    "ResyncOptions",
    "load_config",
    "save_config",
]
