"""
Infrastructure layer for compver.

Contains abstractions for external systems:
- GitClient: Git command execution, bound to one repository
- RegistryStore: Atomic JSON persistence of the component registry

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, GitResult, GitTag, GitCommit
from .registry_store import RegistryStore

__all__ = [
    'GitClient',
    'GitResult',
    'GitTag',
    'GitCommit',
    'RegistryStore',
]
