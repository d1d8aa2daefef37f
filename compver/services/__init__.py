"""
Service layer for compver.

Contains business logic that orchestrates domain objects and infrastructure:
- ReferenceResolver: Reference -> commit resolution
- TagService: Version and deployment tag management
- DeployService: Deploy, promote, rollback and status
- HistoryBuilder: Version history from the commit log
- ResyncService: Registry reconciliation

Services receive their GitClient explicitly; commands build them through
compver.api.ComponentRepo.
"""

from .reference_resolver import ReferenceResolver
from .tag_service import TagService, TagDeletion, TagPush
from .deploy_service import DeployService, DeploymentStatus
from .history_service import HistoryBuilder
from .resync_service import ResyncService, ResyncOptions, ResyncReport, Fix, ResyncError

__all__ = [
    'ReferenceResolver',
    'TagService',
    'TagDeletion',
    'TagPush',
    'DeployService',
    'DeploymentStatus',
    'HistoryBuilder',
    'ResyncService',
    'ResyncOptions',
    'ResyncReport',
    'Fix',
    'ResyncError',
]
