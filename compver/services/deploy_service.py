"""
Deployment operations for compver.

Deploy, promote and rollback are all moves of a component's environment
tags. The tag message of every move records which version was deployed,
which is what status reporting reads back.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
import logging
import re

from ..domain.component import Component, utc_now
from ..domain.tag import TagInfo, TagNamespace
from ..exit_codes import NoPreviousVersion
from .tag_service import TagService

logger = logging.getLogger(__name__)

DEPLOYED_VERSION_RE = re.compile(r'@(v\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?) to ')


@dataclass
class DeploymentStatus:
    """Where one environment of one component currently points."""
    component: str
    environment: str
    commit: str
    version: Optional[str]
    date: str
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "component": self.component,
            "environment": self.environment,
            "version": self.version,
            "commit": self.commit,
            "date": self.date,
            "message": self.message,
        }


def version_from_message(message: str) -> Optional[str]:
    """The `@vX.Y.Z to` version recorded in a deployment tag message."""
    m = DEPLOYED_VERSION_RE.search(message or "")
    return m.group(1) if m else None


class DeployService:
    """
    Promotion and rollback expressed as environment tag moves.

    Example:
        deploy = DeployService(tag_service)
        deploy.deploy(ns, "v1.0.0", "staging")
        deploy.promote(ns, "staging", "prod")
        deploy.rollback(ns, "prod")
    """

    def __init__(self, tags: TagService):
        self.tags = tags

    def _message(self, namespace: TagNamespace, label: str, environment: str, note: str = "") -> str:
        text = f"Deploy {namespace.name}@{label} to {environment} at {utc_now()}"
        return f"{text} ({note})" if note else text

    def deployed_version(self, namespace: TagNamespace, info: TagInfo) -> Optional[str]:
        """Version an environment tag represents: from its message, else the commit's tags."""
        version = version_from_message(info.message)
        if version:
            return version
        versions = self.tags.find_versions_at(namespace, info.commit)
        return versions[-1] if versions else None

    def deploy(self, namespace: TagNamespace, version_ref: str, environment: str) -> TagInfo:
        """Point `environment` at whatever `version_ref` resolves to."""
        return self.tags.move_deployment_tag(
            namespace, environment, version_ref,
            self._message(namespace, version_ref, environment),
        )

    def promote(self, namespace: TagNamespace, from_env: str, to_env: str) -> TagInfo:
        """
        Copy one environment's deployment to another.

        Raises:
            TagNotFound: if nothing is deployed to `from_env`
        """
        source = self.tags.get_tag_info(namespace, from_env)
        label = self.deployed_version(namespace, source) or source.commit[:8]
        return self.tags.move_deployment_tag(
            namespace, to_env, source.commit,
            self._message(namespace, label, to_env, f"promoted from {from_env}"),
        )

    def rollback(self, namespace: TagNamespace, environment: str, to: Optional[str] = None) -> TagInfo:
        """
        Move `environment` back to an earlier version.

        Without `to`, the target is the version just below the one currently
        deployed; if the deployment isn't a known version, the second-highest
        version tag.

        Raises:
            TagNotFound: if nothing is deployed to `environment`
            NoPreviousVersion: if there is no earlier version
        """
        current = self.tags.get_tag_info(namespace, environment)
        current_label = self.deployed_version(namespace, current) or current.commit[:8]

        if to:
            target = to
        else:
            slots = [t.rsplit("/", 1)[-1] for t in self.tags.get_version_tags(namespace)]
            if current_label in slots:
                index = slots.index(current_label)
                if index == 0:
                    raise NoPreviousVersion(namespace.name, environment)
                target = slots[index - 1]
            elif len(slots) >= 2:
                target = slots[-2]
            else:
                raise NoPreviousVersion(namespace.name, environment)

        logger.info(f"Rolling {namespace.name} {environment} back from {current_label} to {target}")
        return self.tags.move_deployment_tag(
            namespace, environment, target,
            self._message(namespace, target, environment, f"rollback from {current_label}"),
        )

    def status(self, namespace: TagNamespace) -> List[DeploymentStatus]:
        """Every environment this component is deployed to."""
        result = []
        for tag in self.tags.get_deployment_tags(namespace):
            environment = tag.rsplit("/", 1)[-1]
            info = self.tags.get_tag_info(namespace, environment)
            result.append(DeploymentStatus(
                component=namespace.name,
                environment=environment,
                commit=info.commit,
                version=self.deployed_version(namespace, info),
                date=info.date,
                message=info.message,
            ))
        return result

    def list_deployments(
        self,
        components: Iterable[Tuple[Component, TagNamespace]],
        environment: Optional[str] = None,
    ) -> List[DeploymentStatus]:
        """Deployments across components, optionally for one environment."""
        result = []
        for _, namespace in components:
            for entry in self.status(namespace):
                if environment is None or entry.environment == environment:
                    result.append(entry)
        return sorted(result, key=lambda s: (s.environment, s.component))
