"""
Tag hierarchy management for compver.

Version tags (``<ns>/v1.2.3``) are immutable: they are created once after an
explicit existence check and never moved. Deployment tags (``<ns>/prod``)
are mutable and are force-replaced each time something is deployed.
"""

from dataclasses import dataclass
from typing import List, Optional
import logging

from ..domain.component import utc_now
from ..domain.tag import TagInfo, TagNamespace, TagPath
from ..domain.version import (
    SemVer, VersionSlot, EnvironmentSlot, classify_slot, is_valid_environment, version_sort_key,
    BUMP_LEVELS,
)
from ..exit_codes import (
    InvalidEnvironment, InvalidVersion, RemoteTagConflict, TagAlreadyExists, TagNotFound,
)
from ..infra import GitClient
from .reference_resolver import ReferenceResolver

logger = logging.getLogger(__name__)

# Reasons git gives when the remote already has a different tag of that name.
# "[remote rejected]" (hooks, permissions) is a plain push failure.
CONFLICT_REASONS = ("(already exists)", "(non-fast-forward)", "(fetch first)")


def is_tag_conflict(stderr: str) -> bool:
    """True if a failed push was refused because the remote tag differs."""
    for line in stderr.splitlines():
        line = line.strip()
        if line.startswith("! [rejected]") and any(r in line for r in CONFLICT_REASONS):
            return True
    return False


@dataclass
class TagDeletion:
    """Outcome of deleting a tag."""
    tag: str
    remote_attempted: bool = False
    remote_deleted: bool = False
    remote_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "deleted": True,
            "remote_attempted": self.remote_attempted,
            "remote_deleted": self.remote_deleted,
            "remote_error": self.remote_error,
        }


@dataclass
class TagPush:
    """Outcome of pushing one tag."""
    tag: str
    forced: bool
    ok: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"tag": self.tag, "forced": self.forced, "ok": self.ok, "error": self.error}


def _slot_of(tag: str) -> str:
    return tag.rsplit("/", 1)[-1]


class TagService:
    """
    Creates, lists, inspects, deletes and pushes component tags.

    Example:
        tags = TagService(git, ReferenceResolver(git))
        ns = TagNamespace("components", ComponentType.PROMPT, "greeting-prompt")
        tags.create_version_tag(ns, "v1.0.0")
        tags.move_deployment_tag(ns, "prod", "v1.0.0")
        tags.get_version_tags(ns)   # ['components/prompts/greeting-prompt/v1.0.0']
    """

    def __init__(self, git: GitClient, resolver: ReferenceResolver, remote: str = "origin"):
        self.git = git
        self.resolver = resolver
        self.remote = remote

    # -- creation ---------------------------------------------------------

    def create_version_tag(
        self,
        namespace: TagNamespace,
        version: str,
        commit: Optional[str] = None,
        message: Optional[str] = None,
    ) -> TagInfo:
        """
        Create an immutable version tag.

        Args:
            namespace: Component tag namespace
            version: Strict ``vMAJOR.MINOR.PATCH[-pre]``
            commit: Reference to tag (default HEAD)
            message: Tag message

        Raises:
            InvalidVersion: if `version` isn't strict semver with a `v`
            TagAlreadyExists: if the tag is already present
            ReferenceNotFound: if `commit` doesn't resolve
        """
        if SemVer.parse_strict(version) is None:
            raise InvalidVersion(version)

        tag = namespace.tag_name(version)
        # Checked explicitly: git tag -a on some setups replaces silently
        if self.git.tag_exists(tag):
            raise TagAlreadyExists(tag)

        target = self.resolver.resolve(namespace, commit or "HEAD")
        self.git.create_tag(tag, target, message or f"Release {namespace.name} {version}")
        logger.info(f"Created {tag} at {target[:8]}")
        return self.get_tag_info(namespace, version)

    def move_deployment_tag(
        self,
        namespace: TagNamespace,
        environment: str,
        target_ref: str,
        message: Optional[str] = None,
    ) -> TagInfo:
        """
        Point an environment tag at the commit `target_ref` resolves to.

        Moving to the commit the tag already marks is a harmless re-tag.

        Raises:
            InvalidEnvironment: if `environment` isn't a usable environment name
            ReferenceNotFound: if `target_ref` doesn't resolve
        """
        if isinstance(classify_slot(environment), VersionSlot):
            raise InvalidEnvironment(environment, "looks like a version; version tags never move")
        if not is_valid_environment(environment):
            raise InvalidEnvironment(environment)

        target = self.resolver.resolve(namespace, target_ref)
        tag = namespace.tag_name(environment)
        text = message or f"Deploy {namespace.name}@{target_ref} to {environment} at {utc_now()}"
        self.git.create_tag(tag, target, text, force=True)
        logger.info(f"Moved {tag} to {target[:8]}")
        return self.get_tag_info(namespace, environment)

    def set_environment_tag(self, namespace: TagNamespace, environment: str,
                            target_ref: str = "HEAD") -> TagInfo:
        """`tag set`: move an environment tag, defaulting to HEAD."""
        return self.move_deployment_tag(namespace, environment, target_ref)

    def bump_version_tag(self, namespace: TagNamespace, level: str,
                         ref: Optional[str] = None, message: Optional[str] = None) -> TagInfo:
        """
        Create the next version after the latest existing one.

        Raises:
            TagNotFound: if the component has no version tag yet
        """
        if level not in BUMP_LEVELS:
            raise ValueError(f"Unknown bump level: {level}")
        latest = self.latest_version(namespace)
        if latest is None:
            raise TagNotFound(f"{namespace}/v*",
                              "Create the first version with 'compver tag create'")
        return self.create_version_tag(namespace, latest.bump(level).tag, ref, message)

    # -- queries ----------------------------------------------------------

    def list_tags(self, namespace: TagNamespace) -> List[str]:
        """All well-formed tags of one component, unsorted."""
        names = []
        for name in self.git.list_tags(f"{namespace}/"):
            parsed = TagPath.parse(name)
            if parsed is not None and parsed.namespace == namespace:
                names.append(name)
        return names

    def get_version_tags(self, namespace: TagNamespace) -> List[str]:
        """Version tags ordered by numeric (major, minor, patch)."""
        versions = [t for t in self.list_tags(namespace)
                    if isinstance(classify_slot(_slot_of(t)), VersionSlot)]
        return sorted(versions, key=lambda t: version_sort_key(_slot_of(t)))

    def get_deployment_tags(self, namespace: TagNamespace) -> List[str]:
        """Environment tags, ordered by name."""
        return sorted(t for t in self.list_tags(namespace)
                      if isinstance(classify_slot(_slot_of(t)), EnvironmentSlot))

    def latest_version(self, namespace: TagNamespace) -> Optional[SemVer]:
        versions = self.get_version_tags(namespace)
        return SemVer.parse(_slot_of(versions[-1])) if versions else None

    def find_versions_at(self, namespace: TagNamespace, commit: str) -> List[str]:
        """Version slots of this component tagged on `commit`, lowest first."""
        slots = [_slot_of(t) for t in self.git.tags_at_commit(commit, f"{namespace}/")
                 if isinstance(classify_slot(_slot_of(t)), VersionSlot)
                 and TagPath.parse(t) is not None]
        return sorted(slots, key=version_sort_key)

    def get_tag_info(self, namespace: TagNamespace, slot: str) -> TagInfo:
        """
        Commit, author, date and message of one tag.

        Raises:
            TagNotFound: if the tag doesn't exist
        """
        tag = namespace.tag_name(slot)
        found = self.git.tag_info(tag)
        if found is None:
            raise TagNotFound(tag)
        return TagInfo(
            tag=tag,
            slot=slot,
            commit=found.commit,
            author=found.tagger,
            date=found.date,
            message=found.message,
        )

    # -- removal and sharing ----------------------------------------------

    def delete_tag(self, namespace: TagNamespace, slot: str, also_remote: bool = False) -> TagDeletion:
        """
        Delete a tag locally, and optionally on the remote.

        A remote failure is reported in the result; the local deletion stands.

        Raises:
            TagNotFound: if the tag doesn't exist locally
        """
        tag = namespace.tag_name(slot)
        if not self.git.tag_exists(tag):
            raise TagNotFound(tag)
        self.git.delete_tag(tag)
        logger.info(f"Deleted {tag}")

        result = TagDeletion(tag=tag)
        if also_remote:
            result.remote_attempted = True
            pushed = self.git.delete_remote_tag(self.remote, tag)
            result.remote_deleted = pushed.ok
            if not pushed.ok:
                result.remote_error = pushed.stderr or f"exit code {pushed.returncode}"
                logger.warning(f"Could not delete {tag} from {self.remote}: {result.remote_error}")
        return result

    def push_tags(
        self,
        namespace: TagNamespace,
        slots: Optional[List[str]] = None,
        force: bool = False,
    ) -> List[TagPush]:
        """
        Push tags to the configured remote.

        Deployment tags always go with --force because they move. Version
        tags never do: a rejected version tag means the remote already holds
        a different tag of that name, which is surfaced as an error.

        Raises:
            TagNotFound: if a requested slot has no local tag
            RemoteTagConflict: if the remote rejects a version tag
        """
        if slots:
            tags = []
            for slot in slots:
                tag = namespace.tag_name(slot)
                if not self.git.tag_exists(tag):
                    raise TagNotFound(tag)
                tags.append(tag)
        else:
            tags = self.get_version_tags(namespace) + self.get_deployment_tags(namespace)

        results = []
        for tag in tags:
            is_version = isinstance(classify_slot(_slot_of(tag)), VersionSlot)
            if is_version and force:
                logger.warning(f"Not forcing version tag {tag}; version tags are immutable")
            forced = not is_version
            pushed = self.git.push_ref(self.remote, f"refs/tags/{tag}", force=forced)
            if pushed.ok:
                results.append(TagPush(tag=tag, forced=forced, ok=True))
                continue
            error = pushed.stderr or f"exit code {pushed.returncode}"
            if is_version and is_tag_conflict(error):
                raise RemoteTagConflict(tag, self.remote, error.splitlines()[-1])
            logger.warning(f"Failed to push {tag}: {error}")
            results.append(TagPush(tag=tag, forced=forced, ok=False, error=error))
        return results
