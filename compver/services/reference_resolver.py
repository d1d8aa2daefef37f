"""
Reference resolution for compver.

Turns a textual reference into a commit id for one component. The order is
fixed: commit-id shaped strings first, then the component's own tags, then
generic git resolution (branches, HEAD, abbreviated ids). A tag in the
component's namespace always wins over a branch of the same name.
"""

from typing import Union
import logging
import re

from ..domain.tag import TagNamespace
from ..domain.version import VersionSlot, classify_slot
from ..exit_codes import ReferenceNotFound
from ..infra import GitClient

logger = logging.getLogger(__name__)

COMMIT_ID_RE = re.compile(r'^[0-9a-fA-F]{6,40}$')


class ReferenceResolver:
    """
    Resolves references within a component's tag namespace.

    Example:
        resolver = ReferenceResolver(git)
        resolver.resolve(ns, "v1.0.0")   # the commit the version tag marks
        resolver.resolve(ns, "prod")     # the commit currently live in prod
        resolver.resolve(ns, "main")     # falls through to the branch
    """

    def __init__(self, git: GitClient):
        self.git = git

    def resolve(self, namespace: Union[TagNamespace, str], ref: str) -> str:
        """
        Resolve `ref` to a full commit id.

        Raises:
            ReferenceNotFound: if no step resolves the reference
        """
        ref = (ref or "").strip()
        if not ref:
            raise ReferenceNotFound(ref, str(namespace))

        if COMMIT_ID_RE.match(ref):
            commit = self.git.rev_parse(ref)
            if commit:
                logger.debug(f"{ref} resolved as commit id {commit}")
                return commit

        slots = [ref]
        slot = classify_slot(ref)
        if isinstance(slot, VersionSlot) and slot.version.tag != ref:
            slots.append(slot.version.tag)
        for candidate in slots:
            commit = self.git.rev_parse(f"refs/tags/{namespace}/{candidate}")
            if commit:
                logger.debug(f"{ref} resolved via tag {namespace}/{candidate}")
                return commit

        commit = self.git.rev_parse(ref)
        if commit:
            logger.debug(f"{ref} resolved by git rev-parse")
            return commit

        raise ReferenceNotFound(ref, str(namespace))
