"""
Version history reconstruction for compver.

Derives a component's version history from the commits that touched its
file, verifies cached history entries against the repository, and repairs
entries whose recorded commit no longer contains the recorded path.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
import logging

from ..domain.component import VersionEntry
from ..domain.version import SemVer
from ..infra import GitClient, GitCommit

logger = logging.getLogger(__name__)


def parse_timestamp(text: str) -> Optional[datetime]:
    """Parse an ISO timestamp; naive values are taken as UTC."""
    try:
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class HistoryBuilder:
    """
    Builds and checks version histories from git.

    Numbering is one version per commit touching the path, oldest first:
    1.0.0, 1.0.1, 1.0.2, ...
    """

    def __init__(self, git: GitClient, initial_version: str = "1.0.0"):
        self.git = git
        self.initial = SemVer.parse(initial_version) or SemVer(1, 0, 0)

    def _verified_commits(self, path: str) -> List[GitCommit]:
        """Commits touching `path` (following renames), oldest first, where the file exists."""
        commits = self.git.log_path(path, follow=True, reverse=True)
        return [c for c in commits if self.git.file_exists_at_commit(c.hash, c.path or path)]

    def build(self, path: str) -> List[VersionEntry]:
        """History of `path` from the commit log; empty for untracked files."""
        entries = []
        for n, commit in enumerate(self._verified_commits(path)):
            version = SemVer(self.initial.major, self.initial.minor, self.initial.patch + n)
            entries.append(VersionEntry(
                version=str(version),
                commit=commit.hash,
                timestamp=commit.date,
                path=commit.path or path,
                message=commit.message,
            ))
        return entries

    def creation_commit(self, path: str) -> Optional[GitCommit]:
        """First commit in which `path` (or a file it was renamed from) exists."""
        commits = self._verified_commits(path)
        return commits[0] if commits else None

    def verify(self, entry: VersionEntry) -> bool:
        """True if the entry's path exists at the entry's commit."""
        return self.git.file_exists_at_commit(entry.commit, entry.path)

    def repair(self, entry: VersionEntry, current_path: str, window_hours: int = 24) -> Optional[VersionEntry]:
        """
        Relocate an entry that fails verification.

        An initial-version entry goes to the path's creation commit. Any
        other entry goes to the commit closest to its timestamp, within
        ``window_hours`` either side, at which the path exists. Both the
        entry's own path and the current path are tried.

        Returns:
            A verified replacement entry, or None if none can be found
        """
        paths = [p for p in dict.fromkeys([entry.path, current_path]) if p]

        if SemVer.parse(entry.version) == self.initial:
            for path in paths:
                commit = self.creation_commit(path)
                if commit is not None:
                    return self._relocated(entry, commit, commit.path or path)
            return None

        when = parse_timestamp(entry.timestamp)
        if when is None:
            return None
        window = timedelta(hours=window_hours)
        candidates = self.git.log_path(
            since=(when - window).isoformat(),
            until=(when + window).isoformat(),
        )

        def distance(commit: GitCommit) -> float:
            date = parse_timestamp(commit.date)
            return abs((date - when).total_seconds()) if date else float("inf")

        for commit in sorted(candidates, key=distance):
            for path in paths:
                if self.git.file_exists_at_commit(commit.hash, path):
                    return self._relocated(entry, commit, path)
        return None

    @staticmethod
    def _relocated(entry: VersionEntry, commit: GitCommit, path: str) -> VersionEntry:
        logger.debug(f"Relocated {entry.version} from {entry.commit[:8]} to {commit.hash[:8]}")
        return VersionEntry(
            version=entry.version,
            commit=commit.hash,
            timestamp=commit.date,
            path=path,
            message=entry.message,
        )
