"""
Semantic version domain objects for compver.

A tag slot (the last segment of a component tag) is either a semantic
version or an environment name. classify_slot() is the single place that
decides which; everything else consumes its result.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
import re

SEMVER_RE = re.compile(
    r'^(?P<v>v)?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)'
    r'(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$'
)

ENVIRONMENT_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')

BUMP_LEVELS = ('major', 'minor', 'patch', 'prerelease')


@dataclass(frozen=True)
class SemVer:
    """
    Parsed semantic version.

    Ordering compares (major, minor, patch) numerically; a prerelease sorts
    before the release with the same numbers.

    Examples:
        SemVer.parse("v1.2.3")        -> SemVer(1, 2, 3)
        SemVer.parse("1.0.0-beta.1")  -> SemVer(1, 0, 0, "beta.1")
    """

    major: int
    minor: int
    patch: int
    prerelease: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> Optional['SemVer']:
        """Parse `v?MAJOR.MINOR.PATCH[-pre]`, returning None if it doesn't match."""
        if not isinstance(text, str):
            return None
        m = SEMVER_RE.match(text.strip())
        if not m:
            return None
        return cls(int(m.group('major')), int(m.group('minor')),
                   int(m.group('patch')), m.group('pre'))

    @classmethod
    def parse_strict(cls, text: str) -> Optional['SemVer']:
        """Parse only the `v`-prefixed spelling used in tag names."""
        if not isinstance(text, str) or not text.startswith('v'):
            return None
        return cls.parse(text)

    def _key(self) -> Tuple:
        # Releases sort after their prereleases.
        if self.prerelease is None:
            pre: Tuple = (1,)
        else:
            pre = (0,) + tuple(
                (0, int(p), '') if p.isdigit() else (1, 0, p)
                for p in self.prerelease.split('.')
            )
        return (self.major, self.minor, self.patch, pre)

    def __lt__(self, other: 'SemVer') -> bool:
        return self._key() < other._key()

    def __le__(self, other: 'SemVer') -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: 'SemVer') -> bool:
        return self._key() > other._key()

    def __ge__(self, other: 'SemVer') -> bool:
        return self._key() >= other._key()

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.prerelease}" if self.prerelease else base

    @property
    def tag(self) -> str:
        """Tag slot spelling, always `v`-prefixed."""
        return f"v{self}"

    def bump(self, level: str) -> 'SemVer':
        """Return the next version for a bump level (major, minor, patch, prerelease)."""
        if level == 'major':
            return SemVer(self.major + 1, 0, 0)
        if level == 'minor':
            return SemVer(self.major, self.minor + 1, 0)
        if level == 'patch':
            if self.prerelease:
                return SemVer(self.major, self.minor, self.patch)
            return SemVer(self.major, self.minor, self.patch + 1)
        if level == 'prerelease':
            if not self.prerelease:
                return SemVer(self.major, self.minor, self.patch + 1, '0')
            parts = self.prerelease.split('.')
            if parts[-1].isdigit():
                parts[-1] = str(int(parts[-1]) + 1)
            else:
                parts.append('0')
            return SemVer(self.major, self.minor, self.patch, '.'.join(parts))
        raise ValueError(f"Unknown bump level: {level}")

    def bump_patch(self) -> 'SemVer':
        """Next patch release."""
        return self.bump('patch')


@dataclass(frozen=True)
class VersionSlot:
    """A tag slot holding a semantic version."""
    version: SemVer

    @property
    def text(self) -> str:
        return self.version.tag


@dataclass(frozen=True)
class EnvironmentSlot:
    """A tag slot naming a deployment environment."""
    name: str

    @property
    def text(self) -> str:
        return self.name


Slot = Union[VersionSlot, EnvironmentSlot]


def classify_slot(text: str) -> Slot:
    """
    Decide whether a tag slot is a version or an environment.

    Anything that parses as a semantic version (with or without a leading
    `v`) is a version; everything else is an environment name.
    """
    version = SemVer.parse(text)
    if version is not None:
        return VersionSlot(version)
    return EnvironmentSlot(text)


def is_valid_environment(name: str) -> bool:
    """True if `name` can be used as a deployment tag slot."""
    return bool(ENVIRONMENT_RE.match(name or '')) and SemVer.parse(name) is None


def version_sort_key(text: str) -> Tuple[int, int, int, int]:
    """
    Lenient sort key for version-like strings.

    Parts that are missing or non-numeric count as zero, so malformed tags
    still sort deterministically. Prereleases sort before the release.
    """
    body = text[1:] if text[:1] in ('v', 'V') else text
    core, _, pre = body.partition('-')
    parts = core.split('.')
    nums = []
    for i in range(3):
        digits = re.match(r'\d*', parts[i]).group() if i < len(parts) else ''
        nums.append(int(digits) if digits else 0)
    return (nums[0], nums[1], nums[2], 0 if pre else 1)


def max_version(*versions: Optional[str]) -> Optional[SemVer]:
    """Highest parseable version among the arguments, or None."""
    parsed = [v for v in (SemVer.parse(x) for x in versions if x) if v is not None]
    return max(parsed) if parsed else None
