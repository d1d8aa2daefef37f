"""
Component discovery for compver.

Classifies repository files into component types with a ranked list of
rules. Each rule is a (predicate, type, confidence) triple; rules are
evaluated in order and the first match wins, so precedence and confidence
can be tested independently of each other.
"""

from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional, Set
import logging
import re

from .domain.tag import ComponentType

logger = logging.getLogger(__name__)

CONFIDENCE_LEVELS = {"low": 0, "medium": 1, "high": 2}

MAX_NAME_LENGTH = 63

DEFAULT_SKIP_DIRECTORIES = (
    ".git", ".compver", "node_modules", "__pycache__",
    ".venv", "venv", "dist", "build",
)


@dataclass(frozen=True)
class DetectionRule:
    """One ranked classification rule."""
    predicate: Callable[[PurePosixPath], bool]
    type: ComponentType
    confidence: str
    description: str


@dataclass(frozen=True)
class DetectedComponent:
    """Result of classifying a path."""
    type: ComponentType
    name: str
    confidence: str
    rule: str

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "name": self.name,
            "confidence": self.confidence,
            "rule": self.rule,
        }


def _in_dir(*names: str) -> Callable[[PurePosixPath], bool]:
    wanted = set(names)
    return lambda p: any(part in wanted for part in p.parts[:-1])


def _infix(*infixes: str) -> Callable[[PurePosixPath], bool]:
    # "greeting.prompt.md" has the infix "prompt"
    def match(p: PurePosixPath) -> bool:
        middle = p.name.split('.')[1:-1]
        return any(i in middle for i in infixes)
    return match


def _suffix(*suffixes: str) -> Callable[[PurePosixPath], bool]:
    wanted = tuple(s.lower() for s in suffixes)
    return lambda p: p.suffix.lower() in wanted


def _stem_contains(word: str) -> Callable[[PurePosixPath], bool]:
    return lambda p: word in p.name.split('.')[0].lower()


def _glob(pattern: str) -> Callable[[PurePosixPath], bool]:
    return lambda p: fnmatch(str(p), pattern) or fnmatch(p.name, pattern)


def _both(a: Callable[[PurePosixPath], bool],
          b: Callable[[PurePosixPath], bool]) -> Callable[[PurePosixPath], bool]:
    return lambda p: a(p) and b(p)


T = ComponentType

TEXT_LIKE = ('.md', '.txt', '.prompt', '.yaml', '.yml', '.json', '.toml', '.j2', '.jinja',
             '.hbs', '.sql', '.py', '.sh', '.js', '.ts', '.html')

BUILTIN_RULES: List[DetectionRule] = [
    # Infixes are explicit declarations of intent
    DetectionRule(_infix('prompt'), T.PROMPT, "high", "*.prompt.*"),
    DetectionRule(_infix('agent'), T.AGENT_DEFINITION, "high", "*.agent.*"),
    DetectionRule(_infix('query'), T.QUERY, "high", "*.query.*"),
    DetectionRule(_infix('schema'), T.SCHEMA, "high", "*.schema.*"),
    DetectionRule(_infix('template'), T.TEMPLATE, "high", "*.template.*"),
    DetectionRule(_infix('ensemble'), T.ENSEMBLE, "high", "*.ensemble.*"),
    DetectionRule(_infix('tool'), T.TOOL, "high", "*.tool.*"),
    DetectionRule(_infix('config'), T.CONFIG, "high", "*.config.*"),
    # Conventional directories
    DetectionRule(_both(_in_dir('prompts', 'instructions'), _suffix(*TEXT_LIKE)),
                  T.PROMPT, "high", "prompts/**"),
    DetectionRule(_both(_in_dir('agents'), _suffix(*TEXT_LIKE)),
                  T.AGENT_DEFINITION, "high", "agents/**"),
    DetectionRule(_both(_in_dir('queries', 'sql'), _suffix(*TEXT_LIKE)),
                  T.QUERY, "high", "queries/**"),
    DetectionRule(_both(_in_dir('schemas'), _suffix(*TEXT_LIKE)),
                  T.SCHEMA, "high", "schemas/**"),
    DetectionRule(_both(_in_dir('templates'), _suffix(*TEXT_LIKE)),
                  T.TEMPLATE, "high", "templates/**"),
    DetectionRule(_both(_in_dir('ensembles'), _suffix(*TEXT_LIKE)),
                  T.ENSEMBLE, "high", "ensembles/**"),
    DetectionRule(_both(_in_dir('tools'), _suffix(*TEXT_LIKE)),
                  T.TOOL, "high", "tools/**"),
    DetectionRule(_both(_in_dir('scripts'), _suffix('.py', '.sh', '.bash', '.js', '.ts')),
                  T.SCRIPT, "high", "scripts/**"),
    DetectionRule(_both(_in_dir('configs', 'config', 'settings'), _suffix(*TEXT_LIKE)),
                  T.CONFIG, "high", "configs/**"),
    # Extensions with one obvious meaning
    DetectionRule(_suffix('.prompt'), T.PROMPT, "medium", "*.prompt"),
    DetectionRule(_suffix('.sql'), T.QUERY, "medium", "*.sql"),
    DetectionRule(_suffix('.j2', '.jinja', '.jinja2', '.hbs', '.mustache'),
                  T.TEMPLATE, "medium", "*.j2"),
    # Loose name hints
    DetectionRule(_both(_stem_contains('prompt'), _suffix(*TEXT_LIKE)), T.PROMPT, "low", "*prompt*"),
    DetectionRule(_both(_stem_contains('schema'), _suffix('.json', '.yaml', '.yml')),
                  T.SCHEMA, "low", "*schema*"),
    DetectionRule(_suffix('.yaml', '.yml', '.toml', '.ini'), T.CONFIG, "low", "*.yaml"),
]


def clean_name(text: str) -> str:
    """Lower-case, hostname-safe form of `text`."""
    name = re.sub(r'[^a-z0-9-]+', '-', text.lower())
    name = re.sub(r'-{2,}', '-', name).strip('-')
    return name[:MAX_NAME_LENGTH].rstrip('-')


def generate_name(path: str, component_type: ComponentType) -> str:
    """
    Component name for a file: its basename up to the first dot, cleaned,
    with the type suffix appended unless already present.
    """
    base = clean_name(PurePosixPath(path).name.split('.')[0]) or "component"
    suffix = component_type.suffix
    if base == suffix or base.endswith(f"-{suffix}"):
        return base
    room = MAX_NAME_LENGTH - len(suffix) - 1
    return f"{base[:room].rstrip('-')}-{suffix}"


def unique_name(name: str, taken: Iterable[str]) -> str:
    """`name`, or `name-2`, `name-3`, ... if already taken."""
    taken = set(taken)
    if name not in taken:
        return name
    n = 2
    while f"{name}-{n}" in taken:
        n += 1
    return f"{name}-{n}"


class ComponentDetector:
    """
    Classifies paths into component types.

    Example:
        detector = ComponentDetector(config["detection"])
        found = detector.detect_component("prompts/greeting.md")
        # DetectedComponent(type=PROMPT, name="greeting-prompt", confidence="high", ...)
    """

    def __init__(self, settings: Optional[Dict] = None):
        settings = settings or {}
        self.min_confidence = settings.get("min_confidence", "medium")
        if self.min_confidence not in CONFIDENCE_LEVELS:
            logger.warning(f"Unknown min_confidence '{self.min_confidence}', using 'medium'")
            self.min_confidence = "medium"
        # Configured directories extend the built-in list, never replace it
        self.skip_directories: Set[str] = set(DEFAULT_SKIP_DIRECTORIES)
        self.skip_directories.update(settings.get("skip_directories") or [])
        self.rules = self._custom_rules(settings.get("patterns") or {}) + BUILTIN_RULES

    @staticmethod
    def _custom_rules(patterns: Dict[str, List[str]]) -> List[DetectionRule]:
        rules = []
        for type_value, globs in patterns.items():
            try:
                component_type = ComponentType.from_value(type_value)
            except ValueError:
                logger.warning(f"Ignoring detection patterns for unknown type '{type_value}'")
                continue
            if isinstance(globs, str):
                globs = [globs]
            for pattern in globs:
                rules.append(DetectionRule(_glob(pattern), component_type, "high", pattern))
        return rules

    def is_skipped(self, path: str) -> bool:
        """True for files under a skipped or hidden directory."""
        parts = PurePosixPath(path).parts[:-1]
        return any(part in self.skip_directories or part.startswith('.') for part in parts)

    def detect_component(self, path: str, min_confidence: Optional[str] = None) -> Optional[DetectedComponent]:
        """
        Classify `path`.

        Args:
            path: Repository-relative path
            min_confidence: Lowest confidence to accept (defaults to configured)

        Returns:
            DetectedComponent, or None if no rule at or above the threshold matches
        """
        path = path.replace("\\", "/")
        if self.is_skipped(path):
            return None
        threshold = CONFIDENCE_LEVELS[min_confidence or self.min_confidence]
        posix = PurePosixPath(path)
        for rule in self.rules:
            if not rule.predicate(posix):
                continue
            if CONFIDENCE_LEVELS[rule.confidence] < threshold:
                return None
            return DetectedComponent(
                type=rule.type,
                name=generate_name(path, rule.type),
                confidence=rule.confidence,
                rule=rule.description,
            )
        return None

    def is_confident(self, detected: Optional[DetectedComponent]) -> bool:
        return (detected is not None
                and CONFIDENCE_LEVELS[detected.confidence] >= CONFIDENCE_LEVELS[self.min_confidence])
