"""
Embedded version headers for compver.

A component file can carry a one-line comment recording which component it
is and what version it is at:

    <!-- compver: id=k3x9a2 version=1.2.0 component=greeting-prompt -->
    # compver: id=k3x9a2 version=1.2.0 component=settings-config
    -- compver: id=k3x9a2 version=1.2.0 component=orders-query

JSON documents can't hold comments, so they get a top-level "_compver" object
instead. The header is an independent witness to the file's version; resync
compares it against the registry.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import json
import logging
import re

logger = logging.getLogger(__name__)

MARKER = "compver:"
JSON_KEY = "_compver"
SCAN_LINES = 10

# (prefix, suffix) per comment style
HTML = ("<!--", "-->")
HASH = ("#", "")
DASH = ("--", "")
BLOCK = ("/*", "*/")

COMMENT_STYLES: Dict[str, Tuple[str, str]] = {
    ".md": HTML, ".markdown": HTML, ".txt": HTML, ".prompt": HTML, ".html": HTML,
    ".xml": HTML, ".hbs": HTML, ".mustache": HTML,
    ".yaml": HASH, ".yml": HASH, ".toml": HASH, ".py": HASH, ".sh": HASH,
    ".bash": HASH, ".ini": HASH, ".cfg": HASH, ".conf": HASH,
    ".sql": DASH,
    ".js": BLOCK, ".ts": BLOCK, ".css": BLOCK,
    ".j2": ("{#", "#}"), ".jinja": ("{#", "#}"), ".jinja2": ("{#", "#}"),
}

# Comment style for files whose extension says nothing, keyed by component type
TYPE_STYLES: Dict[str, Tuple[str, str]] = {
    "prompt": HTML, "template": HTML, "agent-definition": HTML,
    "config": HASH, "ensemble": HASH, "tool": HASH, "script": HASH,
    "query": DASH, "schema": HASH,
}

HEADER_LINE_RE = re.compile(r'compver:\s*(?P<body>.*?)\s*(?:-->|\*/|#\})?\s*$')
FIELD_RE = re.compile(r'(\w+)=(\S+)')


@dataclass(frozen=True)
class HeaderMetadata:
    """What a file's header says about it."""
    version: str
    component: str
    component_id: Optional[str] = None
    resolved: Optional[str] = None

    def render(self) -> str:
        fields = []
        if self.component_id:
            fields.append(f"id={self.component_id}")
        fields.append(f"version={self.version}")
        fields.append(f"component={self.component}")
        if self.resolved:
            fields.append(f"resolved={self.resolved}")
        return f"{MARKER} " + " ".join(fields)

    def to_json(self) -> Dict[str, str]:
        data = {"version": self.version, "component": self.component}
        if self.component_id:
            data["id"] = self.component_id
        if self.resolved:
            data["resolved"] = self.resolved
        return data


def _parse_line(line: str) -> Optional[HeaderMetadata]:
    if MARKER not in line:
        return None
    m = HEADER_LINE_RE.search(line)
    if not m:
        return None
    fields = dict(FIELD_RE.findall(m.group('body')))
    if "version" not in fields or "component" not in fields:
        return None
    return HeaderMetadata(
        version=fields["version"],
        component=fields["component"],
        component_id=fields.get("id"),
        resolved=fields.get("resolved"),
    )


class HeaderManager:
    """
    Reads and writes embedded headers for files under a repository root.

    Paths are repository-relative. Reading never raises: unreadable or
    unsupported files simply have no header.
    """

    def __init__(self, repo_root: str):
        self.repo_root = Path(repo_root)

    def _abs(self, path: str) -> Path:
        return self.repo_root / path

    @staticmethod
    def comment_style(path: str, type_hint: Optional[str] = None) -> Optional[Tuple[str, str]]:
        suffix = Path(path).suffix.lower()
        if suffix in COMMENT_STYLES:
            return COMMENT_STYLES[suffix]
        if suffix == ".json":
            return None
        return TYPE_STYLES.get(type_hint or "")

    def supports_headers(self, path: str, type_hint: Optional[str] = None) -> bool:
        if Path(path).suffix.lower() == ".json":
            # Only object documents have somewhere to put the header
            try:
                with open(self._abs(path), 'r', encoding='utf-8') as f:
                    return isinstance(json.load(f), dict)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError):
                return False
        return self.comment_style(path, type_hint) is not None

    def read_metadata(self, path: str) -> Optional[HeaderMetadata]:
        """Header of `path`, or None if it has none or can't be read."""
        full = self._abs(path)
        try:
            if full.suffix.lower() == ".json":
                return self._read_json(full)
            with open(full, 'r', encoding='utf-8') as f:
                for _, line in zip(range(SCAN_LINES), f):
                    found = _parse_line(line)
                    if found:
                        return found
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Cannot read header of {path}: {e}")
        return None

    @staticmethod
    def _read_json(full: Path) -> Optional[HeaderMetadata]:
        try:
            with open(full, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError:
            return None
        block = data.get(JSON_KEY) if isinstance(data, dict) else None
        if not isinstance(block, dict) or "version" not in block or "component" not in block:
            return None
        return HeaderMetadata(
            version=str(block["version"]),
            component=str(block["component"]),
            component_id=block.get("id"),
            resolved=block.get("resolved"),
        )

    def write_metadata(self, path: str, metadata: HeaderMetadata,
                       replace: bool = False, type_hint: Optional[str] = None) -> bool:
        """
        Stamp `metadata` into `path`.

        An existing header is updated in place; otherwise the header goes on
        the first line (after a shebang). With ``replace`` any existing header
        is removed and a fresh one written at the top.

        Returns:
            False if the file type has no header syntax
        """
        full = self._abs(path)
        if full.suffix.lower() == ".json":
            return self._write_json(full, metadata)

        style = self.comment_style(path, type_hint)
        if style is None:
            logger.debug(f"No header syntax for {path}")
            return False
        prefix, suffix = style
        header = f"{prefix} {metadata.render()}" + (f" {suffix}" if suffix else "")

        with open(full, 'r', encoding='utf-8') as f:
            text = f.read()
        lines: List[str] = text.splitlines(keepends=True)

        existing = [i for i, line in enumerate(lines[:SCAN_LINES]) if _parse_line(line)]
        if existing and not replace:
            newline = "\n" if lines[existing[0]].endswith("\n") else ""
            lines[existing[0]] = header + newline
        else:
            for i in reversed(existing):
                del lines[i]
            at = 1 if lines and lines[0].startswith("#!") else 0
            lines.insert(at, header + "\n")

        with open(full, 'w', encoding='utf-8') as f:
            f.write("".join(lines))
        return True

    @staticmethod
    def _write_json(full: Path, metadata: HeaderMetadata) -> bool:
        with open(full, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError:
                logger.debug(f"Not writing header into invalid JSON {full}")
                return False
        if not isinstance(data, dict):
            return False
        data[JSON_KEY] = metadata.to_json()
        with open(full, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        return True
