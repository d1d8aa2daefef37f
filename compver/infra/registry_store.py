"""
Side-registry persistence for compver.

Stores the component registry as pretty-printed JSON with:
- Atomic writes (write to temp, then rename)
- Graceful fallback to an empty registry when the file is missing or malformed
- Automatic parent directory creation
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from ..domain.component import Registry, utc_now
from ..exit_codes import RegistryCorrupt

logger = logging.getLogger(__name__)


class RegistryStore:
    """
    JSON persistence for the component registry.

    Example:
        store = RegistryStore(Path(".compver/components.json"))
        registry = store.load()
        registry.add(component)
        store.save(registry)
    """

    def __init__(self, path: Path):
        """
        Initialize RegistryStore.

        Args:
            path: Path to the registry JSON file
        """
        self.path = Path(path).expanduser()
        self.last_error: Optional[RegistryCorrupt] = None

    def exists(self) -> bool:
        return self.path.exists()

    def _write_atomic(self, data: Dict[str, Any]) -> None:
        """Write data atomically using temp file and rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp"
        )

        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write('\n')

            os.replace(temp_path, self.path)

        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def load_strict(self) -> Registry:
        """
        Read the registry, raising on a malformed file.

        Returns:
            The registry, or an empty one if the file doesn't exist

        Raises:
            RegistryCorrupt: if the file can't be parsed
        """
        if not self.path.exists():
            return Registry()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top level must be an object")
            return Registry.from_dict(data)
        except (json.JSONDecodeError, ValueError, KeyError, TypeError, OSError) as e:
            raise RegistryCorrupt(str(self.path), str(e)) from e

    def load(self) -> Registry:
        """
        Read the registry, falling back to an empty one on any problem.

        A malformed file is logged and remembered in ``last_error`` so callers
        can report it; the file itself is left untouched until the next save.
        """
        self.last_error = None
        try:
            return self.load_strict()
        except RegistryCorrupt as e:
            logger.warning(f"{e}; continuing with an empty registry")
            self.last_error = e
            return Registry()

    def save(self, registry: Registry) -> None:
        """Write the registry, refreshing its ``updated`` timestamp."""
        registry.updated = utc_now()
        self._write_atomic(registry.to_dict())
        logger.debug(f"Saved {len(registry.components)} component(s) to {self.path}")
