"""
High-level Python API for compver.

Wires one repository's infrastructure and services together explicitly:
a single GitClient bound to the repository root is created here and handed
to every service that needs it.

Example:
    import compver

    repo = compver.ComponentRepo.open(".")

    # Resync the registry with files and history
    report = repo.resync_service.run()

    # Tag and deploy a component
    ns = repo.namespace_for(repo.get_component("greeting-prompt"))
    repo.tag_service.create_version_tag(ns, "v1.0.0")
    repo.deploy_service.deploy(ns, "v1.0.0", "staging")
    repo.deploy_service.promote(ns, "staging", "prod")
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging

from .config import load_config, save_config, get_repo_config_path
from .detection import ComponentDetector
from .domain.component import Component, Registry
from .domain.tag import TagNamespace, DEFAULT_LOGIC_PATHS
from .exit_codes import CommandError, ComponentNotFound, RegistryNotInitialized, NOT_FOUND, USAGE_ERROR
from .headers import HeaderManager
from .infra import GitClient, RegistryStore
from .services import (
    DeployService, HistoryBuilder, ReferenceResolver, ResyncService, TagService,
)

logger = logging.getLogger(__name__)


class ComponentRepo:
    """
    One repository's components, tags and registry.

    Build it with ComponentRepo.open(path); pass an explicit config (or a
    prebuilt GitClient) to the constructor when testing.
    """

    def __init__(self, root: str, config: Optional[Dict[str, Any]] = None,
                 git: Optional[GitClient] = None, cwd: Optional[str] = None):
        """
        Initialize ComponentRepo.

        Args:
            root: Repository working tree root
            config: Full config dict (loads user and repository files if None)
            git: Git client bound to `root` (created from config if None)
            cwd: Directory relative file arguments start from (default: `root`)
        """
        self.root = str(Path(root).resolve())
        self.cwd = Path(cwd).resolve() if cwd else Path(self.root)
        self._config = config if config is not None else load_config(self.root)

        git_settings = self._config.get("git", {})
        registry_settings = self._config.get("registry", {})
        resync_settings = self._config.get("resync", {})
        self.logic_paths = list(self._config.get("tags", {}).get("logic_paths", DEFAULT_LOGIC_PATHS))

        self.git = git or GitClient(self.root, timeout=int(git_settings.get("timeout", 30)))
        self.registry_dir = Path(self.root) / registry_settings.get("directory", ".compver")
        self.store = RegistryStore(self.registry_dir / registry_settings.get("file", "components.json"))
        self.detector = ComponentDetector(self._config.get("detection", {}))
        self.headers = HeaderManager(self.root)
        self.history = HistoryBuilder(self.git, resync_settings.get("initial_version", "1.0.0"))

        self.resolver = ReferenceResolver(self.git)
        self.tag_service = TagService(self.git, self.resolver, remote=git_settings.get("remote", "origin"))
        self.deploy_service = DeployService(self.tag_service)
        self.resync_service = ResyncService(
            self.git,
            self.store,
            self.detector,
            self.headers,
            self.history,
            repair_window_hours=int(resync_settings.get("repair_window_hours", 24)),
            initial_version=resync_settings.get("initial_version", "1.0.0"),
            logic_paths=self.logic_paths,
        )

    @classmethod
    def open(cls, path: str = ".", config: Optional[Dict[str, Any]] = None) -> 'ComponentRepo':
        """
        Open the repository containing `path`.

        Raises:
            NotAGitRepository: if `path` is not inside a git work tree
        """
        return cls(GitClient.find_repo_root(path), config=config, cwd=path)

    @property
    def config(self) -> Dict[str, Any]:
        """Access the configuration."""
        return self._config

    # =========================================================================
    # REGISTRY
    # =========================================================================

    def is_initialized(self) -> bool:
        return self.store.exists()

    def init(self, force: bool = False) -> Dict[str, Any]:
        """
        Create `.compver/` with an empty registry and a repository config.

        Returns:
            What was created, for reporting
        """
        created = {"registry": str(self.store.path), "config": None, "created": False}
        if self.store.exists() and not force:
            return created
        self.store.save(Registry(version=self._config.get("registry", {}).get("schema_version", "1.0.0")))
        created["created"] = True
        config_path = get_repo_config_path(self.root)
        if not config_path.exists():
            repo_config = {
                "git": {"remote": self._config.get("git", {}).get("remote", "origin")},
                "deploy": {"environments": self._config.get("deploy", {}).get("environments", [])},
            }
            created["config"] = str(save_config(repo_config, config_path))
        logger.info(f"Initialized component registry at {self.store.path}")
        return created

    def registry(self) -> Registry:
        """Current registry, empty if missing or unreadable."""
        return self.store.load()

    def require_registry(self) -> Registry:
        """
        Current registry for commands that need one.

        Raises:
            RegistryNotInitialized: if `compver init` was never run
            RegistryCorrupt: if the registry can't be parsed
        """
        if not self.store.exists():
            raise RegistryNotInitialized(str(self.store.path))
        return self.store.load_strict()

    def get_component(self, key: str, registry: Optional[Registry] = None) -> Component:
        """
        Look up an active component by name or id.

        Raises:
            ComponentNotFound: listing the known names
        """
        registry = registry or self.require_registry()
        component = registry.get(key)
        if component is None or not component.is_active:
            raise ComponentNotFound(key, [c.name for c in registry.active()])
        return component

    def namespace_for(self, component: Component) -> TagNamespace:
        """Tag namespace of a registered component."""
        return component.tag_namespace(self.logic_paths)

    def namespaces(self, registry: Optional[Registry] = None) -> List[Tuple[Component, TagNamespace]]:
        """(component, namespace) for every active component, by name."""
        registry = registry or self.require_registry()
        return [(c, self.namespace_for(c)) for c in sorted(registry.active(), key=lambda c: c.name)]

    def register(self, path: str, name: Optional[str] = None,
                 component_type: Optional[str] = None) -> Component:
        """Register a file explicitly (see ResyncService.register)."""
        self.require_registry()
        return self.resync_service.register(self._relative(path), name, component_type)

    def _relative(self, path: str) -> str:
        """Repository-relative form of `path`, taken relative to `self.cwd`."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.cwd / candidate
        try:
            return candidate.resolve().relative_to(self.root).as_posix()
        except ValueError:
            raise CommandError(f"'{path}' is outside the repository at {self.root}", USAGE_ERROR,
                               "Register files that live inside the repository") from None

    # =========================================================================
    # CONTENT AND DISCOVERY
    # =========================================================================

    def checkout(self, key: str, ref: Optional[str] = None) -> Dict[str, Any]:
        """
        Contents of a component, either as committed at `ref` or as it is now.

        The file is looked up at its current path first, then at the names
        it had in its cached history and in git's rename-following log.

        Returns:
            Dict with component, ref, commit, path and content

        Raises:
            ComponentNotFound: for an unknown component
            ReferenceNotFound: if `ref` resolves to nothing
            CommandError: (NOT_FOUND) if the file isn't in that commit
        """
        component = self.get_component(key)
        if not ref:
            full = Path(self.root) / component.path
            if not full.is_file():
                raise CommandError(f"{component.path} is missing from the working tree", NOT_FOUND,
                                   f"Run 'compver resync', or check out a version: {component.name}@v1.0.0")
            return {"component": component.name, "ref": None, "commit": None,
                    "path": component.path, "content": full.read_text(encoding="utf-8")}

        commit = self.resolver.resolve(self.namespace_for(component), ref)
        candidates = [component.path]
        for entry in reversed(component.version_history):
            if entry.path and entry.path not in candidates:
                candidates.append(entry.path)
        for commit_info in self.git.log_path(component.path, follow=True):
            if commit_info.path and commit_info.path not in candidates:
                candidates.append(commit_info.path)
        for path in candidates:
            if self.git.file_exists_at_commit(commit, path):
                return {"component": component.name, "ref": ref, "commit": commit,
                        "path": path, "content": self.git.show_file(commit, path)}
        raise CommandError(f"{component.name} has no file at {ref} ({commit[:8]})", NOT_FOUND,
                           f"Tried: {', '.join(candidates)}")

    def detect(self, path: str, min_confidence: Optional[str] = None) -> Dict[str, Any]:
        """
        Classify one file without registering it.

        Returns:
            Dict with the path, the detection (or None), header and registration
        """
        relative = self._relative(path)
        if not (Path(self.root) / relative).is_file():
            raise CommandError(f"No such file: {path}", NOT_FOUND)
        detected = self.detector.detect_component(relative, min_confidence)
        header = self.headers.read_metadata(relative)
        registered = self.registry().find_by_path(relative)
        return {
            "path": relative,
            "detected": detected.to_dict() if detected else None,
            "header": header.to_json() if header else None,
            "registered": registered.name if registered and registered.is_active else None,
        }

    def discover(self) -> List[Dict[str, Any]]:
        """Resync's candidate files, each with its detection and registration status."""
        registry = self.registry()
        rows = []
        for path in self.resync_service.discover():
            detected = self.detector.detect_component(path)
            header = self.headers.read_metadata(path)
            registered = registry.find_by_path(path)
            rows.append({
                "path": path,
                "type": detected.type.value if detected else None,
                "name": detected.name if detected else (header.component if header else None),
                "confidence": detected.confidence if detected else None,
                "header_version": header.version if header else None,
                "registered": registered.name if registered and registered.is_active else None,
            })
        return rows
