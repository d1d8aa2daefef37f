"""
Reconciliation (resync) engine for compver.

Restores a consistent registry from three witnesses that can drift apart:
the registry file itself, the headers embedded in component files, and the
git history of each tracked path.

Every decision is made against an in-memory copy of the registry and an
in-memory view of file headers. Writes are queued and only applied at the
end of a real run, so a dry run goes through exactly the same code and
reports exactly the same fixes.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple
import copy
import logging
import os

from ..detection import ComponentDetector, DetectedComponent, clean_name, generate_name, unique_name
from ..domain.component import (
    Component, Registry, VersionEntry, ACTIVE, REMOVED, ID_ALPHABET, ID_LENGTH,
    TAG_NAMESPACE_KEY, utc_now,
)
from ..domain.tag import ComponentType, DEFAULT_LOGIC_PATHS
from ..domain.version import SemVer, max_version
from ..exit_codes import CommandError, DATA_ERROR, NOT_FOUND
from ..headers import HeaderManager, HeaderMetadata
from ..infra import GitClient, RegistryStore
from .history_service import HistoryBuilder

logger = logging.getLogger(__name__)

# Fix kinds
ADDED = "added"
REVIVED = "revived"
PATH_UPDATED = "path_updated"
TYPE_UPDATED = "type_updated"
HISTORY_REPAIRED = "history_repaired"
HISTORY_DROPPED = "history_dropped"
HISTORY_REBUILT = "history_rebuilt"
HISTORY_RECOVERED = "history_recovered"
MARKED_REMOVED = "removed"
HEADER_ADDED = "header_added"
HEADER_RESOLVED = "header_resolved"
HEADER_REFRESHED = "header_refreshed"

UPDATE_KINDS = {REVIVED, PATH_UPDATED, TYPE_UPDATED, HISTORY_REPAIRED, HISTORY_DROPPED,
                HISTORY_REBUILT, HISTORY_RECOVERED}
HEADER_KINDS = {HEADER_ADDED, HEADER_RESOLVED, HEADER_REFRESHED}


@dataclass
class ResyncOptions:
    force: bool = False
    dry_run: bool = False
    rebuild_history: bool = False
    fix_headers: bool = False


@dataclass
class Fix:
    """One correction resync made (or would make)."""
    kind: str
    component: str
    path: str
    detail: str = ""

    def to_dict(self) -> dict:
        return {"kind": self.kind, "component": self.component, "path": self.path,
                "detail": self.detail}


@dataclass
class ResyncError:
    """A file that could not be reconciled."""
    path: str
    message: str

    def to_dict(self) -> dict:
        return {"path": self.path, "error": self.message}


@dataclass
class ResyncReport:
    """Everything a resync decided."""
    dry_run: bool = False
    scanned: int = 0
    fixes: List[Fix] = field(default_factory=list)
    errors: List[ResyncError] = field(default_factory=list)
    versions_recovered: int = 0
    registry_error: Optional[str] = None
    saved: bool = False

    def count(self, *kinds: str) -> int:
        return sum(1 for f in self.fixes if f.kind in kinds)

    @property
    def added(self) -> int:
        return self.count(ADDED)

    @property
    def updated(self) -> int:
        return len({f.component for f in self.fixes if f.kind in UPDATE_KINDS})

    @property
    def removed(self) -> int:
        return self.count(MARKED_REMOVED)

    @property
    def header_updates(self) -> int:
        return self.count(*HEADER_KINDS)

    def to_dict(self) -> dict:
        return {
            "dry_run": self.dry_run,
            "scanned": self.scanned,
            "added": self.added,
            "updated": self.updated,
            "removed": self.removed,
            "header_updates": self.header_updates,
            "versions_recovered": self.versions_recovered,
            "fixes": [f.to_dict() for f in self.fixes],
            "errors": [e.to_dict() for e in self.errors],
            "registry_error": self.registry_error,
            "saved": self.saved,
        }


class _RunState:
    """Working registry, header view and queued writes for one run."""

    def __init__(self, registry: Registry, headers: HeaderManager, report: ResyncReport):
        self.registry = registry
        self.headers = headers
        self.report = report
        self.claimed: Set[str] = set()
        self._header_view: Dict[str, Optional[HeaderMetadata]] = {}
        self.pending: List[Tuple[str, HeaderMetadata, str]] = []

    def header(self, path: str) -> Optional[HeaderMetadata]:
        if path not in self._header_view:
            self._header_view[path] = self.headers.read_metadata(path)
        return self._header_view[path]

    def queue_header(self, path: str, metadata: HeaderMetadata, type_hint: str) -> None:
        self._header_view[path] = metadata
        self.pending.append((path, metadata, type_hint))

    def fix(self, kind: str, component: Component, detail: str = "") -> None:
        logger.debug(f"{kind}: {component.name} ({component.path}) {detail}".rstrip())
        self.report.fixes.append(Fix(kind, component.name, component.path, detail))


def _valid_id(value: Optional[str]) -> bool:
    return bool(value) and len(value) == ID_LENGTH and all(c in ID_ALPHABET for c in value)


class ResyncService:
    """
    Reconciles the registry with headers and git history.

    Example:
        service = ResyncService(git, store, detector, headers, HistoryBuilder(git))
        report = service.run(ResyncOptions(dry_run=True))
        for fix in report.fixes:
            print(fix.kind, fix.component)
    """

    def __init__(
        self,
        git: GitClient,
        store: RegistryStore,
        detector: ComponentDetector,
        headers: HeaderManager,
        history: HistoryBuilder,
        repair_window_hours: int = 24,
        initial_version: str = "1.0.0",
        logic_paths: Iterable[str] = DEFAULT_LOGIC_PATHS,
    ):
        self.git = git
        self.store = store
        self.detector = detector
        self.headers = headers
        self.history = history
        self.repair_window_hours = repair_window_hours
        self.initial_version = initial_version
        self.logic_paths = list(logic_paths)
        self.root = Path(git.repo_root)

    def _exists(self, path: str) -> bool:
        return bool(path) and (self.root / path).is_file()

    # -- discovery --------------------------------------------------------

    def _walk_working_tree(self) -> List[str]:
        found = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames
                           if not d.startswith('.') and d not in self.detector.skip_directories]
            for filename in filenames:
                rel = Path(dirpath, filename).relative_to(self.root).as_posix()
                if self.headers.comment_style(rel) is not None or rel.endswith(".json"):
                    found.append(rel)
        return found

    def discover(self) -> List[str]:
        """
        Candidate component paths: tracked files the detector classifies,
        plus any working-tree file that carries a header. Sorted, unique.
        """
        candidates = set()
        for path in self.git.ls_files():
            if self.detector.detect_component(path) is not None:
                candidates.add(path)
        for path in self._walk_working_tree():
            if path not in candidates and self.headers.read_metadata(path) is not None:
                candidates.add(path)
        return sorted(candidates)

    # -- the run ----------------------------------------------------------

    def run(self, options: Optional[ResyncOptions] = None) -> ResyncReport:
        """
        Reconcile and, unless dry-running, persist.

        Per-file failures are collected in the report; they never stop the
        rest of the run.
        """
        options = options or ResyncOptions()
        report = ResyncReport(dry_run=options.dry_run)

        loaded = self.store.load()
        if self.store.last_error is not None:
            report.registry_error = str(self.store.last_error)
        state = _RunState(copy.deepcopy(loaded), self.headers, report)

        paths = self.discover()
        report.scanned = len(paths)
        for path in paths:
            self._guarded(state, path, self._reconcile_path, state, path)

        # Registered files no rule or header points at still get validated
        for component in sorted(state.registry.active(), key=lambda c: c.path):
            if component.id not in state.claimed and self._exists(component.path):
                self._guarded(state, component.path, self._reconcile_unclaimed, state, component)

        self._sweep_deleted(state)

        if options.rebuild_history:
            for component in sorted(state.registry.active(), key=lambda c: c.path):
                self._guarded(state, component.path, self._recover_history, state, component)

        for component in sorted(state.registry.active(), key=lambda c: c.path):
            if self._exists(component.path):
                self._guarded(state, component.path, self._sync_header, state, component, options)

        if not options.dry_run:
            self._persist(state, options)
        return report

    def _guarded(self, state: _RunState, path: str, func, *args) -> None:
        try:
            func(*args)
        except Exception as e:
            logger.debug(f"Resync failed for {path}", exc_info=True)
            logger.warning(f"Could not reconcile {path}: {e}")
            state.report.errors.append(ResyncError(path, str(e)))

    def _persist(self, state: _RunState, options: ResyncOptions) -> None:
        for path, metadata, type_hint in state.pending:
            try:
                self.headers.write_metadata(path, metadata, type_hint=type_hint)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not write header to {path}: {e}")
                state.report.errors.append(ResyncError(path, f"header write failed: {e}"))
        if state.report.fixes or options.force:
            self.store.save(state.registry)
            state.report.saved = True

    # -- per path ---------------------------------------------------------

    def _reconcile_path(self, state: _RunState, path: str) -> None:
        if not self._exists(path):
            # Tracked but deleted in the working tree; the sweep handles it
            return
        header = state.header(path)
        detected = self.detector.detect_component(path, min_confidence="low")
        component = self._lookup(state, path, header, detected)
        if component is None:
            component = self.synthesize(state.registry, path, header, detected)
            state.claimed.add(component.id)
            state.fix(ADDED, component, f"{component.type} at version {component.version}")
            if header is not None:
                self._stamp_new_header(state, component, header)
            return
        state.claimed.add(component.id)
        self._validate(state, component, path, detected)

    def _stamp_new_header(self, state: _RunState, component: Component,
                          header: HeaderMetadata) -> None:
        # Creation already picked the higher version; the header follows it
        version_changed = SemVer.parse(header.version) != SemVer.parse(component.version)
        if not (version_changed or header.component_id != component.id
                or header.component != component.name):
            return
        state.queue_header(component.path, HeaderMetadata(
            version=component.version,
            component=component.name,
            component_id=component.id,
            resolved=header.resolved,
        ), component.type)
        if version_changed:
            state.fix(HEADER_RESOLVED, component,
                      f"header {header.version} -> {component.version} from commit history")
        else:
            state.fix(HEADER_REFRESHED, component, "component name and id")

    def _reconcile_unclaimed(self, state: _RunState, component: Component) -> None:
        detected = self.detector.detect_component(component.path, min_confidence="low")
        state.claimed.add(component.id)
        self._validate(state, component, component.path, detected)

    def _eligible(self, state: _RunState, component: Optional[Component], path: str) -> bool:
        if component is None or component.id in state.claimed:
            return False
        # A component whose own file is still there belongs to that file
        return component.path == path or not self._exists(component.path)

    def _lookup(self, state: _RunState, path: str, header: Optional[HeaderMetadata],
                detected: Optional[DetectedComponent]) -> Optional[Component]:
        """Registered path first, then header id, then header or detected name."""
        registry = state.registry
        by_path = registry.find_by_path(path)
        if by_path is not None and by_path.id not in state.claimed:
            return by_path

        if header is not None and header.component_id:
            by_id = registry.components.get(header.component_id)
            if self._eligible(state, by_id, path):
                return by_id

        names = []
        if header is not None:
            names.append(header.component)
        if detected is not None:
            names.append(detected.name)
        for name in names:
            candidates = sorted(
                (c for c in registry.components.values() if c.name == name),
                key=lambda c: c.status != ACTIVE,
            )
            for candidate in candidates:
                if self._eligible(state, candidate, path):
                    return candidate
        return None

    def synthesize(self, registry: Registry, path: str, header: Optional[HeaderMetadata],
                   detected: Optional[DetectedComponent], name: Optional[str] = None,
                   component_type: Optional[str] = None) -> Component:
        """
        Create and add a component for `path`.

        The version is the higher of the header's and the latest one derived
        from the commit log. When the header is ahead, an entry at HEAD
        records where the version came from.
        """
        if component_type is None:
            component_type = detected.type.value if detected else ComponentType.CONFIG.value
        ctype = ComponentType.from_value(component_type)

        if name is None:
            if header is not None and clean_name(header.component):
                name = clean_name(header.component)
            elif detected is not None:
                name = detected.name
            else:
                name = generate_name(path, ctype)
            name = unique_name(name, registry.active_names())

        if header is not None and _valid_id(header.component_id) \
                and header.component_id not in registry.components:
            component_id = header.component_id
        else:
            component_id = registry.new_id()

        history = self.history.build(path)
        history_version = history[-1].version if history else None
        header_version = header.version if header is not None else None
        best = max_version(history_version, header_version)
        version = str(best) if best else self.initial_version

        header_parsed = SemVer.parse(header_version) if header_version else None
        history_parsed = SemVer.parse(history_version) if history_version else None
        if header_version and history_parsed and header_parsed != history_parsed:
            if header_parsed is not None and header_parsed > history_parsed:
                head = self.git.head()
                if head and self.git.file_exists_at_commit(head, path):
                    history.append(VersionEntry(
                        version=version,
                        commit=head,
                        timestamp=utc_now(),
                        path=path,
                        message=f"Version {header_version} taken from file header; "
                                f"commit history suggests {history_version}",
                    ))
            else:
                # The winning version already has its entry; note why on it
                latest = history[-1]
                note = (f"version {history_version} taken from commit history; "
                        f"file header said {header_version}")
                latest.message = f"{latest.message} ({note})" if latest.message else note

        component = Component(
            id=component_id,
            name=name,
            type=ctype.value,
            path=path,
            version=version,
            version_history=history,
        )
        component.pin_tag_namespace(self.logic_paths)
        return registry.add(component)

    def _validate(self, state: _RunState, component: Component, path: str,
                  detected: Optional[DetectedComponent]) -> None:
        type_drift = self.detector.is_confident(detected) and detected.type.value != component.type
        drifting = component.status == REMOVED or component.path != path or type_drift
        if drifting and TAG_NAMESPACE_KEY not in component.metadata:
            # Older entries derive their namespace; fix it before identity changes
            component.pin_tag_namespace(self.logic_paths)

        if component.status == REMOVED:
            component.status = ACTIVE
            component.removed_at = None
            taken = {c.name for c in state.registry.active() if c.id != component.id}
            component.name = unique_name(component.name, taken)
            namespace = component.tag_namespace(self.logic_paths)
            if any(c.tag_namespace(self.logic_paths) == namespace
                   for c in state.registry.active() if c.id != component.id):
                # Its old namespace now belongs to an active component
                del component.metadata[TAG_NAMESPACE_KEY]
            state.fix(REVIVED, component, f"file is back at {path}")

        if component.path != path:
            old = component.path
            component.path = path
            state.fix(PATH_UPDATED, component, f"{old} -> {path}")

        if type_drift:
            old_type = component.type
            component.type = detected.type.value
            state.fix(TYPE_UPDATED, component, f"{old_type} -> {component.type}")

        if drifting and TAG_NAMESPACE_KEY not in component.metadata:
            component.pin_tag_namespace(self.logic_paths)

        self._verify_history(state, component)

    def _verify_history(self, state: _RunState, component: Component) -> None:
        original = component.version_history
        kept: List[VersionEntry] = []
        for entry in original:
            if self.history.verify(entry):
                kept.append(entry)
                continue
            repaired = self.history.repair(entry, component.path, self.repair_window_hours)
            if repaired is not None:
                kept.append(repaired)
                state.fix(HISTORY_REPAIRED, component,
                          f"{entry.version}: {entry.commit[:8]} -> {repaired.commit[:8]}")
            else:
                state.fix(HISTORY_DROPPED, component,
                          f"{entry.version} at {entry.commit[:8]} cannot be verified")

        if not kept:
            rebuilt = self.history.build(component.path)
            if [e.to_dict() for e in rebuilt] != [e.to_dict() for e in original]:
                kept = rebuilt
                state.fix(HISTORY_REBUILT, component, f"{len(rebuilt)} entries from commit log")
        component.version_history = kept

    # -- sweeps -----------------------------------------------------------

    def _sweep_deleted(self, state: _RunState) -> None:
        for component in sorted(state.registry.active(), key=lambda c: c.path):
            if component.id in state.claimed or self._exists(component.path):
                continue
            component.status = REMOVED
            component.removed_at = utc_now()
            state.fix(MARKED_REMOVED, component, "file no longer exists")

    def _recover_history(self, state: _RunState, component: Component) -> None:
        rebuilt = self.history.build(component.path)
        gained = len(rebuilt) - len(component.version_history)
        if gained > 0:
            component.version_history = rebuilt
            state.report.versions_recovered += gained
            state.fix(HISTORY_RECOVERED, component, f"{gained} version(s) recovered from commit log")

    def _sync_header(self, state: _RunState, component: Component, options: ResyncOptions) -> None:
        path = component.path
        if not self.headers.supports_headers(path, component.type):
            return
        header = state.header(path)
        fresh = HeaderMetadata(version=component.version, component=component.name,
                               component_id=component.id)

        if header is None:
            state.queue_header(path, fresh, component.type)
            state.fix(HEADER_ADDED, component, f"version {component.version}")
            return

        header_version = SemVer.parse(header.version)
        registry_version = SemVer.parse(component.version)
        if header_version is None or registry_version is None or header_version != registry_version:
            base = max_version(header.version, component.version) or SemVer.parse(self.initial_version)
            resolved = base.bump_patch()
            rationale = (f"Header said {header.version}, registry said {component.version}; "
                         f"resolved to {resolved}")
            previous = component.version
            component.version = str(resolved)
            head = self.git.head()
            if head and self.git.file_exists_at_commit(head, path):
                component.version_history.append(VersionEntry(
                    version=component.version,
                    commit=head,
                    timestamp=utc_now(),
                    path=path,
                    message=rationale,
                ))
            state.queue_header(path, HeaderMetadata(
                version=component.version,
                component=component.name,
                component_id=component.id,
                resolved=f"{header.version}+{previous}",
            ), component.type)
            state.fix(HEADER_RESOLVED, component, rationale)
            return

        if options.fix_headers and (header.component != component.name
                                    or header.component_id != component.id):
            state.queue_header(path, HeaderMetadata(
                version=header.version,
                component=component.name,
                component_id=component.id,
                resolved=header.resolved,
            ), component.type)
            state.fix(HEADER_REFRESHED, component, "component name and id")

    # -- explicit registration --------------------------------------------

    def register(self, path: str, name: Optional[str] = None,
                 component_type: Optional[str] = None) -> Component:
        """
        Register one file explicitly and stamp its header.

        Raises:
            CommandError: if the file doesn't exist, or its path or name is taken
        """
        if not self._exists(path):
            raise CommandError(f"No such file: {path}", NOT_FOUND,
                               "Paths are relative to the current directory (or the -C directory)")
        registry = self.store.load_strict()
        existing = registry.find_by_path(path)
        if existing is not None and existing.is_active:
            raise CommandError(f"'{path}' is already registered as '{existing.name}'", DATA_ERROR)
        if name is not None:
            name = clean_name(name)
            if not name:
                raise CommandError("Component names need at least one letter or digit", DATA_ERROR)
            if name in registry.active_names():
                raise CommandError(f"Component name '{name}' is already in use", DATA_ERROR,
                                   "Pick another --name")

        header = self.headers.read_metadata(path)
        detected = self.detector.detect_component(path, min_confidence="low")
        component = self.synthesize(registry, path, header, detected, name, component_type)
        if self.headers.supports_headers(path, component.type):
            self.headers.write_metadata(path, HeaderMetadata(
                version=component.version, component=component.name, component_id=component.id,
            ), type_hint=component.type)
        self.store.save(registry)
        logger.info(f"Registered {component.name} ({component.type}) at {path}")
        return component
