"""Concurrent transitive dependency resolution.

Each node's direct dependencies are resolved as concurrent tasks and the
node waits for all of them before recording its own result. Version
conflicts go to the newest version: a branch that discovers a higher version
of an already-claimed pair takes the pair over, and every edge pointing at
that pair follows it.

Failures never abort a run. A coordinate that no repository hosts, or whose
POM cannot be fetched, ends up with no dependencies; an unresolvable version
drops the dependency from its parent.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..common.http_client import HttpClient
from ..common.logging_utils import extra_context, is_debug_enabled
from ..config import ResolverConfig
from ..constants import Constants, Scopes
from ..errors import DescriptorFetchFailed, RepositoryNotFound, TransportError, VersionUnresolvable
from ..events import EventSink, LoggingEventSink, emit
from ..models import ArtifactKey, Coordinate, Dependency, Parent, ProjectDescriptor, VersionMetadata
from ..registry.decoder import decode_descriptor
from ..registry.repositories import Repository, repositories_for
from ..versioning.policy import interpolate, is_range, iter_ancestry, needs_resolution, resolve_latest, \
    resolve_range, resolve_version
from .conflict import ConflictTable, ManagedDependencySet
from .download import DownloadManager
from .graph import Artifact

logger = logging.getLogger(__name__)


class ResolutionState(Enum):
    """Lifecycle of one coordinate inside a resolution run."""
    UNRESOLVED = "unresolved"
    RESOLVING_REPOSITORY = "resolving_repository"
    RESOLVING_VERSION = "resolving_version"
    FETCHING_DESCRIPTOR = "fetching_descriptor"
    RESOLVING_DEPENDENCIES = "resolving_dependencies"
    RESOLVED = "resolved"
    FAILED = "failed"


def packaging_extension(packaging: Optional[str]) -> str:
    """Map a POM packaging value to the extension its binary is published under."""
    if not packaging:
        return Constants.DEFAULT_EXTENSION
    packaging = packaging.strip().lower()
    return Constants.PACKAGING_EXTENSIONS.get(packaging, packaging)


class Resolver:
    """Resolves root coordinates into dependency graphs.

    Repository, event sink, HTTP client and tunables are all injected, so
    independent resolvers can run side by side. Repository discovery,
    metadata and POM fetches are memoized per resolver instance.
    """

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        events: Optional[EventSink] = None,
        repositories: Optional[Iterable[Repository]] = None,
        http: Optional[HttpClient] = None,
    ):
        self.config = config or ResolverConfig()
        self.events = events if events is not None else LoggingEventSink()
        self.repositories: List[Repository] = (
            list(repositories) if repositories is not None else repositories_for(self.config)
        )
        self._owns_http = http is None
        self.http = http or HttpClient(self.config)
        self.downloads = DownloadManager(self.http, self.events, self.config)

        self._hosts: Dict[Coordinate, "asyncio.Future[Optional[Repository]]"] = {}
        self._descriptors: Dict[Coordinate, "asyncio.Future[ProjectDescriptor]"] = {}
        self._metadata: Dict[ArtifactKey, "asyncio.Future[Optional[VersionMetadata]]"] = {}
        self._probed_metadata: Dict[ArtifactKey, VersionMetadata] = {}

    async def __aenter__(self) -> "Resolver":
        await self.http.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_http:
            await self.http.stop()

    async def resolve(self, group_id: str, artifact_id: str, version: str = "") -> Optional[Artifact]:
        """Resolve the full dependency graph of ``group_id:artifact_id:version``.

        ``version`` may be empty, ``+``, or a range; it is then resolved from
        the repository metadata first.

        Returns:
            The root artifact, or None when no repository hosts it or its
            version cannot be determined.
        """
        root = Coordinate(group_id.strip(), artifact_id.strip(), (version or "").strip())
        repository: Optional[Repository] = None

        if needs_resolution(root.version):
            if "${" in root.version:
                emit(self.events, "version_not_found", root)
                return None
            repository = await self._discover(root)
            if repository is None:
                return None
            emit(self.events, "fetching_latest_version", root)
            metadata = await self._load_metadata(root.key, repository)
            resolved = resolve_range(root.version, metadata) if is_range(root.version) else resolve_latest(metadata)
            if not resolved:
                emit(self.events, "version_not_found", root)
                return None
            emit(self.events, "fetched_latest_version", root, resolved)
            root = root.with_version(resolved)

        table = ConflictTable()
        await self._resolve(root, table, ManagedDependencySet(), repository)

        entry = table.get(root.key)
        if entry is None or entry.repository is None:
            return None
        return Artifact(root.group_id, root.artifact_id, table, self.downloads)

    def _transition(self, coordinate: Coordinate, state: ResolutionState) -> None:
        if is_debug_enabled(logger):
            logger.debug("State change", extra=extra_context(
                event="state", component="resolver", action="transition",
                outcome=state.value, coordinate=str(coordinate)
            ))

    async def _resolve(
        self,
        coordinate: Coordinate,
        table: ConflictTable,
        managed: ManagedDependencySet,
        repository: Optional[Repository] = None,
    ) -> None:
        claim = await table.claim(coordinate)
        if claim is None:
            emit(self.events, "skipping_resolution", coordinate)
            return

        if repository is None:
            self._transition(coordinate, ResolutionState.RESOLVING_REPOSITORY)
            repository = await self._discover(coordinate)
            if repository is None:
                await table.complete(claim, ())
                self._transition(coordinate, ResolutionState.FAILED)
                return

        self._transition(coordinate, ResolutionState.FETCHING_DESCRIPTOR)
        try:
            descriptor = await self._descriptor(coordinate, repository)
        except DescriptorFetchFailed as exc:
            emit(self.events, "invalid_descriptor", coordinate, exc)
            await table.complete(claim, (), repository=repository)
            self._transition(coordinate, ResolutionState.FAILED)
            return

        self._transition(coordinate, ResolutionState.RESOLVING_DEPENDENCIES)
        managed = managed.extend(await self._managed_versions(descriptor))
        declared = [dep for dep in descriptor.dependencies if self._included(coordinate, dep)]
        if not declared:
            emit(self.events, "dependencies_not_found", coordinate)

        keys = await asyncio.gather(*(
            self._resolve_dependency(coordinate, descriptor, dep, table, managed) for dep in declared
        ))
        children = tuple(dict.fromkeys(k for k in keys if k is not None and k != coordinate.key))

        await table.complete(
            claim,
            children,
            extension=packaging_extension(descriptor.packaging),
            repository=repository,
        )
        self._transition(coordinate, ResolutionState.RESOLVED)
        emit(self.events, "resolution_complete", coordinate)

    def _included(self, coordinate: Coordinate, dependency: Dependency) -> bool:
        scope = (dependency.scope or Scopes.COMPILE.value).strip().lower()
        if scope in self.config.excluded_scopes:
            emit(self.events, "invalid_scope", coordinate, dependency, scope)
            return False
        if dependency.optional and not self.config.include_optional:
            emit(self.events, "optional_dependency", coordinate, dependency)
            return False
        return True

    async def _resolve_dependency(
        self,
        parent: Coordinate,
        descriptor: ProjectDescriptor,
        dependency: Dependency,
        table: ConflictTable,
        managed: ManagedDependencySet,
    ) -> Optional[ArtifactKey]:
        group_id = await self._interpolate(dependency.group_id or descriptor.effective_group_id or "", descriptor)
        artifact_id = await self._interpolate(dependency.artifact_id, descriptor)
        if not group_id or not artifact_id:
            logger.warning("Skipping dependency %s of %s: coordinates cannot be resolved", dependency, parent)
            return None

        child = Coordinate(group_id, artifact_id, managed.get((group_id, artifact_id)) or dependency.version or "")
        repository: Optional[Repository] = None
        if needs_resolution(child.version):
            self._transition(child, ResolutionState.RESOLVING_VERSION)
            try:
                version, repository = await self._resolve_version(child, descriptor)
            except VersionUnresolvable:
                emit(self.events, "version_not_found", child)
                return None
            child = child.with_version(version)

        emit(self.events, "resolving", parent, child)
        await self._resolve(child, table, managed, repository)
        return child.key

    async def _resolve_version(
        self, child: Coordinate, descriptor: ProjectDescriptor
    ) -> Tuple[str, Optional[Repository]]:
        """Resolve a placeholder, range or missing version of ``child``.

        Returns the version and the repository that was discovered on the
        way, if metadata had to be consulted.

        Raises:
            VersionUnresolvable: when no concrete version can be determined.
        """
        found: List[Repository] = []

        async def _load_metadata() -> Optional[VersionMetadata]:
            emit(self.events, "fetching_latest_version", child)
            repository = await self._discover(child.with_version(""))
            if repository is None:
                return None
            found.append(repository)
            return await self._load_metadata(child.key, repository)

        version = await resolve_version(
            child.version, descriptor, _load_metadata, self._load_parent, self.config.max_parent_depth
        )
        if not version:
            raise VersionUnresolvable(f"No version of {child.group_id}:{child.artifact_id} matches {child.version!r}")
        if found:
            emit(self.events, "fetched_latest_version", child, version)
        return version, (found[0] if found else None)

    async def _interpolate(self, text: str, descriptor: ProjectDescriptor) -> str:
        if "${" not in text:
            return text
        return await interpolate(text, descriptor, self._load_parent, self.config.max_parent_depth)

    async def _managed_versions(self, descriptor: ProjectDescriptor) -> Dict[ArtifactKey, str]:
        """Collect dependencyManagement versions from the POM, its parents and imported BOMs."""
        versions: Dict[ArtifactKey, str] = {}
        await self._collect_managed(descriptor, versions, set())
        return versions

    async def _collect_managed(
        self,
        context: ProjectDescriptor,
        versions: Dict[ArtifactKey, str],
        imported: Set[Coordinate],
    ) -> None:
        imports: List[Coordinate] = []
        async for pom in iter_ancestry(context, self._load_parent, self.config.max_parent_depth):
            for dep in pom.dependency_management:
                group_id = await self._interpolate(dep.group_id or pom.effective_group_id or "", context)
                artifact_id = await self._interpolate(dep.artifact_id, context)
                version = await self._interpolate(dep.version or "", context)
                if not group_id or not artifact_id or not version:
                    continue
                if (dep.scope or "").lower() == Scopes.IMPORT.value:
                    imports.append(Coordinate(group_id, artifact_id, version))
                else:
                    versions.setdefault((group_id, artifact_id), version)

        # Explicit entries take precedence over imported BOMs
        for bom in imports:
            if bom in imported or needs_resolution(bom.version):
                continue
            imported.add(bom)
            bom_descriptor = await self._load_parent(Parent(bom.group_id, bom.artifact_id, bom.version))
            if bom_descriptor is not None:
                await self._collect_managed(bom_descriptor, versions, imported)

    async def _once(self, cache: Dict[Any, "asyncio.Future[Any]"], key: Any, factory: Callable[[], Awaitable[Any]]) -> Any:
        future = cache.get(key)
        if future is None:
            future = cache[key] = asyncio.ensure_future(factory())
        return await future

    async def _discover(self, coordinate: Coordinate) -> Optional[Repository]:
        """Return the first configured repository hosting ``coordinate``."""
        try:
            return await self._once(self._hosts, coordinate, lambda: self._probe_all(coordinate))
        except RepositoryNotFound:
            return None

    async def _probe_all(self, coordinate: Coordinate) -> Repository:
        for repository in self.repositories:
            probe = await repository.probe(self.http, coordinate)
            if probe:
                if probe.metadata is not None:
                    self._probed_metadata.setdefault(coordinate.key, probe.metadata)
                emit(self.events, "artifact_found", coordinate, repository)
                return repository
        emit(self.events, "artifact_not_found", coordinate)
        raise RepositoryNotFound(f"No repository hosts {coordinate}")

    async def _load_metadata(self, key: ArtifactKey, repository: Repository) -> Optional[VersionMetadata]:
        if key in self._probed_metadata:
            return self._probed_metadata[key]
        return await self._once(self._metadata, key, lambda: repository.fetch_metadata(self.http, *key))

    async def _descriptor(self, coordinate: Coordinate, repository: Repository) -> ProjectDescriptor:
        return await self._once(self._descriptors, coordinate, lambda: self._fetch_descriptor(coordinate, repository))

    async def _fetch_descriptor(self, coordinate: Coordinate, repository: Repository) -> ProjectDescriptor:
        url = repository.pom_url(coordinate)
        try:
            status, body = await self.http.get(url, context=repository.name)
        except TransportError as exc:
            raise DescriptorFetchFailed(str(exc)) from exc
        if status != 200:
            raise DescriptorFetchFailed(f"HTTP {status} for {url}", status_code=status)
        return decode_descriptor(body)

    async def _load_parent(self, parent: Parent) -> Optional[ProjectDescriptor]:
        """Fetch a parent or imported POM; None when it cannot be retrieved."""
        coordinate = parent.coordinate
        repository = await self._discover(coordinate)
        if repository is None:
            return None
        try:
            return await self._descriptor(coordinate, repository)
        except DescriptorFetchFailed as exc:
            emit(self.events, "invalid_descriptor", coordinate, exc)
            return None
