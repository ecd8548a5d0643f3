"""Remote Maven repositories and the probe used to discover which one hosts an artifact.

Repositories are tried in a fixed order and the first successful probe wins.
Each variant differs only in how it probes: whether it checks
``maven-metadata.xml`` with HEAD before GET, and whether it falls back to
requesting the versioned POM directly for hosts that publish no metadata for
unreleased or on-demand builds.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..common.http_client import HttpClient
from ..common.logging_utils import extra_context, is_debug_enabled
from ..config import RepositorySpec, ResolverConfig
from ..constants import Constants
from ..errors import DescriptorDecodeError, TransportError
from ..models import Coordinate, VersionMetadata
from ..versioning.policy import needs_resolution
from .decoder import decode_metadata

logger = logging.getLogger(__name__)


def group_path(group_id: str) -> str:
    """Convert ``org.example`` into ``org/example``."""
    return group_id.replace(".", "/")


@dataclass(frozen=True)
class Probe:
    """Outcome of probing one repository; truthy when the artifact is hosted there."""
    found: bool
    metadata: Optional[VersionMetadata] = None

    def __bool__(self) -> bool:
        return self.found


NOT_FOUND = Probe(False)


class Repository:
    """A remote Maven repository laid out with the standard directory convention."""

    # HEAD the metadata before downloading it
    metadata_head_first = False
    # Request the versioned POM when metadata is missing or lacks the version
    pom_fallback = False

    def __init__(self, name: str, base_url: str):
        self._name = name
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return self._name

    @property
    def base_url(self) -> str:
        return self._base_url

    def metadata_url(self, group_id: str, artifact_id: str) -> str:
        return f"{self._base_url}/{group_path(group_id)}/{artifact_id}/{Constants.METADATA_FILE}"

    def pom_url(self, coordinate: Coordinate) -> str:
        return self.artifact_url(coordinate, "pom")

    def artifact_url(self, coordinate: Coordinate, extension: str) -> str:
        artifact_id, version = coordinate.artifact_id, coordinate.version
        return (
            f"{self._base_url}/{group_path(coordinate.group_id)}/{artifact_id}/"
            f"{version}/{artifact_id}-{version}.{extension}"
        )

    async def fetch_metadata(self, http: HttpClient, group_id: str, artifact_id: str) -> Optional[VersionMetadata]:
        """Fetch and decode maven-metadata.xml; None when absent or malformed."""
        url = self.metadata_url(group_id, artifact_id)
        try:
            if self.metadata_head_first:
                status = await http.head(url, context=self._name)
                if status != 200:
                    return None
            status, body = await http.get(url, context=self._name)
        except TransportError as exc:
            logger.debug("Metadata fetch from %s failed: %s", self._name, exc)
            return None
        if status != 200 or not body:
            return None
        try:
            return decode_metadata(body)
        except DescriptorDecodeError as exc:
            logger.debug("Ignoring malformed metadata from %s: %s", self._name, exc)
            return None

    async def probe(self, http: HttpClient, coordinate: Coordinate) -> Probe:
        """Check whether this repository hosts ``coordinate``.

        A concrete version must be listed in the metadata, or, for variants
        with ``pom_fallback``, its POM must be retrievable. Coordinates whose
        version still needs resolution only require the metadata.
        """
        metadata = await self.fetch_metadata(http, coordinate.group_id, coordinate.artifact_id)
        concrete = not needs_resolution(coordinate.version)

        if metadata is not None:
            if not concrete or not metadata.versions or coordinate.version in metadata.versions:
                return self._found(coordinate, metadata)
        if concrete and self.pom_fallback and await self._pom_exists(http, coordinate):
            return self._found(coordinate, metadata)

        if is_debug_enabled(logger):
            logger.debug("Probe missed", extra=extra_context(
                event="probe", component="repository", action="probe", outcome="not_found",
                target=self._name, coordinate=str(coordinate)
            ))
        return NOT_FOUND

    async def _pom_exists(self, http: HttpClient, coordinate: Coordinate) -> bool:
        try:
            status, _ = await http.get(self.pom_url(coordinate), context=self._name)
        except TransportError:
            return False
        return status == 200

    def _found(self, coordinate: Coordinate, metadata: Optional[VersionMetadata]) -> Probe:
        if is_debug_enabled(logger):
            logger.debug("Probe hit", extra=extra_context(
                event="probe", component="repository", action="probe", outcome="found",
                target=self._name, coordinate=str(coordinate)
            ))
        return Probe(True, metadata)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r}, {self._base_url!r})"


class MavenCentral(Repository):
    """The central registry."""
    metadata_head_first = True

    def __init__(self, base_url: str = Constants.REPOSITORY_URL_CENTRAL, name: str = "Maven Central"):
        super().__init__(name, base_url)


class GoogleMaven(Repository):
    """The platform vendor registry."""

    def __init__(self, base_url: str = Constants.REPOSITORY_URL_GOOGLE, name: str = "Google Maven"):
        super().__init__(name, base_url)


class Jitpack(Repository):
    """Builds from pull requests and tags; no metadata until a version is built."""
    pom_fallback = True

    def __init__(self, base_url: str = Constants.REPOSITORY_URL_JITPACK, name: str = "Jitpack"):
        super().__init__(name, base_url)


class SonatypeSnapshots(Repository):
    """Pre-release and snapshot registry."""
    pom_fallback = True

    def __init__(self, base_url: str = Constants.REPOSITORY_URL_SNAPSHOTS, name: str = "Sonatype Snapshots"):
        super().__init__(name, base_url)


class GenericRepository(Repository):
    """Any other repository named in configuration."""
    pom_fallback = True


_KINDS = {
    "central": MavenCentral,
    "google": GoogleMaven,
    "jitpack": Jitpack,
    "snapshots": SonatypeSnapshots,
}


def default_repositories() -> List[Repository]:
    """Central, vendor, pull-request builds, snapshots; in probe order."""
    return [MavenCentral(), GoogleMaven(), Jitpack(), SonatypeSnapshots()]


def from_specs(specs: Iterable[RepositorySpec]) -> List[Repository]:
    """Build repositories from configuration entries, keeping their order."""
    repositories: List[Repository] = []
    for spec in specs:
        kind = _KINDS.get(spec.kind)
        if kind is not None:
            repository: Repository = kind(spec.url, spec.name)
        else:
            repository = GenericRepository(spec.name, spec.url)
        repositories.append(repository)
    return repositories


def repositories_for(config: ResolverConfig) -> List[Repository]:
    """Repositories configured in ``config``, or the defaults when none are."""
    if config.repositories:
        return from_specs(config.repositories)
    return default_repositories()
