"""Materialize resolved artifacts on disk."""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Tuple

from ..common.http_client import HttpClient
from ..config import ResolverConfig
from ..constants import Constants
from ..errors import DownloadFailed, TransportError
from ..events import EventSink, emit
from ..models import ArtifactKey, Coordinate
from ..versioning.ordering import compare_versions

if TYPE_CHECKING:
    from ..registry.repositories import Repository
    from .graph import Artifact

logger = logging.getLogger(__name__)


@dataclass
class DownloadReport:
    """Per-file outcome of a download batch."""
    downloaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Tuple[Coordinate, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def select_latest(artifacts: Iterable["Artifact"]) -> List["Artifact"]:
    """Keep one artifact per coordinate pair, the one with the highest version."""
    best: Dict[ArtifactKey, "Artifact"] = {}
    for artifact in artifacts:
        current = best.get(artifact.key)
        if current is None or compare_versions(artifact.version, current.version) > 0:
            best[artifact.key] = artifact
    return list(best.values())


def file_name(coordinate: Coordinate, extension: str) -> str:
    return f"{coordinate.artifact_id}-{coordinate.version}.{extension}"


class DownloadManager:
    """Fetches artifact binaries concurrently, one file per coordinate pair."""

    def __init__(self, http: HttpClient, events: EventSink, config: ResolverConfig):
        self._http = http
        self._events = events
        self._config = config

    async def download(self, artifacts: Iterable["Artifact"], directory: str) -> DownloadReport:
        """Write each artifact to ``{directory}/{artifactId}-{version}.{extension}``.

        Artifacts without a version or repository are skipped, as are files
        that already exist. A failing artifact is reported and collected in
        the returned report; its siblings still download.
        """
        os.makedirs(directory, exist_ok=True)
        report = DownloadReport()
        semaphore = asyncio.Semaphore(self._config.max_concurrent_downloads)

        async def _one(artifact: "Artifact") -> None:
            coordinate = artifact.coordinate
            if not coordinate.version or artifact.repository is None:
                logger.debug("Not downloading unresolved %s", coordinate)
                return
            path = os.path.join(directory, file_name(coordinate, artifact.extension))
            if os.path.exists(path):
                report.skipped.append(path)
                return
            async with semaphore:
                emit(self._events, "download_start", coordinate)
                try:
                    await self._fetch(coordinate, artifact.extension, artifact.repository, path)
                except DownloadFailed as exc:
                    report.failed.append((coordinate, exc))
                    emit(self._events, "download_error", coordinate, exc)
                    return
            report.downloaded.append(path)
            emit(self._events, "download_end", coordinate)

        await asyncio.gather(*(_one(a) for a in select_latest(artifacts)))
        logger.info(
            "Downloaded %d, skipped %d, failed %d",
            len(report.downloaded), len(report.skipped), len(report.failed),
        )
        return report

    async def _fetch(self, coordinate: Coordinate, extension: str, repository: "Repository", path: str) -> None:
        url = repository.artifact_url(coordinate, extension)
        try:
            status = await self._http.download(
                url, path, context=repository.name, chunk_size=Constants.DOWNLOAD_CHUNK_SIZE
            )
        except TransportError as exc:
            raise DownloadFailed(str(exc)) from exc
        except OSError as exc:
            raise DownloadFailed(f"Cannot write {path}: {exc}") from exc
        if status != 200:
            raise DownloadFailed(f"HTTP {status} for {url}", status_code=status)
