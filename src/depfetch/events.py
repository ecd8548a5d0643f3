"""Observer interface the resolver and download manager report progress to.

``EventSink`` ignores every event and doubles as the silent sink.
``LoggingEventSink`` is the default and logs each event. UI-bound callers
subclass either and override what they need. Handlers are called
synchronously and must not block.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import Coordinate, Dependency

if TYPE_CHECKING:
    from .registry.repositories import Repository

logger = logging.getLogger("depfetch.events")


class EventSink:
    """Receives resolution and download events; every handler is a no-op."""

    def artifact_found(self, coordinate: Coordinate, repository: "Repository") -> None:
        pass

    def artifact_not_found(self, coordinate: Coordinate) -> None:
        pass

    def fetching_latest_version(self, coordinate: Coordinate) -> None:
        pass

    def fetched_latest_version(self, coordinate: Coordinate, version: str) -> None:
        pass

    def resolving(self, parent: Coordinate, dependency: Coordinate) -> None:
        pass

    def resolution_complete(self, coordinate: Coordinate) -> None:
        pass

    def skipping_resolution(self, coordinate: Coordinate) -> None:
        pass

    def version_not_found(self, coordinate: Coordinate) -> None:
        pass

    def dependencies_not_found(self, coordinate: Coordinate) -> None:
        pass

    def invalid_scope(self, coordinate: Coordinate, dependency: Dependency, scope: str) -> None:
        pass

    def optional_dependency(self, coordinate: Coordinate, dependency: Dependency) -> None:
        pass

    def invalid_descriptor(self, coordinate: Coordinate, error: Exception) -> None:
        pass

    def download_start(self, coordinate: Coordinate) -> None:
        pass

    def download_end(self, coordinate: Coordinate) -> None:
        pass

    def download_error(self, coordinate: Coordinate, error: Exception) -> None:
        pass


SilentEventSink = EventSink


class LoggingEventSink(EventSink):
    """Logs every event; routine progress at INFO/DEBUG, failures at WARNING/ERROR."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def artifact_found(self, coordinate, repository):
        self.log.info("Found %s in %s", coordinate, repository.name)

    def artifact_not_found(self, coordinate):
        self.log.warning("No repository contains %s", coordinate)

    def fetching_latest_version(self, coordinate):
        self.log.info("Fetching latest version of %s:%s", coordinate.group_id, coordinate.artifact_id)

    def fetched_latest_version(self, coordinate, version):
        self.log.info("Fetched latest version of %s:%s: %s", coordinate.group_id, coordinate.artifact_id, version)

    def resolving(self, parent, dependency):
        self.log.debug("Resolving %s from %s", dependency, parent)

    def resolution_complete(self, coordinate):
        self.log.info("Resolution complete for %s", coordinate)

    def skipping_resolution(self, coordinate):
        self.log.debug("Skipping resolution of %s as it is already resolved", coordinate)

    def version_not_found(self, coordinate):
        self.log.warning("Version not found for %s:%s", coordinate.group_id, coordinate.artifact_id)

    def dependencies_not_found(self, coordinate):
        self.log.debug("No dependencies found for %s", coordinate)

    def invalid_scope(self, coordinate, dependency, scope):
        self.log.debug("Skipping %s from %s: scope %s", dependency, coordinate, scope)

    def optional_dependency(self, coordinate, dependency):
        self.log.debug("Skipping optional %s from %s", dependency, coordinate)

    def invalid_descriptor(self, coordinate, error):
        self.log.warning("Invalid POM for %s: %s", coordinate, error)

    def download_start(self, coordinate):
        self.log.info("Starting download of %s", coordinate)

    def download_end(self, coordinate):
        self.log.info("Download complete for %s", coordinate)

    def download_error(self, coordinate, error):
        self.log.error("Error downloading %s: %s", coordinate, error)


def emit(sink: EventSink, name: str, *args) -> None:
    """Call ``sink.<name>(*args)``; a failing handler is logged, never propagated."""
    handler = getattr(sink, name)
    try:
        handler(*args)
    except Exception:  # pylint: disable=broad-exception-caught
        logger.exception("Event handler %s.%s failed", type(sink).__name__, name)
