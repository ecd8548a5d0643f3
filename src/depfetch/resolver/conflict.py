"""Conflict table and managed-version bookkeeping shared by one resolution run.

The conflict table is an arena of immutable ``TableEntry`` snapshots, one per
``(groupId, artifactId)``. Edges between nodes are stored as keys, never as
versions, so any node that depended on a superseded version reads the
upgraded entry when the graph is walked.

Claims and completions for a key run under that key's lock; there is no
lock spanning keys.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from ..common.logging_utils import extra_context, is_debug_enabled
from ..constants import Constants
from ..models import ArtifactKey, Coordinate
from ..versioning.ordering import compare_versions

if TYPE_CHECKING:
    from ..registry.repositories import Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableEntry:
    """Best-known version of one coordinate pair and its direct dependencies.

    ``dependencies`` is None while the entry is still being resolved.
    """
    coordinate: Coordinate
    generation: int
    extension: str = Constants.DEFAULT_EXTENSION
    repository: Optional["Repository"] = None
    dependencies: Optional[Tuple[ArtifactKey, ...]] = None

    @property
    def key(self) -> ArtifactKey:
        return self.coordinate.key

    @property
    def in_flight(self) -> bool:
        return self.dependencies is None


class ConflictTable:
    """Maps each coordinate pair to the highest version discovered so far."""

    def __init__(self) -> None:
        self._entries: Dict[ArtifactKey, TableEntry] = {}
        self._locks: Dict[ArtifactKey, asyncio.Lock] = {}
        self._generations = itertools.count(1)

    def _lock(self, key: ArtifactKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def claim(self, coordinate: Coordinate) -> Optional[TableEntry]:
        """Reserve ``coordinate`` for resolution.

        Returns the new in-flight entry when no entry exists or the existing
        one holds a strictly lower version. Returns None when an entry at an
        equal or higher version is already resolved or being resolved.
        """
        key = coordinate.key
        async with self._lock(key):
            current = self._entries.get(key)
            if current is not None and compare_versions(current.coordinate.version, coordinate.version) >= 0:
                return None
            entry = TableEntry(coordinate, next(self._generations))
            self._entries[key] = entry
        if current is not None and is_debug_enabled(logger):
            logger.debug("Superseding entry", extra=extra_context(
                event="conflict", component="conflict_table", action="claim", outcome="superseded",
                coordinate=str(coordinate), previous=current.coordinate.version
            ))
        return entry

    async def complete(
        self,
        claim: TableEntry,
        dependencies: Iterable[ArtifactKey],
        *,
        extension: Optional[str] = None,
        repository: Optional["Repository"] = None,
    ) -> bool:
        """Record the resolved dependencies of a claim.

        Returns False, leaving the table untouched, when a newer version of
        the same pair claimed the key in the meantime.
        """
        async with self._lock(claim.key):
            current = self._entries.get(claim.key)
            if current is None or current.generation != claim.generation:
                return False
            self._entries[claim.key] = replace(
                current,
                dependencies=tuple(dependencies),
                extension=extension or current.extension,
                repository=repository if repository is not None else current.repository,
            )
            return True

    def get(self, key: ArtifactKey) -> Optional[TableEntry]:
        return self._entries.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TableEntry]:
        return iter(list(self._entries.values()))


class ManagedDependencySet:
    """Append-only managed versions visible to the descendants of the POM that declared them.

    The first version recorded for a pair wins, so declarations closer to
    the root override those found deeper in the graph.
    """

    def __init__(self, versions: Optional[Mapping[ArtifactKey, str]] = None):
        self._versions: Dict[ArtifactKey, str] = dict(versions or {})

    def extend(self, versions: Mapping[ArtifactKey, str]) -> "ManagedDependencySet":
        """Return a set with ``versions`` added beneath the existing ones."""
        additions = {k: v for k, v in versions.items() if v and k not in self._versions}
        if not additions:
            return self
        merged = dict(self._versions)
        merged.update(additions)
        return ManagedDependencySet(merged)

    def get(self, key: ArtifactKey) -> Optional[str]:
        return self._versions.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._versions

    def __len__(self) -> int:
        return len(self._versions)
