"""Caller-facing view of a finished resolution."""
from __future__ import annotations

import sys
from collections import deque
from typing import TYPE_CHECKING, Iterator, List, Optional, Set, TextIO

from ..constants import Constants
from ..models import ArtifactKey, Coordinate
from .conflict import ConflictTable, TableEntry

if TYPE_CHECKING:
    from ..registry.repositories import Repository
    from .download import DownloadManager, DownloadReport


class Artifact:
    """A resolved coordinate pair.

    Identity is ``(group_id, artifact_id)``; the version is not part of it.
    Version, extension, repository and children are read from the current
    conflict-table entry, so they always reflect the version that won.
    """

    def __init__(self, group_id: str, artifact_id: str, table: ConflictTable, downloads: "DownloadManager"):
        self.group_id = group_id
        self.artifact_id = artifact_id
        self._table = table
        self._downloads = downloads

    @property
    def key(self) -> ArtifactKey:
        return (self.group_id, self.artifact_id)

    @property
    def _entry(self) -> Optional[TableEntry]:
        return self._table.get(self.key)

    @property
    def coordinate(self) -> Coordinate:
        entry = self._entry
        if entry is None:
            return Coordinate(self.group_id, self.artifact_id)
        return entry.coordinate

    @property
    def version(self) -> str:
        return self.coordinate.version

    @property
    def extension(self) -> str:
        entry = self._entry
        return entry.extension if entry else Constants.DEFAULT_EXTENSION

    @property
    def repository(self) -> Optional["Repository"]:
        entry = self._entry
        return entry.repository if entry else None

    @property
    def dependencies(self) -> Optional[List["Artifact"]]:
        """Direct dependencies, or None when this node was never resolved."""
        entry = self._entry
        if entry is None or entry.dependencies is None:
            return None
        return [self._at(key) for key in entry.dependencies]

    def _at(self, key: ArtifactKey) -> "Artifact":
        return Artifact(key[0], key[1], self._table, self._downloads)

    def _walk(self) -> Iterator["Artifact"]:
        seen: Set[ArtifactKey] = {self.key}
        queue = deque([self])
        while queue:
            node = queue.popleft()
            for child in node.dependencies or ():
                if child.key in seen:
                    continue
                seen.add(child.key)
                queue.append(child)
                yield child

    def all_dependencies(self) -> List["Artifact"]:
        """Every transitive dependency once, excluding this artifact."""
        return list(self._walk())

    async def download_to(self, directory: str) -> "DownloadReport":
        """Download this artifact and its transitive dependencies into ``directory``."""
        return await self._downloads.download([self, *self._walk()], directory)

    def format_tree(self) -> str:
        """Render the dependency tree; ``(*)`` marks subtrees already shown above."""
        lines = [str(self)]
        expanded: Set[ArtifactKey] = {self.key}

        def _render(node: "Artifact", prefix: str) -> None:
            children = node.dependencies or []
            for index, child in enumerate(children):
                last = index == len(children) - 1
                branch = "\\--- " if last else "+--- "
                repeated = child.key in expanded
                lines.append(f"{prefix}{branch}{child}{' (*)' if repeated else ''}")
                if not repeated:
                    expanded.add(child.key)
                    _render(child, prefix + ("     " if last else "|    "))

        _render(self, "")
        return "\n".join(lines)

    def print_tree(self, file: Optional[TextIO] = None) -> None:
        print(self.format_tree(), file=file or sys.stdout)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Artifact):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return str(self.coordinate)

    def __repr__(self) -> str:
        return f"Artifact({self.coordinate!s})"
