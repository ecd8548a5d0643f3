"""Data records shared by the decoder, the version policy and the resolver."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

# Stable map key for lookups: (groupId, artifactId).
ArtifactKey = Tuple[str, str]


@dataclass(frozen=True)
class Coordinate:
    """Immutable groupId:artifactId:version snapshot."""
    group_id: str
    artifact_id: str
    version: str = ""

    @property
    def key(self) -> ArtifactKey:
        """Return the (groupId, artifactId) identity of this coordinate."""
        return (self.group_id, self.artifact_id)

    def with_version(self, version: str) -> "Coordinate":
        """Return a copy pinned to ``version``."""
        return Coordinate(self.group_id, self.artifact_id, version)

    @classmethod
    def parse(cls, text: str) -> "Coordinate":
        """Parse ``group:artifact[:version]``.

        Raises:
            ValueError: when fewer than two non-empty parts are present.
        """
        parts = [p.strip() for p in text.strip().split(":")]
        if len(parts) < 2 or len(parts) > 3 or not parts[0] or not parts[1]:
            raise ValueError(f"Invalid coordinate '{text}'. Expected 'groupId:artifactId[:version]'.")
        version = parts[2] if len(parts) == 3 else ""
        return cls(parts[0], parts[1], version)

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


@dataclass(frozen=True)
class Parent:
    """Parent POM reference."""
    group_id: str
    artifact_id: str
    version: str

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.group_id, self.artifact_id, self.version)


@dataclass(frozen=True)
class Dependency:
    """A dependency entry as declared in a POM, before any resolution."""
    artifact_id: str
    group_id: Optional[str] = None
    version: Optional[str] = None
    scope: Optional[str] = None
    optional: bool = False
    type: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


@dataclass(frozen=True)
class ProjectDescriptor:
    """Read-only snapshot of one POM."""
    artifact_id: str
    group_id: Optional[str] = None
    version: Optional[str] = None
    packaging: Optional[str] = None
    parent: Optional[Parent] = None
    properties: Dict[str, str] = field(default_factory=dict)
    dependencies: List[Dependency] = field(default_factory=list)
    dependency_management: List[Dependency] = field(default_factory=list)

    @property
    def effective_group_id(self) -> Optional[str]:
        """Own groupId, or the parent's when the POM inherits it."""
        if self.group_id:
            return self.group_id
        return self.parent.group_id if self.parent else None

    @property
    def effective_version(self) -> Optional[str]:
        """Own version, or the parent's when the POM inherits it."""
        if self.version:
            return self.version
        return self.parent.version if self.parent else None


@dataclass(frozen=True)
class VersionMetadata:
    """Contents of a maven-metadata.xml document."""
    release: Optional[str] = None
    latest: Optional[str] = None
    versions: List[str] = field(default_factory=list)
