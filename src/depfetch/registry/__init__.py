"""Remote repositories and POM/metadata decoding."""

from .decoder import decode_descriptor, decode_metadata
from .repositories import (
    GenericRepository,
    GoogleMaven,
    Jitpack,
    MavenCentral,
    Repository,
    SonatypeSnapshots,
    default_repositories,
    repositories_for,
)

__all__ = [
    "decode_descriptor",
    "decode_metadata",
    "GenericRepository",
    "GoogleMaven",
    "Jitpack",
    "MavenCentral",
    "Repository",
    "SonatypeSnapshots",
    "default_repositories",
    "repositories_for",
]
