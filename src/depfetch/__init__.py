"""depfetch - transitive Maven dependency resolver and downloader.

Resolves a root ``groupId:artifactId:version`` against a fixed list of
remote repositories, settles version conflicts in favour of the newest
version, and downloads one binary per coordinate pair.
"""

import asyncio
from typing import Optional

from .config import RepositorySpec, ResolverConfig
from .errors import (
    ConfigError,
    DepfetchError,
    DescriptorDecodeError,
    DescriptorFetchFailed,
    DownloadFailed,
    RepositoryNotFound,
    TransportError,
    VersionUnresolvable,
)
from .events import EventSink, LoggingEventSink, SilentEventSink
from .models import Coordinate
from .resolver.download import DownloadReport
from .resolver.engine import Resolver
from .resolver.graph import Artifact

__all__ = [
    "Artifact",
    "ConfigError",
    "Coordinate",
    "DepfetchError",
    "DescriptorDecodeError",
    "DescriptorFetchFailed",
    "DownloadFailed",
    "DownloadReport",
    "EventSink",
    "LoggingEventSink",
    "RepositoryNotFound",
    "RepositorySpec",
    "Resolver",
    "ResolverConfig",
    "SilentEventSink",
    "TransportError",
    "VersionUnresolvable",
    "fetch",
]


def fetch(
    group_id: str,
    artifact_id: str,
    version: str = "",
    output_dir: Optional[str] = None,
    *,
    config: Optional[ResolverConfig] = None,
    events: Optional[EventSink] = None,
) -> Optional[Artifact]:
    """Resolve a coordinate and optionally download its closure, blocking until done.

    Returns:
        The resolved root artifact, or None when it cannot be found.
    """
    async def _run() -> Optional[Artifact]:
        async with Resolver(config=config, events=events) as resolver:
            root = await resolver.resolve(group_id, artifact_id, version)
            if root is not None and output_dir:
                await root.download_to(output_dir)
            return root

    return asyncio.run(_run())
