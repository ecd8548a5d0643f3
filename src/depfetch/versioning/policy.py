"""Version policy: classification, latest, ranges and ``${...}`` placeholders.

All functions are side-effect free apart from the descriptor and metadata
fetches performed through the loader callables passed in by the resolver.
"""
from __future__ import annotations

import contextlib
import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, FrozenSet, List, Optional

from ..common.logging_utils import extra_context, is_debug_enabled
from ..constants import Constants
from ..models import Parent, ProjectDescriptor, VersionMetadata
from .ordering import compare_versions, max_version

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
LATEST_KEYWORDS = ("+", "LATEST", "RELEASE")

ParentLoader = Callable[[Parent], Awaitable[Optional[ProjectDescriptor]]]
MetadataLoader = Callable[[], Awaitable[Optional[VersionMetadata]]]


def is_range(version: str) -> bool:
    """Return True for bracket range syntax such as ``[1.0,2.0)``."""
    return version.strip().startswith(("[", "("))


def needs_resolution(version: Optional[str]) -> bool:
    """Return True when ``version`` is not a concrete version string."""
    if version is None:
        return True
    value = version.strip()
    if not value or value in LATEST_KEYWORDS:
        return True
    return is_range(value) or "${" in value


def resolve_latest(metadata: Optional[VersionMetadata]) -> str:
    """Pick release, then latest, then the last listed version."""
    if metadata is None:
        return ""
    if metadata.release:
        return metadata.release
    if metadata.latest:
        return metadata.latest
    if metadata.versions:
        return metadata.versions[-1]
    return ""


@dataclass(frozen=True)
class VersionRange:
    """One interval of a Maven range spec; ``None`` bounds are open."""
    lower: Optional[str]
    lower_inclusive: bool
    upper: Optional[str]
    upper_inclusive: bool

    def contains(self, version: str) -> bool:
        if self.lower is not None:
            cmp = compare_versions(version, self.lower)
            if cmp < 0 or (cmp == 0 and not self.lower_inclusive):
                return False
        if self.upper is not None:
            cmp = compare_versions(version, self.upper)
            if cmp > 0 or (cmp == 0 and not self.upper_inclusive):
                return False
        return True


def _split_ranges(spec: str) -> List[str]:
    """Split ``[1,2),[3,4]`` into its bracketed parts."""
    ranges = []
    current = ""
    depth = 0
    for char in spec.strip():
        if char in "[(":
            depth += 1
            current = char if depth == 1 else current + char
        elif char in "])":
            depth -= 1
            current += char
            if depth == 0:
                ranges.append(current)
                current = ""
        elif depth > 0:
            current += char
    if depth != 0 or current:
        raise ValueError(f"Unbalanced range '{spec}'")
    return ranges


def parse_range(spec: str) -> List[VersionRange]:
    """Parse a Maven range spec into intervals.

    Raises:
        ValueError: when brackets are unbalanced or an interval has more than two bounds.
    """
    intervals = []
    for part in _split_ranges(spec):
        inner = part[1:-1]
        bounds = [b.strip() for b in inner.split(",")]
        if len(bounds) == 1:
            if not bounds[0]:
                raise ValueError(f"Empty range '{part}'")
            # [1.2] pins exactly one version
            intervals.append(VersionRange(bounds[0], True, bounds[0], True))
            continue
        if len(bounds) != 2:
            raise ValueError(f"Too many bounds in '{part}'")
        lower, upper = bounds
        intervals.append(VersionRange(
            lower or None,
            part.startswith("["),
            upper or None,
            part.endswith("]"),
        ))
    if not intervals:
        raise ValueError(f"Empty range '{spec}'")
    return intervals


def resolve_range(spec: str, metadata: Optional[VersionMetadata]) -> str:
    """Pick the highest listed version inside ``spec``, else fall back to latest."""
    if metadata is None:
        return ""
    try:
        intervals = parse_range(spec)
    except ValueError as exc:
        logger.debug("Ignoring malformed range %s: %s", spec, exc)
        return resolve_latest(metadata)
    matching = [v for v in metadata.versions if any(r.contains(v) for r in intervals)]
    best = max_version(matching)
    if best:
        return best
    return resolve_latest(metadata)


def _builtin(name: str, descriptor: ProjectDescriptor) -> Optional[str]:
    if name in ("project.version", "pom.version", "version"):
        return descriptor.effective_version
    if name in ("project.groupId", "pom.groupId", "groupId"):
        return descriptor.effective_group_id
    if name in ("project.artifactId", "pom.artifactId", "artifactId"):
        return descriptor.artifact_id
    if name in ("project.parent.version", "parent.version"):
        return descriptor.parent.version if descriptor.parent else None
    if name in ("project.parent.groupId", "parent.groupId"):
        return descriptor.parent.group_id if descriptor.parent else None
    return None


async def iter_ancestry(
    descriptor: ProjectDescriptor,
    load_parent: ParentLoader,
    max_depth: int = Constants.MAX_PARENT_DEPTH,
) -> AsyncIterator[ProjectDescriptor]:
    """Yield ``descriptor`` and then each ancestor, stopping on a repeated parent."""
    current: Optional[ProjectDescriptor] = descriptor
    visited = set()
    depth = 0
    while current is not None:
        yield current
        parent = current.parent
        if parent is None or depth >= max_depth:
            return
        if parent.coordinate in visited:
            if is_debug_enabled(logger):
                logger.debug("Parent cycle detected", extra=extra_context(
                    event="anomaly", component="policy", action="iter_ancestry",
                    coordinate=str(parent.coordinate), outcome="cycle"
                ))
            return
        visited.add(parent.coordinate)
        depth += 1
        current = await load_parent(parent)


async def _lookup(
    name: str,
    descriptor: ProjectDescriptor,
    load_parent: ParentLoader,
    max_depth: int,
) -> Optional[str]:
    builtin = _builtin(name, descriptor)
    if builtin is not None:
        return builtin
    async with contextlib.aclosing(iter_ancestry(descriptor, load_parent, max_depth)) as ancestors:
        async for ancestor in ancestors:
            if name in ancestor.properties:
                return ancestor.properties[name]
    return None


async def interpolate(
    text: str,
    descriptor: ProjectDescriptor,
    load_parent: ParentLoader,
    max_depth: int = Constants.MAX_PARENT_DEPTH,
    _seen: FrozenSet[str] = frozenset(),
) -> str:
    """Substitute every ``${name}`` in ``text``; returns "" if any stays unresolved."""
    result = []
    pos = 0
    for match in PLACEHOLDER.finditer(text):
        value = await _resolve_name(match.group(1).strip(), descriptor, load_parent, max_depth, _seen)
        if not value:
            return ""
        result.append(text[pos:match.start()])
        result.append(value)
        pos = match.end()
    result.append(text[pos:])
    return "".join(result)


async def _resolve_name(
    name: str,
    descriptor: ProjectDescriptor,
    load_parent: ParentLoader,
    max_depth: int,
    seen: FrozenSet[str],
) -> str:
    if name in seen:
        logger.debug("Placeholder ${%s} refers to itself", name)
        return ""
    raw = await _lookup(name, descriptor, load_parent, max_depth)
    if raw is None:
        return ""
    return await interpolate(raw, descriptor, load_parent, max_depth, seen | {name})


async def resolve_placeholder(
    name: str,
    descriptor: ProjectDescriptor,
    load_parent: ParentLoader,
    max_depth: int = Constants.MAX_PARENT_DEPTH,
) -> str:
    """Resolve property ``name`` against ``descriptor`` and its parent chain.

    Args:
        name: Property name without the ``${}`` wrapper.
        descriptor: POM providing the lookup context.
        load_parent: Coroutine fetching a parent POM, or None when unavailable.
        max_depth: Maximum number of ancestors to walk.

    Returns:
        The resolved value, or "" when unresolvable (missing or self-referencing).
    """
    if name.startswith("${") and name.endswith("}"):
        name = name[2:-1]
    return await _resolve_name(name.strip(), descriptor, load_parent, max_depth, frozenset())


async def resolve_version(
    raw: Optional[str],
    descriptor: ProjectDescriptor,
    load_metadata: MetadataLoader,
    load_parent: ParentLoader,
    max_depth: int = Constants.MAX_PARENT_DEPTH,
) -> str:
    """Turn a declared version into a concrete one; "" when unresolvable."""
    version = (raw or "").strip()
    if "${" in version:
        version = await interpolate(version, descriptor, load_parent, max_depth)
        if not version:
            return ""
    if not needs_resolution(version):
        return version
    metadata = await load_metadata()
    if is_range(version):
        return resolve_range(version, metadata)
    return resolve_latest(metadata)
