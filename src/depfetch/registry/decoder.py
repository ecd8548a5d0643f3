"""Decode POM and maven-metadata.xml documents into structured records."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Union

from ..common.logging_utils import extra_context, is_debug_enabled
from ..errors import DescriptorDecodeError
from ..models import Dependency, Parent, ProjectDescriptor, VersionMetadata

logger = logging.getLogger(__name__)


def _strip_namespaces(root: ET.Element) -> ET.Element:
    """Drop ``{namespace}`` prefixes so lookups work with and without xmlns."""
    for elem in root.iter():
        if isinstance(elem.tag, str) and elem.tag.startswith("{"):
            elem.tag = elem.tag.split("}", 1)[1]
    return root


def _parse(data: Union[bytes, str], kind: str) -> ET.Element:
    try:
        return _strip_namespaces(ET.fromstring(data))
    except ET.ParseError as exc:
        if is_debug_enabled(logger):
            logger.debug("XML parse error", extra=extra_context(
                event="anomaly", component="decoder", action=f"decode_{kind}", outcome="parse_error"
            ))
        raise DescriptorDecodeError(f"Malformed {kind}: {exc}") from exc


def _text(elem: Optional[ET.Element], path: str) -> Optional[str]:
    if elem is None:
        return None
    node = elem.find(path)
    if node is None or node.text is None:
        return None
    value = node.text.strip()
    return value or None


def _dependency(elem: ET.Element) -> Optional[Dependency]:
    artifact_id = _text(elem, "artifactId")
    if not artifact_id:
        return None
    optional = (_text(elem, "optional") or "").lower() == "true"
    return Dependency(
        artifact_id=artifact_id,
        group_id=_text(elem, "groupId"),
        version=_text(elem, "version"),
        scope=_text(elem, "scope"),
        optional=optional,
        type=_text(elem, "type"),
    )


def _dependencies(container: Optional[ET.Element]) -> List[Dependency]:
    if container is None:
        return []
    result = []
    for elem in container.findall("dependencies/dependency"):
        dep = _dependency(elem)
        if dep is not None:
            result.append(dep)
    return result


def decode_descriptor(data: Union[bytes, str]) -> ProjectDescriptor:
    """Decode POM XML into a ``ProjectDescriptor``.

    Only the top-level ``<dependencies>`` block is read; dependencies declared
    inside profiles or plugins are ignored.

    Raises:
        DescriptorDecodeError: on malformed XML or a missing ``artifactId``.
    """
    root = _parse(data, "descriptor")
    if root.tag != "project":
        raise DescriptorDecodeError(f"Unexpected root element <{root.tag}> in descriptor")

    artifact_id = _text(root, "artifactId")
    if not artifact_id:
        raise DescriptorDecodeError("Descriptor has no artifactId")

    parent = None
    parent_elem = root.find("parent")
    if parent_elem is not None:
        p_group = _text(parent_elem, "groupId")
        p_artifact = _text(parent_elem, "artifactId")
        p_version = _text(parent_elem, "version")
        if p_group and p_artifact and p_version:
            parent = Parent(p_group, p_artifact, p_version)

    properties: Dict[str, str] = {}
    props_elem = root.find("properties")
    if props_elem is not None:
        for prop in props_elem:
            if isinstance(prop.tag, str):
                properties[prop.tag] = (prop.text or "").strip()

    return ProjectDescriptor(
        artifact_id=artifact_id,
        group_id=_text(root, "groupId"),
        version=_text(root, "version"),
        packaging=_text(root, "packaging"),
        parent=parent,
        properties=properties,
        dependencies=_dependencies(root),
        dependency_management=_dependencies(root.find("dependencyManagement")),
    )


def decode_metadata(data: Union[bytes, str]) -> VersionMetadata:
    """Decode maven-metadata.xml into ``VersionMetadata``; versions keep source order.

    Raises:
        DescriptorDecodeError: on malformed XML.
    """
    root = _parse(data, "metadata")
    versioning = root.find("versioning")
    versions: List[str] = []
    if versioning is not None:
        for item in versioning.findall("versions/version"):
            if item.text and item.text.strip():
                versions.append(item.text.strip())
    return VersionMetadata(
        release=_text(versioning, "release"),
        latest=_text(versioning, "latest"),
        versions=versions,
    )
