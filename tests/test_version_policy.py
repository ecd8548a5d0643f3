"""Tests for version classification, ranges, latest selection and placeholders."""

import asyncio

import pytest

from depfetch.models import Parent, ProjectDescriptor, VersionMetadata
from depfetch.versioning.policy import (
    interpolate,
    is_range,
    iter_ancestry,
    needs_resolution,
    parse_range,
    resolve_latest,
    resolve_placeholder,
    resolve_range,
    resolve_version,
)

METADATA = VersionMetadata(release="2.1", latest="2.2-SNAPSHOT", versions=["1.0", "1.5", "2.0", "2.1"])


def _loader(poms):
    """Parent loader over a dict of Parent coordinate -> descriptor, recording calls."""
    calls = []

    async def load(parent: Parent):
        calls.append(parent)
        return poms.get((parent.group_id, parent.artifact_id, parent.version))

    load.calls = calls
    return load


async def _no_parent(parent):
    return None


class TestClassification:
    """Tests for needs_resolution and is_range."""

    @pytest.mark.parametrize("version", [None, "", "  ", "+", "LATEST", "RELEASE", "[1.0,2.0)", "(,1.0]", "${v}"])
    def test_needs_resolution(self, version):
        """Ensure placeholders, ranges and latest markers need resolution."""
        assert needs_resolution(version)

    @pytest.mark.parametrize("version", ["1.0", "2.3.4-SNAPSHOT", "1.0-beta"])
    def test_concrete(self, version):
        """Ensure plain versions are concrete."""
        assert not needs_resolution(version)

    def test_is_range(self):
        """Ensure only bracketed specs are ranges."""
        assert is_range("[1.0,2.0)")
        assert is_range("(1.0,]")
        assert not is_range("1.0")


class TestLatest:
    """Tests for resolve_latest."""

    def test_release_preferred(self):
        """Ensure release wins over latest."""
        assert resolve_latest(METADATA) == "2.1"

    def test_latest_when_no_release(self):
        """Ensure latest is used without a release."""
        assert resolve_latest(VersionMetadata(latest="3.0", versions=["1.0"])) == "3.0"

    def test_last_listed_version(self):
        """Ensure the last listed version is the final fallback."""
        assert resolve_latest(VersionMetadata(versions=["1.0", "1.1"])) == "1.1"

    def test_missing_metadata(self):
        """Ensure missing or empty metadata yields no version."""
        assert resolve_latest(None) == ""
        assert resolve_latest(VersionMetadata()) == ""


class TestRanges:
    """Tests for range parsing and selection."""

    def test_half_open_range(self):
        """Ensure [1.0,2.0) excludes its upper bound."""
        metadata = VersionMetadata(versions=["1.0", "1.5", "2.0"])
        assert resolve_range("[1.0,2.0)", metadata) == "1.5"

    def test_closed_range(self):
        """Ensure [1.0,2.0] includes its upper bound."""
        metadata = VersionMetadata(versions=["1.0", "1.5", "2.0"])
        assert resolve_range("[1.0,2.0]", metadata) == "2.0"

    def test_open_lower_bound(self):
        """Ensure (,1.5] keeps everything up to 1.5."""
        assert resolve_range("(,1.5]", METADATA) == "1.5"

    def test_exclusive_lower_bound(self):
        """Ensure (2.0,) excludes 2.0 itself."""
        assert resolve_range("(2.0,)", METADATA) == "2.1"

    def test_exact_pin(self):
        """Ensure [1.5] selects exactly that version."""
        assert resolve_range("[1.5]", METADATA) == "1.5"

    def test_union(self):
        """Ensure a union picks the highest version inside any interval."""
        assert resolve_range("[1.0,1.2),[1.5,1.9]", METADATA) == "1.5"

    def test_no_match_falls_back_to_latest(self):
        """Ensure an empty intersection falls back to the latest version."""
        assert resolve_range("[5.0,6.0)", METADATA) == "2.1"

    def test_malformed_range_falls_back_to_latest(self):
        """Ensure an unbalanced range falls back to the latest version."""
        assert resolve_range("[1.0,2.0", METADATA) == "2.1"

    def test_missing_metadata(self):
        """Ensure no metadata means no version."""
        assert resolve_range("[1.0,2.0)", None) == ""

    def test_parse_range_rejects_too_many_bounds(self):
        """Ensure three bounds in one interval are rejected."""
        with pytest.raises(ValueError):
            parse_range("[1,2,3]")


class TestPlaceholders:
    """Tests for placeholder interpolation against descriptors and parents."""

    def test_own_property(self):
        """Ensure a property declared on the POM itself resolves."""
        pom = ProjectDescriptor("app", "org.example", "1.0", properties={"lib.version": "3.2"})
        assert asyncio.run(resolve_placeholder("${lib.version}", pom, _no_parent)) == "3.2"

    def test_builtin_project_version(self):
        """Ensure project.version reads the POM's own version."""
        pom = ProjectDescriptor("app", "org.example", "1.4")
        assert asyncio.run(interpolate("${project.version}", pom, _no_parent)) == "1.4"

    def test_builtin_inherits_from_parent_reference(self):
        """Ensure project.groupId falls back to the parent reference."""
        pom = ProjectDescriptor("app", None, None, parent=Parent("org.parent", "root", "7"))
        assert asyncio.run(interpolate("${project.groupId}:${project.version}", pom, _no_parent)) == "org.parent:7"

    def test_parent_chain_lookup(self):
        """Ensure a property defined two levels up is found."""
        grand = ProjectDescriptor("grand", "org.example", "1", properties={"x": "42"})
        parent = ProjectDescriptor("parent", "org.example", "1", parent=Parent("org.example", "grand", "1"))
        child = ProjectDescriptor("child", "org.example", "1", parent=Parent("org.example", "parent", "1"))
        load = _loader({("org.example", "parent", "1"): parent, ("org.example", "grand", "1"): grand})

        assert asyncio.run(resolve_placeholder("x", child, load)) == "42"
        assert len(load.calls) == 2

    def test_nested_placeholders(self):
        """Ensure a property value that is itself a placeholder is expanded."""
        pom = ProjectDescriptor("app", "org.example", "1.0", properties={"a": "${b}", "b": "9.9"})
        assert asyncio.run(interpolate("v${a}", pom, _no_parent)) == "v9.9"

    def test_self_reference_is_unresolvable(self):
        """Ensure ${a} -> ${a} terminates with no value."""
        pom = ProjectDescriptor("app", "org.example", "1.0", properties={"a": "${a}"})
        assert asyncio.run(resolve_placeholder("a", pom, _no_parent)) == ""

    def test_mutual_reference_is_unresolvable(self):
        """Ensure ${a} -> ${b} -> ${a} terminates with no value."""
        pom = ProjectDescriptor("app", "org.example", "1.0", properties={"a": "${b}", "b": "${a}"})
        assert asyncio.run(resolve_placeholder("a", pom, _no_parent)) == ""

    def test_parent_cycle_terminates(self):
        """Ensure a parent chain that loops back ends the walk."""
        a = ProjectDescriptor("a", "g", "1", parent=Parent("g", "b", "1"))
        b = ProjectDescriptor("b", "g", "1", parent=Parent("g", "a", "1"))
        load = _loader({("g", "a", "1"): a, ("g", "b", "1"): b})

        assert asyncio.run(resolve_placeholder("missing", a, load)) == ""

        async def collect():
            return [p.artifact_id async for p in iter_ancestry(a, load)]

        assert asyncio.run(collect()) == ["a", "b", "a"]

    def test_missing_parent_ends_lookup(self):
        """Ensure an unavailable parent makes the placeholder unresolvable."""
        child = ProjectDescriptor("child", "g", "1", parent=Parent("g", "gone", "1"))
        assert asyncio.run(resolve_placeholder("x", child, _loader({}))) == ""

    def test_max_depth_limits_walk(self):
        """Ensure the parent walk stops at max_depth."""
        parent = ProjectDescriptor("parent", "g", "1", properties={"x": "1"})
        child = ProjectDescriptor("child", "g", "1", parent=Parent("g", "parent", "1"))
        load = _loader({("g", "parent", "1"): parent})
        assert asyncio.run(resolve_placeholder("x", child, load, max_depth=0)) == ""


class TestResolveVersion:
    """Tests for resolve_version, which combines the rules above."""

    def _metadata_loader(self, metadata):
        calls = []

        async def load():
            calls.append(1)
            return metadata

        load.calls = calls
        return load

    def test_concrete_version_skips_metadata(self):
        """Ensure a concrete version is returned untouched."""
        load = self._metadata_loader(METADATA)
        pom = ProjectDescriptor("app", "g", "1")
        assert asyncio.run(resolve_version("1.2", pom, load, _no_parent)) == "1.2"
        assert load.calls == []

    def test_placeholder_to_range(self):
        """Ensure a placeholder expanding to a range is then resolved as a range."""
        pom = ProjectDescriptor("app", "g", "1", properties={"v": "[1.0,2.0)"})
        load = self._metadata_loader(METADATA)
        assert asyncio.run(resolve_version("${v}", pom, load, _no_parent)) == "1.5"

    def test_missing_version_uses_latest(self):
        """Ensure an absent version resolves to the latest release."""
        pom = ProjectDescriptor("app", "g", "1")
        assert asyncio.run(resolve_version(None, pom, self._metadata_loader(METADATA), _no_parent)) == "2.1"

    def test_unresolvable_placeholder(self):
        """Ensure an unknown placeholder yields no version and no metadata fetch."""
        pom = ProjectDescriptor("app", "g", "1")
        load = self._metadata_loader(METADATA)
        assert asyncio.run(resolve_version("${nope}", pom, load, _no_parent)) == ""
        assert load.calls == []
