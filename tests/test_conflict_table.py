"""Tests for the conflict table and managed-version set."""

import asyncio

from depfetch.models import Coordinate
from depfetch.resolver.conflict import ConflictTable, ManagedDependencySet

KEY = ("org.example", "lib")


def _coord(version):
    return Coordinate("org.example", "lib", version)


class TestConflictTableClaims:
    """Tests for claim/complete."""

    def test_first_claim_wins_slot(self):
        """Ensure a fresh key is claimed and starts in flight."""
        table = ConflictTable()
        claim = asyncio.run(table.claim(_coord("1.0")))
        assert claim is not None
        assert claim.in_flight
        assert KEY in table
        assert len(table) == 1

    def test_equal_or_lower_version_is_skipped(self):
        """Ensure a second claim at the same or a lower version is refused."""
        async def run():
            table = ConflictTable()
            await table.claim(_coord("1.2"))
            return await table.claim(_coord("1.2")), await table.claim(_coord("1.0"))

        same, lower = asyncio.run(run())
        assert same is None
        assert lower is None

    def test_higher_version_supersedes(self):
        """Ensure a higher version replaces the entry with a new generation."""
        async def run():
            table = ConflictTable()
            old = await table.claim(_coord("1.0"))
            new = await table.claim(_coord("1.2"))
            return table, old, new

        table, old, new = asyncio.run(run())
        assert new is not None
        assert new.generation > old.generation
        assert table.get(KEY).coordinate.version == "1.2"

    def test_superseded_completion_is_discarded(self):
        """Ensure the older claim cannot overwrite the newer entry."""
        async def run():
            table = ConflictTable()
            old = await table.claim(_coord("1.0"))
            new = await table.claim(_coord("1.2"))
            late = await table.complete(old, [("a", "b")])
            current = await table.complete(new, [("c", "d")], extension="aar")
            return table, late, current

        table, late, current = asyncio.run(run())
        assert late is False
        assert current is True
        entry = table.get(KEY)
        assert entry.coordinate.version == "1.2"
        assert entry.dependencies == (("c", "d"),)
        assert entry.extension == "aar"
        assert not entry.in_flight

    def test_completed_entry_still_upgradable(self):
        """Ensure a finished entry is replaced when a higher version appears later."""
        async def run():
            table = ConflictTable()
            first = await table.claim(_coord("1.0"))
            await table.complete(first, [])
            return table, await table.claim(_coord("2.0"))

        table, claim = asyncio.run(run())
        assert claim is not None
        assert table.get(KEY).in_flight

    def test_concurrent_claims_have_one_winner(self):
        """Ensure racing claims at one version produce a single claimant."""
        async def run():
            table = ConflictTable()
            return await asyncio.gather(*(table.claim(_coord("3.0")) for _ in range(20)))

        results = asyncio.run(run())
        assert sum(1 for r in results if r is not None) == 1

    def test_concurrent_claims_settle_on_highest(self):
        """Ensure the highest of many racing versions ends in the table."""
        async def run():
            table = ConflictTable()
            await asyncio.gather(*(table.claim(_coord(f"1.{n}")) for n in (3, 11, 7, 2)))
            return table

        table = asyncio.run(run())
        assert table.get(KEY).coordinate.version == "1.11"


class TestManagedDependencySet:
    """Tests for ManagedDependencySet."""

    def test_first_declaration_wins(self):
        """Ensure entries closer to the root are not overridden."""
        root = ManagedDependencySet({KEY: "1.0"})
        child = root.extend({KEY: "2.0", ("g", "other"): "3.0"})
        assert child.get(KEY) == "1.0"
        assert child.get(("g", "other")) == "3.0"

    def test_extend_does_not_mutate(self):
        """Ensure the parent's set is untouched by a child's additions."""
        root = ManagedDependencySet()
        child = root.extend({KEY: "1.0"})
        assert KEY not in root
        assert KEY in child
        assert len(child) == 1

    def test_extend_with_nothing_new_returns_self(self):
        """Ensure no copy is made when nothing is added."""
        root = ManagedDependencySet({KEY: "1.0"})
        assert root.extend({KEY: "2.0"}) is root
        assert root.extend({("g", "x"): ""}) is root
