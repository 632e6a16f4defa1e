# SPDX-License-Identifier: MIT
"""Tests for fbgen.core.dedup."""

import hashlib

import pytest

from fbgen.core.dedup import STEP_PREFIX, CommandDeduplicator
from fbgen.core.errors import IdentityCollisionError
from fbgen.core.nodes import BuildUnit, CommandStep
from fbgen.core.paths import PathTools


def make_step(name, output="/work/build/gen.c", commands=("gen > gen.c",)):
    return CommandStep(
        name=name,
        executable="/work/build/fbgen-scripts/" + name + ".sh",
        output=output,
        commands=list(commands),
    )


class TestIdentity:
    def test_format(self):
        """Test that names are "cc-" plus seven hex characters."""
        dedup = CommandDeduplicator()
        name = dedup.identity(["/work/build/gen.c"])
        assert name.startswith(STEP_PREFIX)
        assert len(name) == len(STEP_PREFIX) + 7
        int(name[len(STEP_PREFIX):], 16)

    def test_hash_input(self):
        """Test the text hashed for a step with a disambiguator."""
        dedup = CommandDeduplicator(paths=PathTools("/work/build"))
        name = dedup.identity(["/work/build/a.c", "/work/build/b.c"], extra="app")
        text = "app" + "-a.c" + "-b.c"
        assert name == "cc-" + hashlib.sha256(text.encode()).hexdigest()[:7]

    def test_same_outputs_same_identity(self):
        """Test that equivalent paths give the same identity."""
        dedup = CommandDeduplicator()
        first = dedup.identity(["/work/build/./gen.c"])
        second = dedup.identity(["/work/build/sub/../gen.c"])
        assert first == second

    def test_different_output_changes_identity(self):
        dedup = CommandDeduplicator()
        assert dedup.identity(["/work/build/a.c"]) != dedup.identity(
            ["/work/build/b.c"]
        )

    def test_byproducts_change_identity(self):
        dedup = CommandDeduplicator()
        plain = dedup.identity(["/work/build/a.c"])
        with_byproduct = dedup.identity(["/work/build/a.c"], ["/work/build/a.log"])
        assert plain != with_byproduct

    def test_extra_disambiguates(self):
        """Test that steps without outputs are told apart by extra."""
        dedup = CommandDeduplicator()
        assert dedup.identity([], extra="app_PreBuild_1") != dedup.identity(
            [], extra="app_PreBuild_2"
        )


class TestRegister:
    def test_first_registration(self):
        dedup = CommandDeduplicator()
        assert dedup.register(make_step("cc-1234567")) is True
        assert "cc-1234567" in dedup
        assert len(dedup) == 1

    def test_duplicate_with_same_content(self):
        """Test that an identical step is reported as a duplicate."""
        dedup = CommandDeduplicator()
        dedup.register(make_step("cc-1234567"))
        assert dedup.register(make_step("cc-1234567")) is False
        assert len(dedup) == 1

    def test_collision_raises(self):
        """Test that the same name with other content raises."""
        dedup = CommandDeduplicator()
        dedup.register(make_step("cc-1234567"))
        with pytest.raises(IdentityCollisionError) as exc_info:
            dedup.register(make_step("cc-1234567", commands=("other",)))
        assert exc_info.value.name == "cc-1234567"

    def test_clear(self):
        dedup = CommandDeduplicator()
        dedup.register(make_step("cc-1234567"))
        dedup.clear()
        assert len(dedup) == 0
        assert dedup.register(make_step("cc-1234567", commands=("other",)))


class TestDeduplicate:
    def test_keeps_first_occurrence(self):
        """Test that a step shared by two units is kept by the first one."""
        first = BuildUnit("first")
        second = BuildUnit("second")
        first.commands.append(make_step("cc-aaaaaaa"))
        second.commands.append(make_step("cc-aaaaaaa"))
        second.commands.append(make_step("cc-bbbbbbb", output="/work/build/b.c"))

        removed = CommandDeduplicator().deduplicate([first, second])

        assert removed == 1
        assert [s.name for s in first.commands] == ["cc-aaaaaaa"]
        assert [s.name for s in second.commands] == ["cc-bbbbbbb"]

    def test_across_command_lists(self):
        unit = BuildUnit("app")
        unit.pre_build.append(make_step("cc-aaaaaaa"))
        unit.post_build.append(make_step("cc-aaaaaaa"))

        CommandDeduplicator().deduplicate([unit])

        assert len(unit.pre_build) == 1
        assert unit.post_build == []

    def test_nothing_to_remove(self):
        unit = BuildUnit("app")
        unit.commands.append(make_step("cc-aaaaaaa"))
        assert CommandDeduplicator().deduplicate([unit]) == 0
