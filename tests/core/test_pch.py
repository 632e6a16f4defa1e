# SPDX-License-Identifier: MIT
"""Tests for fbgen.core.pch."""

from fbgen.core.nodes import BuildUnit, CompileBatch
from fbgen.core.pch import PCHReuseTracker

PCH = "/work/build/pch.hxx.gch"


def pch_unit(name, output=PCH):
    unit = BuildUnit(name)
    unit.compile_batches.append(
        CompileBatch(
            f"CXX_ObjectGroup_{name}--1",
            pch_input_file="/work/src/pch.cxx",
            pch_output_file=output,
            pch_options="-x c++-header",
        )
    )
    return unit


class TestPCHReuseTracker:
    def test_first_batch_keeps_creation_fields(self):
        """Test that exactly one of three batches creates the header."""
        units = [pch_unit("a"), pch_unit("b"), pch_unit("c")]
        claims = PCHReuseTracker().apply(units)

        creators = [u.name for u in units if u.compile_batches[0].creates_pch]
        assert creators == ["a"]
        assert claims == {PCH: "CXX_ObjectGroup_a--1"}

    def test_consumers_keep_output(self):
        """Test that later batches still name the header they consume."""
        units = [pch_unit("a"), pch_unit("b")]
        PCHReuseTracker().apply(units)
        batch = units[1].compile_batches[0]
        assert batch.pch_output_file == PCH
        assert batch.pch_input_file == ""
        assert batch.pch_options == ""

    def test_different_headers_independent(self):
        units = [pch_unit("a"), pch_unit("b", output="/work/build/other.gch")]
        PCHReuseTracker().apply(units)
        assert all(u.compile_batches[0].creates_pch for u in units)

    def test_normalized_paths_match(self):
        units = [pch_unit("a"), pch_unit("b", output="/work/build/./pch.hxx.gch")]
        PCHReuseTracker().apply(units)
        assert not units[1].compile_batches[0].creates_pch

    def test_batches_without_pch_untouched(self):
        unit = BuildUnit("plain")
        unit.compile_batches.append(CompileBatch("C_ObjectGroup_plain--1"))
        assert PCHReuseTracker().apply([unit]) == {}

    def test_apply_twice_is_stable(self):
        """Test that re-applying keeps the original creator."""
        units = [pch_unit("a"), pch_unit("b")]
        tracker = PCHReuseTracker()
        tracker.apply(units)
        tracker.apply(units)
        assert units[0].compile_batches[0].creates_pch
        assert tracker.owner(PCH) == "CXX_ObjectGroup_a--1"

    def test_clear(self):
        tracker = PCHReuseTracker()
        tracker.apply([pch_unit("a")])
        tracker.clear()
        assert tracker.owner(PCH) is None
