# SPDX-License-Identifier: MIT
"""Tests for fbgen.core.target."""

import json

import pytest

from fbgen.core.errors import ModelError
from fbgen.core.target import (
    CustomCommand,
    StaticTargetModel,
    TargetDescription,
    TargetModel,
)

MODEL = {
    "name": "demo",
    "binary_dir": "/work/build",
    "source_dir": "/work",
    "list_files": ["/work/model.json"],
    "compilers": [
        {
            "name": "Compiler-C",
            "language": "C",
            "executable": "/usr/bin/cc",
            "compiler_id": "GNU",
        }
    ],
    "targets": [
        {
            "name": "hello",
            "kind": "executable",
            "sources": [
                {"path": "/work/hello.c", "language": "C", "flags": "-c %1 -o %2"}
            ],
            "pch": {"C": {"source": "/work/pch.c", "output": "pch.gch"}},
            "custom_commands": [
                {"outputs": ["gen.h"], "command_lines": ["gen > gen.h"]}
            ],
            "link": {"command": "/usr/bin/cc %1 -o %2", "output": "hello"},
        },
        {"name": "docs", "kind": "utility", "depends": ["hello"]},
    ],
}


class TestTargetDescription:
    def test_from_dict(self):
        target = TargetDescription.from_dict(MODEL["targets"][0])
        assert target.name == "hello"
        assert target.sources[0].flags == "-c %1 -o %2"
        assert target.pch["C"].output == "pch.gch"
        assert target.custom_commands == [
            CustomCommand(outputs=["gen.h"], command_lines=["gen > gen.h"])
        ]
        assert target.link is not None
        assert target.link.output == "hello"

    def test_kinds(self):
        assert TargetDescription("a", kind="static_library").is_compiled
        assert not TargetDescription("a", kind="utility").is_compiled
        assert TargetDescription("all", kind="global").is_global

    def test_unknown_kind(self):
        with pytest.raises(ModelError, match="unknown kind"):
            TargetDescription.from_dict({"name": "x", "kind": "bundle"})

    def test_unknown_field(self):
        """Test that misspelled fields are reported."""
        with pytest.raises(ModelError, match="unknown field"):
            TargetDescription.from_dict({"name": "x", "dependz": []})

    def test_bad_source(self):
        with pytest.raises(ModelError, match="target 'x'"):
            TargetDescription.from_dict({"name": "x", "sources": [{"path": "a.c"}]})

    def test_missing_name(self):
        with pytest.raises(ModelError, match="missing name"):
            TargetDescription.from_dict({"kind": "utility"})


class TestStaticTargetModel:
    def test_from_dict(self):
        model = StaticTargetModel.from_dict(MODEL)
        assert isinstance(model, TargetModel)
        assert model.name == "demo"
        assert model.binary_dir == "/work/build"
        assert model.list_files == ["/work/model.json"]
        assert model.unit_names() == ["hello", "docs"]
        assert model.describe_unit("docs").depends == ["hello"]
        assert [c.name for c in model.compilers()] == ["Compiler-C"]

    def test_unknown_unit(self):
        model = StaticTargetModel.from_dict(MODEL)
        with pytest.raises(ModelError, match="unknown target"):
            model.describe_unit("nope")

    def test_duplicates_listed_twice(self):
        """Test that a repeated name stays visible to the generation pass."""
        model = StaticTargetModel(
            "dup", [TargetDescription("a"), TargetDescription("a")]
        )
        assert model.unit_names() == ["a", "a"]

    def test_from_file(self, tmp_path):
        path = tmp_path / "model.json"
        path.write_text(json.dumps(MODEL))
        model = StaticTargetModel.from_file(path)
        assert model.unit_names() == ["hello", "docs"]

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(ModelError, match="cannot read"):
            StaticTargetModel.from_file(tmp_path / "missing.json")

    def test_from_file_invalid_json(self, tmp_path):
        path = tmp_path / "model.json"
        path.write_text("{not json")
        with pytest.raises(ModelError, match="invalid JSON"):
            StaticTargetModel.from_file(path)

    def test_not_an_object(self):
        with pytest.raises(ModelError):
            StaticTargetModel.from_dict([])
