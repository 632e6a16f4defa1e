# SPDX-License-Identifier: MIT
"""Seed description of targets, as produced by the configuration side.

Everything in this module is already resolved by an external collaborator:
compile flags, link command lines, custom command lines and dependency paths
are opaque strings. The generation pass only groups, names, wires and
orders them.

A TargetModel hands out one TargetDescription per configured target. The
StaticTargetModel implementation holds them in memory and can be loaded
from a JSON document:

    {
        "name": "demo",
        "binary_dir": "/work/build",
        "compilers": [{"name": "Compiler-C", "language": "C",
                       "executable": "/usr/bin/cc", "compiler_id": "GNU"}],
        "targets": [
            {"name": "hello", "kind": "executable",
             "sources": [{"path": "/work/hello.c", "language": "C",
                          "flags": "-O2 -c %1 -o %2"}],
             "link": {"command": "/usr/bin/cc %1 -o %2",
                      "output": "/work/build/hello"}}
        ]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Protocol, get_args, runtime_checkable

from fbgen.core.errors import ModelError

# Valid target kinds
TargetKind = Literal[
    "executable",
    "shared_library",
    "module_library",
    "static_library",
    "object_library",
    "utility",
    "global",
]

# Kinds whose sources are compiled into compile batches
COMPILED_KINDS = frozenset(
    {
        "executable",
        "shared_library",
        "module_library",
        "static_library",
        "object_library",
    }
)


def _from_mapping(cls: type, data: Any, what: str) -> dict[str, Any]:
    """Check a JSON mapping against a dataclass and return known keys."""
    if not isinstance(data, dict):
        raise ModelError(f"{what}: expected an object, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ModelError(f"{what}: unknown field(s) {', '.join(unknown)}")
    return dict(data)


@dataclass
class SourceFile:
    """A source file with its resolved compile options.

    Attributes:
        path: Full path of the source.
        language: Language name (e.g. "C", "CXX", "RC").
        flags: Compiler options for this source, placeholders included.
        object_dir: Sub-directory of the object file below the target's
            support directory.
        object_outputs: Extra files produced when compiling the source.
        object_depends: Extra files the compilation depends on.
        skip_pch: Do not use the target's precompiled header.
    """

    path: str
    language: str
    flags: str = ""
    object_dir: str = ""
    object_outputs: list[str] = field(default_factory=list)
    object_depends: list[str] = field(default_factory=list)
    skip_pch: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> SourceFile:
        return cls(**_from_mapping(cls, data, "source"))


@dataclass
class PrecompiledHeader:
    """Precompiled header settings for one language of a target.

    Attributes:
        source: Source compiled to create the header.
        output: The precompiled header file.
        options: Compiler options used to create it.
    """

    source: str
    output: str
    options: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> PrecompiledHeader:
        return cls(**_from_mapping(cls, data, "pch"))


@dataclass
class CustomCommand:
    """A user-defined command.

    Attributes:
        outputs: Declared outputs.
        byproducts: Files produced as a side effect.
        depends: Files (or outputs of other commands) the command reads.
        command_lines: Shell command lines to run, in order.
        working_dir: Directory to run in (defaults to the binary dir).
        symbolic: Outputs that never exist on disk.
    """

    outputs: list[str] = field(default_factory=list)
    byproducts: list[str] = field(default_factory=list)
    depends: list[str] = field(default_factory=list)
    command_lines: list[str] = field(default_factory=list)
    working_dir: str = ""
    symbolic: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> CustomCommand:
        return cls(**_from_mapping(cls, data, "command"))


@dataclass
class LinkDescription:
    """How a target's primary artifact is linked.

    Attributes:
        command: Full link (or archive) command line.
        output: Path of the produced artifact.
        object_dependencies: Object aliases and object files to link in.
    """

    command: str
    output: str
    object_dependencies: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> LinkDescription:
        return cls(**_from_mapping(cls, data, "link"))


@dataclass
class CompilerDefinition:
    """A compiler known to the build.

    Attributes:
        name: Compiler node name (e.g. "Compiler-CXX").
        language: Language compiled.
        executable: Compiler executable.
        compiler_id: Vendor id (e.g. "GNU", "Clang", "MSVC").
        extra_files: Files the compiler needs when distributed.
        use_light_cache: Enable the executor's light caching mode.
    """

    name: str
    language: str
    executable: str
    compiler_id: str = ""
    extra_files: list[str] = field(default_factory=list)
    use_light_cache: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> CompilerDefinition:
        return cls(**_from_mapping(cls, data, "compiler"))


@dataclass
class TargetDescription:
    """Everything the generation pass needs to know about one target.

    Attributes:
        name: Target name.
        kind: Target kind.
        sources: Object sources of the target.
        pch: Precompiled header per language.
        pch_reuse_from: Target whose precompiled header is reused.
        custom_commands: Commands producing (generated) sources.
        pre_build: Commands run before building.
        pre_link: Commands run before linking.
        post_build: Commands run after linking.
        depends: Names of targets this one depends on.
        link: Link description, for targets producing an artifact.
        binary_dir: Build directory the target belongs to.
        support_dir: Directory for the target's object files.
        compilers: Compiler reference per language.
        object_extensions: Object file extension per language.
        variables: Extra variables for the target scope.
        excluded: Target is excluded from "all".
    """

    name: str
    kind: TargetKind = "executable"
    sources: list[SourceFile] = field(default_factory=list)
    pch: dict[str, PrecompiledHeader] = field(default_factory=dict)
    pch_reuse_from: str | None = None
    custom_commands: list[CustomCommand] = field(default_factory=list)
    pre_build: list[CustomCommand] = field(default_factory=list)
    pre_link: list[CustomCommand] = field(default_factory=list)
    post_build: list[CustomCommand] = field(default_factory=list)
    depends: list[str] = field(default_factory=list)
    link: LinkDescription | None = None
    binary_dir: str = ""
    support_dir: str = ""
    compilers: dict[str, str] = field(default_factory=dict)
    object_extensions: dict[str, str] = field(default_factory=dict)
    variables: dict[str, str] = field(default_factory=dict)
    excluded: bool = False

    @property
    def is_compiled(self) -> bool:
        return self.kind in COMPILED_KINDS

    @property
    def is_global(self) -> bool:
        return self.kind == "global"

    @classmethod
    def from_dict(cls, data: Any) -> TargetDescription:
        """Build a description from its JSON form."""
        values = _from_mapping(cls, data, "target")
        name = values.get("name")
        if not name:
            raise ModelError("target: missing name")
        kind = values.get("kind", "executable")
        if kind not in get_args(TargetKind):
            raise ModelError(f"target '{name}': unknown kind '{kind}'")
        try:
            values["sources"] = [
                SourceFile.from_dict(s) for s in values.get("sources", [])
            ]
            values["pch"] = {
                lang: PrecompiledHeader.from_dict(p)
                for lang, p in values.get("pch", {}).items()
            }
            for key in ("custom_commands", "pre_build", "pre_link", "post_build"):
                values[key] = [CustomCommand.from_dict(c) for c in values.get(key, [])]
            if values.get("link") is not None:
                values["link"] = LinkDescription.from_dict(values["link"])
            return cls(**values)
        except (TypeError, ModelError) as e:
            raise ModelError(f"target '{name}': {e}") from e


@runtime_checkable
class TargetModel(Protocol):
    """Source of target descriptions for a generation pass."""

    def unit_names(self) -> list[str]:
        """Names of all configured targets, in a deterministic order."""
        ...

    def describe_unit(self, name: str) -> TargetDescription:
        """Return the description of one target."""
        ...

    def compilers(self) -> list[CompilerDefinition]:
        """Compilers used by the targets."""
        ...


class StaticTargetModel:
    """In-memory TargetModel.

    Attributes:
        name: Project name.
        source_dir: Top-level source directory.
        binary_dir: Top-level build directory.
        list_files: Configuration files the build description was made from;
            the regeneration step depends on them.
    """

    def __init__(
        self,
        name: str = "project",
        targets: list[TargetDescription] | None = None,
        compilers: list[CompilerDefinition] | None = None,
        *,
        source_dir: str = "",
        binary_dir: str = "",
        list_files: list[str] | None = None,
    ) -> None:
        self.name = name
        self.source_dir = source_dir
        self.binary_dir = binary_dir
        self.list_files = list(list_files or [])
        self._targets: dict[str, TargetDescription] = {}
        self._compilers = list(compilers or [])
        self._duplicates: list[TargetDescription] = []
        for target in targets or []:
            self.add(target)

    def add(self, target: TargetDescription) -> TargetDescription:
        """Add a target description.

        A name seen twice is kept twice in unit_names() so that the
        generation pass can report the duplicate.
        """
        if target.name in self._targets:
            self._duplicates.append(target)
        else:
            self._targets[target.name] = target
        return target

    def unit_names(self) -> list[str]:
        return list(self._targets) + [t.name for t in self._duplicates]

    def describe_unit(self, name: str) -> TargetDescription:
        try:
            return self._targets[name]
        except KeyError:
            raise ModelError(f"unknown target: {name}") from None

    def compilers(self) -> list[CompilerDefinition]:
        return list(self._compilers)

    @classmethod
    def from_dict(cls, data: Any) -> StaticTargetModel:
        """Build a model from its JSON form."""
        if not isinstance(data, dict):
            raise ModelError("model: expected an object")
        model = cls(
            name=data.get("name", "project"),
            compilers=[CompilerDefinition.from_dict(c) for c in data.get("compilers", [])],
            source_dir=data.get("source_dir", ""),
            binary_dir=data.get("binary_dir", ""),
            list_files=data.get("list_files", []),
        )
        for target in data.get("targets", []):
            model.add(TargetDescription.from_dict(target))
        return model

    @classmethod
    def from_file(cls, path: Path | str) -> StaticTargetModel:
        """Load a model from a JSON file."""
        path = Path(path)
        try:
            with open(path) as f:
                data = json.load(f)
        except OSError as e:
            raise ModelError(f"cannot read model {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ModelError(f"invalid JSON in {path}: {e}") from e
        return cls.from_dict(data)

    def __repr__(self) -> str:
        return f"StaticTargetModel({self.name!r}, targets={len(self._targets)})"
