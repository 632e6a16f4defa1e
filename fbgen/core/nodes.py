# SPDX-License-Identifier: MIT
"""Build graph nodes handed to the emitters.

A BuildUnit is one independently named, orderable node of the build graph
(it maps to a configured target). It owns the steps the executor runs for
that target:

- CompileBatch: sources compiled with one compiler invocation policy
- LinkStep: the link or archive operation producing the primary artifact
- CommandStep: a user-defined command with declared inputs and output
- AliasGroup: a named group of other steps or units

These classes hold data only. They are filled by the per-unit factories
(see fbgen.core.objects and fbgen.core.commands), wired together by the
DependencyResolver and ordered by the Project.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


class LinkKind(Enum):
    """Kind of operation a LinkStep performs."""

    EXECUTABLE = "executable"
    SHARED_LIBRARY = "shared_library"
    STATIC_LIBRARY = "static_library"


@dataclass
class CompileBatch:
    """A group of sources sharing one compiler, flags and PCH policy.

    Attributes:
        name: Unique step name (e.g. "CXX_ObjectGroup_app--1").
        compiler: Compiler reference (e.g. ".Compiler_CXX").
        compiler_options: Flags passed to the compiler.
        key: Identity key of the batch (flags plus PCH usage fingerprint).
        input_files: Sources compiled by this batch.
        output_path: Directory receiving the object files.
        output_extension: Object file extension.
        pch_input_file: Header source used to create the precompiled header.
        pch_output_file: Precompiled header produced or consumed.
        pch_options: Flags used to create the precompiled header.
        extra_outputs: Extra files produced when compiling the sources.
        extra_dependencies: Unresolved path dependencies of the sources.
        pre_build_dependencies: Names that must be built before this batch.
    """

    name: str
    compiler: str = ""
    compiler_options: str = ""
    key: str = ""
    input_files: list[str] = field(default_factory=list)
    output_path: str = ""
    output_extension: str = ".o"
    pch_input_file: str = ""
    pch_output_file: str = ""
    pch_options: str = ""
    extra_outputs: list[str] = field(default_factory=list)
    extra_dependencies: list[str] = field(default_factory=list)
    pre_build_dependencies: set[str] = field(default_factory=set)

    @property
    def creates_pch(self) -> bool:
        """True if this batch still carries PCH creation fields."""
        return bool(self.pch_input_file or self.pch_options)


@dataclass
class LinkStep:
    """One link or archive operation.

    Attributes:
        name: Step name, usually the unit name.
        kind: Executable, shared library or static library.
        linker: Linker (or librarian) program.
        linker_options: Options string for the linker.
        linker_output: Path of the produced artifact.
        linker_type: Linker family hint for the executor.
        compiler: Compiler reference required by archive steps.
        compiler_options: Compiler options required by archive steps.
        libraries: Ordered inputs: unit names, object aliases, object files
            and the unit's own compile batch names.
        search_dir: Directory bare library names are looked up in when
            matching them against declared outputs.
    """

    name: str
    kind: LinkKind
    linker: str = ""
    linker_options: str = ""
    linker_output: str = ""
    linker_type: str = "auto"
    compiler: str = ".Compiler_dummy"
    compiler_options: str = ""
    libraries: list[str] = field(default_factory=list)
    search_dir: str = ""


@dataclass
class CommandStep:
    """One user-defined command.

    Attributes:
        name: Content-derived step name (see CommandDeduplicator).
        executable: Program (or generated script) to run.
        arguments: Argument string passed to the executable.
        working_dir: Directory to run in.
        inputs: Files the step reads.
        output: The single declared output.
        extra_outputs: Further outputs, only used by emitters that can
            declare several outputs per step.
        byproducts: Files produced as a side effect.
        commands: Command lines making up the generated script.
        pre_build_dependencies: Names that must be built before this step.
        always_run: Run on every build (the step has no inputs).
        is_noop: The step has nothing to run and acts as an alias.
        use_stdout_as_output: The executor writes stdout to the output file.
    """

    name: str
    executable: str = ""
    arguments: str = ""
    working_dir: str = ""
    inputs: list[str] = field(default_factory=list)
    output: str = ""
    extra_outputs: list[str] = field(default_factory=list)
    byproducts: list[str] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)
    pre_build_dependencies: set[str] = field(default_factory=set)
    always_run: bool = False
    is_noop: bool = False
    use_stdout_as_output: bool = False

    @property
    def outputs(self) -> list[str]:
        """All declared outputs, primary first."""
        if not self.output:
            return list(self.extra_outputs)
        return [self.output, *self.extra_outputs]

    def fingerprint(self) -> tuple:
        """Normalized content used to tell identical steps apart.

        Two steps with the same name must have the same fingerprint.
        """
        return (
            self.executable,
            self.arguments,
            tuple(self.commands),
            tuple(sorted(set(self.outputs) | set(self.byproducts))),
        )


@dataclass
class AliasGroup:
    """A named group of other steps or units with no action of its own."""

    name: str
    targets: list[str] = field(default_factory=list)

    def add(self, *names: str) -> None:
        for name in names:
            if name not in self.targets:
                self.targets.append(name)


@dataclass
class BuildUnit:
    """One independently named target of the build graph.

    Attributes:
        name: Unique unit name.
        compile_batches: Compile batches, in emission order.
        link_step: The link/archive step, if the unit links anything.
        pre_build: Commands run before anything else in the unit.
        commands: Custom commands attached to the unit's sources.
        pre_link: Commands run after compiling and before linking.
        post_build: Commands run after linking.
        aliases: Alias groups defined by the unit.
        dependencies: Names of units that must be built first.
        variables: Variables defined in the unit's scope.
        is_global: Unit is a global helper target (e.g. "all").
        is_excluded: Unit is not part of the "all" target.
    """

    name: str
    compile_batches: list[CompileBatch] = field(default_factory=list)
    link_step: LinkStep | None = None
    pre_build: list[CommandStep] = field(default_factory=list)
    commands: list[CommandStep] = field(default_factory=list)
    pre_link: list[CommandStep] = field(default_factory=list)
    post_build: list[CommandStep] = field(default_factory=list)
    aliases: list[AliasGroup] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)
    is_global: bool = False
    is_excluded: bool = False

    def depends_on(self, *names: str) -> None:
        """Add unit dependencies, ignoring duplicates and self references."""
        for name in names:
            if name != self.name and name not in self.dependencies:
                self.dependencies.append(name)

    def command_lists(self) -> list[list[CommandStep]]:
        """The unit's command step lists in emission order."""
        return [self.pre_build, self.commands, self.pre_link, self.post_build]

    def iter_command_steps(self) -> Iterator[CommandStep]:
        for steps in self.command_lists():
            yield from steps

    @property
    def products_alias(self) -> str:
        """Name of the alias dependents use to wait for this unit."""
        return f"{self.name}-products"

    def __repr__(self) -> str:
        return f"BuildUnit({self.name!r}, deps={self.dependencies!r})"
