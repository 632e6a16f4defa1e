# SPDX-License-Identifier: MIT
"""Project container for one generation pass.

The Project holds the build units of a pass together with the per-pass
state (command step names, output index, PCH claims, diagnostics). It
turns a TargetModel into units, adds the global units every build file
has, and resolves everything into a BuildPlan ready for the emitters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fbgen.configure.config import GenerationSettings
from fbgen.core.commands import CommandStepFactory, absolute_path
from fbgen.core.dedup import CommandDeduplicator
from fbgen.core.errors import (
    DependencyCycleError,
    DuplicateUnitError,
    FbgenError,
    GenerateError,
)
from fbgen.core.graph import find_order_violations, sort_by_dependencies
from fbgen.core.nodes import AliasGroup, BuildUnit, CommandStep
from fbgen.core.objects import UnitFactory
from fbgen.core.output_index import OutputIndex
from fbgen.core.paths import Hasher, PathTools, split_executable_and_flags
from fbgen.core.pch import PCHReuseTracker
from fbgen.core.resolver import DependencyGraph, DependencyResolver
from fbgen.core.target import CompilerDefinition, TargetModel

logger = logging.getLogger(__name__)

ALL_UNIT = "all"
NOOP_UNIT = "noop"
REBUILD_UNIT = "rebuild-bff"


@dataclass
class BuildPlan:
    """Result of a generation pass, handed to the emitters.

    Attributes:
        units: Units in dependency order.
        graph: Unit-level adjacency.
        diagnostics: Non-fatal problems found by the pass.
        pch_claims: Precompiled header path to the batch creating it.
        compilers: Compilers used by the units.
    """

    units: list[BuildUnit] = field(default_factory=list)
    graph: DependencyGraph = field(default_factory=DependencyGraph)
    diagnostics: list[FbgenError] = field(default_factory=list)
    pch_claims: dict[str, str] = field(default_factory=dict)
    compilers: list[CompilerDefinition] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [unit.name for unit in self.units]

    def get(self, name: str) -> BuildUnit | None:
        for unit in self.units:
            if unit.name == name:
                return unit
        return None


class Project:
    """Top-level container of a generation pass.

    Example:
        project = Project("demo", build_dir="/work/build")
        project.load(StaticTargetModel.from_file("model.json"))
        plan = project.resolve()

    Attributes:
        name: Project name.
        build_dir: Directory the executor runs in.
        source_dir: Top-level source directory.
        settings: Settings of the pass.
        list_files: Files the build description depends on; the
            "rebuild-bff" step reruns generation when they change.
        compilers: Compilers used by the units.
    """

    def __init__(
        self,
        name: str = "project",
        *,
        build_dir: Path | str = ".",
        source_dir: Path | str = "",
        settings: GenerationSettings | None = None,
        multi_output: bool | None = None,
    ) -> None:
        """Create a project.

        Args:
            name: Project name.
            build_dir: Directory the executor runs in.
            source_dir: Top-level source directory.
            settings: Settings of the pass (default: GenerationSettings()).
            multi_output: Override settings.multi_output, for emitters that
                can declare several outputs per step.
        """
        self.name = name
        self.build_dir = PathTools.normalize(build_dir) or "."
        self.source_dir = PathTools.normalize(source_dir)
        self.settings = settings or GenerationSettings()
        self.multi_output = (
            self.settings.multi_output if multi_output is None else multi_output
        )
        self.list_files: list[str] = []
        self.compilers: list[CompilerDefinition] = []

        self.paths = PathTools(self.build_dir)
        self.hasher = Hasher(width=self.settings.hash_width)
        self.dedup = CommandDeduplicator(self.hasher, self.paths)
        self.pch = PCHReuseTracker()
        self.index = OutputIndex()
        self._units: dict[str, BuildUnit] = {}
        self._diagnostics: list[FbgenError] = []
        self.plan: BuildPlan | None = None

    @property
    def units(self) -> list[BuildUnit]:
        """Units in the order they were added."""
        return list(self._units.values())

    def add_unit(self, unit: BuildUnit) -> BuildUnit:
        """Register a unit.

        Raises:
            DuplicateUnitError: A unit with the same name already exists.
        """
        if unit.name in self._units:
            raise DuplicateUnitError(unit.name)
        self._units[unit.name] = unit
        return unit

    def get_unit(self, name: str) -> BuildUnit | None:
        return self._units.get(name)

    def unit_factory(self) -> UnitFactory:
        """Factory creating units with this pass's naming state."""
        commands = CommandStepFactory(
            self.dedup,
            paths=self.paths,
            hasher=self.hasher,
            touch_command=self.settings.touch_command,
            script_dir=self.settings.script_dir,
            dummy_dir=self.build_dir,
            multi_output=self.multi_output,
        )
        return UnitFactory(commands)

    def load(self, model: TargetModel) -> list[BuildUnit]:
        """Create a unit for every target of a model.

        Args:
            model: The target model.

        Returns:
            The created units.

        Raises:
            DuplicateUnitError: Two targets share a name.
        """
        factory = self.unit_factory()
        created = []
        for name in model.unit_names():
            target = model.describe_unit(name)
            if not target.binary_dir:
                target.binary_dir = self.build_dir
            created.append(self.add_unit(factory.create_unit(target)))
        self.compilers.extend(model.compilers())
        self.list_files.extend(getattr(model, "list_files", []))
        if not self.source_dir:
            self.source_dir = PathTools.normalize(getattr(model, "source_dir", ""))
        logger.info("Loaded %d unit(s) from %s", len(created), model)
        return created

    def add_global_units(self) -> None:
        """Add the "noop", "all" and (if configured) "rebuild-bff" units."""
        if NOOP_UNIT in self._units:
            return

        members = [
            unit.name
            for unit in self._units.values()
            if not unit.is_global and not unit.is_excluded
        ]

        noop = BuildUnit(NOOP_UNIT, is_global=False, is_excluded=True)
        noop.commands.append(
            CommandStep(
                name=NOOP_UNIT,
                executable=self.settings.shell,
                arguments="-c :",
                output=absolute_path("noop.txt", self.build_dir),
                use_stdout_as_output=True,
            )
        )
        self.add_unit(noop)

        if not members:
            members = [NOOP_UNIT]
        all_unit = BuildUnit(ALL_UNIT, is_global=True)
        all_unit.depends_on(*members)
        all_unit.aliases.append(
            AliasGroup(ALL_UNIT, [self._units[m].products_alias for m in members])
        )
        self.add_unit(all_unit)

        if self.settings.regenerate_command:
            program, arguments = split_executable_and_flags(
                self.settings.regenerate_command
            )
            rebuild = BuildUnit(REBUILD_UNIT, is_excluded=True)
            rebuild.commands.append(
                CommandStep(
                    name=REBUILD_UNIT,
                    executable=program,
                    arguments=arguments,
                    inputs=sorted({PathTools.normalize(f) for f in self.list_files}),
                    output=absolute_path(self.settings.build_file, self.build_dir),
                )
            )
            self.add_unit(rebuild)

    def validate(self) -> list[Exception]:
        """Return the diagnostics of the last resolve()."""
        return list(self._diagnostics)

    def resolve(self, strict: bool | None = None) -> BuildPlan:
        """Resolve, order and deduplicate the units.

        Args:
            strict: Raise on any diagnostic (default: settings.strict).

        Returns:
            The BuildPlan.

        Raises:
            GenerateError: strict is set and diagnostics were found.
            IdentityCollisionError: Two different steps share a name.
        """
        if strict is None:
            strict = self.settings.strict
        self.add_global_units()
        units = self.units
        self._diagnostics = []

        self.index = OutputIndex.build(units)
        resolver = DependencyResolver(
            self.index,
            hasher=self.hasher,
            touch_command=self.settings.touch_command,
            dummy_dir=self.build_dir,
        )
        graph = resolver.resolve(units)
        self._diagnostics.extend(resolver.errors)

        result = sort_by_dependencies([u.name for u in units], graph.forward)
        if result.cycle:
            self._diagnostics.append(DependencyCycleError(result.cycle))
        else:
            for dependent, prerequisite in find_order_violations(
                result.order, graph.forward
            ):
                self._diagnostics.append(
                    DependencyCycleError([dependent, prerequisite])
                )
        ordered = [self._units[name] for name in result.order]

        pch_claims = self.pch.apply(ordered)
        self.dedup.deduplicate(ordered)

        if self._diagnostics:
            for error in self._diagnostics:
                logger.warning("Validation: %s", error)
            if strict:
                raise GenerateError(
                    f"Validation failed with {len(self._diagnostics)} error(s). "
                    f"First error: {self._diagnostics[0]}"
                )

        self.plan = BuildPlan(
            units=ordered,
            graph=graph,
            diagnostics=list(self._diagnostics),
            pch_claims=pch_claims,
            compilers=list(self.compilers),
        )
        return self.plan

    def reset(self) -> None:
        """Forget all units and per-pass state before another pass."""
        self._units.clear()
        self._diagnostics = []
        self.plan = None
        self.dedup.clear()
        self.pch.clear()
        self.index = OutputIndex()
        self.compilers.clear()
        self.list_files.clear()

    def __repr__(self) -> str:
        return f"Project({self.name!r}, units={len(self._units)})"


def project_from_model(model: Any, **kwargs: Any) -> Project:
    """Create a Project and load a model into it.

    The project takes its name and build directory from the model when it
    has them.
    """
    kwargs.setdefault("build_dir", getattr(model, "binary_dir", "") or ".")
    project = Project(getattr(model, "name", "project"), **kwargs)
    project.load(model)
    return project
