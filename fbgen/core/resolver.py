# SPDX-License-Identifier: MIT
"""Dependency resolution between build units.

The DependencyResolver runs once every unit of a pass exists. It:

1. Turns path dependencies of compile batches into name dependencies,
   using the OutputIndex to find who produces each path
2. Adds touch steps for compile batches whose remaining path dependencies
   are plain files, so a change to such a file recompiles the batch
3. Wires command steps to the steps producing their inputs
4. Orders compile batches and command steps inside each unit, moving a
   step into an earlier command list when that list needs it
5. Builds the forward and reverse unit adjacency maps

References to unknown units are kept as they are and collected in
``errors``; the resolver never raises for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from fbgen.core.commands import absolute_path, make_touch_step
from fbgen.core.errors import (
    DependencyCycleError,
    FbgenError,
    UnresolvedDependencyError,
)
from fbgen.core.graph import sort_by_dependencies
from fbgen.core.nodes import BuildUnit, CommandStep, CompileBatch
from fbgen.core.objects import objects_alias
from fbgen.core.output_index import OutputIndex
from fbgen.core.paths import Hasher

logger = logging.getLogger(__name__)

# Prefix of the touch steps tracking plain file dependencies of batches
OBJECT_DEPENDENCIES_PREFIX = "object-dependencies-"


@dataclass
class DependencyGraph:
    """Unit-level adjacency.

    Attributes:
        forward: Unit name to the names of its prerequisites.
        reverse: Unit name to the names of the units depending on it.
    """

    forward: dict[str, list[str]] = field(default_factory=dict)
    reverse: dict[str, list[str]] = field(default_factory=dict)

    def add_edge(self, dependent: str, prerequisite: str) -> None:
        deps = self.forward.setdefault(dependent, [])
        if prerequisite not in deps:
            deps.append(prerequisite)
        users = self.reverse.setdefault(prerequisite, [])
        if dependent not in users:
            users.append(dependent)

    def dependencies_of(self, name: str) -> list[str]:
        return list(self.forward.get(name, []))

    def dependents_of(self, name: str) -> list[str]:
        return list(self.reverse.get(name, []))


class DependencyResolver:
    """Resolves the dependencies of a set of units.

    Attributes:
        index: Index of the declared outputs of all units.
        hasher: Hasher used to name touch steps.
        touch_command: Command line of the touch program.
        dummy_dir: Directory receiving the touch steps' placeholder outputs.
        errors: References to unknown units, and steps needed before they
            can be defined, found by the last resolve().

    Example:
        resolver = DependencyResolver(OutputIndex.build(units))
        graph = resolver.resolve(units)
        for error in resolver.errors:
            logger.warning("%s", error)
    """

    def __init__(
        self,
        index: OutputIndex,
        *,
        hasher: Hasher | None = None,
        touch_command: str = "cmake -E touch",
        dummy_dir: str = "",
    ) -> None:
        self.index = index
        self.hasher = hasher or Hasher()
        self.touch_command = touch_command
        self.dummy_dir = dummy_dir
        self.errors: list[FbgenError] = []

    def resolve(self, units: Sequence[BuildUnit]) -> DependencyGraph:
        """Resolve all units in place and return their adjacency.

        Args:
            units: All units of the pass.

        Returns:
            The unit-level DependencyGraph.
        """
        self.errors = []
        names = {unit.name for unit in units}

        for unit in units:
            for batch in unit.compile_batches:
                self._resolve_batch(unit, batch)
            self._add_object_dependency_steps(unit)
            for step in unit.iter_command_steps():
                self._resolve_step(unit, step)
            self._resolve_link(unit, names)
            self._sort_unit(unit)

        graph = DependencyGraph()
        for unit in units:
            graph.forward.setdefault(unit.name, [])
            for dep in unit.dependencies:
                graph.add_edge(unit.name, dep)
                if dep not in names:
                    self.errors.append(UnresolvedDependencyError(unit.name, dep))
        return graph

    def _depend_on_unit(self, unit: BuildUnit, owner: str) -> None:
        if owner != unit.name:
            unit.depends_on(owner)

    def _resolve_batch(self, unit: BuildUnit, batch: CompileBatch) -> None:
        """Convert known path dependencies of a batch into name dependencies."""
        remaining = []
        for path in batch.extra_dependencies:
            owner = self.index.producer(path)
            if owner is None:
                remaining.append(path)
            elif owner.unit != unit.name:
                batch.pre_build_dependencies.add(owner.unit)
                unit.depends_on(owner.unit)
            elif owner.step != batch.name:
                batch.pre_build_dependencies.add(owner.step)
        batch.extra_dependencies = remaining

    def _add_object_dependency_steps(self, unit: BuildUnit) -> None:
        """Add touch steps for batches with plain file dependencies."""
        existing = {step.name for step in unit.commands}
        for batch in unit.compile_batches:
            if not batch.extra_dependencies:
                continue
            for input_file in batch.input_files:
                name = OBJECT_DEPENDENCIES_PREFIX + self.hasher.short(
                    input_file + batch.name
                )
                if name in existing:
                    continue
                output = f"dummy-{name}.txt"
                if self.dummy_dir:
                    output = f"{self.dummy_dir}/{output}"
                step = make_touch_step(
                    name,
                    self.touch_command,
                    input_file,
                    inputs=list(batch.extra_dependencies),
                    output=output,
                    use_stdout=True,
                )
                unit.commands.append(step)
                batch.pre_build_dependencies.add(name)
                logger.debug("Batch %s tracks %s with %s", batch.name, input_file, name)

    def _resolve_step(self, unit: BuildUnit, step: CommandStep) -> None:
        """Wire a command step to the producers of its inputs."""
        for path in step.inputs:
            owner = self.index.producer(path)
            if owner is None or owner.step == step.name:
                continue
            if owner.unit == unit.name:
                step.pre_build_dependencies.add(owner.step)
            else:
                unit.depends_on(owner.unit)

    def _resolve_link(self, unit: BuildUnit, names: set[str]) -> None:
        """Depend on the units producing the link inputs."""
        if unit.link_step is None:
            return
        for library in unit.link_step.libraries:
            owner = self.index.resolve(library)
            if owner is None and "/" not in library and unit.link_step.search_dir:
                owner = self.index.resolve(
                    absolute_path(library, unit.link_step.search_dir)
                )
            if owner is not None:
                self._depend_on_unit(unit, owner)
                continue
            for name in names:
                if library == objects_alias(name):
                    self._depend_on_unit(unit, name)
                    break

    def _hoist_steps(self, unit: BuildUnit) -> None:
        """Move command steps into the earliest list that needs them.

        A unit is written list by list: pre-build steps, custom commands,
        compile batches, pre-link steps, then post-build steps. A name
        must be defined before it is used.
        """
        lists = unit.command_lists()
        batch_needs: set[str] = set()
        for batch in unit.compile_batches:
            batch_needs |= batch.pre_build_dependencies

        moved = True
        while moved:
            moved = False
            for i, steps in enumerate(lists):
                needed = set(batch_needs) if i == 1 else set()
                for step in steps:
                    needed |= step.pre_build_dependencies
                for later in lists[i + 1 :]:
                    hoisted = [step for step in later if step.name in needed]
                    if not hoisted:
                        continue
                    later[:] = [step for step in later if step.name not in needed]
                    steps.extend(hoisted)
                    moved = True
                    for step in hoisted:
                        logger.debug(
                            "Moved step %s of %s earlier", step.name, unit.name
                        )

    def _check_late_references(self, unit: BuildUnit) -> None:
        """Report steps that need a batch or link step written after them."""
        batches = {batch.name for batch in unit.compile_batches}
        link = {unit.link_step.name} if unit.link_step is not None else set()
        groups = [
            (unit.pre_build, batches | link),
            (unit.commands, batches | link),
            (unit.compile_batches, link),
            (unit.pre_link, link),
        ]
        for items, later in groups:
            for item in items:
                for dep in sorted(item.pre_build_dependencies & later):
                    self.errors.append(DependencyCycleError([item.name, dep]))

    def _sort_unit(self, unit: BuildUnit) -> None:
        """Order the batches and each command list of a unit."""
        self._hoist_steps(unit)
        self._check_late_references(unit)
        if unit.compile_batches:
            unit.compile_batches[:] = _sort_named(
                unit.compile_batches,
                {b.name: b.pre_build_dependencies for b in unit.compile_batches},
            )
        for steps in unit.command_lists():
            if len(steps) > 1:
                steps[:] = _sort_named(
                    steps, {s.name: s.pre_build_dependencies for s in steps}
                )


def _sort_named(items: list, dependencies: dict[str, set[str]]) -> list:
    """Sort steps by name using their pre-build dependencies."""
    by_name = {}
    for item in items:
        by_name.setdefault(item.name, item)
    result = sort_by_dependencies(
        list(by_name), {name: sorted(deps) for name, deps in dependencies.items()}
    )
    ordered = [by_name[name] for name in result.order]
    # Same-named duplicates stay next to their first occurrence
    extras = [item for item in items if by_name[item.name] is not item]
    for extra in extras:
        ordered.insert(ordered.index(by_name[extra.name]) + 1, extra)
    return ordered
