# SPDX-License-Identifier: MIT
"""Index of declared outputs.

Maps every path a unit declares it produces (extra compile outputs, command
outputs and byproducts, link artifacts) to the unit and step that produce
it. The DependencyResolver uses the index to turn path dependencies into
name dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from fbgen.core.nodes import BuildUnit
from fbgen.core.paths import PathTools

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputOwner:
    """The producer of an indexed path.

    Attributes:
        unit: Name of the owning unit.
        step: Name of the step inside the unit that produces the path.
    """

    unit: str
    step: str


class OutputIndex:
    """Lookup from normalized output path to its producer.

    The first unit registering a path owns it. Later registrations of the
    same path are ignored with a warning.

    Example:
        index = OutputIndex.build(units)
        owner = index.resolve("/work/build/gen.c")  # -> "codegen"
    """

    def __init__(self) -> None:
        self._owners: dict[str, OutputOwner] = {}

    @classmethod
    def build(cls, units: Iterable[BuildUnit]) -> OutputIndex:
        """Index the outputs of all units."""
        index = cls()
        for unit in units:
            index.add_unit(unit)
        return index

    def add_unit(self, unit: BuildUnit) -> None:
        """Register every declared output of a unit."""
        for batch in unit.compile_batches:
            for path in batch.extra_outputs:
                self.add(path, unit.name, batch.name)
        for step in unit.iter_command_steps():
            if step.is_noop:
                continue
            for path in (*step.outputs, *step.byproducts):
                self.add(path, unit.name, step.name)
        if unit.link_step is not None and unit.link_step.linker_output:
            self.add(unit.link_step.linker_output, unit.name, unit.link_step.name)

    def add(self, path: str, unit: str, step: str) -> None:
        key = PathTools.normalize(path)
        if not key:
            return
        current = self._owners.get(key)
        if current is None:
            self._owners[key] = OutputOwner(unit, step)
        elif current.unit != unit and current.step != step:
            logger.warning(
                "Output %s declared by '%s' is already produced by '%s'",
                key,
                unit,
                current.unit,
            )

    def resolve(self, path: str) -> str | None:
        """Return the name of the unit producing path, or None."""
        owner = self.producer(path)
        return owner.unit if owner else None

    def producer(self, path: str) -> OutputOwner | None:
        """Return the unit and step producing path, or None."""
        return self._owners.get(PathTools.normalize(path))

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and PathTools.normalize(path) in self._owners

    def __iter__(self) -> Iterator[str]:
        return iter(self._owners)

    def __len__(self) -> int:
        return len(self._owners)
