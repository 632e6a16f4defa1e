# SPDX-License-Identifier: MIT
"""Mermaid diagram generator for the resolved unit graph.

Draws the build units of a BuildPlan and the dependencies between them as
a Mermaid flowchart. The diagram follows the plan's order, so it shows the
same graph the FASTBuild generator writes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from fbgen.core.errors import GenerateError
from fbgen.core.nodes import BuildUnit, LinkKind
from fbgen.generators.generator import BaseGenerator

if TYPE_CHECKING:
    from fbgen.core.project import BuildPlan, Project

logger = logging.getLogger(__name__)

# Node brackets by link kind
SHAPES = {
    LinkKind.EXECUTABLE: ("[[", "]]"),
    LinkKind.SHARED_LIBRARY: ("([", "])"),
    LinkKind.STATIC_LIBRARY: ("[", "]"),
}


class MermaidGenerator(BaseGenerator):
    """Generator that produces Mermaid flowchart diagrams.

    Example output:
        ```mermaid
        flowchart LR
          mathlib([mathlib])
          app[[app]]
          mathlib --> app
        ```

    Usage:
        generator = MermaidGenerator()
        generator.generate(project, Path("build"))
        # Creates build/deps.mmd
    """

    def __init__(
        self,
        *,
        show_steps: bool = False,
        direction: str = "LR",
        output_filename: str = "deps.mmd",
    ) -> None:
        """Initialize the Mermaid generator.

        Args:
            show_steps: Also draw every unit's steps inside a subgraph.
            direction: Graph direction - "LR", "TB", "RL" or "BT".
            output_filename: Name of the output file.
        """
        super().__init__("mermaid")
        self._show_steps = show_steps
        self._direction = direction
        self._output_filename = output_filename

    @property
    def output_filename(self) -> str:
        return self._output_filename

    def generate(self, project: Project, output_dir: Path) -> None:
        """Generate the Mermaid diagram file."""
        plan = self.plan_for(project)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / self._output_filename

        try:
            with open(output_file, "w") as f:
                self.write(f, plan, project.name)
        except OSError as e:
            raise GenerateError(f"cannot write {output_file}: {e}") from e
        logger.info("Wrote %s", output_file)

    def write(self, f: TextIO, plan: BuildPlan, title: str) -> None:
        """Write the diagram of a plan to an open stream."""
        f.write("---\n")
        f.write(f"title: {title} Dependencies\n")
        f.write("---\n")
        f.write(f"flowchart {self._direction}\n")

        if not plan.units:
            f.write("  empty[No units]\n")
            return

        for unit in plan.units:
            if self._show_steps:
                self._write_step_graph(f, unit)
            else:
                opening, closing = self._shape(unit)
                node_id = self._sanitize_id(unit.name)
                f.write(f"  {node_id}{opening}{unit.name}{closing}\n")

        f.write("\n")

        for unit in plan.units:
            unit_id = self._sanitize_id(unit.name)
            for dep in plan.graph.dependencies_of(unit.name):
                f.write(f"  {self._sanitize_id(dep)} --> {unit_id}\n")

    def _write_step_graph(self, f: TextIO, unit: BuildUnit) -> None:
        """Write a unit as a subgraph of its steps."""
        unit_id = self._sanitize_id(unit.name)
        f.write(f"  subgraph {unit_id}[{unit.name}]\n")
        for batch in unit.compile_batches:
            f.write(f"    {self._step_id(unit, batch.name)}({batch.name})\n")
        for step in unit.iter_command_steps():
            f.write(f"    {self._step_id(unit, step.name)}>{step.name}]\n")
        if unit.link_step is not None:
            opening, closing = self._shape(unit)
            link_id = self._step_id(unit, unit.link_step.name)
            f.write(f"    {link_id}{opening}{unit.link_step.name}{closing}\n")
            for batch in unit.compile_batches:
                f.write(f"    {self._step_id(unit, batch.name)} --> {link_id}\n")
        f.write("  end\n")

    def _step_id(self, unit: BuildUnit, name: str) -> str:
        return self._sanitize_id(f"{unit.name}__{name}")

    def _shape(self, unit: BuildUnit) -> tuple[str, str]:
        """Get Mermaid shape brackets for a unit.

        Returns:
            Tuple of (opening, closing) brackets.
        """
        if unit.link_step is not None:
            return SHAPES[unit.link_step.kind]
        if unit.is_global:
            return ("{{", "}}")
        return ("[", "]")

    def _sanitize_id(self, name: str) -> str:
        """Sanitize a name for use as a Mermaid node ID."""
        result = name
        for char in "/\\.- :+":
            result = result.replace(char, "_")
        # Ensure it starts with a letter
        if result and result[0].isdigit():
            result = "n" + result
        return result
