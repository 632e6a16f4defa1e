# SPDX-License-Identifier: MIT
"""Generator protocol for build file generation.

Generators take a resolved Project and write files for an executor or a
viewer (e.g., a FASTBuild .bff file, a Mermaid diagram).
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from fbgen.core.project import BuildPlan, Project


@runtime_checkable
class Generator(Protocol):
    """Protocol for build file generators.

    A Generator takes a Project and writes files to the output directory.
    supports_multi_output tells the generation pass whether a command step
    may declare several outputs, or must be split into one producer plus a
    touch step per extra output.
    """

    @property
    def name(self) -> str:
        """Generator name (e.g., 'fastbuild', 'mermaid')."""
        ...

    @property
    def supports_multi_output(self) -> bool:
        """True if a step may declare several outputs."""
        ...

    def generate(self, project: Project, output_dir: Path) -> None:
        """Generate files for a project.

        Args:
            project: The project to generate for.
            output_dir: Directory to write output files to.
        """
        ...


class BaseGenerator:
    """Base class for generators with common functionality."""

    supports_multi_output = False

    def __init__(self, name: str) -> None:
        """Initialize a generator.

        Args:
            name: Generator name.
        """
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def plan_for(self, project: Project) -> BuildPlan:
        """The project's last BuildPlan, resolving the project if needed."""
        if project.plan is None:
            return project.resolve()
        return project.plan

    def generate(self, project: Project, output_dir: Path) -> None:
        """Generate build files. Subclasses must implement."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"
