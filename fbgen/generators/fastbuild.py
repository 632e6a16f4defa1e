# SPDX-License-Identifier: MIT
"""FASTBuild generator.

Writes the units of a BuildPlan as an fbuild.bff file, plus one shell
script per command step that has something to run.

Each unit becomes a scope holding, in order: pre-build steps, custom
command steps, object lists, pre-link steps, the link step, post-build
steps and aliases. Every group of steps depends on the group before it.
A unit with an artifact is referred to through its "<unit>-products"
alias, which names the unit's final steps.
"""

from __future__ import annotations

import logging
import os
import posixpath
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, TextIO

from fbgen import __version__
from fbgen.core.errors import GenerateError, UnresolvedDependencyError
from fbgen.core.nodes import BuildUnit, CommandStep, CompileBatch, LinkKind, LinkStep
from fbgen.core.objects import compiler_variable
from fbgen.core.paths import PathTools
from fbgen.core.project import NOOP_UNIT
from fbgen.generators.generator import BaseGenerator

if TYPE_CHECKING:
    from fbgen.configure.config import GenerationSettings
    from fbgen.core.project import BuildPlan, Project
    from fbgen.core.target import CompilerDefinition

logger = logging.getLogger(__name__)

INDENT = "  "

DIVIDER = "// " + "=" * 77 + "\n"

# FASTBuild compiler families by vendor id, for C-like languages
COMPILER_FAMILIES = {
    "MSVC": "msvc",
    "Clang": "clang",
    "AppleClang": "clang",
    "GNU": "gcc",
    "NVIDIA": "cuda-nvcc",
}


def quote(text: str, quotation: str = "'") -> str:
    """Quote a string for the build file, escaping embedded quotes."""
    return quotation + text.replace(quotation, "^" + quotation) + quotation


def wrap(
    values: Iterable[str],
    prefix: str = "'",
    suffix: str = "'",
    escape_dollar: bool = True,
) -> list[str]:
    """Quote each value, escaping "$" unless told otherwise."""
    result = []
    for value in values:
        text = prefix + value + suffix
        if escape_dollar:
            text = text.replace("$", "^$")
        result.append(text)
    return result


def compiler_family(compiler: CompilerDefinition) -> str:
    """FASTBuild family of a compiler ("custom" when unknown)."""
    if compiler.language in ("C", "CXX", "CUDA"):
        return COMPILER_FAMILIES.get(compiler.compiler_id, "custom")
    return "custom"


class BffWriter:
    """Low-level writer for FASTBuild syntax."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def write(self, text: str) -> None:
        self.stream.write(text)

    def indent(self, count: int) -> None:
        self.stream.write(INDENT * count)

    def divider(self) -> None:
        self.stream.write(DIVIDER)

    def comment(self, comment: str, indent: int = 0) -> None:
        if not comment:
            return
        self.write("\n")
        self.indent(indent)
        self.write("/" * 45 + "\n")
        for line in comment.split("\n"):
            self.indent(indent)
            self.write(f"// {line}\n")
        self.write("\n")

    def variable(self, key: str, value: str, indent: int = 0, op: str = "=") -> None:
        self.indent(indent)
        self.write(f".{key} {op} {value}\n")

    def command(self, command: str, value: str = "", indent: int = 0) -> None:
        self.indent(indent)
        self.write(command)
        if value:
            self.write(f"({value})")
        self.write("\n")

    def array(
        self, key: str, values: list[str], indent: int = 0, op: str = "="
    ) -> None:
        self.variable(key, "", indent, op)
        self.indent(indent)
        self.write("{\n")
        for i, value in enumerate(values):
            self.indent(indent + 1)
            self.write(value)
            if i < len(values) - 1:
                self.write(",")
            self.write("\n")
        self.indent(indent)
        self.write("}\n")

    def open_block(self, indent: int) -> None:
        self.indent(indent)
        self.write("{\n")

    def close_block(self, indent: int) -> None:
        self.indent(indent)
        self.write("}\n")


class FastbuildGenerator(BaseGenerator):
    """Generator that produces a FASTBuild fbuild.bff file.

    FASTBuild steps declare exactly one output, so supports_multi_output
    is False: the generation pass splits multi-output commands before they
    reach this generator.

    Usage:
        generator = FastbuildGenerator()
        generator.generate(project, Path("build"))
        # Creates build/fbuild.bff and build/fbgen-scripts/*.sh
    """

    supports_multi_output = False

    def __init__(self, settings: GenerationSettings | None = None) -> None:
        """Initialize the FASTBuild generator.

        Args:
            settings: Generation settings (default: the project's).
        """
        super().__init__("fastbuild")
        self._settings = settings
        self._paths = PathTools()
        self._units: dict[str, BuildUnit] = {}
        self._writer: BffWriter | None = None

    def generate(self, project: Project, output_dir: Path) -> None:
        """Generate fbuild.bff and the command scripts.

        Args:
            project: Project to generate for (resolved if needed).
            output_dir: Directory to write the build file to.

        Raises:
            GenerateError: Units reference unknown units, or a file cannot
                be written.
        """
        settings = self._settings or project.settings
        plan = self.plan_for(project)
        self._check_references(plan)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        self._paths = PathTools(project.build_dir)
        self._units = {unit.name: unit for unit in plan.units}

        self._write_scripts(plan, output_dir)

        build_file = output_dir / settings.build_file
        try:
            with open(build_file, "w") as f:
                self._writer = BffWriter(f)
                self._write_header(project, settings)
                self._write_compilers(plan)
                self._write_units(plan)
        except OSError as e:
            raise GenerateError(f"cannot write {build_file}: {e}") from e
        finally:
            self._writer = None
        logger.info("Wrote %s", build_file)

    def _check_references(self, plan: BuildPlan) -> None:
        """Fail with every reference to an unknown unit at once."""
        unresolved = [
            error
            for error in plan.diagnostics
            if isinstance(error, UnresolvedDependencyError)
        ]
        if unresolved:
            lines = "\n".join(f"  {error}" for error in unresolved)
            raise GenerateError(
                f"{len(unresolved)} unresolved dependency reference(s):\n{lines}"
            )

    def _path(self, path: str) -> str:
        return self._paths.to_build_path(path)

    def _paths_of(self, values: Iterable[str]) -> list[str]:
        return [self._path(value) for value in values if value]

    # Scripts

    def _write_scripts(self, plan: BuildPlan, output_dir: Path) -> None:
        """Write the shell script of every command step with commands."""
        for unit in plan.units:
            for step in unit.iter_command_steps():
                if step.is_noop or not step.commands:
                    continue
                script = Path(step.executable)
                if not script.is_absolute():
                    script = output_dir / script
                try:
                    script.parent.mkdir(parents=True, exist_ok=True)
                    with open(script, "w") as f:
                        f.write("set -e\n\n")
                        for line in step.commands:
                            f.write(line + "\n")
                    os.chmod(script, 0o755)
                except OSError as e:
                    raise GenerateError(f"cannot write script {script}: {e}") from e
                logger.debug("Wrote script %s", script)

    # Header and compilers

    def _write_header(self, project: Project, settings: GenerationSettings) -> None:
        w = self._w
        w.write("// fbgen generated file: DO NOT EDIT!\n")
        w.write(f'// Generated by "{self.name}" generator, fbgen {__version__}\n\n')
        w.write("// This file contains all the build statements\n\n")

        w.divider()
        w.write("// Helper variables\n\n")
        for i in (1, 2, 3):
            w.variable(f"FB_INPUT_{i}_PLACEHOLDER", quote(f'"%{i}"'))

        cache_path = settings.cache_path or posixpath.join(
            project.build_dir, "fbuild.cache"
        )
        environment = [
            f"{name}={os.environ[name]}"
            for name in settings.environment
            if name in os.environ
        ]
        w.divider()
        w.write("// Settings\n\n")
        w.command("Settings")
        w.write("{\n")
        w.array("Environment", wrap(environment), 1)
        w.variable("CachePath", quote(PathTools.normalize(cache_path)), 1)
        w.write("}\n")

    def _write_compilers(self, plan: BuildPlan) -> None:
        w = self._w
        compilers = sorted(plan.compilers, key=lambda c: c.language)
        for compiler in compilers:
            w.divider()
            w.write("// Compilers\n\n")
            family = compiler_family(compiler)
            w.command("Compiler", quote(compiler.name))
            w.write("{\n")
            root, base = posixpath.split(PathTools.normalize(compiler.executable))
            if root:
                w.variable("Root", quote(root), 1)
                w.variable("Executable", quote(f"$Root$/{base}"), 1)
            else:
                w.variable("Executable", quote(compiler.executable), 1)
            w.variable("CompilerFamily", quote(family), 1)
            if compiler.use_light_cache:
                w.variable("UseLightCache_Experimental", "true", 1)
            if family == "clang":
                w.variable("ClangRewriteIncludes", "false", 1)
            if compiler.extra_files:
                w.array(
                    "ExtraFiles", wrap(compiler.extra_files, escape_dollar=False), 1
                )
            w.write("}\n")
            w.variable(compiler_variable(compiler.name), quote(compiler.name))
        # Library steps need a compiler even when they compile nothing
        if compilers:
            w.variable("Compiler_dummy", quote(compilers[0].name))

    # Units

    @property
    def _w(self) -> BffWriter:
        if self._writer is None:
            raise GenerateError("no build file is open for writing")
        return self._writer

    def _write_units(self, plan: BuildPlan) -> None:
        for unit in plan.units:
            self._write_unit(unit)

    def _write_unit(self, unit: BuildUnit) -> None:
        w = self._w
        w.comment(f"Target definition: {unit.name}")
        w.write("{\n")
        for key in sorted(unit.variables):
            w.variable(key, quote(unit.variables[key]), 1)

        nodes: set[str] = set()
        deps: set[str] = set()
        deps = self._write_execs(unit.pre_build, deps)
        nodes |= deps
        deps = self._write_execs(unit.commands, deps)
        nodes |= deps
        object_lists = self._write_object_lists(unit.compile_batches, deps)
        nodes |= object_lists
        deps = self._write_execs(unit.pre_link, object_lists or deps)
        nodes |= deps

        # Wait for the products of the units this one depends on
        deps = set(deps)
        for dep in unit.dependencies:
            other = self._units.get(dep)
            if other is not None and not other.is_global:
                deps.add(other.products_alias)
            else:
                deps.add(dep)
        linked = self._write_linker(
            unit.link_step, {batch.name for batch in unit.compile_batches}, deps
        )
        nodes |= linked
        products = self._write_execs(unit.post_build, linked or deps)
        nodes |= products

        for alias in unit.aliases:
            self._write_alias(alias.name, alias.targets)
            nodes.add(alias.name)

        if not unit.is_global:
            if unit.name not in nodes:
                # A unit with nothing to build stands for the noop step
                self._write_alias(unit.name, products or {NOOP_UNIT})
            products = products - object_lists - linked
            if not products:
                products = {unit.name}
            self._write_alias(unit.products_alias, products)
        elif not unit.aliases and unit.name not in products:
            self._write_alias(unit.name, products)
        w.write("}\n")

    def _write_execs(self, steps: list[CommandStep], deps: set[str]) -> set[str]:
        """Write command steps.

        Returns:
            Names of the written steps, or deps if there were none.
        """
        w = self._w
        written: set[str] = set()
        for step in steps:
            written.add(step.name)
            if step.is_noop:
                # A noop step with nothing to wait for stands for the noop unit
                self._write_alias(
                    step.name, (step.pre_build_dependencies | deps) or {NOOP_UNIT}
                )
                continue

            inputs = self._paths_of(step.inputs)
            for dep in sorted(deps):
                if dep not in inputs:
                    inputs.append(dep)

            w.command("Exec", quote(step.name), 1)
            w.open_block(1)
            if step.pre_build_dependencies:
                w.array(
                    "PreBuildDependencies", wrap(sorted(step.pre_build_dependencies)), 2
                )
            w.variable("ExecExecutable", quote(self._path(step.executable)), 2)
            if step.arguments:
                w.variable("ExecArguments", quote(step.arguments), 2)
            if step.working_dir:
                w.variable("ExecWorkingDir", quote(step.working_dir), 2)
            if inputs:
                w.array("ExecInput", wrap(inputs), 2)
            if step.use_stdout_as_output:
                w.variable("ExecUseStdOutAsOutput", "true", 2)
            w.variable("ExecAlwaysShowOutput", "true", 2)
            w.variable("ExecOutput", quote(self._path(step.output)), 2)
            if step.always_run:
                w.variable("ExecAlways", "true", 2)
            w.close_block(1)

        # Forward dependencies to the next group
        return written or deps

    def _write_object_lists(
        self, batches: list[CompileBatch], deps: set[str]
    ) -> set[str]:
        w = self._w
        written: set[str] = set()
        for batch in batches:
            written.add(batch.name)
            w.command("ObjectList", quote(batch.name), 1)
            w.open_block(1)
            prebuild = deps | batch.pre_build_dependencies
            if prebuild:
                w.array("PreBuildDependencies", wrap(sorted(prebuild)), 2)
            w.variable("Compiler", batch.compiler, 2)
            w.variable("CompilerOptions", quote(batch.compiler_options), 2)
            w.variable("CompilerOutputPath", quote(self._path(batch.output_path)), 2)
            w.variable("CompilerOutputExtension", quote(batch.output_extension), 2)
            w.variable("CompilerOutputKeepBaseExtension", "true", 2)
            w.array("CompilerInputFiles", wrap(self._paths_of(batch.input_files)), 2)
            if batch.pch_input_file:
                w.variable("PCHInputFile", quote(self._path(batch.pch_input_file)), 2)
                w.variable("PCHOptions", quote(batch.pch_options), 2)
            if batch.pch_output_file:
                w.variable(
                    "PCHOutputFile", quote(self._path(batch.pch_output_file)), 2
                )
            w.close_block(1)
        return written

    def _write_linker(
        self, link: LinkStep | None, batch_names: set[str], deps: set[str]
    ) -> set[str]:
        if link is None:
            return set()
        w = self._w
        libraries = [
            lib if lib in batch_names or "/" not in lib else self._path(lib)
            for lib in link.libraries
        ]
        prebuild = deps - set(link.libraries)
        output = self._path(link.linker_output)

        if link.kind in (LinkKind.EXECUTABLE, LinkKind.SHARED_LIBRARY):
            alias = "" if link.name == output else quote(link.name)
            function = "Executable" if link.kind == LinkKind.EXECUTABLE else "DLL"
            w.command(function, alias, 1)
            w.open_block(1)
            if prebuild:
                w.array("PreBuildDependencies", wrap(sorted(prebuild)), 2)
            w.variable("Linker", quote(link.linker), 2)
            w.variable("LinkerOptions", quote(link.linker_options), 2)
            w.variable("LinkerOutput", quote(output), 2)
            w.array("Libraries", wrap(libraries), 2)
            w.variable("LinkerLinkObjects", "false", 2)
            w.variable("LinkerType", quote(link.linker_type), 2)
            w.close_block(1)
        else:
            w.command("Library", quote(link.name), 1)
            w.open_block(1)
            if prebuild:
                w.array("PreBuildDependencies", wrap(sorted(prebuild)), 2)
            w.variable("Librarian", quote(link.linker), 2)
            w.variable("LibrarianOptions", quote(link.linker_options), 2)
            w.array("LibrarianAdditionalInputs", wrap(libraries), 2)
            w.variable("LibrarianOutput", quote(output), 2)
            w.variable("LibrarianType", quote(link.linker_type), 2)
            w.variable("Compiler", link.compiler, 2)
            w.variable("CompilerOptions", quote(link.compiler_options), 2)
            w.variable("CompilerOutputPath", "'/dummy/'", 2)
            w.close_block(1)
        return {link.name}

    def _write_alias(self, name: str, targets: Iterable[str]) -> None:
        targets = sorted(targets) if isinstance(targets, set) else list(targets)
        if not targets:
            return
        w = self._w
        w.command("Alias", quote(name), 1)
        w.open_block(1)
        w.array("Targets", wrap(targets), 2)
        w.close_block(1)
