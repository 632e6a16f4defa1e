# SPDX-License-Identifier: MIT
"""Build unit assembly.

The factories in this module turn one TargetDescription into one BuildUnit:

- CompileBatchFactory: groups the target's sources into compile batches
- LinkStepFactory: creates the link or archive step
- UnitFactory: assembles batches, link step, command steps, aliases and
  dependencies into the unit

Cross-unit wiring (path dependencies, ordering, PCH reuse) happens later,
once every unit exists (see fbgen.core.resolver and fbgen.core.project).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fbgen.core.commands import (
    POST_BUILD,
    PRE_BUILD,
    PRE_LINK,
    CommandStepFactory,
    absolute_path,
)
from fbgen.core.nodes import AliasGroup, BuildUnit, CompileBatch, LinkKind, LinkStep
from fbgen.core.paths import PathTools, split_executable_and_flags
from fbgen.core.target import PrecompiledHeader, SourceFile, TargetDescription

logger = logging.getLogger(__name__)

# Separates the flags from the PCH marker in batch keys
KEY_SEPARATOR = "{|}"

DEFAULT_OBJECT_EXTENSIONS = {"RC": ".res"}

LINK_KINDS = {
    "executable": LinkKind.EXECUTABLE,
    "shared_library": LinkKind.SHARED_LIBRARY,
    "module_library": LinkKind.SHARED_LIBRARY,
    "static_library": LinkKind.STATIC_LIBRARY,
}


def compiler_variable(name: str) -> str:
    """Build file variable referring to a compiler node ("Compiler-C" -> "Compiler_C")."""
    return name.replace("-", "_")


def objects_alias(unit_name: str) -> str:
    """Name of the alias grouping a unit's compile batches."""
    return f"{unit_name}-objects"


@dataclass
class _ObjectGroup:
    sources: list[str] = field(default_factory=list)
    extra_outputs: set[str] = field(default_factory=set)
    extra_dependencies: set[str] = field(default_factory=set)


class CompileBatchFactory:
    """Groups the sources of a target into compile batches.

    Sources of one language sharing the same flags and PCH usage are
    compiled by one batch per object sub-directory. Batches are named
    "<LANG>_ObjectGroup_<target>-<dir>-<n>".
    """

    def __init__(self, default_extension: str = ".o") -> None:
        self.default_extension = default_extension

    def create_batches(self, target: TargetDescription) -> list[CompileBatch]:
        by_language: dict[str, list[SourceFile]] = {}
        for source in target.sources:
            if source.language:
                by_language.setdefault(source.language, []).append(source)

        batches: dict[str, CompileBatch] = {}
        for language in sorted(by_language):
            for batch in self._language_batches(
                target, language, by_language[language]
            ):
                batches[batch.name] = batch

        names = sorted(batches)
        # C and C++ groups go first
        names.sort(key=lambda name: not name.startswith(("C_", "CXX_")))
        return [batches[name] for name in names]

    def _language_batches(
        self, target: TargetDescription, language: str, sources: list[SourceFile]
    ) -> list[CompileBatch]:
        base = target.binary_dir
        pch = target.pch.get(language)
        pch_source = absolute_path(pch.source, base) if pch else ""

        groups: dict[str, dict[str, _ObjectGroup]] = {}
        for source in sources:
            path = absolute_path(source.path, base)
            if pch and path == pch_source:
                continue
            use_pch = pch is not None and not source.skip_pch
            key = source.flags + KEY_SEPARATOR + ("usePCH" if use_pch else "")
            folder = PathTools.normalize(source.object_dir)
            if folder == ".":
                folder = ""
            group = groups.setdefault(key, {}).setdefault(folder, _ObjectGroup())
            group.sources.append(path)
            group.extra_outputs.update(
                absolute_path(p, base) for p in source.object_outputs
            )
            group.extra_dependencies.update(
                absolute_path(p, base) for p in source.object_depends
            )

        compiler = compiler_variable(
            target.compilers.get(language, f"Compiler-{language}")
        )
        extension = target.object_extensions.get(
            language, DEFAULT_OBJECT_EXTENSIONS.get(language, self.default_extension)
        )
        batches = []
        count = 1
        for key in sorted(groups):
            flags, _, marker = key.partition(KEY_SEPARATOR)
            for folder in sorted(groups[key]):
                group = groups[key][folder]
                name = f"{language}_ObjectGroup_{target.name}-{folder}-{count}"
                count += 1
                batch = CompileBatch(
                    name=name,
                    compiler="." + compiler,
                    compiler_options=flags,
                    key=key,
                    input_files=group.sources,
                    output_path=absolute_path(
                        PathTools.normalize(f"{target.support_dir or '.'}/{folder}"),
                        base,
                    ),
                    output_extension=extension,
                    extra_outputs=sorted(group.extra_outputs),
                    extra_dependencies=sorted(group.extra_dependencies),
                )
                if marker and pch is not None:
                    self._apply_pch(batch, pch, pch_source, base)
                batches.append(batch)
        return batches

    def _apply_pch(
        self, batch: CompileBatch, pch: PrecompiledHeader, source: str, base: str
    ) -> None:
        batch.pch_input_file = source
        batch.pch_options = pch.options
        batch.pch_output_file = absolute_path(pch.output, base)


class LinkStepFactory:
    """Creates the link or archive step of a target."""

    def create_link_step(
        self, target: TargetDescription, batches: list[CompileBatch]
    ) -> LinkStep | None:
        """Create the link step, or None for targets that do not link.

        Args:
            target: The target.
            batches: The target's compile batches, in order.
        """
        kind = LINK_KINDS.get(target.kind)
        if kind is None or target.link is None:
            return None

        linker, options = split_executable_and_flags(target.link.command)
        libraries = []
        for dep in sorted(set(target.link.object_dependencies)):
            if "/" in dep or "\\" in dep:
                dep = absolute_path(dep, target.binary_dir)
            if dep not in libraries:
                libraries.append(dep)
        libraries.extend(batch.name for batch in batches)

        return LinkStep(
            name=target.name,
            kind=kind,
            linker=linker,
            linker_options=options,
            linker_output=absolute_path(target.link.output, target.binary_dir),
            compiler_options=batches[0].compiler_options if batches else "",
            libraries=libraries,
            search_dir=target.binary_dir,
        )


class UnitFactory:
    """Assembles the BuildUnit of a target.

    Attributes:
        commands: Factory for the target's command steps.
        batches: Factory for the target's compile batches.
        links: Factory for the target's link step.
    """

    def __init__(
        self,
        commands: CommandStepFactory,
        batches: CompileBatchFactory | None = None,
        links: LinkStepFactory | None = None,
    ) -> None:
        self.commands = commands
        self.batches = batches or CompileBatchFactory()
        self.links = links or LinkStepFactory()

    def create_unit(self, target: TargetDescription) -> BuildUnit:
        unit = BuildUnit(
            name=target.name,
            is_global=target.is_global,
            is_excluded=target.excluded,
        )
        unit.depends_on(*target.depends)
        if target.pch_reuse_from:
            unit.depends_on(target.pch_reuse_from)
        unit.variables.update(target.variables)

        unit.pre_build = self.commands.create_steps(target, PRE_BUILD)
        unit.pre_link = self.commands.create_steps(target, PRE_LINK)
        unit.post_build = self.commands.create_steps(target, POST_BUILD)
        unit.commands = self.commands.create_steps(target)

        if target.is_compiled:
            if target.support_dir:
                unit.variables.setdefault(
                    "TargetOutDir",
                    self.commands.paths.to_build_path(
                        absolute_path(target.support_dir, target.binary_dir)
                    ),
                )
            unit.compile_batches = self.batches.create_batches(target)
            unit.link_step = self.links.create_link_step(target, unit.compile_batches)
            if unit.compile_batches:
                unit.aliases.append(
                    AliasGroup(
                        objects_alias(unit.name),
                        [batch.name for batch in unit.compile_batches],
                    )
                )

        logger.debug(
            "Unit %s: %d batch(es), %d command step(s), link=%s",
            unit.name,
            len(unit.compile_batches),
            sum(len(steps) for steps in unit.command_lists()),
            unit.link_step is not None,
        )
        return unit
