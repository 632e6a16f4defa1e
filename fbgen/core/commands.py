# SPDX-License-Identifier: MIT
"""Command step creation.

Turns the custom commands of a TargetDescription into CommandSteps:

- Commands attached to sources ("custom commands") are named after their
  outputs alone, so the same command listed by two targets gets one name.
- Pre-build, pre-link and post-build commands are named after their
  outputs and "<target>_<Step>_<n>", and run in declaration order.

Every step with something to run gets a shell script; the step runs the
script. A step that produces several files while the emitter only supports
one output per step is split into a producer plus one touch step per extra
output.
"""

from __future__ import annotations

import logging
import shlex

from fbgen.core.dedup import CommandDeduplicator
from fbgen.core.graph import sort_by_dependencies
from fbgen.core.nodes import CommandStep
from fbgen.core.paths import Hasher, PathTools, split_executable_and_flags
from fbgen.core.target import CustomCommand, TargetDescription

logger = logging.getLogger(__name__)

# Build steps of a target, as named in step disambiguators
PRE_BUILD = "PreBuild"
PRE_LINK = "PreLink"
POST_BUILD = "PostBuild"


def absolute_path(path: str, base: str) -> str:
    """Anchor a relative path at base and normalize it."""
    if not path or not base or PathTools.is_absolute(path):
        return PathTools.normalize(path)
    return PathTools.normalize(f"{base}/{path}")


def make_touch_step(
    name: str,
    touch_command: str,
    target_file: str,
    *,
    inputs: list[str] | None = None,
    output: str = "",
    working_dir: str = "",
    use_stdout: bool = False,
) -> CommandStep:
    """Create a step that touches a file when its inputs change.

    Args:
        name: Step name.
        touch_command: Command line of the touch program (e.g. "cmake -E touch").
        target_file: File to touch.
        inputs: Files whose changes trigger the step.
        output: Declared output (defaults to target_file).
        working_dir: Directory to run in.
        use_stdout: Write the program's stdout to the output.
    """
    program, flags = split_executable_and_flags(touch_command)
    arguments = " ".join(part for part in (flags, shlex.quote(target_file)) if part)
    inputs = list(inputs or [])
    return CommandStep(
        name=name,
        executable=program,
        arguments=arguments,
        working_dir=working_dir,
        inputs=inputs,
        output=output or target_file,
        always_run=not inputs,
        use_stdout_as_output=use_stdout,
    )


class CommandStepFactory:
    """Creates the command steps of targets.

    Attributes:
        dedup: Deduplicator naming and registering the steps.
        paths: Path helper of the pass.
        hasher: Hasher used for touch step names.
        touch_command: Command line of the touch program.
        script_dir: Directory (below dummy_dir) for scripts.
        dummy_dir: Directory receiving placeholder outputs.
        multi_output: The emitter can declare several outputs per step.
    """

    def __init__(
        self,
        dedup: CommandDeduplicator,
        *,
        paths: PathTools | None = None,
        hasher: Hasher | None = None,
        touch_command: str = "cmake -E touch",
        script_dir: str = "fbgen-scripts",
        dummy_dir: str = "",
        multi_output: bool = False,
    ) -> None:
        self.dedup = dedup
        self.paths = paths or dedup.paths
        self.hasher = hasher or dedup.hasher
        self.touch_command = touch_command
        self.script_dir = script_dir
        self.dummy_dir = dummy_dir
        self.multi_output = multi_output

    def create_steps(
        self, target: TargetDescription, build_step: str = ""
    ) -> list[CommandStep]:
        """Create the steps of one command list of a target.

        Args:
            target: The target.
            build_step: PRE_BUILD, PRE_LINK, POST_BUILD, or "" for the
                custom commands attached to sources.

        Returns:
            The steps in execution order, split touch steps included.
        """
        if build_step == PRE_BUILD:
            commands = target.pre_build
        elif build_step == PRE_LINK:
            commands = target.pre_link
        elif build_step == POST_BUILD:
            commands = target.post_build
        else:
            commands = self._sorted_custom_commands(target)

        steps: list[CommandStep] = []
        producers: dict[str, str] = {}
        previous: str | None = None
        for i, command in enumerate(commands, start=1):
            extra = ""
            if build_step:
                unit_path = self.paths.to_build_path(
                    absolute_path(target.name, target.binary_dir)
                )
                extra = f"{unit_path}_{build_step}_{i}"
            step = self._create_step(target, command, extra)

            # Build steps run in declaration order
            if build_step and previous is not None:
                step.pre_build_dependencies.add(previous)
            for dep in step.inputs:
                producer = producers.get(dep)
                if producer is not None and producer != step.name:
                    step.pre_build_dependencies.add(producer)
            previous = step.name

            for path in self._declared_outputs(target, command):
                producers.setdefault(path, step.name)

            if self.dedup.register(step):
                logger.debug("Created command step %s for %s", step.name, target.name)
            steps.append(step)
            for touch in self._split_outputs(step):
                self.dedup.register(touch)
                steps.append(touch)
        return steps

    def _declared_outputs(
        self, target: TargetDescription, command: CustomCommand
    ) -> list[str]:
        return [
            absolute_path(path, target.binary_dir)
            for path in (*command.outputs, *command.byproducts)
        ]

    def _sorted_custom_commands(self, target: TargetDescription) -> list[CustomCommand]:
        """Order custom commands so producers come before their users."""
        commands = target.custom_commands
        owners: dict[str, int] = {}
        for index, command in enumerate(commands):
            for path in command.outputs:
                owners.setdefault(absolute_path(path, target.binary_dir), index)

        dependencies: dict[int, list[int]] = {}
        for index, command in enumerate(commands):
            for dep in command.depends:
                owner = owners.get(absolute_path(dep, target.binary_dir))
                if owner is not None and owner != index:
                    dependencies.setdefault(index, []).append(owner)

        result = sort_by_dependencies(list(range(len(commands))), dependencies)
        return [commands[index] for index in result.order]

    def _create_step(
        self, target: TargetDescription, command: CustomCommand, extra: str
    ) -> CommandStep:
        base = target.binary_dir
        symbolic = {absolute_path(p, base) for p in command.symbolic}
        all_outputs = [absolute_path(p, base) for p in command.outputs]
        byproducts = [absolute_path(p, base) for p in command.byproducts]
        if not extra and not all_outputs and not byproducts:
            extra = target.name
        name = self.dedup.identity(all_outputs, byproducts, extra)

        inputs = [absolute_path(dep, base) for dep in command.depends if dep]
        working_dir = PathTools.normalize(command.working_dir or base)

        lines: list[str] = []
        if command.command_lines:
            if working_dir:
                lines.append(f"cd {shlex.quote(working_dir)}")
            lines.extend(command.command_lines)

        step = CommandStep(
            name=name,
            working_dir=working_dir,
            inputs=inputs,
            byproducts=[p for p in byproducts if p not in symbolic],
            commands=lines,
            always_run=not inputs,
            is_noop=not lines,
        )
        if step.is_noop:
            return step

        step.executable = absolute_path(
            f"{self.script_dir}/{name}.sh", self.dummy_dir or base
        )
        produced = [p for p in all_outputs if p not in symbolic] + step.byproducts
        if not produced:
            step.output = absolute_path(f"dummy-out-{name}.txt", self.dummy_dir)
            step.use_stdout_as_output = True
        else:
            step.output = produced[0]
            step.extra_outputs = [p for p in produced[1:] if p != produced[0]]
        return step

    def _split_outputs(self, step: CommandStep) -> list[CommandStep]:
        """Create touch steps for the extra outputs of a step.

        Does nothing when the emitter supports several outputs per step.
        """
        if self.multi_output or not step.extra_outputs:
            return []
        touches = []
        for output in step.extra_outputs:
            touch = make_touch_step(
                f"{step.name}-{self.hasher.short(output)}",
                self.touch_command,
                output,
                inputs=[step.output],
                working_dir=step.working_dir,
            )
            touch.pre_build_dependencies.add(step.name)
            touches.append(touch)
        step.extra_outputs = []
        return touches
