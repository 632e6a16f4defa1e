# SPDX-License-Identifier: MIT
"""Tests for fbgen.core.resolver."""

from fbgen.core.errors import DependencyCycleError, UnresolvedDependencyError
from fbgen.core.nodes import BuildUnit, CommandStep, CompileBatch, LinkKind, LinkStep
from fbgen.core.output_index import OutputIndex
from fbgen.core.resolver import (
    OBJECT_DEPENDENCIES_PREFIX,
    DependencyGraph,
    DependencyResolver,
)


def codegen_unit():
    unit = BuildUnit("codegen")
    unit.commands.append(
        CommandStep(name="cc-gen0001", output="/work/build/gen.h", commands=["gen"])
    )
    return unit


def app_unit(*extra_dependencies):
    unit = BuildUnit("app")
    unit.compile_batches.append(
        CompileBatch(
            "C_ObjectGroup_app--1",
            input_files=["/work/a.c"],
            extra_dependencies=list(extra_dependencies),
        )
    )
    return unit


def resolve(units):
    resolver = DependencyResolver(OutputIndex.build(units), dummy_dir="/work/build")
    graph = resolver.resolve(units)
    return resolver, graph


class TestDependencyGraph:
    def test_add_edge_mirrors(self):
        graph = DependencyGraph()
        graph.add_edge("app", "lib")
        graph.add_edge("app", "lib")
        assert graph.dependencies_of("app") == ["lib"]
        assert graph.dependents_of("lib") == ["app"]
        assert graph.dependencies_of("lib") == []


class TestBatchDependencies:
    def test_other_unit_output(self):
        """Test that a path produced by another unit becomes a name."""
        units = [codegen_unit(), app_unit("/work/build/gen.h")]
        resolve(units)

        batch = units[1].compile_batches[0]
        assert batch.pre_build_dependencies == {"codegen"}
        assert batch.extra_dependencies == []
        assert units[1].dependencies == ["codegen"]

    def test_same_unit_step_output(self):
        """Test that a path produced inside the unit names the step."""
        unit = app_unit("/work/build/gen.h")
        unit.commands.extend(codegen_unit().commands)
        resolve([unit])

        batch = unit.compile_batches[0]
        assert batch.pre_build_dependencies == {"cc-gen0001"}
        assert batch.extra_dependencies == []
        assert unit.dependencies == []

    def test_own_output_dropped(self):
        unit = app_unit("/work/build/a.d")
        unit.compile_batches[0].extra_outputs = ["/work/build/a.d"]
        resolve([unit])
        batch = unit.compile_batches[0]
        assert batch.extra_dependencies == []
        assert batch.pre_build_dependencies == set()

    def test_plain_file_gets_touch_step(self):
        """Test that an unknown file dependency is tracked by a touch step."""
        unit = app_unit("/work/config.h")
        resolve([unit])

        batch = unit.compile_batches[0]
        assert batch.extra_dependencies == ["/work/config.h"]
        assert len(unit.commands) == 1
        step = unit.commands[0]
        assert step.name.startswith(OBJECT_DEPENDENCIES_PREFIX)
        assert step.inputs == ["/work/config.h"]
        assert step.output == f"/work/build/dummy-{step.name}.txt"
        assert step.use_stdout_as_output
        assert step.arguments == "-E touch /work/a.c"
        assert batch.pre_build_dependencies == {step.name}

    def test_resolve_twice_adds_one_touch_step(self):
        unit = app_unit("/work/config.h")
        index = OutputIndex.build([unit])
        DependencyResolver(index).resolve([unit])
        DependencyResolver(index).resolve([unit])
        assert len(unit.commands) == 1


class TestStepDependencies:
    def test_input_from_other_unit(self):
        user = BuildUnit("user")
        user.commands.append(
            CommandStep(
                name="cc-use0001",
                inputs=["/work/build/gen.h"],
                output="/work/build/out.txt",
                commands=["use"],
            )
        )
        units = [codegen_unit(), user]
        _, graph = resolve(units)
        assert user.dependencies == ["codegen"]
        assert graph.dependents_of("codegen") == ["user"]

    def test_input_from_same_unit_orders_steps(self):
        """Test that steps are sorted so producers come first."""
        unit = BuildUnit("u")
        consumer = CommandStep(
            name="cc-b",
            inputs=["/work/build/a.txt"],
            output="/work/build/b.txt",
            commands=["b"],
        )
        producer = CommandStep(name="cc-a", output="/work/build/a.txt", commands=["a"])
        unit.commands.extend([consumer, producer])
        resolve([unit])

        assert [s.name for s in unit.commands] == ["cc-a", "cc-b"]
        assert consumer.pre_build_dependencies == {"cc-a"}

    def test_own_output_as_input_ignored(self):
        unit = BuildUnit("u")
        step = CommandStep(
            name="cc-a",
            inputs=["/work/build/a.txt"],
            output="/work/build/a.txt",
            commands=["a"],
        )
        unit.commands.append(step)
        resolve([unit])
        assert step.pre_build_dependencies == set()


class TestLinkDependencies:
    def test_library_output(self):
        lib = BuildUnit("lib")
        lib.link_step = LinkStep(
            "lib", LinkKind.STATIC_LIBRARY, linker_output="/work/build/libm.a"
        )
        app = BuildUnit("app")
        app.link_step = LinkStep(
            "app", LinkKind.EXECUTABLE, libraries=["/work/build/libm.a"]
        )
        resolve([app, lib])
        assert app.dependencies == ["lib"]

    def test_objects_alias(self):
        objs = BuildUnit("objs")
        app = BuildUnit("app")
        app.link_step = LinkStep(
            "app", LinkKind.EXECUTABLE, libraries=["objs-objects", "/work/ext.o"]
        )
        resolve([app, objs])
        assert app.dependencies == ["objs"]

    def test_bare_library_name(self):
        """Test that a library given by file name finds its producer."""
        core = BuildUnit("core")
        core.link_step = LinkStep(
            "core", LinkKind.STATIC_LIBRARY, linker_output="/work/build/libcore.a"
        )
        app = BuildUnit("app")
        app.link_step = LinkStep(
            "app",
            LinkKind.EXECUTABLE,
            libraries=["libcore.a"],
            search_dir="/work/build",
        )
        _, graph = resolve([app, core])
        assert app.dependencies == ["core"]
        assert app.link_step.libraries == ["libcore.a"]
        assert graph.dependents_of("core") == ["app"]


class TestStepPlacement:
    """Steps are moved before the first list that uses them."""

    def test_custom_command_needed_by_pre_build(self):
        unit = BuildUnit("t")
        unit.commands.append(
            CommandStep(name="cc-gen", output="/work/build/gen.h", commands=["gen"])
        )
        unit.pre_build.append(
            CommandStep(
                name="cc-pre",
                inputs=["/work/build/gen.h"],
                output="/work/build/pre.txt",
                commands=["pre"],
            )
        )
        resolver, _ = resolve([unit])

        assert [step.name for step in unit.pre_build] == ["cc-gen", "cc-pre"]
        assert unit.commands == []
        assert resolver.errors == []

    def test_post_build_step_needed_by_batch(self):
        unit = app_unit("/work/build/cfg.h")
        unit.post_build.append(
            CommandStep(name="cc-cfg", output="/work/build/cfg.h", commands=["cfg"])
        )
        resolve([unit])

        assert [step.name for step in unit.commands] == ["cc-cfg"]
        assert unit.post_build == []
        assert unit.compile_batches[0].pre_build_dependencies == {"cc-cfg"}

    def test_pre_build_needing_link_output_is_reported(self):
        unit = BuildUnit("app")
        unit.link_step = LinkStep(
            "app", LinkKind.EXECUTABLE, linker_output="/work/build/app"
        )
        unit.pre_build.append(
            CommandStep(
                name="cc-pre",
                inputs=["/work/build/app"],
                output="/work/build/pre.txt",
                commands=["pre"],
            )
        )
        resolver, _ = resolve([unit])

        assert len(resolver.errors) == 1
        error = resolver.errors[0]
        assert isinstance(error, DependencyCycleError)
        assert error.cycle == ["cc-pre", "app"]


class TestUnresolved:
    def test_collected_not_raised(self):
        """Test that unknown unit names are reported, not raised."""
        unit = BuildUnit("app")
        unit.depends_on("missing")
        resolver, graph = resolve([unit])

        assert unit.dependencies == ["missing"]
        assert len(resolver.errors) == 1
        error = resolver.errors[0]
        assert isinstance(error, UnresolvedDependencyError)
        assert error.unit == "app"
        assert error.reference == "missing"
        assert graph.dependencies_of("app") == ["missing"]

    def test_errors_reset(self):
        unit = BuildUnit("app")
        unit.depends_on("missing")
        resolver, _ = resolve([unit])
        unit.dependencies.clear()
        resolver.resolve([unit])
        assert resolver.errors == []
