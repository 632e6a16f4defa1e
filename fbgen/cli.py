# SPDX-License-Identifier: MIT
"""Command-line interface for fbgen."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from fbgen.core.errors import FbgenError

# Set up logging
logger = logging.getLogger("fbgen")


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s: %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(levelname)s: %(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"

    logging.basicConfig(level=level, format=fmt)


def parse_variables(args: list[str]) -> tuple[dict[str, str], list[str]]:
    """Parse KEY=value arguments from a list.

    Args:
        args: List of arguments.

    Returns:
        Tuple of (variables dict, remaining args).
    """
    variables: dict[str, str] = {}
    remaining: list[str] = []

    for arg in args:
        if "=" in arg and not arg.startswith("-"):
            key, _, value = arg.partition("=")
            if key:
                variables[key] = value
            else:
                remaining.append(arg)
        else:
            remaining.append(arg)

    return variables, remaining


def export_variables(variables: dict[str, str]) -> None:
    """Make KEY=value variables visible to fbgen.get_var()."""
    from fbgen import _reset_cli_vars

    if variables:
        os.environ["FBGEN_VARS"] = json.dumps(variables)
        logger.debug("  FBGEN_VARS=%s", os.environ["FBGEN_VARS"])
    _reset_cli_vars()


def load_project(args: argparse.Namespace):
    """Load the model named on the command line into a resolved Project.

    The build directory is -B if given, else the model's binary_dir,
    else "build".
    """
    from fbgen.configure.config import Configure, GenerationSettings
    from fbgen.core.project import Project
    from fbgen.core.target import StaticTargetModel
    from fbgen.generators.fastbuild import FastbuildGenerator

    model = StaticTargetModel.from_file(args.model)
    build_dir = Path(args.build_dir or model.binary_dir or "build").absolute()

    config = Configure(build_dir=build_dir)
    settings = GenerationSettings.load(
        config, strict=True if getattr(args, "strict", False) else None
    )

    project = Project(
        model.name,
        build_dir=build_dir,
        source_dir=model.source_dir,
        settings=settings,
        multi_output=FastbuildGenerator.supports_multi_output,
    )
    project.load(model)
    project.resolve()
    return project, config


def cmd_generate(args: argparse.Namespace) -> int:
    """Write fbuild.bff (and optionally a Mermaid diagram) for a model."""
    from fbgen.generators.fastbuild import FastbuildGenerator
    from fbgen.generators.mermaid import MermaidGenerator

    setup_logging(args.verbose, args.debug)

    variables, remaining = parse_variables(args.extra)
    if remaining:
        logger.error("Unexpected arguments: %s", " ".join(remaining))
        return 1
    export_variables(variables)

    project, config = load_project(args)
    build_dir = Path(project.build_dir)

    FastbuildGenerator(project.settings).generate(project, build_dir)
    if args.mermaid:
        mermaid = Path(args.mermaid)
        MermaidGenerator(output_filename=mermaid.name).generate(
            project, mermaid.parent if mermaid.parent != Path() else build_dir
        )

    project.settings.save(config)
    config.save()
    print(f"Generated {build_dir / project.settings.build_file}")
    return 0


def cmd_order(args: argparse.Namespace) -> int:
    """Print the units of a model in build order."""
    setup_logging(args.verbose, args.debug)
    export_variables({})

    project, _ = load_project(args)
    plan = project.plan or project.resolve()
    for unit in plan.units:
        deps = plan.graph.dependencies_of(unit.name)
        if deps:
            print(f"{unit.name}: {' '.join(deps)}")
        else:
            print(unit.name)
    return 0


def cmd_graph(args: argparse.Namespace) -> int:
    """Write the unit graph of a model as a Mermaid diagram."""
    from fbgen.generators.mermaid import MermaidGenerator

    setup_logging(args.verbose, args.debug)
    export_variables({})

    project, _ = load_project(args)
    plan = project.plan or project.resolve()
    generator = MermaidGenerator(show_steps=args.steps)
    if args.output:
        output = Path(args.output)
        with open(output, "w") as f:
            generator.write(f, plan, project.name)
        logger.info("Wrote %s", output)
    else:
        generator.write(sys.stdout, plan, project.name)
    return 0


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add common arguments to a parser."""
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")
    parser.add_argument(
        "-B",
        "--build-dir",
        default=None,
        help="Build directory (default: the model's binary_dir, or build)",
    )
    parser.add_argument("model", help="Path to the JSON target model")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the fbgen CLI."""
    parser = argparse.ArgumentParser(
        prog="fbgen",
        description="Generate FASTBuild build files from a target model.",
        epilog="Run 'fbgen <command> --help' for command-specific help.",
    )
    from fbgen import __version__

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # fbgen generate
    gen_parser = subparsers.add_parser(
        "generate", help="Generate fbuild.bff from a target model"
    )
    add_common_args(gen_parser)
    gen_parser.add_argument(
        "--strict", action="store_true", help="Fail on any validation problem"
    )
    gen_parser.add_argument(
        "--mermaid", metavar="FILE", help="Also write a Mermaid diagram to FILE"
    )
    gen_parser.add_argument(
        "extra",
        nargs="*",
        help="Settings variables (FBGEN_NAME=value)",
    )
    gen_parser.set_defaults(func=cmd_generate)

    # fbgen order
    order_parser = subparsers.add_parser(
        "order", help="Print the units in build order"
    )
    add_common_args(order_parser)
    order_parser.set_defaults(func=cmd_order)

    # fbgen graph
    graph_parser = subparsers.add_parser(
        "graph", help="Print the unit graph as a Mermaid diagram"
    )
    add_common_args(graph_parser)
    graph_parser.add_argument("-o", "--output", help="Write to a file")
    graph_parser.add_argument(
        "--steps", action="store_true", help="Show the steps of each unit"
    )
    graph_parser.set_defaults(func=cmd_graph)

    # KEY=value pairs may follow options such as -B
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        if getattr(args, "extra", None) is None:
            parser.error(f"unrecognized arguments: {' '.join(unknown)}")
        args.extra = args.extra + unknown

    if args.command is None:
        parser.print_help()
        return 1

    try:
        result: int = args.func(args)
    except FbgenError as e:
        logger.error("%s", e)
        return 1
    return result


if __name__ == "__main__":
    sys.exit(main())
