# SPDX-License-Identifier: MIT
"""
fbgen: lowers a resolved build model into a FASTBuild build file.

fbgen takes the description of a project's targets (compile flags, link
commands and custom commands, all already computed) and writes a
dependency-ordered fbuild.bff for the FASTBuild executor.
"""

from __future__ import annotations

import json
import os

__version__ = "0.3.0"

# Re-export commonly used classes for convenient imports
from fbgen.configure.config import Configure, GenerationSettings  # noqa: E402
from fbgen.core.project import BuildPlan, Project  # noqa: E402
from fbgen.core.target import StaticTargetModel, TargetDescription  # noqa: E402
from fbgen.generators.fastbuild import FastbuildGenerator  # noqa: E402

# Internal storage for CLI variables
_cli_vars: dict[str, str] | None = None


def get_var(name: str, default: str | None = None) -> str | None:
    """Get a variable set on the command line or from environment.

    Variables can be set when invoking fbgen:
        fbgen generate model.json FBGEN_STRICT=1

    The CLI passes them on as JSON in FBGEN_VARS.

    Precedence (highest to lowest):
        1. Command line: fbgen generate ... VAR=value
        2. Environment variable: VAR=value fbgen generate ...

    Args:
        name: Variable name.
        default: Default value if not set.

    Returns:
        The variable value, or default if not set.
    """
    global _cli_vars

    # Lazy-load CLI vars from environment on first access
    if _cli_vars is None:
        fbgen_vars = os.environ.get("FBGEN_VARS")
        if fbgen_vars:
            try:
                _cli_vars = json.loads(fbgen_vars)
            except json.JSONDecodeError:
                _cli_vars = {}
        else:
            _cli_vars = {}

    if name in _cli_vars:
        return _cli_vars[name]

    return os.environ.get(name, default)


def _reset_cli_vars() -> None:
    """Forget the loaded CLI variables (they are reloaded on next access)."""
    global _cli_vars
    _cli_vars = None


__all__ = [
    "__version__",
    "get_var",
    "BuildPlan",
    "Configure",
    "FastbuildGenerator",
    "GenerationSettings",
    "Project",
    "StaticTargetModel",
    "TargetDescription",
]
