# SPDX-License-Identifier: MIT
"""Build file generators for fbgen."""

from fbgen.generators.fastbuild import FastbuildGenerator
from fbgen.generators.generator import BaseGenerator, Generator
from fbgen.generators.mermaid import MermaidGenerator

__all__ = [
    "BaseGenerator",
    "FastbuildGenerator",
    "Generator",
    "MermaidGenerator",
]
