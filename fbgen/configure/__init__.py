# SPDX-License-Identifier: MIT
"""Configuration for fbgen generation passes."""

from fbgen.configure.config import Configure, GenerationSettings

__all__ = ["Configure", "GenerationSettings"]
