# SPDX-License-Identifier: MIT
"""Configuration for fbgen.

Configure is a small JSON cache kept in the build directory between runs.
GenerationSettings holds the knobs of a generation pass; it is built from
defaults, the cache, and FBGEN_* variables (command line KEY=value pairs or
the environment).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Prefix of the variables overriding settings (FBGEN_BUILD_FILE=...)
VAR_PREFIX = "FBGEN_"

_TRUE = {"1", "true", "yes", "on"}


class Configure:
    """Configuration cache of a build directory.

    Example:
        config = Configure(build_dir=Path("build"))
        config.set("settings", {"strict": True})
        config.save()

    Attributes:
        build_dir: Directory for build outputs and cache.
    """

    def __init__(
        self,
        *,
        build_dir: Path | str = "build",
        cache_file: str = "fbgen_config.json",
    ) -> None:
        """Create a configure context.

        Args:
            build_dir: Directory for build outputs.
            cache_file: Name of the cache file within build_dir.
        """
        self.build_dir = Path(build_dir)
        self._cache_file = cache_file
        self._cache: dict[str, Any] = {}

        self._load_cache()

    @property
    def cache_path(self) -> Path:
        """Path of the cache file."""
        return self.build_dir / self._cache_file

    def _load_cache(self) -> None:
        """Load configuration from cache file if it exists."""
        if self.cache_path.exists():
            try:
                with open(self.cache_path) as f:
                    self._cache = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable cache %s: %s", self.cache_path, e)
                self._cache = {}

    def save(self, path: Path | None = None) -> None:
        """Save configuration to cache file.

        Args:
            path: Optional path override for cache file.
        """
        cache_path = path or self.cache_path
        cache_path.parent.mkdir(parents=True, exist_ok=True)

        with open(cache_path, "w") as f:
            json.dump(self._cache, f, indent=2, default=str)
            f.write("\n")

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def __repr__(self) -> str:
        return f"Configure(build_dir={self.build_dir})"


@dataclass
class GenerationSettings:
    """Settings of a generation pass.

    Attributes:
        build_file: Name of the build file written in the build directory.
        cache_path: Executor cache directory (default: <build>/fbuild.cache).
        hash_width: Number of hex characters in content-derived names.
        touch_command: Command line used to touch files.
        shell: Shell running the "noop" step.
        script_dir: Directory (below the build dir) for command scripts.
        multi_output: The executor accepts several outputs per step.
        strict: Fail the pass on any diagnostic.
        regenerate_command: Command regenerating the build file; adds the
            "rebuild-bff" step when set.
        environment: Names of environment variables forwarded to the
            executor.
    """

    build_file: str = "fbuild.bff"
    cache_path: str = ""
    hash_width: int = 7
    touch_command: str = "cmake -E touch"
    shell: str = "/bin/bash"
    script_dir: str = "fbgen-scripts"
    multi_output: bool = False
    strict: bool = False
    regenerate_command: str = ""
    environment: list[str] = field(default_factory=list)

    @classmethod
    def load(
        cls, config: Configure | None = None, **overrides: Any
    ) -> GenerationSettings:
        """Build settings from defaults, the cache, variables and overrides.

        Precedence (highest to lowest):
            1. overrides
            2. FBGEN_<NAME> set on the command line or in the environment
            3. The "settings" entry of the cache
            4. Defaults

        Args:
            config: Configuration cache.
            **overrides: Explicit values.

        Returns:
            The settings.
        """
        from fbgen import get_var

        settings = cls()
        cached = config.get("settings", {}) if config is not None else {}
        for f in fields(cls):
            value: Any = cached.get(f.name)
            var = get_var(VAR_PREFIX + f.name.upper())
            if var is not None:
                value = var
            if f.name in overrides and overrides[f.name] is not None:
                value = overrides[f.name]
            if value is not None:
                setattr(settings, f.name, _convert(value, getattr(settings, f.name)))
        return settings

    def save(self, config: Configure) -> None:
        """Store the settings in the cache (not written to disk)."""
        config.set("settings", {f.name: getattr(self, f.name) for f in fields(self)})


def _convert(value: Any, default: Any) -> Any:
    """Convert a raw value to the type of the default."""
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in _TRUE
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, list):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return list(value)
    return str(value)
