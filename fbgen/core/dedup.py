# SPDX-License-Identifier: MIT
"""Content-addressed naming and deduplication of command steps.

Several units may emit the very same command (for instance a generated
header listed as a source of two targets). Each command step is named after
what it produces, so identical steps get identical names and are written
once.
"""

from __future__ import annotations

import logging
from typing import Iterable

from fbgen.core.errors import IdentityCollisionError
from fbgen.core.nodes import BuildUnit, CommandStep
from fbgen.core.paths import Hasher, PathTools

logger = logging.getLogger(__name__)

# Prefix of every content-derived command step name
STEP_PREFIX = "cc-"


class CommandDeduplicator:
    """Names command steps and tracks which names were already emitted.

    One instance belongs to one generation pass.

    Attributes:
        hasher: Hasher used for the step names.
        paths: Path normalization helper.
    """

    def __init__(
        self, hasher: Hasher | None = None, paths: PathTools | None = None
    ) -> None:
        self.hasher = hasher or Hasher()
        self.paths = paths or PathTools()
        self._fingerprints: dict[str, tuple] = {}

    def identity(
        self,
        outputs: Iterable[str],
        byproducts: Iterable[str] = (),
        extra: str = "",
    ) -> str:
        """Compute the content-derived name of a command step.

        Args:
            outputs: Declared outputs (symbolic ones included).
            byproducts: Declared byproducts.
            extra: Disambiguator for steps whose outputs do not identify
                them (e.g. pre-build steps with no outputs).

        Returns:
            The step name, "cc-" followed by a short hex digest of extra
            and "-<path>" for each build-relative path.
        """
        text = extra
        for path in (*outputs, *byproducts):
            text += "-" + self.paths.to_build_path(path)
        return STEP_PREFIX + self.hasher.short(text)

    def register(self, step: CommandStep) -> bool:
        """Record a step.

        Returns:
            True the first time a name is seen, False for a duplicate with
            the same content.

        Raises:
            IdentityCollisionError: A different step already has this name.
        """
        fingerprint = step.fingerprint()
        known = self._fingerprints.get(step.name)
        if known is None:
            self._fingerprints[step.name] = fingerprint
            return True
        if known != fingerprint:
            raise IdentityCollisionError(step.name)
        logger.debug("Merging duplicate command step %s", step.name)
        return False

    def deduplicate(self, units: Iterable[BuildUnit]) -> int:
        """Drop command steps already emitted by an earlier unit.

        Units must be given in their final order; the first occurrence of
        a step is kept.

        Returns:
            Number of steps removed.
        """
        seen: set[str] = set()
        removed = 0
        for unit in units:
            for steps in unit.command_lists():
                kept = []
                for step in steps:
                    if step.name in seen:
                        removed += 1
                        continue
                    seen.add(step.name)
                    kept.append(step)
                steps[:] = kept
        if removed:
            logger.debug("Removed %d duplicate command step(s)", removed)
        return removed

    def clear(self) -> None:
        """Forget all registered steps."""
        self._fingerprints.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._fingerprints

    def __len__(self) -> int:
        return len(self._fingerprints)
