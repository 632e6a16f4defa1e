# SPDX-License-Identifier: MIT
"""Precompiled header reuse across units.

When several units use the same precompiled header file, only one compile
batch may create it; every other batch just consumes it. The tracker walks
the batches in final unit order: the first batch naming a PCH output keeps
its creation fields, later ones lose them.
"""

from __future__ import annotations

import logging
from typing import Iterable

from fbgen.core.nodes import BuildUnit
from fbgen.core.paths import PathTools

logger = logging.getLogger(__name__)


class PCHReuseTracker:
    """Tracks which compile batch creates each precompiled header."""

    def __init__(self) -> None:
        self._claims: dict[str, str] = {}

    def apply(self, units: Iterable[BuildUnit]) -> dict[str, str]:
        """Clear the creation fields of every batch but the first per PCH.

        Args:
            units: Units in their final order.

        Returns:
            Map of normalized PCH output path to the name of the batch that
            creates it.
        """
        for unit in units:
            for batch in unit.compile_batches:
                if not batch.pch_output_file:
                    continue
                key = PathTools.normalize(batch.pch_output_file)
                owner = self._claims.get(key)
                if owner is None:
                    self._claims[key] = batch.name
                    continue
                if owner == batch.name:
                    continue
                if batch.creates_pch:
                    logger.debug(
                        "Batch %s reuses precompiled header %s from %s",
                        batch.name,
                        key,
                        owner,
                    )
                batch.pch_input_file = ""
                batch.pch_options = ""
        return dict(self._claims)

    def owner(self, pch_output: str) -> str | None:
        """Name of the batch creating a precompiled header, if claimed."""
        return self._claims.get(PathTools.normalize(pch_output))

    def clear(self) -> None:
        self._claims.clear()
