# SPDX-License-Identifier: MIT
"""Core build graph: nodes, resolution, ordering and deduplication."""

from fbgen.core.dedup import CommandDeduplicator
from fbgen.core.errors import (
    DependencyCycleError,
    DuplicateUnitError,
    FbgenError,
    GenerateError,
    IdentityCollisionError,
    ModelError,
    UnresolvedDependencyError,
)
from fbgen.core.graph import SortResult, find_order_violations, sort_by_dependencies
from fbgen.core.nodes import (
    AliasGroup,
    BuildUnit,
    CommandStep,
    CompileBatch,
    LinkKind,
    LinkStep,
)
from fbgen.core.output_index import OutputIndex, OutputOwner
from fbgen.core.pch import PCHReuseTracker
from fbgen.core.resolver import DependencyGraph, DependencyResolver

__all__ = [
    "AliasGroup",
    "BuildUnit",
    "CommandDeduplicator",
    "CommandStep",
    "CompileBatch",
    "DependencyCycleError",
    "DependencyGraph",
    "DependencyResolver",
    "DuplicateUnitError",
    "FbgenError",
    "GenerateError",
    "IdentityCollisionError",
    "LinkKind",
    "LinkStep",
    "ModelError",
    "OutputIndex",
    "OutputOwner",
    "PCHReuseTracker",
    "SortResult",
    "UnresolvedDependencyError",
    "find_order_violations",
    "sort_by_dependencies",
]
