# SPDX-License-Identifier: MIT
"""Dependency ordering.

sort_by_dependencies() orders any kind of named item (units, compile
batches, command steps) so that prerequisites come first. It never fails:
when the remaining items only depend on each other it writes them out in
their current order and reports them as a cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Hashable, Iterable, Mapping, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)


@dataclass
class SortResult:
    """Result of sort_by_dependencies().

    Attributes:
        order: Every input item exactly once, prerequisites first where
            possible.
        cycle: Items that had to be flushed because of a cycle, in the
            order they were flushed. Empty when the graph is acyclic.
    """

    order: list = field(default_factory=list)
    cycle: list = field(default_factory=list)

    @property
    def has_cycle(self) -> bool:
        return bool(self.cycle)


def sort_by_dependencies(
    items: Sequence[T],
    dependencies: Mapping[T, Iterable[T]],
) -> SortResult:
    """Order items so each comes after its prerequisites.

    The remaining items are scanned in their original order. Every item
    whose prerequisites were all emitted is emitted, and the scan is
    repeated. If a scan emits nothing, the remaining items form (or wait
    on) a cycle; they are flushed in their current order and the sort
    ends.

    Prerequisites that are not among the items are ignored. The inputs are
    not modified.

    Args:
        items: Items in their preferred order.
        dependencies: Item to its prerequisites.

    Returns:
        SortResult with the order and the flushed items, if any.

    Example:
        >>> sort_by_dependencies(["c", "b", "a"], {"c": ["b"], "b": ["a"]}).order
        ['a', 'b', 'c']
    """
    members = set(items)
    pending: dict[T, set[T]] = {}
    for item in items:
        pending[item] = {
            dep for dep in dependencies.get(item, ()) if dep in members and dep != item
        }

    # Reverse edges, so an emitted item can be erased from its dependents
    dependents: dict[T, list[T]] = {}
    for item, deps in pending.items():
        for dep in deps:
            dependents.setdefault(dep, []).append(item)

    result = SortResult()
    remaining = list(dict.fromkeys(items))
    while remaining:
        waiting: list[T] = []
        for item in remaining:
            if pending[item]:
                waiting.append(item)
                continue
            result.order.append(item)
            for dependent in dependents.get(item, ()):
                pending[dependent].discard(item)
        if len(waiting) == len(remaining):
            logger.warning(
                "Dependency cycle among %d item(s): %s",
                len(waiting),
                ", ".join(str(item) for item in waiting),
            )
            result.order.extend(waiting)
            result.cycle.extend(waiting)
            break
        remaining = waiting
    return result


def find_order_violations(
    order: Sequence[T],
    dependencies: Mapping[T, Iterable[T]],
) -> list[tuple[T, T]]:
    """Find dependencies that point forward in an order.

    Args:
        order: Ordered items.
        dependencies: Item to its prerequisites.

    Returns:
        List of (dependent, prerequisite) pairs where the prerequisite is
        among the items but does not come before the dependent.
    """
    position = {item: i for i, item in enumerate(order)}
    violations = []
    for item in order:
        for dep in dependencies.get(item, ()):
            if dep == item or dep not in position:
                continue
            if position[dep] > position[item]:
                violations.append((item, dep))
    return violations
