# SPDX-License-Identifier: MIT
"""Custom exceptions for fbgen.

All fbgen exceptions inherit from FbgenError. Some of them are fatal and
raised immediately (duplicate units, identity collisions); others are
collected during a generation pass and reported together (unresolved
references, dependency cycles).
"""

from __future__ import annotations


class FbgenError(Exception):
    """Base class for all fbgen exceptions.

    Attributes:
        message: The error message.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class GenerateError(FbgenError):
    """Error during the generate phase.

    Raised when build file generation fails.
    """


class ModelError(FbgenError):
    """The target model could not be loaded or is malformed."""


class DuplicateUnitError(FbgenError):
    """Two build units share the same name.

    Attributes:
        name: The duplicated unit name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"duplicate build unit: {name}")


class UnresolvedDependencyError(FbgenError):
    """A unit references a dependency that is not part of the model.

    Attributes:
        unit: Name of the unit holding the reference.
        reference: The name that could not be resolved.
    """

    def __init__(self, unit: str, reference: str) -> None:
        self.unit = unit
        self.reference = reference
        super().__init__(f"unit '{unit}' depends on unknown unit '{reference}'")


class DependencyCycleError(FbgenError):
    """Circular dependency detected in the build graph.

    Attributes:
        cycle: The names involved in the cycle.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        cycle_str = " -> ".join(cycle)
        super().__init__(f"dependency cycle: {cycle_str}")


class IdentityCollisionError(FbgenError):
    """Two different command steps were given the same identity.

    Attributes:
        name: The colliding step name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"command step identity collision: '{name}' names two different steps"
        )
