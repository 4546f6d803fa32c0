"""Distributor and permission rule models."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


class PermissionType(str, Enum):
    """Kind of rule fragment assigned to a distributor."""

    INCLUDE = "INCLUDE"
    EXCLUDE = "EXCLUDE"


def normalize_fragments(fragments: Iterable[str]) -> tuple[str, ...]:
    """Uppercase rule fragments, rejecting empty ones.

    This departs from matching raw fragments as authored: ``"india"`` is
    stored as ``"INDIA"`` and so matches uppercase region keys, where a raw
    lowercase fragment could never match. An empty fragment is a substring of
    every region key and would grant or deny everything, so it is rejected
    instead of matching everywhere. The HTTP schemas also strip surrounding
    whitespace before this runs.
    """
    normalized = []
    for fragment in fragments:
        value = str(fragment).upper()
        if not value:
            raise ValueError("Permission fragments must not be empty")
        normalized.append(value)
    return tuple(normalized)


@dataclass(frozen=True)
class Permissions:
    """Inclusion and exclusion fragments owned by one distributor.

    Fragments are matched by substring containment against a region key.
    They are uppercased on construction (see :func:`normalize_fragments`),
    which makes authoring case-insensitive.
    Authoring order is kept so decisions can report which fragment matched.
    """

    inclusions: tuple[str, ...] = ()
    exclusions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "inclusions", normalize_fragments(self.inclusions))
        object.__setattr__(self, "exclusions", normalize_fragments(self.exclusions))

    def matching_exclusion(self, region_key: str) -> Optional[str]:
        """Return the first exclusion fragment contained in ``region_key``."""
        return next((ex for ex in self.exclusions if ex in region_key), None)

    def matching_inclusion(self, region_key: str) -> Optional[str]:
        """Return the first inclusion fragment contained in ``region_key``."""
        return next((inc for inc in self.inclusions if inc in region_key), None)

    def with_fragment(self, permission_type: PermissionType, fragment: str) -> Permissions:
        """Return a copy with ``fragment`` appended to the matching list."""
        if permission_type is PermissionType.INCLUDE:
            return replace(self, inclusions=(*self.inclusions, fragment))
        return replace(self, exclusions=(*self.exclusions, fragment))


@dataclass(frozen=True)
class Distributor:
    """A node in the distributor hierarchy.

    Attributes:
        name: Unique identifier, not used in decisions
        permissions: Rules owned by this node
        parent: Name of the parent distributor, ``None`` for a root
    """

    name: str
    permissions: Permissions = field(default_factory=Permissions)
    parent: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Distributor name must not be empty")
        if self.parent == self.name:
            raise ValueError(f"Distributor '{self.name}' cannot be its own parent")

    def assign(self, permission_type: PermissionType | str, fragment: str) -> Distributor:
        """Return a new snapshot with one more rule fragment.

        Raises:
            ValueError: If the permission type is not INCLUDE or EXCLUDE
        """
        if not isinstance(permission_type, PermissionType):
            permission_type = PermissionType(str(permission_type).upper())
        return replace(self, permissions=self.permissions.with_fragment(permission_type, fragment))
