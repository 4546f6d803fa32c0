"""Registry of distributor nodes and their bootstrap loader.

Distributors refer to their parent by name; the registry owns every node and
resolves those names. Every rule update publishes a new read-only view of the
whole registry, and a permission walk reads one such view from start to end.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Optional

from app.logging_config import get_logger
from app.models.distributor import Distributor, Permissions, PermissionType

logger = get_logger(__name__)


class DistributorNotFoundError(Exception):
    """Error raised when a distributor name is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Distributor '{name}' not found")


class DistributorExistsError(Exception):
    """Error raised when registering a name that is already taken."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Distributor '{name}' already registered")


class HierarchyCycleError(Exception):
    """Error raised when a parent chain loops or exceeds the depth limit."""

    def __init__(self, name: str, chain: list[str]):
        self.name = name
        self.chain = chain
        super().__init__(
            f"Invalid distributor hierarchy at '{name}': {' -> '.join(chain)}"
        )


class RegistrySnapshot:
    """Immutable view of every distributor as published at one point in time.

    A resolution walks a single snapshot, so a parent updated while the walk
    is in progress is never mixed with the child it started from.
    """

    def __init__(self, distributors: Mapping[str, Distributor]):
        self._distributors = distributors

    def get(self, name: str) -> Distributor:
        """Get a distributor from this view.

        Raises:
            DistributorNotFoundError: If the name is not in the view
        """
        try:
            return self._distributors[name]
        except KeyError:
            raise DistributorNotFoundError(name) from None

    def get_parent(self, distributor: Distributor) -> Optional[Distributor]:
        """Get the parent of ``distributor`` as of this view, or None for a root."""
        if distributor.parent is None:
            return None
        return self.get(distributor.parent)

    def __contains__(self, name: object) -> bool:
        return name in self._distributors

    def __len__(self) -> int:
        return len(self._distributors)


class DistributorRegistry:
    """Thread-safe arena of distributor snapshots keyed by name.

    Every write publishes a fresh read-only mapping of all nodes; readers
    take the current mapping without locking.
    """

    def __init__(self):
        """Initialize empty registry."""
        self._distributors: Mapping[str, Distributor] = MappingProxyType({})
        self._lock = threading.Lock()

    def _publish(self, distributor: Distributor) -> None:
        # Caller holds the lock; the previous mapping is left untouched
        updated = dict(self._distributors)
        updated[distributor.name] = distributor
        self._distributors = MappingProxyType(updated)

    def snapshot(self) -> RegistrySnapshot:
        """Get an immutable view of the registry as currently published."""
        return RegistrySnapshot(self._distributors)

    def register(self, distributor: Distributor) -> Distributor:
        """Register a new distributor.

        The parent, if any, must already be registered, which keeps the
        parent relation acyclic.

        Raises:
            DistributorExistsError: If the name is already registered
            DistributorNotFoundError: If the parent is not registered
        """
        with self._lock:
            if distributor.name in self._distributors:
                raise DistributorExistsError(distributor.name)
            if distributor.parent is not None and distributor.parent not in self._distributors:
                raise DistributorNotFoundError(distributor.parent)
            self._publish(distributor)

        logger.info(
            "distributor_registered",
            distributor=distributor.name,
            parent=distributor.parent,
            inclusions=len(distributor.permissions.inclusions),
            exclusions=len(distributor.permissions.exclusions),
        )
        return distributor

    def get(self, name: str) -> Distributor:
        """Get the current snapshot of a distributor.

        Raises:
            DistributorNotFoundError: If the name is not registered
        """
        return self.snapshot().get(name)

    def get_parent(self, distributor: Distributor) -> Optional[Distributor]:
        """Get the parent snapshot of ``distributor``, or None for a root."""
        return self.snapshot().get_parent(distributor)

    def assign_permission(
        self, name: str, permission_type: PermissionType | str, fragment: str
    ) -> Distributor:
        """Add one inclusion or exclusion fragment to a distributor.

        Publishes a new snapshot; resolutions already in progress keep the
        snapshot they started with.

        Raises:
            DistributorNotFoundError: If the name is not registered
            ValueError: If the permission type or fragment is invalid
        """
        with self._lock:
            current = self.get(name)
            updated = current.assign(permission_type, fragment)
            self._publish(updated)

        logger.info(
            "permission_assigned",
            distributor=name,
            permission_type=str(getattr(permission_type, "value", permission_type)).upper(),
            fragment=fragment.upper(),
        )
        return updated

    def list_distributors(self) -> list[Distributor]:
        """All registered distributors sorted by name."""
        return sorted(self._distributors.values(), key=lambda d: d.name)

    def __contains__(self, name: object) -> bool:
        return name in self._distributors

    def __len__(self) -> int:
        return len(self._distributors)


def distributor_from_payload(payload: dict[str, Any]) -> Distributor:
    """Build a Distributor from a bootstrap or API payload.

    Raises:
        KeyError: If ``name`` is missing
        ValueError: If a fragment list is not a list or holds an empty fragment
    """
    parent = payload.get("parent")
    return Distributor(
        name=str(payload["name"]),
        permissions=Permissions(
            inclusions=_fragment_list(payload, "inclusions"),
            exclusions=_fragment_list(payload, "exclusions"),
        ),
        parent=str(parent) if parent else None,
    )


def _fragment_list(payload: dict[str, Any], field: str) -> tuple[str, ...]:
    values = payload.get(field) or []
    if not isinstance(values, list):
        raise ValueError(f"'{field}' must be a list of fragments")
    return tuple(str(x) for x in values)


def build_registry(distributors: Iterable[Distributor]) -> DistributorRegistry:
    """Register distributors parents-first regardless of input order.

    Raises:
        DistributorExistsError: If a name appears twice
        DistributorNotFoundError: If a parent is never defined
        HierarchyCycleError: If the parent links form a cycle
    """
    registry = DistributorRegistry()
    pending: dict[str, Distributor] = {}
    for distributor in distributors:
        if distributor.name in pending:
            raise DistributorExistsError(distributor.name)
        pending[distributor.name] = distributor

    while pending:
        ready = [
            d for d in pending.values() if d.parent is None or d.parent in registry
        ]
        if not ready:
            missing = next(
                (d for d in pending.values() if d.parent not in pending), None
            )
            if missing is not None:
                raise DistributorNotFoundError(str(missing.parent))
            start = next(iter(pending.values()))
            raise HierarchyCycleError(start.name, _cycle_chain(start, pending))
        for distributor in ready:
            registry.register(distributor)
            del pending[distributor.name]

    return registry


def _cycle_chain(start: Distributor, pending: dict[str, Distributor]) -> list[str]:
    chain = [start.name]
    node = pending[str(start.parent)]
    while node.name not in chain:
        chain.append(node.name)
        node = pending[str(node.parent)]
    chain.append(node.name)
    return chain


class DistributorConfigError(Exception):
    """Error raised when the distributor bootstrap file cannot be used."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Distributor config '{path}': {message}")


class DistributorConfigLoader:
    """
    Loads the distributor bootstrap file from disk.

    The file is a JSON object with a ``distributors`` list; each entry needs
    a ``name`` and may carry ``parent``, ``inclusions`` and ``exclusions``.
    """

    def __init__(self, config_path: str | Path = "data/distributors.json"):
        self.config_path = Path(config_path)

    def load(self) -> DistributorRegistry:
        """Build a registry from the bootstrap file.

        A missing file yields an empty registry.

        Raises:
            DistributorConfigError: If the file is unreadable, not valid JSON,
                has the wrong shape or describes an invalid hierarchy
        """
        if not self.config_path.exists():
            logger.warning("distributor_config_missing", path=str(self.config_path))
            return DistributorRegistry()
        payload = self._read_json()
        try:
            registry = build_registry(self._parse(payload))
        except (
            DistributorExistsError,
            DistributorNotFoundError,
            HierarchyCycleError,
            ValueError,
        ) as e:
            raise DistributorConfigError(str(self.config_path), str(e)) from e
        logger.info(
            "distributor_config_loaded", path=str(self.config_path), distributors=len(registry)
        )
        return registry

    def _read_json(self) -> Any:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise DistributorConfigError(str(self.config_path), f"invalid JSON: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise DistributorConfigError(str(self.config_path), str(e)) from e

    def _parse(self, payload: Any) -> list[Distributor]:
        if not isinstance(payload, dict):
            raise DistributorConfigError(
                str(self.config_path), "top level must be an object with a 'distributors' list"
            )
        rows = payload.get("distributors", [])
        if not isinstance(rows, list):
            raise DistributorConfigError(str(self.config_path), "'distributors' must be a list")

        distributors = []
        for index, row in enumerate(rows):
            if not isinstance(row, dict) or not row.get("name"):
                raise DistributorConfigError(
                    str(self.config_path), f"entry {index} must be an object with a 'name'"
                )
            distributors.append(distributor_from_payload(row))
        return distributors
