"""Region permission resolution over the distributor hierarchy.

A decision is reached by walking from the queried distributor up through its
parents. At each level exclusions are checked before inclusions; the first
level with a matching fragment decides. A chain that never matches denies.
Matching is plain substring containment on the region key, so a fragment
such as ``"INDIA"`` covers every region key ending in ``-INDIA``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from app.config import get_settings
from app.logging_config import get_logger, metrics
from app.models.distributor import Distributor
from app.services.distributor_registry import HierarchyCycleError
from app.services.region_catalog import RegionCatalog

logger = get_logger(__name__)


class ParentLookup(Protocol):
    """Anything that can resolve a distributor's parent link."""

    def get_parent(self, distributor: Distributor) -> Optional[Distributor]: ...


class DecisionReason(str, Enum):
    """Why a permission decision came out the way it did."""

    INCLUDED = "INCLUDED"
    EXCLUDED = "EXCLUDED"
    DEFAULT_DENY = "DEFAULT_DENY"
    INVALID_REGION = "INVALID_REGION"


@dataclass(frozen=True)
class PermissionDecision:
    """Result of resolving one distributor against one region key.

    Attributes:
        distributor: Name of the queried distributor
        region_key: Region key as supplied by the caller
        allowed: Final decision
        reason: Which rule path produced the decision
        resolved_by: Distributor whose rule matched, None if nothing matched
        matched_fragment: The inclusion or exclusion fragment that matched
        depth: Parent hops taken before the decision
    """

    distributor: str
    region_key: str
    allowed: bool
    reason: DecisionReason
    resolved_by: Optional[str] = None
    matched_fragment: Optional[str] = None
    depth: int = 0


class PermissionResolver:
    """Resolves distributor permissions against the region catalog."""

    def __init__(
        self,
        catalog: RegionCatalog,
        parents: ParentLookup,
        max_depth: Optional[int] = None,
    ):
        """Initialize resolver.

        Args:
            catalog: Region catalog used to validate region keys
            parents: Lookup for parent links, usually the DistributorRegistry.
                When it offers ``snapshot()``, each evaluation walks one view.
            max_depth: Maximum parent hops before the chain is rejected
        """
        self.catalog = catalog
        self.parents = parents
        self.max_depth = max_depth if max_depth is not None else get_settings().max_hierarchy_depth

    def evaluate(self, distributor: Distributor, region_key: str) -> PermissionDecision:
        """Resolve a decision with the rule that produced it.

        Raises:
            HierarchyCycleError: If the parent chain revisits a node or is
                deeper than ``max_depth``
        """
        metrics.increment("permission_checks.total")

        # The key never changes during the walk, so validity is checked once.
        if not self.catalog.contains(region_key):
            metrics.increment("permission_checks.invalid_region")
            logger.warning(
                "invalid_region", region_key=region_key, distributor=distributor.name
            )
            return PermissionDecision(
                distributor=distributor.name,
                region_key=region_key,
                allowed=False,
                reason=DecisionReason.INVALID_REGION,
            )

        # Parent links are read from a single view for the whole walk
        parents = self._parent_view()
        visited = [distributor.name]
        node: Optional[Distributor] = distributor
        depth = 0
        while node is not None:
            fragment = node.permissions.matching_exclusion(region_key)
            if fragment is not None:
                return self._decide(
                    distributor, region_key, DecisionReason.EXCLUDED, node, fragment, depth
                )

            fragment = node.permissions.matching_inclusion(region_key)
            if fragment is not None:
                return self._decide(
                    distributor, region_key, DecisionReason.INCLUDED, node, fragment, depth
                )

            node = parents.get_parent(node)
            if node is None:
                break
            depth += 1
            if node.name in visited or depth > self.max_depth:
                visited.append(node.name)
                raise HierarchyCycleError(distributor.name, visited)
            visited.append(node.name)

        return self._decide(distributor, region_key, DecisionReason.DEFAULT_DENY, None, None, depth)

    def has_permission(self, distributor: Distributor, region_key: str) -> bool:
        """Check whether ``distributor`` may operate in ``region_key``.

        ``region_key`` must already be normalized (uppercase
        ``CITY-STATE-COUNTRY``). Unknown keys are denied and reported through
        an ``invalid_region`` log event.
        """
        return self.evaluate(distributor, region_key).allowed

    def _parent_view(self) -> ParentLookup:
        snapshot = getattr(self.parents, "snapshot", None)
        return snapshot() if callable(snapshot) else self.parents

    def _decide(
        self,
        distributor: Distributor,
        region_key: str,
        reason: DecisionReason,
        resolved_by: Optional[Distributor],
        fragment: Optional[str],
        depth: int,
    ) -> PermissionDecision:
        allowed = reason is DecisionReason.INCLUDED
        metrics.increment(f"permission_checks.{reason.value.lower()}")
        logger.debug(
            "permission_resolved",
            distributor=distributor.name,
            region_key=region_key,
            allowed=allowed,
            reason=reason.value,
            resolved_by=resolved_by.name if resolved_by else None,
            fragment=fragment,
            depth=depth,
        )
        return PermissionDecision(
            distributor=distributor.name,
            region_key=region_key,
            allowed=allowed,
            reason=reason,
            resolved_by=resolved_by.name if resolved_by else None,
            matched_fragment=fragment,
            depth=depth,
        )


def has_permission(
    distributor: Distributor,
    region_key: str,
    catalog: RegionCatalog,
    parents: ParentLookup,
) -> bool:
    """Functional form of :meth:`PermissionResolver.has_permission`."""
    return PermissionResolver(catalog, parents).has_permission(distributor, region_key)
