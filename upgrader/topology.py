"""
Node and cluster topology facts consumed by the upgrade service.

These are read-only inputs: the service asks whether this node has prior
state, whether it is part of a cluster, and whether the cluster as a whole
has prior state. It never changes them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from upgrader.store import ModelVersionStore, FileModelVersionStore, CompositeModelVersionStore


class NodeTopology(ABC):
    """Read-only topology facts for the current node."""

    @abstractmethod
    def is_fresh_node(self) -> bool:
        """True if this node has no prior persisted state of its own."""
        pass

    @abstractmethod
    def is_clustered(self) -> bool:
        """True if this deployment is clustered."""
        pass

    @abstractmethod
    def is_fresh_cluster(self) -> bool:
        """True if no member of the cluster has prior persisted state."""
        pass


@dataclass(frozen=True)
class StaticTopology(NodeTopology):
    """Topology with fixed answers, from configuration or tests."""
    fresh_node: bool = False
    clustered: bool = False
    fresh_cluster: bool = False

    def is_fresh_node(self) -> bool:
        return self.fresh_node

    def is_clustered(self) -> bool:
        return self.clustered

    def is_fresh_cluster(self) -> bool:
        # A standalone node is its own cluster
        if not self.clustered:
            return self.fresh_node
        return self.fresh_cluster


def detect_topology(
    store: ModelVersionStore,
    clustered: bool = False,
    fresh_cluster: Optional[bool] = None,
) -> StaticTopology:
    """
    Derive topology facts from where the store keeps its versions.

    A node is fresh when its version file does not exist yet. For a
    composite store, the local file decides node freshness and the cluster
    file decides cluster freshness unless ``fresh_cluster`` overrides it.
    Stores that are not file-backed are never considered fresh.
    """
    if isinstance(store, CompositeModelVersionStore):
        fresh_node = _is_fresh(store.local)
        detected_cluster = _is_fresh(store.cluster)
    else:
        fresh_node = _is_fresh(store)
        detected_cluster = fresh_node

    return StaticTopology(
        fresh_node=fresh_node,
        clustered=clustered,
        fresh_cluster=detected_cluster if fresh_cluster is None else fresh_cluster,
    )


def _is_fresh(store: ModelVersionStore) -> bool:
    if isinstance(store, FileModelVersionStore):
        return not store.existed_at_start
    return False
