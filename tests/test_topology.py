"""Tests for upgrader.topology module."""

from upgrader.store import (
    CompositeModelVersionStore,
    FileModelVersionStore,
    InMemoryModelVersionStore,
)
from upgrader.topology import StaticTopology, detect_topology


class TestStaticTopology:
    """Tests for StaticTopology."""

    def test_clustered_facts(self):
        topology = StaticTopology(fresh_node=True, clustered=True, fresh_cluster=False)
        assert topology.is_fresh_node()
        assert topology.is_clustered()
        assert not topology.is_fresh_cluster()

    def test_standalone_cluster_follows_node(self):
        """A standalone node's cluster is fresh exactly when the node is."""
        assert StaticTopology(fresh_node=True).is_fresh_cluster()
        assert not StaticTopology(fresh_node=False, fresh_cluster=True).is_fresh_cluster()


class TestDetectTopology:
    """Tests for detect_topology."""

    def test_missing_file_is_fresh(self, tmp_path):
        store = FileModelVersionStore(tmp_path / "versions.json")
        topology = detect_topology(store)
        assert topology.is_fresh_node()
        assert not topology.is_clustered()

    def test_existing_file_is_not_fresh(self, tmp_path):
        path = tmp_path / "versions.json"
        path.write_text('{"models": {}}')
        assert not detect_topology(FileModelVersionStore(path)).is_fresh_node()

    def test_composite_joining_node(self, tmp_path):
        """Missing local file with an existing cluster file: fresh node, existing cluster."""
        cluster_path = tmp_path / "cluster.json"
        cluster_path.write_text('{"models": {"index": "2.0"}}')
        store = CompositeModelVersionStore(
            local=FileModelVersionStore(tmp_path / "local.json"),
            cluster=FileModelVersionStore(cluster_path),
            local_models={"config"},
        )

        topology = detect_topology(store, clustered=True)
        assert topology.is_fresh_node()
        assert not topology.is_fresh_cluster()

    def test_fresh_cluster_override(self, tmp_path):
        store = FileModelVersionStore(tmp_path / "versions.json")
        topology = detect_topology(store, clustered=True, fresh_cluster=False)
        assert not topology.is_fresh_cluster()

    def test_non_file_store_is_not_fresh(self):
        assert not detect_topology(InMemoryModelVersionStore()).is_fresh_node()
