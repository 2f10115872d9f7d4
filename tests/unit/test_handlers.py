"""Unit tests for the node and endpoints watch handlers."""

from fakes import FakeRecorder, FakeStore, declaration, endpoints, node

from lbregistrar.handlers import EndpointsHandler, NodeHandler
from lbregistrar.models import Phase


def test_node_deletion_moves_ready_declaration_to_pending():
    store = FakeStore(declaration(nodePort=30080, phase="READY"))
    recorder = FakeRecorder()
    handler = NodeHandler(store, recorder)

    assert handler.delete(node("node2", "10.0.0.2")) == 1
    assert store.declarations["sample"].phase is Phase.PENDING
    assert recorder.events == [
        ("sample", "Normal", "PhaseChange", "node node2 changed, phase set to PENDING")
    ]

    assert handler.delete(node("node3", "10.0.0.3")) == 0
    assert len(recorder.events) == 1


def test_node_creation_skips_settling_declarations():
    store = FakeStore(
        declaration("fresh", nodePort=30080),
        declaration("pending", nodePort=30080, phase="PENDING"),
        declaration("registering", nodePort=30080, phase="REGISTERING"),
        declaration("ready", nodePort=30080, phase="READY"),
    )
    recorder = FakeRecorder()

    assert NodeHandler(store, recorder).create(node("node3")) == 2
    assert sorted(store.writes) == [("ready", Phase.PENDING), ("registering", Phase.PENDING)]
    assert store.declarations["fresh"].phase is Phase.NEW


def test_node_update_is_ignored():
    store = FakeStore(declaration(nodePort=30080, phase="READY"))
    recorder = FakeRecorder()

    assert NodeHandler(store, recorder).update(node("node1"), node("node1", "10.0.0.9")) == 0
    assert store.writes == []
    assert recorder.events == []


def test_status_write_failure_is_skipped():
    store = FakeStore(declaration(nodePort=30080, phase="READY"), fail_writes=True)
    recorder = FakeRecorder()

    assert NodeHandler(store, recorder).delete(node("node1")) == 0
    assert recorder.events == []


def test_endpoints_change_only_touches_filtering_declarations():
    web = {"name": "web", "namespace": "default", "port": 80}
    store = FakeStore(
        declaration("filtered", phase="READY", service={**web, "filterByEndpoints": True}),
        declaration("unfiltered", phase="READY", service=web),
        declaration(
            "multi",
            phase="READY",
            services=[
                {"name": "api", "namespace": "default", "port": 80},
                {**web, "namespace": "other", "filterByEndpoints": True},
            ],
        ),
        declaration("explicit", nodePort=30080, phase="READY"),
    )
    recorder = FakeRecorder()
    handler = EndpointsHandler(store, recorder)

    assert handler.update(None, endpoints("web", "default", ["192.168.0.1"])) == 1
    assert store.writes == [("filtered", Phase.PENDING)]
    assert recorder.events == [
        (
            "filtered",
            "Normal",
            "EndpointsChanged",
            "Service default/web endpoints changed, triggering reconciliation",
        )
    ]

    assert handler.delete(endpoints("web", "other", [])) == 1
    assert store.declarations["multi"].phase is Phase.PENDING
    assert handler.create(endpoints("unrelated", "default", ["192.168.0.3"])) == 0
