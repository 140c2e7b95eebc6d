from threading import Event
from types import SimpleNamespace

import pytest
from kubernetes.client.rest import ApiException

from subnet_lease.directory import EntryHandler
from subnet_lease.errors import EntryNotFoundError
from subnet_lease_agent import kube
from subnet_lease_agent.kube import KubeNodeDirectory


def build_node(name, resource_version, annotations=None, pod_cidr="10.1.0.0/24"):
    return SimpleNamespace(
        metadata=SimpleNamespace(
            name=name,
            annotations=annotations or {},
            resource_version=resource_version,
        ),
        spec=SimpleNamespace(pod_cidr=pod_cidr),
    )


class FakeCoreApi:
    def __init__(self, nodes, resource_version="100"):
        self.nodes = nodes
        self.resource_version = resource_version
        self.patches = []
        self.list_calls = 0

    def list_node(self, **kwargs):
        self.list_calls += 1
        return SimpleNamespace(
            items=list(self.nodes),
            metadata=SimpleNamespace(resource_version=self.resource_version),
        )

    def patch_node_status(self, name, body, **kwargs):
        self.patches.append((name, body, kwargs))


class RecordingHandler(EntryHandler):
    def __init__(self):
        self.calls = []

    def on_add(self, entry):
        self.calls.append(("add", entry.name))

    def on_update(self, old, new):
        self.calls.append(("update", new.name, old.resource_version, new.resource_version))

    def on_delete(self, entry):
        self.calls.append(("delete", entry.name))


def build_directory(nodes):
    api = FakeCoreApi(nodes)
    directory = KubeNodeDirectory(api, Event())
    handler = RecordingHandler()
    directory.subscribe(handler)
    return directory, api, handler


def test_relist_populates_cache_and_syncs():
    directory, _, handler = build_directory([build_node("node-1", "1"), build_node("node-2", "2")])

    assert not directory.has_synced()
    version = directory.relist()

    assert version == "100"
    assert directory.has_synced()
    assert handler.calls == [("add", "node-1"), ("add", "node-2")]
    assert directory.get("node-1").pod_cidr == "10.1.0.0/24"


def test_relist_reconciles_changes():
    directory, api, handler = build_directory([build_node("node-1", "1"), build_node("node-2", "2")])
    directory.relist()
    handler.calls.clear()

    api.nodes = [build_node("node-1", "5")]
    directory.relist()

    assert handler.calls == [("update", "node-1", "1", "5"), ("delete", "node-2")]
    with pytest.raises(EntryNotFoundError):
        directory.get("node-2")


def test_watch_events_update_cache():
    directory, _, handler = build_directory([])
    directory.relist()

    directory.apply_watch_event({"type": "ADDED", "object": build_node("node-1", "1")})
    directory.apply_watch_event({"type": "MODIFIED", "object": build_node("node-1", "2")})
    directory.apply_watch_event({"type": "DELETED", "object": build_node("node-1", "3")})

    assert handler.calls == [
        ("add", "node-1"),
        ("update", "node-1", "1", "2"),
        ("delete", "node-1"),
    ]


def test_watch_error_event_raises_api_exception():
    directory, _, _ = build_directory([])

    with pytest.raises(ApiException) as excinfo:
        directory.apply_watch_event({"type": "ERROR", "object": {"code": 410, "message": "too old"}})

    assert excinfo.value.status == 410


def test_resync_redelivers_entries_unchanged():
    directory, _, handler = build_directory([build_node("node-1", "1")])
    directory.relist()
    handler.calls.clear()

    directory.resync()

    assert handler.calls == [("update", "node-1", "1", "1")]


def test_patch_uses_status_subresource():
    directory, api, _ = build_directory([])
    body = {"metadata": {"annotations": {"a": "b"}}}

    directory.patch("node-1", body)

    assert api.patches == [
        ("node-1", body, {"_content_type": "application/merge-patch+json"})
    ]


def scripted_watch(stop_event, steps):
    """Build a ``watch`` stand-in that replays ``steps``, one per stream call.

    A step is either an exception to raise or a list of watch events. The stop
    event is set once the last step has been replayed.
    """

    streams = []

    class ScriptedWatch:
        def stream(self, func, **kwargs):
            streams.append(kwargs)
            step = steps.pop(0)
            if isinstance(step, Exception):
                raise step
            yield from step
            if not steps:
                stop_event.set()

        def stop(self):
            pass

    return SimpleNamespace(Watch=ScriptedWatch), streams


def test_run_relists_after_expired_resource_version(monkeypatch):
    api = FakeCoreApi([build_node("node-1", "1")])
    stop_event = Event()
    directory = KubeNodeDirectory(api, stop_event, resync_period=0.0)
    handler = RecordingHandler()
    directory.subscribe(handler)
    fake_watch, streams = scripted_watch(
        stop_event,
        [
            ApiException(status=410, reason="Gone"),
            [{"type": "MODIFIED", "object": build_node("node-1", "7")}],
        ],
    )
    monkeypatch.setattr(kube, "watch", fake_watch)

    directory.run()

    assert api.list_calls == 2
    assert [s["resource_version"] for s in streams] == ["100", "100"]
    assert handler.calls == [
        ("add", "node-1"),
        ("update", "node-1", "1", "7"),
        # resync after the watch request ended
        ("update", "node-1", "7", "7"),
    ]


def test_run_backs_off_on_errors_and_tracks_resource_version(monkeypatch):
    api = FakeCoreApi([build_node("node-1", "1")])
    stop_event = Event()
    directory = KubeNodeDirectory(api, stop_event)
    handler = RecordingHandler()
    directory.subscribe(handler)
    fake_watch, streams = scripted_watch(
        stop_event,
        [
            ApiException(status=500, reason="Internal Server Error"),
            [
                {"type": "MODIFIED", "object": build_node("node-1", "5")},
                {"type": "MODIFIED", "object": build_node("node-1", "6")},
            ],
            [{"type": "DELETED", "object": build_node("node-1", "9")}],
        ],
    )
    monkeypatch.setattr(kube, "watch", fake_watch)
    monkeypatch.setattr(kube, "ERROR_BACKOFF", 0.0)

    directory.run()

    assert api.list_calls == 2
    assert [s["resource_version"] for s in streams] == ["100", "100", "6"]
    assert handler.calls == [
        ("add", "node-1"),
        ("update", "node-1", "1", "5"),
        ("update", "node-1", "5", "6"),
        ("delete", "node-1"),
    ]
    assert directory.has_synced()
