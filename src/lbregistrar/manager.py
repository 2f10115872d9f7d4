# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Run the watches and the reconciliation workers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from lightkube import Client
from lightkube.resources.core_v1 import Endpoints, Node

from lbregistrar.config import Settings
from lbregistrar.controller import LBRegistrarReconciler
from lbregistrar.errors import Cancelled
from lbregistrar.handlers import EndpointsHandler, NodeHandler
from lbregistrar.resources import DeclarationStore, EventRecorder, LBRegistrar
from lbregistrar.workqueue import WorkQueue

logger = logging.getLogger(__name__)

ALL_NAMESPACES = "*"
WATCH_RETRY_DELAY = 5.0


class Manager:
    """Feeds declaration names into the work queue and runs the workers.

    Declaration events enqueue the declaration. Node and endpoint events go
    through the handlers, whose status writes come back as declaration events.
    """

    def __init__(
        self,
        client: Client,
        settings: Settings,
        reconciler: LBRegistrarReconciler | None = None,
        queue: WorkQueue | None = None,
    ):
        self.client = client
        self.settings = settings
        self.reconciler = reconciler or LBRegistrarReconciler.from_client(client, settings)
        self.queue = queue or WorkQueue()
        store = DeclarationStore(client)
        recorder = EventRecorder(client, settings.component, settings.event_namespace)
        self.node_handler = NodeHandler(store, recorder)
        self.endpoints_handler = EndpointsHandler(store, recorder)
        self.stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        # Last known state of each watch, compared on relist to catch changes
        # made while the watch was down.
        self._known_nodes: set[str] | None = None
        self._known_endpoints: dict[tuple[str, str], Endpoints] | None = None

    def start(self) -> None:
        watches = [
            ("watch-lbregistrars", self._watch_declarations),
            ("watch-nodes", self._watch_nodes),
            ("watch-endpoints", self._watch_endpoints),
        ]
        for name, target in watches:
            self._spawn(name, target)
        for i in range(self.settings.workers):
            self._spawn(f"worker-{i}", self._worker)
        logger.info("started %d workers", self.settings.workers)

    def run(self) -> None:
        self.start()
        self.stop_event.wait()
        self.join()

    def stop(self) -> None:
        logger.info("stopping")
        self.stop_event.set()
        self.queue.shutdown()

    def join(self, timeout: float | None = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def _spawn(self, name: str, target: Callable[[], None]) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)

    def _worker(self) -> None:
        while True:
            key = self.queue.get()
            if key is None:
                return
            try:
                self.process(key)
            finally:
                self.queue.done(key)

    def process(self, key: str) -> None:
        """Run one pass for `key` and schedule its retry."""
        try:
            result = self.reconciler.reconcile(key, cancel=self.stop_event)
        except Cancelled as e:
            logger.info("reconcile of %s cancelled: %s", key, e)
            return
        except Exception:
            delay = self.queue.add_rate_limited(key)
            logger.exception("reconcile of %s failed, retrying in %.1fs", key, delay)
            return
        self.queue.forget(key)
        if result.requeue_after:
            logger.info("requeueing %s in %.0fs", key, result.requeue_after)
            self.queue.add_after(key, result.requeue_after)

    def on_declaration_event(self, op: str, obj) -> None:
        if op in ("ADDED", "MODIFIED") and obj.metadata and obj.metadata.name:
            self.queue.add(obj.metadata.name)

    def on_node_event(self, op: str, obj) -> None:
        name = obj.metadata.name if obj.metadata else None
        if self._known_nodes is not None and name:
            if op == "DELETED":
                self._known_nodes.discard(name)
            else:
                self._known_nodes.add(name)
        if op == "ADDED":
            self.node_handler.create(obj)
        elif op == "MODIFIED":
            self.node_handler.update(None, obj)
        elif op == "DELETED":
            self.node_handler.delete(obj)

    def on_endpoints_event(self, op: str, obj) -> None:
        if self._known_endpoints is not None:
            if op == "DELETED":
                self._known_endpoints.pop(_key(obj), None)
            else:
                self._known_endpoints[_key(obj)] = obj
        if op == "ADDED":
            self.endpoints_handler.create(obj)
        elif op == "MODIFIED":
            self.endpoints_handler.update(None, obj)
        elif op == "DELETED":
            self.endpoints_handler.delete(obj)

    def _watch_declarations(self) -> None:
        def initial(items):
            for obj in items:
                self.on_declaration_event("ADDED", obj)

        self._watch(LBRegistrar, self.on_declaration_event, initial=initial)

    def _watch_nodes(self) -> None:
        self._watch(Node, self.on_node_event, initial=self.resync_nodes)

    def _watch_endpoints(self) -> None:
        self._watch(
            Endpoints,
            self.on_endpoints_event,
            initial=self.resync_endpoints,
            namespace=ALL_NAMESPACES,
        )

    def resync_nodes(self, nodes) -> None:
        """Compare a fresh node listing with the last known one.

        The first listing only records the names. Nodes that appeared or
        disappeared since then trigger one refresh.
        """
        names = {n.metadata.name for n in nodes if n.metadata and n.metadata.name}
        previous, self._known_nodes = self._known_nodes, names
        if previous is None or names == previous:
            return
        changed = ", ".join(sorted(names ^ previous))
        logger.info("nodes changed while not watching: %s", changed)
        self.node_handler.refresh(changed)

    def resync_endpoints(self, items) -> None:
        """Replay endpoint changes missed between two listings."""
        current = {_key(e): e for e in items}
        previous, self._known_endpoints = self._known_endpoints, current
        if previous is None:
            return
        for key in sorted(current.keys() | previous.keys()):
            new, old = current.get(key), previous.get(key)
            if new is None:
                self.endpoints_handler.delete(old)
            elif old is None:
                self.endpoints_handler.create(new)
            elif _version(new) != _version(old):
                self.endpoints_handler.update(old, new)

    def _watch(self, res, handler, initial=None, **kwargs) -> None:
        """List then watch `res` from the list's resource version until stopped.

        Existing objects are only passed to `initial`, so startup does not
        look like a burst of creations. `initial` runs again on every relist
        after a failed watch.
        """
        kind = res.__name__
        while not self.stop_event.is_set():
            try:
                items = self.client.list(res, **kwargs)
                existing = list(items)
                if initial is not None:
                    initial(existing)
                version = getattr(items, "resourceVersion", None)
                logger.debug("watching %s from resource version %s", kind, version)
                for op, obj in self.client.watch(res, resource_version=version, **kwargs):
                    if self.stop_event.is_set():
                        return
                    handler(op, obj)
            except Exception:
                logger.exception("watch of %s failed, restarting", kind)
            self.stop_event.wait(WATCH_RETRY_DELAY)


def _key(obj) -> tuple[str, str]:
    metadata = obj.metadata
    return (metadata.namespace or "", metadata.name or "") if metadata else ("", "")


def _version(obj) -> str | None:
    return obj.metadata.resourceVersion if obj.metadata else None
