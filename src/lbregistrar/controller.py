# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Phase driven reconciliation of `LBRegistrar` declarations.

Each pass looks at the persisted phase and performs exactly one step:

- NEW: nothing but advancing to PENDING.
- PENDING: build the OCI credentials and read the current backends, which
  proves the load balancer is reachable before any node is enumerated.
- REGISTERING: compute the backend targets of every service reference and
  push them, one backend set update per reference.
- READY: nothing; node and endpoint changes move the declaration back to
  PENDING.

A phase only advances once its side effect succeeded, and the new phase is
written to the status sub-resource before the pass returns.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from lightkube import Client
from lightkube.core.exceptions import ApiError

from lbregistrar.cloud import BackendSetProvider, Credentials, new_backend_client, new_credentials
from lbregistrar.config import Settings
from lbregistrar.errors import CloudError, ConfigError, InventoryError, RegistrationError
from lbregistrar.inventory import ClusterInventory
from lbregistrar.models import BackendTarget, Declaration, Phase, ServiceRef
from lbregistrar.resources import DeclarationStore, EventRecorder
from lbregistrar.secrets import get_secret_value
from lbregistrar.targets import build_targets

logger = logging.getLogger(__name__)

REASON_FAILED = "Failed"


@dataclass(frozen=True)
class Result:
    """Outcome of a pass; `requeue_after` asks for a fixed delay retry."""

    requeue_after: float | None = None


class LBRegistrarReconciler:
    """Moves one declaration through its phases per call to `reconcile`.

    Passes for the same declaration must not run concurrently; the work
    queue feeding `reconcile` guarantees it.
    """

    def __init__(
        self,
        store: DeclarationStore,
        inventory: ClusterInventory,
        recorder: EventRecorder,
        get_secret: Callable[[str, str, str], str],
        settings: Settings | None = None,
        credentials_factory: Callable[..., Credentials] = new_credentials,
        backend_client_factory: Callable[..., BackendSetProvider] = new_backend_client,
    ):
        self.store = store
        self.inventory = inventory
        self.recorder = recorder
        self.get_secret = get_secret
        self.settings = settings or Settings()
        self.credentials_factory = credentials_factory
        self.backend_client_factory = backend_client_factory

    @classmethod
    def from_client(cls, client: Client, settings: Settings) -> LBRegistrarReconciler:
        return cls(
            store=DeclarationStore(client),
            inventory=ClusterInventory(client),
            recorder=EventRecorder(client, settings.component, settings.event_namespace),
            get_secret=functools.partial(get_secret_value, client),
            settings=settings,
        )

    def reconcile(self, name: str, cancel: threading.Event | None = None) -> Result:
        try:
            declaration = self.store.get(name)
        except ConfigError as e:
            logger.error("LBRegistrar %s is invalid: %s", name, e)
            return Result()
        if declaration is None:
            logger.debug("LBRegistrar %s not found", name)
            return Result()

        logger.info(
            "reconciling LBRegistrar %s (lb %s, backend set %s, phase %r)",
            name,
            declaration.load_balancer_id,
            declaration.backend_set_name,
            declaration.phase.value,
        )
        step = {
            Phase.NEW: self._reconcile_new,
            Phase.PENDING: self._reconcile_pending,
            Phase.REGISTERING: self._reconcile_registering,
            Phase.READY: self._reconcile_ready,
        }[declaration.phase]
        return step(declaration, cancel)

    def _transition(self, declaration: Declaration, phase: Phase) -> None:
        try:
            self.store.set_phase(declaration, phase)
        except ApiError as e:
            if e.status.code == 409:
                logger.info(
                    "LBRegistrar %s changed during the pass, not setting phase %r",
                    declaration.name, phase.value,
                )
                return
            logger.error(
                "unable to update LBRegistrar %s status to %r: %s",
                declaration.name, phase.value, e.status.message,
            )

    def _fail(self, declaration: Declaration, message: str, error: Exception) -> None:
        logger.error("LBRegistrar %s: %s: %s", declaration.name, message, error)
        self.recorder.warning(declaration, REASON_FAILED, f"{message}: {error}")

    def _reconcile_new(self, declaration: Declaration, cancel) -> Result:
        self._transition(declaration, declaration.phase.advance())
        return Result()

    def _reconcile_ready(self, declaration: Declaration, cancel) -> Result:
        return Result()

    def _reconcile_pending(self, declaration: Declaration, cancel) -> Result:
        try:
            credentials = self.credentials(declaration)
        except ConfigError as e:
            self._fail(declaration, "unable to create configuration provider", e)
            raise

        try:
            client = self.backend_client(declaration, credentials)
            backends = client.get_current_backends(
                declaration.load_balancer_id, declaration.backend_set_name
            )
        except CloudError as e:
            self._fail(declaration, "unable to get backend set", e)
            raise

        logger.info(
            "got %d current backends of %s: %s",
            len(backends), declaration.backend_set_name, [b.key() for b in backends],
        )
        self._transition(declaration, declaration.phase.advance())
        return Result()

    def _reconcile_registering(self, declaration: Declaration, cancel) -> Result:
        try:
            credentials = self.credentials(declaration)
        except ConfigError as e:
            self._fail(declaration, "unable to create configuration provider", e)
            self._transition(declaration, Phase.PENDING)
            raise

        try:
            self.register(declaration, credentials, cancel)
        except RegistrationError as e:
            self._fail(declaration, "unable to register backends", e)
            return Result(requeue_after=self.settings.requeue_after)

        self._transition(declaration, declaration.phase.advance())
        return Result()

    def credentials(self, declaration: Declaration) -> Credentials:
        ref = declaration.api_key.private_key
        private_key = self.get_secret(ref.namespace, ref.secret_name, ref.key)
        return self.credentials_factory(declaration.api_key, private_key)

    def backend_client(
        self, declaration: Declaration, credentials: Credentials
    ) -> BackendSetProvider:
        return self.backend_client_factory(
            declaration.load_balancer_id,
            credentials,
            poll_interval=self.settings.poll_interval,
            max_attempts=self.settings.max_poll_attempts,
        )

    def register(
        self,
        declaration: Declaration,
        credentials: Credentials,
        cancel: threading.Event | None = None,
    ) -> None:
        """Push the backends of every service reference, stopping at the first failure."""
        client = self.backend_client(declaration, credentials)

        refs = declaration.references()
        if refs:
            for ref in refs:
                self._register_service(declaration, client, ref, cancel)
            return

        port = client.determine_port(declaration.node_port, declaration.port, False)
        targets = build_targets(self.inventory.all_nodes(), port, declaration.weight)
        self._sync(declaration, client, declaration.backend_set_name, targets, cancel)

    def _register_service(
        self,
        declaration: Declaration,
        client: BackendSetProvider,
        ref: ServiceRef,
        cancel: threading.Event | None,
    ) -> None:
        logger.info(
            "trying to get nodePort from service %s/%s port %s",
            ref.namespace, ref.name, ref.port,
        )
        node_port = self.inventory.resolve_node_port(ref)
        nodes = self.inventory.nodes_for(ref)
        backend_set = declaration.backend_set_for(ref)

        if ref.filter_by_endpoints and not nodes:
            if not declaration.multi_service:
                raise InventoryError(
                    f"service {ref.namespace}/{ref.name} has no ready endpoints, "
                    "refusing to register an empty backend set"
                )
            logger.info(
                "service %s/%s has no ready endpoints, leaving backend set %s untouched",
                ref.namespace, ref.name, backend_set,
            )
            return

        port = client.determine_port(node_port, declaration.port, declaration.multi_service)
        targets = build_targets(nodes, port, declaration.weight_for(ref))
        self._sync(declaration, client, backend_set, targets, cancel)

    def _sync(
        self,
        declaration: Declaration,
        client: BackendSetProvider,
        backend_set: str,
        targets: list[BackendTarget],
        cancel: threading.Event | None,
    ) -> None:
        logger.debug(
            "registering %s to backend set %s", [t.key() for t in targets], backend_set
        )
        client.sync_backends(declaration.load_balancer_id, backend_set, targets, cancel)
