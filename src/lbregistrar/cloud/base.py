# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Shared update flow of the two OCI backend set variants."""

from __future__ import annotations

import abc
import logging
import threading
from collections.abc import Sequence

import oci

from lbregistrar.errors import CloudError
from lbregistrar.models import BackendSetSnapshot, BackendTarget

logger = logging.getLogger(__name__)


class BackendSetProvider(abc.ABC):
    """Reads and replaces the backends of one kind of OCI load balancer.

    Only backend membership is owned by the registrar. Every update re-sends
    the health checker and policy of the snapshot fetched right before it.
    """

    kind: str = ""

    def __init__(self, client):
        self.client = client

    def get_snapshot(self, load_balancer_id: str, backend_set_name: str) -> BackendSetSnapshot:
        try:
            response = self._get_backend_set(load_balancer_id, backend_set_name)
        except oci.exceptions.ServiceError as e:
            logger.error(
                "error getting backend set %s of %s: %s", backend_set_name, load_balancer_id, e
            )
            raise CloudError(f"error getting backend set {backend_set_name}: {e.message}") from e
        backend_set = response.data
        logger.debug("got backend set %s: %s", backend_set_name, backend_set)
        return BackendSetSnapshot(
            backends=tuple(
                BackendTarget(
                    name=b.name or "",
                    ip_address=b.ip_address,
                    port=b.port,
                    weight=b.weight,
                )
                for b in backend_set.backends or []
            ),
            health_checker=backend_set.health_checker,
            policy=backend_set.policy,
            options=self._options(backend_set),
        )

    def get_current_backends(
        self, load_balancer_id: str, backend_set_name: str
    ) -> list[BackendTarget]:
        return list(self.get_snapshot(load_balancer_id, backend_set_name).backends)

    def sync_backends(
        self,
        load_balancer_id: str,
        backend_set_name: str,
        targets: Sequence[BackendTarget],
        cancel: threading.Event | None = None,
    ) -> None:
        """Replace the backend set's members with `targets`."""
        snapshot = self.get_snapshot(load_balancer_id, backend_set_name)
        self._check_targets(targets)
        details = self._update_details(targets, snapshot)
        logger.info(
            "updating %s backend set %s of %s with %d backends",
            self.kind, backend_set_name, load_balancer_id, len(targets),
        )
        try:
            response = self._update_backend_set(load_balancer_id, backend_set_name, details)
        except oci.exceptions.ServiceError as e:
            logger.error("error updating backend set %s: %s", backend_set_name, e)
            raise CloudError(f"error updating backend set {backend_set_name}: {e.message}") from e
        self._wait(response, cancel)
        logger.debug("updated backend set %s", backend_set_name)

    @abc.abstractmethod
    def determine_port(self, node_port: int, legacy_port: int, multi_service: bool) -> int:
        """Port to register for a resolved node port and the deprecated `port` field."""

    def _check_targets(self, targets: Sequence[BackendTarget]) -> None:
        pass

    def _options(self, backend_set) -> dict:
        return {}

    def _wait(self, response, cancel: threading.Event | None) -> None:
        pass

    @abc.abstractmethod
    def _get_backend_set(self, load_balancer_id: str, backend_set_name: str):
        ...

    @abc.abstractmethod
    def _update_backend_set(self, load_balancer_id: str, backend_set_name: str, details):
        ...

    @abc.abstractmethod
    def _update_details(self, targets: Sequence[BackendTarget], snapshot: BackendSetSnapshot):
        ...


def copy_model(model_cls, source, names):
    """Build an SDK `model_cls` from the attributes `names` of `source`.

    Attributes the installed SDK version does not know and unset values are left out.
    """
    model = model_cls()
    for name in names:
        value = getattr(source, name, None)
        if value is not None and name in model.swagger_types:
            setattr(model, name, value)
    return model
