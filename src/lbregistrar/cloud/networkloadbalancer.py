# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Backend sets of OCI Network Load Balancers.

Updates are asynchronous: the call returns a work request id that is polled
until it finishes, so that the next update does not conflict with this one.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from types import SimpleNamespace

from oci.network_load_balancer import NetworkLoadBalancerClient
from oci.network_load_balancer.models import (
    BackendDetails,
    HealthCheckerDetails,
    UpdateBackendSetDetails,
)

from lbregistrar.cloud import workrequest
from lbregistrar.cloud.base import BackendSetProvider, copy_model
from lbregistrar.errors import NoBackendsError
from lbregistrar.models import BackendSetSnapshot, BackendTarget

logger = logging.getLogger(__name__)

HEALTH_CHECKER_FIELDS = (
    "protocol",
    "port",
    "url_path",
    "return_code",
    "retries",
    "timeout_in_millis",
    "interval_in_millis",
    "response_body_regex",
    "request_data",
    "response_data",
)

# Backend set flags that the update call resets unless they are sent back.
BACKEND_SET_OPTIONS = (
    "is_preserve_source",
    "is_fail_open",
    "is_instant_failover_enabled",
    "is_instant_failover_tcp_reset_enabled",
    "are_operationally_active_backends_preferred",
    "ip_version",
)


def copy_health_checker(checker) -> HealthCheckerDetails | None:
    if checker is None:
        return None
    return copy_model(HealthCheckerDetails, checker, HEALTH_CHECKER_FIELDS)


class NetworkLoadBalancerProvider(BackendSetProvider):
    """Asynchronous variant: completion is the work request succeeding."""

    kind = "networkloadbalancer"

    def __init__(
        self,
        client,
        poll_interval: float = workrequest.DEFAULT_POLL_INTERVAL,
        max_attempts: int = workrequest.DEFAULT_MAX_ATTEMPTS,
    ):
        super().__init__(client)
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    @classmethod
    def from_credentials(cls, credentials, **kwargs) -> NetworkLoadBalancerProvider:
        client = NetworkLoadBalancerClient(credentials.config, signer=credentials.signer)
        return cls(client, **kwargs)

    def determine_port(self, node_port: int, legacy_port: int, multi_service: bool) -> int:
        return legacy_port or node_port

    def _options(self, backend_set) -> dict:
        return {name: getattr(backend_set, name, None) for name in BACKEND_SET_OPTIONS}

    def _check_targets(self, targets: Sequence[BackendTarget]) -> None:
        if not targets:
            raise NoBackendsError("no backends found")

    def _get_backend_set(self, load_balancer_id: str, backend_set_name: str):
        return self.client.get_backend_set(
            network_load_balancer_id=load_balancer_id, backend_set_name=backend_set_name
        )

    def _update_backend_set(self, load_balancer_id: str, backend_set_name: str, details):
        return self.client.update_backend_set(
            network_load_balancer_id=load_balancer_id,
            update_backend_set_details=details,
            backend_set_name=backend_set_name,
        )

    def _update_details(
        self, targets: Sequence[BackendTarget], snapshot: BackendSetSnapshot
    ) -> UpdateBackendSetDetails:
        details = copy_model(
            UpdateBackendSetDetails,
            SimpleNamespace(**snapshot.options),
            BACKEND_SET_OPTIONS,
        )
        details.backends = [
            BackendDetails(ip_address=t.ip_address, port=t.port, weight=t.weight)
            for t in targets
        ]
        details.health_checker = copy_health_checker(snapshot.health_checker)
        details.policy = snapshot.policy
        return details

    def _wait(self, response, cancel: threading.Event | None) -> None:
        work_request_id = response.headers.get("opc-work-request-id")
        logger.debug("updated backend set, waiting for work request %s", work_request_id)
        workrequest.await_work_request(
            self.client,
            work_request_id,
            poll_interval=self.poll_interval,
            max_attempts=self.max_attempts,
            cancel=cancel,
        )
