# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Backend sets of OCI (classic) Load Balancers."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from oci.load_balancer import LoadBalancerClient
from oci.load_balancer.models import BackendDetails, HealthCheckerDetails, UpdateBackendSetDetails

from lbregistrar.cloud.base import BackendSetProvider, copy_model
from lbregistrar.models import BackendSetSnapshot, BackendTarget

logger = logging.getLogger(__name__)

HEALTH_CHECKER_FIELDS = (
    "protocol",
    "url_path",
    "port",
    "return_code",
    "retries",
    "timeout_in_millis",
    "interval_in_millis",
    "response_body_regex",
    "is_force_plain_text",
)


def copy_health_checker(checker) -> HealthCheckerDetails | None:
    if checker is None:
        return None
    return copy_model(HealthCheckerDetails, checker, HEALTH_CHECKER_FIELDS)


class LoadBalancerProvider(BackendSetProvider):
    """Synchronous variant: the update call returning is completion."""

    kind = "loadbalancer"

    @classmethod
    def from_credentials(cls, credentials) -> LoadBalancerProvider:
        return cls(LoadBalancerClient(credentials.config, signer=credentials.signer))

    def determine_port(self, node_port: int, legacy_port: int, multi_service: bool) -> int:
        if multi_service:
            return node_port
        return legacy_port or node_port

    def _get_backend_set(self, load_balancer_id: str, backend_set_name: str):
        return self.client.get_backend_set(
            load_balancer_id=load_balancer_id, backend_set_name=backend_set_name
        )

    def _update_backend_set(self, load_balancer_id: str, backend_set_name: str, details):
        return self.client.update_backend_set(
            update_backend_set_details=details,
            load_balancer_id=load_balancer_id,
            backend_set_name=backend_set_name,
        )

    def _update_details(
        self, targets: Sequence[BackendTarget], snapshot: BackendSetSnapshot
    ) -> UpdateBackendSetDetails:
        return UpdateBackendSetDetails(
            backends=[
                BackendDetails(ip_address=t.ip_address, port=t.port, weight=t.weight)
                for t in targets
            ],
            health_checker=copy_health_checker(snapshot.health_checker),
            policy=snapshot.policy,
        )
