# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""OCI credentials and selection of the backend set variant."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import oci

from lbregistrar.cloud.base import BackendSetProvider
from lbregistrar.cloud.loadbalancer import LoadBalancerProvider
from lbregistrar.cloud.networkloadbalancer import NetworkLoadBalancerProvider
from lbregistrar.errors import CloudError, ConfigError
from lbregistrar.models import ApiKey

logger = logging.getLogger(__name__)

NETWORK_LOAD_BALANCER_MARKER = ".networkloadbalancer."


@dataclass(frozen=True)
class Credentials:
    """Request signing material for the OCI clients of one declaration."""

    config: dict
    signer: oci.signer.Signer

    def __repr__(self) -> str:
        return f"Credentials(user={self.config.get('user')!r}, region={self.config.get('region')!r})"


def new_credentials(api_key: ApiKey, private_key: str) -> Credentials:
    """Build OCI credentials from the API key spec and the PEM private key."""
    if not private_key or not private_key.strip():
        raise ConfigError("private key must not be empty")
    config = {
        "user": api_key.user,
        "fingerprint": api_key.fingerprint,
        "tenancy": api_key.tenancy,
        "region": api_key.region,
    }
    try:
        signer = oci.signer.Signer(
            tenancy=api_key.tenancy,
            user=api_key.user,
            fingerprint=api_key.fingerprint,
            private_key_file_location=None,
            private_key_content=private_key,
        )
    except (
        oci.exceptions.InvalidPrivateKey,
        oci.exceptions.MissingPrivateKeyPassphrase,
        ValueError,
    ) as e:
        raise ConfigError(f"invalid private key: {e}") from e
    return Credentials(config=config, signer=signer)


def is_network_load_balancer(load_balancer_id: str) -> bool:
    return NETWORK_LOAD_BALANCER_MARKER in load_balancer_id


def new_backend_client(
    load_balancer_id: str,
    credentials: Credentials,
    poll_interval: float | None = None,
    max_attempts: int | None = None,
) -> BackendSetProvider:
    """Return the provider matching the shape of `load_balancer_id`."""
    try:
        if is_network_load_balancer(load_balancer_id):
            logger.debug("creating network load balancer client for %s", load_balancer_id)
            kwargs = {}
            if poll_interval is not None:
                kwargs["poll_interval"] = poll_interval
            if max_attempts is not None:
                kwargs["max_attempts"] = max_attempts
            return NetworkLoadBalancerProvider.from_credentials(credentials, **kwargs)
        logger.debug("creating load balancer client for %s", load_balancer_id)
        return LoadBalancerProvider.from_credentials(credentials)
    except (oci.exceptions.InvalidConfig, ValueError) as e:
        raise CloudError(f"error creating load balancer client: {e}") from e
