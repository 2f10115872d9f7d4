# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""OCI load balancer clients."""

from lbregistrar.cloud.base import BackendSetProvider
from lbregistrar.cloud.provider import (
    Credentials,
    is_network_load_balancer,
    new_backend_client,
    new_credentials,
)

__all__ = [
    "BackendSetProvider",
    "Credentials",
    "is_network_load_balancer",
    "new_backend_client",
    "new_credentials",
]
