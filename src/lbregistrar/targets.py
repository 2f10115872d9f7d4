# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Turn cluster nodes into load balancer backend targets."""

from __future__ import annotations

from collections.abc import Iterable

from lightkube.resources.core_v1 import Node

from lbregistrar.models import BackendTarget

INTERNAL_IP = "InternalIP"


def internal_address(node: Node) -> str | None:
    """First InternalIP address of the node, if any."""
    addresses = (node.status.addresses if node.status else None) or []
    for addr in addresses:
        if addr.type == INTERNAL_IP and addr.address:
            return addr.address
    return None


def build_targets(nodes: Iterable[Node], port: int, weight: int) -> list[BackendTarget]:
    """Backend targets for `nodes`, in node order.

    Nodes without an internal address cannot receive traffic and are skipped.
    """
    targets = []
    for node in nodes:
        address = internal_address(node)
        if address is None:
            continue
        targets.append(BackendTarget(ip_address=address, port=port, weight=weight))
    return targets
