# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Read nodes, services and endpoints from the cluster.

`ClusterInventory` resolves a service reference to the node port the load
balancer should target and decides which nodes take part in the backend set.
"""

from __future__ import annotations

import logging

from lightkube import Client
from lightkube.core.exceptions import ApiError
from lightkube.resources.core_v1 import Endpoints, Node, Pod, Service

from lbregistrar.errors import InventoryError
from lbregistrar.models import ServiceRef

logger = logging.getLogger(__name__)

NODE_PORT_SERVICE_TYPES = frozenset({"NodePort", "LoadBalancer"})


class ClusterInventory:
    """Cluster-side reads needed to compute backend targets."""

    def __init__(self, client: Client):
        self.client = client

    def _get(self, res, ref: ServiceRef, what: str):
        try:
            return self.client.get(res, name=ref.name, namespace=ref.namespace)
        except ApiError as e:
            if e.status.code == 404:
                raise InventoryError(f"{what} {ref.namespace}/{ref.name} not found") from e
            raise InventoryError(
                f"failed to get {what} {ref.namespace}/{ref.name}: {e.status.message}"
            ) from e

    def resolve_node_port(self, ref: ServiceRef) -> int:
        """Return the node port allocated for `ref.port`.

        The port is matched by number when it is an int, by name otherwise.
        A matching port without an allocated node port is an error rather
        than port 0.
        """
        svc = self._get(Service, ref, "service")
        spec = svc.spec
        svc_type = (spec.type if spec else None) or "ClusterIP"
        if svc_type not in NODE_PORT_SERVICE_TYPES:
            raise InventoryError(f"service {ref.namespace}/{ref.name} is not of type NodePort")

        by_number = isinstance(ref.port, int)
        for port in spec.ports or []:
            matched = port.port == ref.port if by_number else port.name == ref.port
            if not matched:
                continue
            if not port.nodePort:
                raise InventoryError(
                    f"nodePort is not allocated for port {ref.port} "
                    f"in service {ref.namespace}/{ref.name}"
                )
            logger.info(
                "found matching port %s of service %s/%s, nodePort %d",
                ref.port, ref.namespace, ref.name, port.nodePort,
            )
            return port.nodePort

        raise InventoryError(
            f"no matching port found for {ref.port!r} in service {ref.namespace}/{ref.name}"
        )

    def all_nodes(self) -> list[Node]:
        try:
            nodes = list(self.client.list(Node))
        except ApiError as e:
            raise InventoryError(f"failed to list nodes: {e.status.message}") from e
        logger.debug("found %d nodes", len(nodes))
        return nodes

    def endpoint_ips(self, ref: ServiceRef) -> set[str]:
        """Ready endpoint addresses of the service, deduplicated."""
        endpoints = self._get(Endpoints, ref, "endpoints")
        ips = set()
        for subset in endpoints.subsets or []:
            for address in subset.addresses or []:
                if address.ip:
                    ips.add(address.ip)
        return ips

    def filtered_nodes_for_service(self, ref: ServiceRef) -> list[Node]:
        """Nodes hosting at least one ready endpoint of the service.

        A service without endpoints yields an empty list, not an error.
        """
        ips = self.endpoint_ips(ref)
        if not ips:
            logger.info("service %s/%s has no ready endpoints", ref.namespace, ref.name)
            return []

        try:
            pods = self.client.list(Pod, namespace=ref.namespace)
            node_names = {
                pod.spec.nodeName
                for pod in pods
                if pod.status and pod.status.podIP in ips and pod.spec and pod.spec.nodeName
            }
        except ApiError as e:
            raise InventoryError(
                f"failed to list pods in namespace {ref.namespace}: {e.status.message}"
            ) from e

        nodes = [n for n in self.all_nodes() if n.metadata and n.metadata.name in node_names]
        logger.info(
            "service %s/%s is served from %d of the cluster nodes",
            ref.namespace, ref.name, len(nodes),
        )
        return nodes

    def nodes_for(self, ref: ServiceRef | None) -> list[Node]:
        if ref is not None and ref.filter_by_endpoints:
            return self.filtered_nodes_for_service(ref)
        return self.all_nodes()
