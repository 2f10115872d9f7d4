# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Watch event handlers that send declarations back to PENDING."""

from __future__ import annotations

import logging
from collections.abc import Callable

from lightkube.core.exceptions import ApiError
from lightkube.resources.core_v1 import Endpoints, Node

from lbregistrar.models import Declaration, Phase
from lbregistrar.resources import DeclarationStore, EventRecorder

logger = logging.getLogger(__name__)


def _name(obj) -> tuple[str | None, str | None]:
    metadata = obj.metadata
    return (metadata.namespace, metadata.name) if metadata else (None, None)


class _RefreshHandler:
    def __init__(self, store: DeclarationStore, recorder: EventRecorder):
        self.store = store
        self.recorder = recorder

    def refresh_to_pending(
        self,
        affected: Callable[[Declaration], bool],
        reason: str,
        message: str,
    ) -> int:
        """Move every affected declaration not already NEW or PENDING to PENDING.

        Returns the number of declarations moved; each one gets an event.
        """
        try:
            declarations = self.store.list()
        except ApiError as e:
            logger.error("failed to list LBRegistrar resources: %s", e.status.message)
            return 0

        count = 0
        for declaration in declarations:
            if declaration.phase.is_settling or not affected(declaration):
                continue
            try:
                self.store.set_phase(declaration, Phase.PENDING)
            except ApiError as e:
                logger.error(
                    "failed to update LBRegistrar %s status: %s",
                    declaration.name, e.status.message,
                )
                continue
            self.recorder.normal(declaration, reason, message)
            count += 1
        return count


class NodeHandler(_RefreshHandler):
    """Node creation and deletion change the backend topology; updates do not."""

    def create(self, node: Node) -> int:
        _, name = _name(node)
        logger.debug("node %s created", name)
        return self.refresh(name)

    def update(self, old: Node | None, new: Node) -> int:
        return 0

    def delete(self, node: Node) -> int:
        _, name = _name(node)
        logger.debug("node %s deleted", name)
        return self.refresh(name)

    def refresh(self, node_name: str | None) -> int:
        return self.refresh_to_pending(
            lambda declaration: True,
            "PhaseChange",
            f"node {node_name} changed, phase set to {Phase.PENDING.value}",
        )


class EndpointsHandler(_RefreshHandler):
    """Endpoint changes affect declarations filtering on that service."""

    def create(self, endpoints: Endpoints) -> int:
        return self.handle_change(endpoints)

    def update(self, old: Endpoints | None, new: Endpoints) -> int:
        return self.handle_change(new)

    def delete(self, endpoints: Endpoints) -> int:
        return self.handle_change(endpoints)

    def handle_change(self, endpoints: Endpoints) -> int:
        namespace, name = _name(endpoints)
        count = self.refresh_to_pending(
            lambda declaration: declaration.watches_endpoints_of(namespace, name),
            "EndpointsChanged",
            f"Service {namespace}/{name} endpoints changed, triggering reconciliation",
        )
        if count:
            logger.info(
                "triggered reconciliation for %d LBRegistrar resources after %s/%s endpoints changed",
                count, namespace, name,
            )
        return count
