# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""The `LBRegistrar` custom resource, its status writes and its events."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from lightkube import Client
from lightkube.core.exceptions import ApiError
from lightkube.generic_resource import create_global_resource
from lightkube.models.core_v1 import EventSource, ObjectReference
from lightkube.models.meta_v1 import ObjectMeta
from lightkube.resources.core_v1 import Event
from lightkube.types import PatchType

from lbregistrar.errors import ConfigError
from lbregistrar.models import Declaration, Phase

logger = logging.getLogger(__name__)

GROUP = "nodes.peppy-ratio.dev"
VERSION = "v1alpha2"
KIND = "LBRegistrar"
PLURAL = "lbregistrars"
API_VERSION = f"{GROUP}/{VERSION}"

LBRegistrar = create_global_resource(group=GROUP, version=VERSION, kind=KIND, plural=PLURAL)

EVENT_NORMAL = "Normal"
EVENT_WARNING = "Warning"


def as_dict(obj) -> dict:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class DeclarationStore:
    """Reads declarations and is the only writer of `status.phase`."""

    def __init__(self, client: Client):
        self.client = client

    def get(self, name: str) -> Declaration | None:
        """Return the declaration, or None when it no longer exists."""
        try:
            obj = self.client.get(LBRegistrar, name=name)
        except ApiError as e:
            if e.status.code == 404:
                return None
            raise
        return Declaration.from_dict(as_dict(obj))

    def list(self) -> list[Declaration]:
        """All declarations that parse; invalid ones are logged and skipped."""
        declarations = []
        for obj in self.client.list(LBRegistrar):
            raw = as_dict(obj)
            try:
                declarations.append(Declaration.from_dict(raw))
            except ConfigError as e:
                name = (raw.get("metadata") or {}).get("name")
                logger.warning("skipping invalid LBRegistrar %s: %s", name, e)
        return declarations

    def set_phase(self, declaration: Declaration, phase: Phase) -> Declaration:
        """Persist `phase` in the status sub-resource.

        The write carries the resource version the declaration was read at, so
        it fails with a 409 Conflict when another writer got there first.
        """
        body: dict = {"status": {"phase": phase.value}}
        if declaration.resource_version:
            body["metadata"] = {"resourceVersion": declaration.resource_version}
        obj = self.client.patch(
            LBRegistrar.Status,
            declaration.name,
            body,
            patch_type=PatchType.MERGE,
        )
        version = obj.metadata.resourceVersion if obj is not None and obj.metadata else None
        logger.debug("LBRegistrar %s phase %r (version %s)", declaration.name, phase.value, version)
        return declaration.with_phase(phase, version)


class EventRecorder:
    """Posts core/v1 Events attached to a declaration."""

    def __init__(self, client: Client, component: str, namespace: str = "default"):
        self.client = client
        self.component = component
        self.namespace = namespace

    def normal(self, declaration: Declaration, reason: str, message: str) -> None:
        self.record(declaration, EVENT_NORMAL, reason, message)

    def warning(self, declaration: Declaration, reason: str, message: str) -> None:
        self.record(declaration, EVENT_WARNING, reason, message)

    def record(self, declaration: Declaration, event_type: str, reason: str, message: str) -> None:
        now = datetime.now(timezone.utc)
        event = Event(
            metadata=ObjectMeta(generateName=f"{declaration.name}.", namespace=self.namespace),
            involvedObject=ObjectReference(
                apiVersion=API_VERSION,
                kind=KIND,
                name=declaration.name,
                uid=declaration.uid or None,
            ),
            type=event_type,
            reason=reason,
            message=message,
            count=1,
            firstTimestamp=now,
            lastTimestamp=now,
            source=EventSource(component=self.component),
        )
        try:
            self.client.create(event)
        except ApiError as e:
            logger.error(
                "unable to record %s event for %s: %s", reason, declaration.name, e.status.message
            )
