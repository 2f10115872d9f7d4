# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Typed view of the `LBRegistrar` resource and the values exchanged with OCI.

The resource arrives from the Kubernetes API as a plain dict. `Declaration.from_dict`
validates it once so the rest of the controller works with frozen dataclasses.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any

from lbregistrar.errors import ConfigError

DEFAULT_WEIGHT = 1


class Phase(enum.Enum):
    """Progress marker persisted in `status.phase`."""

    NEW = ""
    PENDING = "PENDING"
    REGISTERING = "REGISTERING"
    READY = "READY"

    @classmethod
    def parse(cls, raw: Any) -> Phase:
        """Return the phase for a persisted value; anything unknown is NEW."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw or "").strip().upper())
        except ValueError:
            return cls.NEW

    def advance(self) -> Phase:
        """Phase reached once this phase's side effect has succeeded."""
        return _ADVANCE[self]

    @property
    def is_settling(self) -> bool:
        """True while a refresh to PENDING would be redundant."""
        return self in (Phase.NEW, Phase.PENDING)


_ADVANCE = {
    Phase.NEW: Phase.PENDING,
    Phase.PENDING: Phase.REGISTERING,
    Phase.REGISTERING: Phase.READY,
    Phase.READY: Phase.READY,
}


def _validate_port(name: str, value: int) -> int:
    if not (1 <= value <= 65535):
        raise ConfigError(f"{name} must be between 1 and 65535")
    return value


def _optional_int(name: str, raw: Any) -> int:
    if raw in (None, ""):
        return 0
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer") from e
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def _required_str(obj: dict[str, Any], key: str, where: str) -> str:
    value = str(obj.get(key) or "").strip()
    if not value:
        raise ConfigError(f"{where}.{key} must be set")
    return value


@dataclass(frozen=True)
class ServiceRef:
    """A service whose node port receives traffic from the load balancer.

    `port` is either the service port number or the service port name.
    A weight of 0 and an empty backend set name mean "use the declaration's".
    """

    name: str
    namespace: str
    port: int | str
    filter_by_endpoints: bool = False
    weight: int = 0
    backend_set_name: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any], where: str = "spec.service") -> ServiceRef:
        if not isinstance(raw, dict):
            raise ConfigError(f"{where} must be an object")
        port = raw.get("port")
        if isinstance(port, bool) or port is None or port == "":
            raise ConfigError(f"{where}.port must be a port number or name")
        if isinstance(port, int):
            port = _validate_port(f"{where}.port", port)
        else:
            port = str(port).strip()
        return cls(
            name=_required_str(raw, "name", where),
            namespace=_required_str(raw, "namespace", where),
            port=port,
            filter_by_endpoints=bool(raw.get("filterByEndpoints", False)),
            weight=_optional_int(f"{where}.weight", raw.get("weight")),
            backend_set_name=str(raw.get("backendSetName") or "").strip(),
        )

    def matches(self, namespace: str | None, name: str | None) -> bool:
        return self.namespace == namespace and self.name == name


@dataclass(frozen=True)
class PrivateKeyRef:
    namespace: str
    secret_name: str
    key: str


@dataclass(frozen=True)
class ApiKey:
    user: str
    fingerprint: str
    tenancy: str
    region: str
    private_key: PrivateKeyRef

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ApiKey:
        where = "spec.apiKey"
        if not isinstance(raw, dict):
            raise ConfigError(f"{where} must be set")
        pk = raw.get("privateKey") or {}
        ref = pk.get("secretKeyRef") or {}
        return cls(
            user=_required_str(raw, "user", where),
            fingerprint=_required_str(raw, "fingerprint", where),
            tenancy=_required_str(raw, "tenancy", where),
            region=_required_str(raw, "region", where),
            private_key=PrivateKeyRef(
                namespace=_required_str(pk, "namespace", f"{where}.privateKey"),
                secret_name=_required_str(ref, "name", f"{where}.privateKey.secretKeyRef"),
                key=_required_str(ref, "key", f"{where}.privateKey.secretKeyRef"),
            ),
        )


@dataclass(frozen=True)
class Declaration:
    """Desired backend membership for one load balancer backend set."""

    name: str
    load_balancer_id: str
    backend_set_name: str
    api_key: ApiKey
    weight: int = DEFAULT_WEIGHT
    node_port: int = 0
    port: int = 0
    service: ServiceRef | None = None
    services: tuple[ServiceRef, ...] = ()
    phase: Phase = Phase.NEW
    uid: str = ""
    resource_version: str = ""

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> Declaration:
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}

        service = spec.get("service")
        services = tuple(
            ServiceRef.from_dict(s, f"spec.services[{i}]")
            for i, s in enumerate(spec.get("services") or [])
        )
        weight = _optional_int("spec.weight", spec.get("weight")) or DEFAULT_WEIGHT

        node_port = _optional_int("spec.nodePort", spec.get("nodePort"))
        port = _optional_int("spec.port", spec.get("port"))
        for label, value in (("spec.nodePort", node_port), ("spec.port", port)):
            if value:
                _validate_port(label, value)

        decl = cls(
            name=str(metadata.get("name") or ""),
            uid=str(metadata.get("uid") or ""),
            resource_version=str(metadata.get("resourceVersion") or ""),
            load_balancer_id=_required_str(spec, "loadBalancerId", "spec"),
            backend_set_name=_required_str(spec, "backendSetName", "spec"),
            api_key=ApiKey.from_dict(spec.get("apiKey")),
            weight=weight,
            node_port=node_port,
            port=port,
            service=ServiceRef.from_dict(service) if service else None,
            services=services,
            phase=Phase.parse(status.get("phase")),
        )
        if not (decl.services or decl.service or decl.explicit_port):
            raise ConfigError("one of spec.nodePort, spec.service or spec.services must be set")
        return decl

    @property
    def explicit_port(self) -> int:
        """The port given directly on the spec; the deprecated `port` wins."""
        return self.port or self.node_port

    @property
    def multi_service(self) -> bool:
        return bool(self.services)

    def references(self) -> tuple[ServiceRef, ...]:
        """Every service reference, multi-service list first."""
        if self.services:
            return self.services
        return (self.service,) if self.service else ()

    def weight_for(self, ref: ServiceRef) -> int:
        return ref.weight or self.weight

    def backend_set_for(self, ref: ServiceRef) -> str:
        return ref.backend_set_name or self.backend_set_name

    def watches_endpoints_of(self, namespace: str | None, name: str | None) -> bool:
        """True when endpoint changes of the given service affect this declaration."""
        refs = list(self.services)
        if self.service:
            refs.append(self.service)
        return any(ref.filter_by_endpoints and ref.matches(namespace, name) for ref in refs)

    def with_phase(self, phase: Phase, resource_version: str | None = None) -> Declaration:
        if resource_version is None:
            resource_version = self.resource_version
        return replace(self, phase=phase, resource_version=resource_version)


@dataclass(frozen=True)
class BackendTarget:
    """An (address, port, weight) triple registered to a backend set."""

    ip_address: str
    port: int
    weight: int
    name: str = ""

    def key(self) -> tuple[str, int, int]:
        return (self.ip_address, self.port, self.weight)


@dataclass(frozen=True)
class BackendSetSnapshot:
    """Current backends of a backend set and the settings echoed on update.

    `health_checker` and `policy` are the SDK values as read; `options` holds
    the variant specific flags that must survive an update as well.
    """

    backends: tuple[BackendTarget, ...]
    health_checker: Any
    policy: Any
    options: dict[str, Any] = field(default_factory=dict)
