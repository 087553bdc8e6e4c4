"""
Typed view of the WorkspaceRouting custom resource.

kopf hands handlers plain mappings; everything below the handler layer works
on these dataclasses and converts back to dicts only when writing status.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .base import BaseCustomResource, ObjectMeta
from .const import (
    CRD_GROUP,
    CRD_KIND_ROUTING,
    CRD_PLURAL_ROUTING,
    CRD_VERSION,
    DISCOVERABLE_ATTRIBUTE,
    TYPE_ATTRIBUTE,
)


class Exposure(str, Enum):
    PUBLIC = "public"
    INTERNAL = "internal"
    NONE = "none"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Exposure":
        # An unset exposure means public.
        if not value:
            return cls.PUBLIC
        return cls(str(value).lower())


def _is_true(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() == "true"


def _optional_mapping(value: Any) -> Optional[Dict[str, str]]:
    # None means "not set"; an empty mapping is an explicit, empty override.
    if value is None:
        return None
    return {str(k): str(v) for k, v in value.items()}


@dataclass(frozen=True)
class Endpoint:
    name: str
    target_port: int
    exposure: Exposure = Exposure.PUBLIC
    protocol: str = "http"
    secure: bool = False
    path: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    annotations: Optional[Dict[str, str]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Endpoint":
        return cls(
            name=data["name"],
            target_port=int(data["targetPort"]),
            exposure=Exposure.parse(data.get("exposure")),
            protocol=data.get("protocol") or "http",
            secure=_is_true(data.get("secure", False)),
            path=data.get("path") or "",
            attributes=dict(data.get("attributes") or {}),
            annotations=_optional_mapping(data.get("annotations")),
        )

    @property
    def discoverable(self) -> bool:
        return _is_true(self.attributes.get(DISCOVERABLE_ATTRIBUTE, False))

    @property
    def endpoint_type(self) -> Optional[str]:
        value = self.attributes.get(TYPE_ATTRIBUTE)
        return str(value) if value is not None else None


EndpointMap = Dict[str, List[Endpoint]]


@dataclass(frozen=True)
class ServiceConfig:
    annotations: Optional[Dict[str, str]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ServiceConfig":
        return cls(annotations=_optional_mapping(data.get("annotations")))


@dataclass
class RoutingSpec:
    workspace_id: str
    routing_class: str = ""
    routing_suffix: str = ""
    endpoints: EndpointMap = field(default_factory=dict)
    pod_selector: Dict[str, str] = field(default_factory=dict)
    service: Dict[str, ServiceConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RoutingSpec":
        endpoints = {
            component: [Endpoint.from_dict(e) for e in component_endpoints or []]
            for component, component_endpoints in (data.get("endpoints") or {}).items()
        }
        service = {
            component: ServiceConfig.from_dict(config or {})
            for component, config in (data.get("service") or {}).items()
        }
        return cls(
            workspace_id=data.get("workspaceId", ""),
            routing_class=data.get("routingClass") or "",
            routing_suffix=data.get("routingSuffix") or "",
            endpoints=endpoints,
            pod_selector=dict(data.get("podSelector") or {}),
            service=service,
        )


@dataclass
class ExposedEndpoint:
    name: str
    url: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "url": self.url}
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        return data


@dataclass
class PodAdditions:
    """Sidecars and volumes the workspace controller merges into the workspace pod."""

    containers: List[Dict[str, Any]] = field(default_factory=list)
    volumes: List[Dict[str, Any]] = field(default_factory=list)
    volume_mounts: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.containers:
            data["containers"] = self.containers
        if self.volumes:
            data["volumes"] = self.volumes
        if self.volume_mounts:
            data["volumeMounts"] = self.volume_mounts
        return data


def exposed_endpoints_to_dict(
    exposed: Dict[str, List[ExposedEndpoint]]
) -> Dict[str, List[Dict[str, Any]]]:
    return {
        component: [e.to_dict() for e in endpoints]
        for component, endpoints in exposed.items()
    }


class WorkspaceRouting(BaseCustomResource):
    group = CRD_GROUP
    version = CRD_VERSION
    kind = CRD_KIND_ROUTING
    plural = CRD_PLURAL_ROUTING
    namespaced = True

    def __init__(
        self,
        metadata: ObjectMeta,
        spec: RoutingSpec,
        status: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.metadata = metadata
        self.spec = spec
        self.status = status or {}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkspaceRouting":
        return cls(
            metadata=ObjectMeta.from_dict(data["metadata"]),
            spec=RoutingSpec.from_dict(data.get("spec") or {}),
            status=dict(data.get("status") or {}),
        )

    @property
    def phase(self) -> Optional[str]:
        return self.status.get("phase")
