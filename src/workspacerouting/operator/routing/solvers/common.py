"""
Builders shared by every routing solver.

Everything in this module is a pure function of the endpoint map and the
workspace metadata: no cluster access, no logging. Manifests are plain dicts
ready to be handed to the kubernetes client.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ....crds.const import (
    DISCOVERABLE_SERVICE_ANNOTATION,
    ENDPOINT_NAME_ANNOTATION,
    WORKSPACE_ID_LABEL,
    WORKSPACE_NAME_LABEL,
)
from ....crds.routing import Endpoint, EndpointMap, Exposure, PodAdditions, ServiceConfig
from .errors import RoutingInvalid, ServiceConflictError
from .naming import (
    discoverable_service_name,
    endpoint_hostname,
    endpoint_name,
    route_name,
    service_name,
    service_port_name,
)

ROUTE_ANNOTATIONS = {
    "haproxy.router.openshift.io/rewrite-target": "/",
}

NGINX_INGRESS_ANNOTATIONS = {
    "kubernetes.io/ingress.class": "nginx",
    "nginx.ingress.kubernetes.io/rewrite-target": "/",
    "nginx.ingress.kubernetes.io/ssl-redirect": "false",
}

EXPOSED_ON_SERVICE = (Exposure.PUBLIC, Exposure.INTERNAL)


@dataclass
class WorkspaceMetadata:
    workspace_id: str
    namespace: str
    uid: str = ""
    pod_selector: Dict[str, str] = field(default_factory=dict)
    routing_suffix: str = ""
    workspace_name: str = ""

    def labels(self) -> Dict[str, str]:
        labels = {WORKSPACE_ID_LABEL: self.workspace_id}
        if self.workspace_name:
            labels[WORKSPACE_NAME_LABEL] = self.workspace_name
        return labels


@dataclass
class RoutingObjects:
    services: List[Dict[str, Any]] = field(default_factory=list)
    ingresses: List[Dict[str, Any]] = field(default_factory=list)
    routes: List[Dict[str, Any]] = field(default_factory=list)
    pod_additions: Optional[PodAdditions] = None
    oauth_client: Optional[Dict[str, Any]] = None

    def namespaced_objects(self) -> Iterable[Dict[str, Any]]:
        yield from self.services
        yield from self.ingresses
        yield from self.routes


def iter_endpoints(endpoints: EndpointMap) -> Iterable[Tuple[str, Endpoint]]:
    for component, component_endpoints in endpoints.items():
        for endpoint in component_endpoints:
            yield component, endpoint


def create_annotations(
    name: str,
    override: Optional[Mapping[str, str]],
    defaults: Mapping[str, str],
) -> Dict[str, str]:
    """
    Annotations for an Ingress or Route.

    `override` is tri-state: None applies the platform defaults, an empty
    mapping applies nothing, anything else replaces the defaults wholesale.
    """
    annotations = {ENDPOINT_NAME_ANNOTATION: name}
    annotations.update(defaults if override is None else override)
    return annotations


def merge_service_annotations(
    source: Optional[Mapping[str, str]], configs: Iterable[ServiceConfig]
) -> Dict[str, str]:
    annotations = dict(source or {})
    for config in configs:
        if config.annotations:
            annotations.update(config.annotations)
    return annotations


def _service_port(endpoint: Endpoint) -> Dict[str, Any]:
    return {
        "name": service_port_name(endpoint.name, endpoint.target_port),
        "protocol": "TCP",
        "port": endpoint.target_port,
        "targetPort": endpoint.target_port,
    }


def _service(
    name: str,
    meta: WorkspaceMetadata,
    ports: List[Dict[str, Any]],
    annotations: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "name": name,
        "namespace": meta.namespace,
        "labels": meta.labels(),
    }
    if annotations:
        metadata["annotations"] = annotations
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": metadata,
        "spec": {
            "ports": ports,
            "selector": dict(meta.pod_selector),
            "type": "ClusterIP",
        },
    }


def get_services_for_endpoints(
    endpoints: EndpointMap,
    meta: WorkspaceMetadata,
    service_configs: Optional[Mapping[str, ServiceConfig]] = None,
    annotations: Optional[Mapping[str, str]] = None,
    exposures: Tuple[Exposure, ...] = EXPOSED_ON_SERVICE,
) -> List[Dict[str, Any]]:
    """
    Build the shared workspace Service.

    Ports are collected from every endpoint whose exposure is in `exposures`
    and de-duplicated by port number: the first endpoint declaring a port
    names it.
    """
    ports: List[Dict[str, Any]] = []
    seen = set()
    for _, endpoint in iter_endpoints(endpoints):
        if endpoint.exposure not in exposures:
            continue
        if endpoint.target_port in seen:
            continue
        seen.add(endpoint.target_port)
        ports.append(_service_port(endpoint))

    if not ports:
        return []

    configs = (service_configs or {}).values()
    return [
        _service(
            service_name(meta.workspace_id),
            meta,
            ports,
            merge_service_annotations(annotations, configs),
        )
    ]


def get_discoverable_services_for_endpoints(
    endpoints: EndpointMap, meta: WorkspaceMetadata
) -> List[Dict[str, Any]]:
    """One Service per discoverable endpoint, named after the endpoint."""
    services: List[Dict[str, Any]] = []
    seen = set()
    for _, endpoint in iter_endpoints(endpoints):
        if not endpoint.discoverable:
            continue
        name = discoverable_service_name(endpoint.name)
        if name in seen:
            continue
        seen.add(name)
        services.append(
            _service(
                name,
                meta,
                [_service_port(endpoint)],
                {
                    DISCOVERABLE_SERVICE_ANNOTATION: "true",
                    ENDPOINT_NAME_ANNOTATION: endpoint.name,
                },
            )
        )
    return services


def is_discoverable_service(service: Mapping[str, Any]) -> bool:
    annotations = service.get("metadata", {}).get("annotations") or {}
    return annotations.get(DISCOVERABLE_SERVICE_ANNOTATION) == "true"


def check_discoverable_service_conflict(
    desired: Mapping[str, Any],
    existing: Optional[Mapping[str, Any]],
    meta: WorkspaceMetadata,
) -> None:
    """
    Raise ServiceConflictError if `existing` (the cluster copy of a
    discoverable Service) belongs to a different workspace.
    """
    if existing is None or not is_discoverable_service(desired):
        return
    labels = existing.get("metadata", {}).get("labels") or {}
    if labels.get(WORKSPACE_ID_LABEL) == meta.workspace_id:
        return
    annotations = desired["metadata"].get("annotations") or {}
    occupant = labels.get(WORKSPACE_NAME_LABEL) or labels.get(WORKSPACE_ID_LABEL) or ""
    raise ServiceConflictError(
        annotations.get(ENDPOINT_NAME_ANNOTATION, desired["metadata"]["name"]),
        occupant,
    )


def endpoint_annotation_override(
    endpoint: Endpoint, default_override: Optional[Mapping[str, str]]
) -> Optional[Mapping[str, str]]:
    if endpoint.annotations is not None:
        return endpoint.annotations
    return default_override


def get_route_for_endpoint(
    endpoint: Endpoint,
    meta: WorkspaceMetadata,
    annotation_override: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    name = endpoint_name(endpoint.name)
    return {
        "apiVersion": "route.openshift.io/v1",
        "kind": "Route",
        "metadata": {
            "name": route_name(meta.workspace_id, name),
            "namespace": meta.namespace,
            "labels": meta.labels(),
            "annotations": create_annotations(
                endpoint.name, annotation_override, ROUTE_ANNOTATIONS
            ),
        },
        "spec": {
            "host": endpoint_hostname(
                meta.workspace_id, name, endpoint.target_port, meta.routing_suffix
            ),
            "to": {"kind": "Service", "name": service_name(meta.workspace_id)},
            "port": {"targetPort": endpoint.target_port},
            "tls": {
                "termination": "edge",
                "insecureEdgeTerminationPolicy": "Redirect",
            },
        },
    }


def get_ingress_for_endpoint(
    endpoint: Endpoint,
    meta: WorkspaceMetadata,
    annotation_override: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    name = endpoint_name(endpoint.name)
    hostname = endpoint_hostname(
        meta.workspace_id, name, endpoint.target_port, meta.routing_suffix
    )
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {
            "name": route_name(meta.workspace_id, name),
            "namespace": meta.namespace,
            "labels": meta.labels(),
            "annotations": create_annotations(
                endpoint.name, annotation_override, NGINX_INGRESS_ANNOTATIONS
            ),
        },
        "spec": {
            "rules": [
                {
                    "host": hostname,
                    "http": {
                        "paths": [
                            {
                                "path": "/",
                                "pathType": "ImplementationSpecific",
                                "backend": {
                                    "service": {
                                        "name": service_name(meta.workspace_id),
                                        "port": {"number": endpoint.target_port},
                                    }
                                },
                            }
                        ]
                    },
                }
            ]
        },
    }


def get_routes_for_spec(
    endpoints: EndpointMap,
    meta: WorkspaceMetadata,
    default_override: Optional[Mapping[str, str]] = None,
) -> List[Dict[str, Any]]:
    return [
        get_route_for_endpoint(
            endpoint, meta, endpoint_annotation_override(endpoint, default_override)
        )
        for _, endpoint in iter_endpoints(endpoints)
        if endpoint.exposure == Exposure.PUBLIC
    ]


def get_ingresses_for_spec(
    endpoints: EndpointMap,
    meta: WorkspaceMetadata,
    default_override: Optional[Mapping[str, str]] = None,
) -> List[Dict[str, Any]]:
    return [
        get_ingress_for_endpoint(
            endpoint, meta, endpoint_annotation_override(endpoint, default_override)
        )
        for _, endpoint in iter_endpoints(endpoints)
        if endpoint.exposure == Exposure.PUBLIC
    ]


def check_unique_object_names(objects: RoutingObjects) -> None:
    """
    Raise RoutingInvalid if two endpoints generate objects of the same kind
    and name.

    Endpoint names are only unique within a component, while generated
    objects share the workspace namespace.
    """
    seen: Dict[Tuple[str, str], str] = {}
    for obj in objects.namespaced_objects():
        metadata = obj["metadata"]
        key = (obj["kind"], metadata["name"])
        annotations = metadata.get("annotations") or {}
        endpoint = annotations.get(ENDPOINT_NAME_ANNOTATION, metadata["name"])
        if key not in seen:
            seen[key] = endpoint
            continue
        if seen[key] == endpoint:
            raise RoutingInvalid(f"endpoint name '{endpoint}' is used by more than one component")
        raise RoutingInvalid(
            f"endpoints '{seen[key]}' and '{endpoint}' both generate {obj['kind']} '{metadata['name']}'"
        )
