"""Routing that exposes endpoints only inside the cluster, through the shared Service."""
import logging
from typing import Any, Dict, List, Mapping, Tuple

from ....crds.routing import EndpointMap, ExposedEndpoint, Exposure, PodAdditions, RoutingSpec
from .common import (
    RoutingObjects,
    WorkspaceMetadata,
    get_services_for_endpoints,
    is_discoverable_service,
    iter_endpoints,
)
from .errors import RoutingInvalid
from .naming import serving_cert_volume_name
from .proxy import SECRET_DEFAULT_MODE
from .resolve import ExposedEndpointMap

SERVING_CERT_ANNOTATION = "service.beta.openshift.io/serving-cert-secret-name"
SERVING_CERT_MOUNT_PATH = "/var/serving-cert/"


def get_service_url(service: Mapping[str, Any], port: int) -> str:
    annotations = service.get("metadata", {}).get("annotations") or {}
    scheme = "https" if SERVING_CERT_ANNOTATION in annotations else "http"
    meta = service["metadata"]
    return f"{scheme}://{meta['name']}.{meta.get('namespace', '')}.svc:{port}"


def resolve_service_url(name: str, port: int, services: List[Dict[str, Any]]) -> str:
    for service in services:
        if is_discoverable_service(service):
            continue
        for service_port in service.get("spec", {}).get("ports") or []:
            if service_port.get("port") == port:
                return get_service_url(service, port)
    raise RoutingInvalid(f"could not find service for endpoint '{name}'")


class ClusterSolver:
    finalizer_required = False

    def __init__(self, tls: bool = False) -> None:
        self.tls = tls

    async def finalize(self, cluster, meta: WorkspaceMetadata, logger: logging.Logger) -> None:
        return None

    def get_spec_objects(self, spec: RoutingSpec, meta: WorkspaceMetadata) -> RoutingObjects:
        services = get_services_for_endpoints(spec.endpoints, meta, spec.service)
        pod_additions = PodAdditions()
        if self.tls:
            for service in services:
                name = service["metadata"]["name"]
                service["metadata"].setdefault("annotations", {})[SERVING_CERT_ANNOTATION] = name
                pod_additions.volumes.append(
                    {
                        "name": serving_cert_volume_name(name),
                        "secret": {"secretName": name, "defaultMode": SECRET_DEFAULT_MODE},
                    }
                )
                pod_additions.volume_mounts.append(
                    {
                        "name": serving_cert_volume_name(name),
                        "readOnly": True,
                        "mountPath": SERVING_CERT_MOUNT_PATH,
                    }
                )
        return RoutingObjects(services=services, pod_additions=pod_additions)

    def get_exposed_endpoints(
        self, endpoints: EndpointMap, routing_objects: RoutingObjects
    ) -> Tuple[ExposedEndpointMap, bool]:
        exposed: ExposedEndpointMap = {}
        for component, endpoint in iter_endpoints(endpoints):
            if endpoint.exposure != Exposure.PUBLIC:
                continue
            url = resolve_service_url(endpoint.name, endpoint.target_port, routing_objects.services)
            exposed.setdefault(component, []).append(
                ExposedEndpoint(name=endpoint.name, url=url, attributes=dict(endpoint.attributes))
            )
        return exposed, True
