import dataclasses
import logging
from typing import Tuple

from ....crds.routing import EndpointMap, RoutingSpec
from ...config import OperatorConfig
from .common import (
    RoutingObjects,
    WorkspaceMetadata,
    check_unique_object_names,
    get_discoverable_services_for_endpoints,
    get_ingresses_for_spec,
    get_routes_for_spec,
    get_services_for_endpoints,
)
from .errors import RoutingInvalid
from .resolve import ExposedEndpointMap, get_exposed_endpoints


def with_routing_suffix(meta: WorkspaceMetadata, config: OperatorConfig) -> WorkspaceMetadata:
    """The instance's routing suffix, falling back to the cluster host suffix."""
    if meta.routing_suffix:
        return meta
    if not config.cluster_host_suffix:
        raise RoutingInvalid(
            "routing suffix is not set on the workspace routing and no cluster host suffix is configured"
        )
    return dataclasses.replace(meta, routing_suffix=config.cluster_host_suffix)


class BasicSolver:
    """
    Exposes endpoints through one shared Service plus an Ingress (Kubernetes)
    or Route (OpenShift) per public endpoint.
    """

    finalizer_required = False

    def __init__(self, config: OperatorConfig, is_openshift: bool) -> None:
        self.config = config
        self.is_openshift = is_openshift

    async def finalize(self, cluster, meta: WorkspaceMetadata, logger: logging.Logger) -> None:
        return None

    def get_spec_objects(self, spec: RoutingSpec, meta: WorkspaceMetadata) -> RoutingObjects:
        meta = with_routing_suffix(meta, self.config)
        services = get_services_for_endpoints(spec.endpoints, meta, spec.service)
        services += get_discoverable_services_for_endpoints(spec.endpoints, meta)

        objects = RoutingObjects(services=services)
        override = self.config.routing_annotations
        if self.is_openshift:
            objects.routes = get_routes_for_spec(spec.endpoints, meta, override)
        else:
            objects.ingresses = get_ingresses_for_spec(spec.endpoints, meta, override)
        check_unique_object_names(objects)
        return objects

    def get_exposed_endpoints(
        self, endpoints: EndpointMap, routing_objects: RoutingObjects
    ) -> Tuple[ExposedEndpointMap, bool]:
        return get_exposed_endpoints(endpoints, routing_objects)
