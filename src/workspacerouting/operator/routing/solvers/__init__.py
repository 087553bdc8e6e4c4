"""
Routing strategies and the dispatcher that picks one per routing class.
"""
import logging
from typing import Protocol, Tuple

from ....crds.const import (
    ROUTING_CLASS_BASIC,
    ROUTING_CLASS_CLUSTER,
    ROUTING_CLASS_CLUSTER_TLS,
    ROUTING_CLASS_OPENSHIFT_OAUTH,
    ROUTING_CLASS_WEB_TERMINAL,
)
from ....crds.routing import EndpointMap, RoutingSpec
from ...config import OperatorConfig
from .basic import BasicSolver
from .cluster import ClusterSolver
from .common import RoutingObjects, WorkspaceMetadata
from .errors import RoutingInvalid, RoutingNotReady, RoutingNotSupported, ServiceConflictError
from .oauth import OpenShiftOAuthSolver
from .resolve import ExposedEndpointMap

SUPPORTED_ROUTING_CLASSES = (
    ROUTING_CLASS_BASIC,
    ROUTING_CLASS_OPENSHIFT_OAUTH,
    ROUTING_CLASS_CLUSTER,
    ROUTING_CLASS_CLUSTER_TLS,
    ROUTING_CLASS_WEB_TERMINAL,
)

OPENSHIFT_ONLY_ROUTING_CLASSES = (
    ROUTING_CLASS_OPENSHIFT_OAUTH,
    ROUTING_CLASS_CLUSTER_TLS,
    ROUTING_CLASS_WEB_TERMINAL,
)


class RoutingSolver(Protocol):
    finalizer_required: bool

    async def finalize(self, cluster, meta: WorkspaceMetadata, logger: logging.Logger) -> None:
        ...

    def get_spec_objects(self, spec: RoutingSpec, meta: WorkspaceMetadata) -> RoutingObjects:
        ...

    def get_exposed_endpoints(
        self, endpoints: EndpointMap, routing_objects: RoutingObjects
    ) -> Tuple[ExposedEndpointMap, bool]:
        ...


class SolverGetter:
    """Maps a routing class to the solver implementing it."""

    def __init__(self, config: OperatorConfig, is_openshift: bool) -> None:
        self.config = config
        self.is_openshift = is_openshift

    def resolve_class(self, routing_class: str) -> str:
        return routing_class or self.config.default_routing_class

    def has_solver(self, routing_class: str) -> bool:
        # An empty class is ours: the reconciler reports it as Failed.
        if not routing_class:
            return True
        return routing_class in SUPPORTED_ROUTING_CLASSES

    def get_solver(self, routing_class: str) -> RoutingSolver:
        routing_class = self.resolve_class(routing_class)
        if routing_class not in SUPPORTED_ROUTING_CLASSES:
            raise RoutingNotSupported(routing_class)
        if routing_class in OPENSHIFT_ONLY_ROUTING_CLASSES and not self.is_openshift:
            raise RoutingInvalid(f"routing class {routing_class} only supported on OpenShift")

        if routing_class == ROUTING_CLASS_BASIC:
            return BasicSolver(self.config, self.is_openshift)
        if routing_class == ROUTING_CLASS_OPENSHIFT_OAUTH:
            return OpenShiftOAuthSolver(self.config)
        if routing_class == ROUTING_CLASS_CLUSTER:
            return ClusterSolver()
        return ClusterSolver(tls=True)


__all__ = [
    "BasicSolver",
    "ClusterSolver",
    "OpenShiftOAuthSolver",
    "RoutingInvalid",
    "RoutingNotReady",
    "RoutingNotSupported",
    "RoutingObjects",
    "RoutingSolver",
    "ServiceConflictError",
    "SolverGetter",
    "WorkspaceMetadata",
]
