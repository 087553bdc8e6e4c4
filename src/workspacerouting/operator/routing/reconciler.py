"""
Reconciliation of WorkspaceRouting resources.

The reconciler turns one WorkspaceRouting into cluster objects and a status.
It never writes the WorkspaceRouting itself: the outcome is returned as a
ReconcileResult and applied by the kopf handler through its patch.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ...crds.const import (
    PHASE_FAILED,
    PHASE_PREPARING,
    PHASE_READY,
    RESTRICTED_ACCESS_ANNOTATION,
    ROUTING_FINALIZER,
    WORKSPACE_NAME_LABEL,
)
from ...crds.routing import WorkspaceRouting, exposed_endpoints_to_dict
from .cluster import INGRESS, ROUTE, SERVICE, ClusterClient
from .solvers import SolverGetter
from .solvers.common import RoutingObjects, WorkspaceMetadata, check_discoverable_service_conflict
from .solvers.errors import (
    RoutingInvalid,
    RoutingNotReady,
    RoutingNotSupported,
    ServiceConflictError,
)
from .sync import sync_oauth_client, sync_objects

EMPTY_ROUTING_CLASS_MESSAGE = "routing requires field routingClass to be set"
PREPARING_MESSAGE = "Waiting for routing objects to become ready"
READY_MESSAGE = "Routing prepared"

# Status fields owned by the reconciler once the routing is Ready.
READY_STATUS_FIELDS = ("phase", "message", "podAdditions", "exposedEndpoints", "observedGeneration")


@dataclass
class ReconcileResult:
    # Status fields to patch; None leaves the status untouched.
    status: Optional[Dict[str, Any]] = None
    # Seconds until the next reconcile; None means converged.
    requeue_after: Optional[float] = None
    # Replacement finalizer list; None leaves finalizers untouched.
    finalizers: Optional[List[str]] = None


def workspace_metadata(routing: WorkspaceRouting) -> WorkspaceMetadata:
    return WorkspaceMetadata(
        workspace_id=routing.spec.workspace_id,
        namespace=routing.metadata.namespace or "",
        uid=routing.metadata.uid or "",
        pod_selector=dict(routing.spec.pod_selector),
        routing_suffix=routing.spec.routing_suffix,
        workspace_name=routing.metadata.labels.get(WORKSPACE_NAME_LABEL, ""),
    )


class RoutingReconciler:
    """Drives a WorkspaceRouting from Preparing to Ready or Failed."""

    def __init__(
        self,
        solver_getter: SolverGetter,
        cluster: ClusterClient,
        is_openshift: bool,
        requeue_delay: float = 1.0,
    ) -> None:
        self.solver_getter = solver_getter
        self.cluster = cluster
        self.is_openshift = is_openshift
        self.requeue_delay = requeue_delay

    def _failed(
        self, routing: WorkspaceRouting, reason: str, logger: logging.Logger
    ) -> ReconcileResult:
        logger.error("Workspace routing '%s' failed: %s", routing.metadata.name, reason)
        return ReconcileResult(
            status={
                "phase": PHASE_FAILED,
                "message": reason,
                "observedGeneration": routing.metadata.generation,
            }
        )

    def _requeue(self, routing: WorkspaceRouting, delay: Optional[float] = None) -> ReconcileResult:
        status = None
        if not routing.phase:
            status = {"phase": PHASE_PREPARING, "message": PREPARING_MESSAGE}
        return ReconcileResult(status=status, requeue_after=delay or self.requeue_delay)

    async def reconcile(self, routing: WorkspaceRouting, logger: logging.Logger) -> ReconcileResult:
        name = routing.metadata.name
        observed = routing.status.get("observedGeneration")
        if routing.phase == PHASE_FAILED and observed == routing.metadata.generation:
            logger.info("Workspace routing '%s' failed for this generation, skipping", name)
            return ReconcileResult()

        routing_class = self.solver_getter.resolve_class(routing.spec.routing_class)
        if not routing_class:
            return self._failed(routing, EMPTY_ROUTING_CLASS_MESSAGE, logger)

        try:
            solver = self.solver_getter.get_solver(routing_class)
        except RoutingNotSupported:
            logger.info("Routing class '%s' is not handled here, ignoring '%s'", routing_class, name)
            return ReconcileResult()
        except RoutingInvalid as e:
            return self._failed(routing, e.reason, logger)

        if solver.finalizer_required and ROUTING_FINALIZER not in routing.metadata.finalizers:
            logger.info("Adding finalizer to workspace routing '%s'", name)
            result = self._requeue(routing)
            result.finalizers = routing.metadata.finalizers + [ROUTING_FINALIZER]
            return result

        meta = workspace_metadata(routing)
        try:
            objects = solver.get_spec_objects(routing.spec, meta)
        except RoutingInvalid as e:
            return self._failed(routing, e.reason, logger)
        self._decorate(routing, objects)

        try:
            cluster_objects = await self._sync(objects, meta, logger)
        except ServiceConflictError as e:
            return self._failed(routing, str(e), logger)
        except RoutingNotReady as e:
            logger.info("Routing objects for '%s' not in sync yet, requeueing", name)
            return self._requeue(routing, e.retry)

        try:
            exposed, ready = solver.get_exposed_endpoints(routing.spec.endpoints, cluster_objects)
        except RoutingInvalid as e:
            return self._failed(routing, e.reason, logger)
        except RoutingNotReady as e:
            return self._requeue(routing, e.retry)

        if not ready:
            logger.info("Endpoints of '%s' are not resolvable yet, requeueing", name)
            result = self._requeue(routing)
            result.status = {"phase": PHASE_PREPARING, "message": PREPARING_MESSAGE}
            return result

        pod_additions = objects.pod_additions.to_dict() if objects.pod_additions else {}
        status = {
            "phase": PHASE_READY,
            "message": READY_MESSAGE,
            "podAdditions": pod_additions or None,
            "exposedEndpoints": exposed_endpoints_to_dict(exposed),
            "observedGeneration": routing.metadata.generation,
        }
        if all(routing.status.get(key) == status[key] for key in READY_STATUS_FIELDS):
            return ReconcileResult()
        logger.info("Workspace routing '%s' is ready", name)
        return ReconcileResult(status=status)

    def _decorate(self, routing: WorkspaceRouting, objects: RoutingObjects) -> None:
        """Owner references and restricted-access propagation on generated objects."""
        restricted = routing.metadata.annotations.get(RESTRICTED_ACCESS_ANNOTATION)
        owner = routing.owner_reference()
        for obj in objects.namespaced_objects():
            obj["metadata"]["ownerReferences"] = [dict(owner)]
            if restricted is not None:
                obj["metadata"].setdefault("annotations", {})[RESTRICTED_ACCESS_ANNOTATION] = restricted
        # Cluster-scoped objects cannot be owned by a namespaced resource.
        if objects.oauth_client is not None and restricted is not None:
            objects.oauth_client["metadata"].setdefault("annotations", {})[
                RESTRICTED_ACCESS_ANNOTATION
            ] = restricted

    async def _sync(
        self, objects: RoutingObjects, meta: WorkspaceMetadata, logger: logging.Logger
    ) -> RoutingObjects:
        """
        Sync Services, then Ingresses/Routes, then the OAuthClient.

        Returns the cluster copies; raises RoutingNotReady if anything changed.
        """

        def validate(desired: Any, existing: Any) -> None:
            check_discoverable_service_conflict(desired, existing, meta)

        args = (meta.namespace, meta.workspace_id, logger)
        services_ok, services = await sync_objects(
            self.cluster, SERVICE, objects.services, *args, validate=validate
        )
        ingresses_ok, ingresses = await sync_objects(self.cluster, INGRESS, objects.ingresses, *args)
        routes_ok, routes = True, []
        if self.is_openshift:
            routes_ok, routes = await sync_objects(self.cluster, ROUTE, objects.routes, *args)
        if not (services_ok and ingresses_ok and routes_ok):
            raise RoutingNotReady()

        if objects.oauth_client is not None:
            if not await sync_oauth_client(self.cluster, objects.oauth_client, meta.workspace_id, logger):
                raise RoutingNotReady()

        return RoutingObjects(
            services=services,
            ingresses=ingresses,
            routes=routes,
            pod_additions=objects.pod_additions,
            oauth_client=objects.oauth_client,
        )

    async def finalize(self, routing: WorkspaceRouting, logger: logging.Logger) -> ReconcileResult:
        """Run the solver's cleanup, then release the finalizer."""
        name = routing.metadata.name
        if ROUTING_FINALIZER not in routing.metadata.finalizers:
            return ReconcileResult()

        try:
            solver = self.solver_getter.get_solver(routing.spec.routing_class)
        except RoutingNotSupported:
            return ReconcileResult()
        except RoutingInvalid:
            # Nothing was ever created for an invalid routing.
            solver = None

        if solver is not None:
            await solver.finalize(self.cluster, workspace_metadata(routing), logger)
        logger.info("Removing finalizer from workspace routing '%s'", name)
        remaining = [f for f in routing.metadata.finalizers if f != ROUTING_FINALIZER]
        return ReconcileResult(finalizers=remaining)
