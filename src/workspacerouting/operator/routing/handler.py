import logging
from typing import Any, Dict

import kopf
from kubernetes.client import ApiException

from ...crds.const import (
    CRD_GROUP,
    CRD_PLURAL_ROUTING,
    CRD_VERSION,
    ROUTING_TRIGGER_ANNOTATION,
    WORKSPACE_ID_LABEL,
)
from ...crds.routing import WorkspaceRouting
from .cluster import WORKSPACE_ROUTING
from .reconciler import ReconcileResult


def has_solver(spec: Dict[str, Any], memo: kopf.Memo, **kwargs: Any) -> bool:
    """Filter: only routings whose class this operator understands."""
    return memo.solver_getter.has_solver(spec.get("routingClass") or "")


def apply_result(result: ReconcileResult, patch: Dict[str, Any]) -> None:
    if result.status is not None:
        patch.setdefault("status", {}).update(result.status)
    if result.finalizers is not None:
        patch.setdefault("metadata", {})["finalizers"] = result.finalizers


@kopf.on.resume(CRD_GROUP, CRD_VERSION, CRD_PLURAL_ROUTING, when=has_solver)
@kopf.on.create(CRD_GROUP, CRD_VERSION, CRD_PLURAL_ROUTING, when=has_solver)
@kopf.on.update(CRD_GROUP, CRD_VERSION, CRD_PLURAL_ROUTING, when=has_solver)
async def reconcile_workspace_routing(
    body: Dict[str, Any],
    memo: kopf.Memo,
    logger: logging.Logger,
    patch: Dict[str, Any],
    **kwargs: Any,
) -> None:
    """Reconcile a WorkspaceRouting; requeues until its endpoints are resolved."""
    routing = WorkspaceRouting.from_dict(body)
    result = await memo.routing_reconciler.reconcile(routing, logger)
    apply_result(result, patch)
    if result.requeue_after is not None:
        raise kopf.TemporaryError(
            f"Workspace routing '{routing.metadata.name}' is not ready yet",
            delay=result.requeue_after,
        )


@kopf.on.delete(CRD_GROUP, CRD_VERSION, CRD_PLURAL_ROUTING, when=has_solver, optional=True)
async def finalize_workspace_routing(
    body: Dict[str, Any],
    memo: kopf.Memo,
    logger: logging.Logger,
    patch: Dict[str, Any],
    **kwargs: Any,
) -> None:
    """Clean up cluster-scoped objects before the routing is removed."""
    routing = WorkspaceRouting.from_dict(body)
    result = await memo.routing_reconciler.finalize(routing, logger)
    apply_result(result, patch)


async def retrigger_owner(
    event: Dict[str, Any], memo: kopf.Memo, logger: logging.Logger
) -> None:
    """
    Re-trigger the WorkspaceRouting that owns an object changed behind our back.

    Touching an annotation on the owner is enough for kopf to call the update
    handler, which recomputes everything from the spec.
    """
    obj = event.get("object") or {}
    metadata = obj.get("metadata") or {}
    owners = [
        ref
        for ref in metadata.get("ownerReferences") or []
        if ref.get("kind") == WORKSPACE_ROUTING.kind
        and ref.get("apiVersion") == WORKSPACE_ROUTING.api_version
    ]
    if not owners:
        return
    trigger = metadata.get("resourceVersion") or event.get("type", "")
    for owner in owners:
        logger.info(
            "%s '%s' changed, re-triggering workspace routing '%s'",
            obj.get("kind", "Object"),
            metadata.get("name"),
            owner["name"],
        )
        try:
            await memo.cluster.patch(
                WORKSPACE_ROUTING,
                owner["name"],
                {"metadata": {"annotations": {ROUTING_TRIGGER_ANNOTATION: str(trigger)}}},
                namespace=metadata.get("namespace"),
            )
        except ApiException as e:
            if e.status != 404:
                raise
            logger.info("Workspace routing '%s' is already gone", owner["name"])


_OWNED_LABELS = {WORKSPACE_ID_LABEL: kopf.PRESENT}


@kopf.on.event("", "v1", "services", labels=_OWNED_LABELS)
async def on_service_event(
    event: Dict[str, Any], memo: kopf.Memo, logger: logging.Logger, **kwargs: Any
) -> None:
    if event.get("type") == "DELETED":
        await retrigger_owner(event, memo, logger)


@kopf.on.event("networking.k8s.io", "v1", "ingresses", labels=_OWNED_LABELS)
async def on_ingress_event(
    event: Dict[str, Any], memo: kopf.Memo, logger: logging.Logger, **kwargs: Any
) -> None:
    if event.get("type") == "DELETED":
        await retrigger_owner(event, memo, logger)


@kopf.on.event("route.openshift.io", "v1", "routes", labels=_OWNED_LABELS)
async def on_route_event(
    event: Dict[str, Any], memo: kopf.Memo, logger: logging.Logger, **kwargs: Any
) -> None:
    # Route hosts are assigned by the router after creation.
    if event.get("type") in ("DELETED", "MODIFIED"):
        await retrigger_owner(event, memo, logger)
