"""
Idempotent convergence of generated objects onto the cluster.

Each sync is get, then create or replace. An object counts as in sync only if
the cluster copy already matched; a create, a replace or a write conflict all
leave the caller to requeue and check again on the next pass.
"""
import copy
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from kubernetes.client import ApiException

from ...crds.const import WORKSPACE_ID_LABEL
from .cluster import OAUTH_CLIENT, ClusterClient, ResourceKind

# Raises if the desired object must not take over the existing one.
Validator = Callable[[Mapping[str, Any], Optional[Mapping[str, Any]]], None]

# Fields that are owned by the API server and never compared.
IGNORED_TOP_LEVEL = ("apiVersion", "kind", "metadata", "status")


def _is_empty(value: Any) -> bool:
    return value is None or value == {} or value == [] or value == ""


def is_subset(desired: Any, actual: Any) -> bool:
    """
    True if every value set in `desired` has the same value in `actual`.

    Extra keys in `actual` (server defaults, fields set by other controllers)
    are ignored. Lists must match in length and element by element.
    """
    if isinstance(desired, Mapping):
        if not isinstance(actual, Mapping):
            return _is_empty(desired) and _is_empty(actual)
        for key, value in desired.items():
            if key not in actual or actual[key] is None:
                if _is_empty(value):
                    continue
                return False
            if not is_subset(value, actual[key]):
                return False
        return True
    if isinstance(desired, list):
        if not isinstance(actual, list):
            return _is_empty(desired) and _is_empty(actual)
        if len(desired) != len(actual):
            return False
        return all(is_subset(d, a) for d, a in zip(desired, actual))
    return desired == actual


def needs_update(desired: Mapping[str, Any], actual: Mapping[str, Any]) -> bool:
    desired_meta = desired.get("metadata", {})
    actual_meta = actual.get("metadata", {})
    for key in ("labels", "annotations"):
        if not is_subset(desired_meta.get(key) or {}, actual_meta.get(key) or {}):
            return True
    if not is_subset(desired_meta.get("ownerReferences") or [], actual_meta.get("ownerReferences") or []):
        return True
    for key, value in desired.items():
        if key in IGNORED_TOP_LEVEL:
            continue
        if not is_subset(value, actual.get(key)):
            return True
    return False


def deep_merge(base: Dict[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge `overlay` into a copy of `base`; nested mappings merge, everything else replaces."""
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def updated_object(desired: Mapping[str, Any], actual: Mapping[str, Any]) -> Dict[str, Any]:
    """The cluster copy with the desired state applied, keeping its resourceVersion."""
    body = deep_merge(dict(actual), {k: v for k, v in desired.items() if k != "metadata"})
    body.pop("status", None)
    meta = body.setdefault("metadata", {})
    desired_meta = desired.get("metadata", {})
    for key in ("labels", "annotations"):
        if desired_meta.get(key):
            meta[key] = {**(meta.get(key) or {}), **desired_meta[key]}
    if desired_meta.get("ownerReferences"):
        meta["ownerReferences"] = copy.deepcopy(desired_meta["ownerReferences"])
    return body


async def sync_object(
    cluster: ClusterClient,
    kind: ResourceKind,
    desired: Dict[str, Any],
    logger: logging.Logger,
    validate: Optional[Validator] = None,
) -> Tuple[bool, Optional[Dict[str, Any]]]:
    """
    Converge one object.

    Returns whether it was already in sync and the latest known cluster copy
    (None if a conflict prevented the write).
    """
    name = desired["metadata"]["name"]
    namespace = desired["metadata"].get("namespace")
    existing = await cluster.get(kind, name, namespace)
    if validate is not None:
        validate(desired, existing)

    if existing is None:
        try:
            created = await cluster.create(kind, desired)
        except ApiException as e:
            if e.status != 409:
                raise
            logger.info("%s '%s' was created concurrently, requeueing", kind.kind, name)
            return False, None
        logger.info("Created %s '%s'", kind.kind, name)
        return False, created

    if not needs_update(desired, existing):
        return True, existing

    try:
        updated = await cluster.replace(kind, updated_object(desired, existing))
    except ApiException as e:
        if e.status != 409:
            raise
        logger.info("Conflict updating %s '%s', requeueing", kind.kind, name)
        return False, None
    logger.info("Updated %s '%s'", kind.kind, name)
    return False, updated


def workspace_selector(workspace_id: str) -> str:
    return f"{WORKSPACE_ID_LABEL}={workspace_id}"


async def sync_objects(
    cluster: ClusterClient,
    kind: ResourceKind,
    desired: List[Dict[str, Any]],
    namespace: str,
    workspace_id: str,
    logger: logging.Logger,
    validate: Optional[Validator] = None,
) -> Tuple[bool, List[Dict[str, Any]]]:
    """
    Converge every object of `kind` for a workspace, deleting labelled
    objects that are no longer desired.
    """
    in_sync = True
    cluster_objects: List[Dict[str, Any]] = []
    for obj in desired:
        obj_in_sync, cluster_obj = await sync_object(cluster, kind, obj, logger, validate)
        in_sync = in_sync and obj_in_sync
        if cluster_obj is not None:
            cluster_objects.append(cluster_obj)

    desired_names = {obj["metadata"]["name"] for obj in desired}
    for existing in await cluster.list(kind, namespace, workspace_selector(workspace_id)):
        name = existing["metadata"]["name"]
        if name in desired_names:
            continue
        if await cluster.delete(kind, name, namespace):
            logger.info("Deleted stale %s '%s'", kind.kind, name)
        in_sync = False
    return in_sync, cluster_objects


async def sync_oauth_client(
    cluster: ClusterClient,
    desired: Dict[str, Any],
    workspace_id: str,
    logger: logging.Logger,
) -> bool:
    """Converge the workspace's OAuthClient and delete any other client labelled for it."""
    name = desired["metadata"]["name"]
    for existing in await cluster.list(OAUTH_CLIENT, label_selector=workspace_selector(workspace_id)):
        stale = existing["metadata"]["name"]
        if stale != name and await cluster.delete(OAUTH_CLIENT, stale):
            logger.info("Deleted stale OAuthClient '%s'", stale)
    in_sync, _ = await sync_object(cluster, OAUTH_CLIENT, desired, logger)
    return in_sync


async def delete_oauth_clients(
    cluster: ClusterClient, workspace_id: str, logger: logging.Logger
) -> None:
    for existing in await cluster.list(OAUTH_CLIENT, label_selector=workspace_selector(workspace_id)):
        name = existing["metadata"]["name"]
        if await cluster.delete(OAUTH_CLIENT, name):
            logger.info("Deleted OAuthClient '%s'", name)
