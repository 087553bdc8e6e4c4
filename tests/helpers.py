import copy
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from kubernetes.client import ApiException

from workspacerouting.crds.const import CRD_GROUP, CRD_VERSION
from workspacerouting.operator.routing.cluster import ResourceKind
from workspacerouting.operator.routing.reconciler import ReconcileResult

TEST_NAMESPACE = "routing-test"
TEST_WORKSPACE_ID = "workspace1"
TEST_SUFFIX = "apps.example.com"

MUTATING_VERBS = ("create", "replace", "delete", "patch")


def _parse_selector(selector: str) -> Dict[str, str]:
    labels = {}
    for term in filter(None, selector.split(",")):
        key, _, value = term.partition("=")
        labels[key] = value
    return labels


def _merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


class FakeCluster:
    """
    In-memory stand-in for ClusterClient.

    Objects are stored as dicts keyed by kind, namespace and name. Writes get
    a fresh resourceVersion and a few server-side defaults so that tests see
    the same extra fields a real API server adds.
    """

    def __init__(self, api_groups: Tuple[str, ...] = ()) -> None:
        self.objects: Dict[Tuple[str, Optional[str], str], Dict[str, Any]] = {}
        self.calls: Counter = Counter()
        self.conflicts: set = set()
        self.api_groups = api_groups
        self._version = 0

    def _key(self, kind: ResourceKind, name: str, namespace: Optional[str]):
        return (kind.kind, namespace if kind.namespaced else None, name)

    def _stamp(self, obj: Dict[str, Any]) -> None:
        self._version += 1
        obj.setdefault("metadata", {})["resourceVersion"] = str(self._version)

    def _server_defaults(self, kind: ResourceKind, obj: Dict[str, Any]) -> None:
        if kind.kind == "Service":
            obj["spec"].setdefault("clusterIP", f"10.0.0.{len(self.objects) + 1}")
            obj["spec"].setdefault("sessionAffinity", "None")
        if kind.kind == "Route":
            host = obj["spec"].get("host")
            obj["status"] = {"ingress": [{"host": host, "routerName": "default"}]}

    def add(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        obj = copy.deepcopy(obj)
        meta = obj["metadata"]
        self._stamp(obj)
        self.objects[self._key(kind, meta["name"], meta.get("namespace"))] = obj
        return obj

    def find(self, kind: ResourceKind, name: str, namespace: Optional[str] = None):
        return self.objects.get(self._key(kind, name, namespace))

    def all(self, kind: ResourceKind) -> List[Dict[str, Any]]:
        return [obj for key, obj in sorted(self.objects.items()) if key[0] == kind.kind]

    def mutations(self) -> int:
        return sum(self.calls[verb] for verb in MUTATING_VERBS)

    async def get(self, kind, name, namespace=None):
        self.calls["get"] += 1
        obj = self.find(kind, name, namespace)
        return copy.deepcopy(obj) if obj is not None else None

    async def list(self, kind, namespace=None, label_selector=""):
        self.calls["list"] += 1
        wanted = _parse_selector(label_selector)
        found = []
        for (kind_name, obj_namespace, _), obj in sorted(self.objects.items()):
            if kind_name != kind.kind:
                continue
            if namespace and kind.namespaced and obj_namespace != namespace:
                continue
            labels = obj["metadata"].get("labels") or {}
            if all(labels.get(k) == v for k, v in wanted.items()):
                found.append(copy.deepcopy(obj))
        return found

    async def create(self, kind, body):
        self.calls["create"] += 1
        if "create" in self.conflicts:
            raise ApiException(status=409, reason="AlreadyExists")
        meta = body["metadata"]
        key = self._key(kind, meta["name"], meta.get("namespace"))
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        obj = copy.deepcopy(body)
        self._server_defaults(kind, obj)
        self._stamp(obj)
        self.objects[key] = obj
        return copy.deepcopy(obj)

    async def replace(self, kind, body):
        self.calls["replace"] += 1
        if "replace" in self.conflicts:
            raise ApiException(status=409, reason="Conflict")
        meta = body["metadata"]
        key = self._key(kind, meta["name"], meta.get("namespace"))
        current = self.objects.get(key)
        if current is None:
            raise ApiException(status=404, reason="NotFound")
        if meta.get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        obj = copy.deepcopy(body)
        self._server_defaults(kind, obj)
        self._stamp(obj)
        self.objects[key] = obj
        return copy.deepcopy(obj)

    async def delete(self, kind, name, namespace=None):
        self.calls["delete"] += 1
        return self.objects.pop(self._key(kind, name, namespace), None) is not None

    async def patch(self, kind, name, body, namespace=None):
        self.calls["patch"] += 1
        current = self.find(kind, name, namespace)
        if current is None:
            raise ApiException(status=404, reason="NotFound")
        _merge(current, body)
        self._stamp(current)
        return copy.deepcopy(current)

    async def api_group_available(self, group):
        return group in self.api_groups


def make_endpoint(
    name: str,
    port: int,
    exposure: str = "public",
    **extra: Any,
) -> Dict[str, Any]:
    endpoint = {"name": name, "targetPort": port, "exposure": exposure}
    endpoint.update(extra)
    return endpoint


def make_routing(
    name: str = "routing1",
    workspace_id: str = TEST_WORKSPACE_ID,
    routing_class: str = "basic",
    endpoints: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    routing_suffix: str = TEST_SUFFIX,
    namespace: str = TEST_NAMESPACE,
    generation: int = 1,
    uid: str = "uid-1",
    annotations: Optional[Dict[str, str]] = None,
    labels: Optional[Dict[str, str]] = None,
    finalizers: Optional[List[str]] = None,
    status: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """WorkspaceRouting manifest as kopf hands it to a handler."""
    if endpoints is None:
        endpoints = {"component1": [make_endpoint("endpoint1", 8080)]}
    body: Dict[str, Any] = {
        "apiVersion": f"{CRD_GROUP}/{CRD_VERSION}",
        "kind": "WorkspaceRouting",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": uid,
            "generation": generation,
            "annotations": dict(annotations or {}),
            "labels": dict(labels or {}),
            "finalizers": list(finalizers or []),
        },
        "spec": {
            "workspaceId": workspace_id,
            "routingClass": routing_class,
            "routingSuffix": routing_suffix,
            "endpoints": endpoints,
            "podSelector": {"controller.devfile.io/workspace_id": workspace_id},
        },
    }
    if status:
        body["status"] = dict(status)
    return body


def apply_result(body: Dict[str, Any], result: ReconcileResult) -> Dict[str, Any]:
    """Apply a reconcile result the way kopf applies the handler's patch."""
    if result.status is not None:
        status = body.setdefault("status", {})
        for key, value in result.status.items():
            if value is None:
                status.pop(key, None)
            else:
                status[key] = copy.deepcopy(value)
    if result.finalizers is not None:
        body["metadata"]["finalizers"] = list(result.finalizers)
    return body
