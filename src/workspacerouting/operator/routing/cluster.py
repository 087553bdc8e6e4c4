"""
Thin async access to the cluster objects the routing operator manages.

Every object crosses this boundary as a plain dict. Blocking kubernetes client
calls run in a worker thread.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from kubernetes import client
from kubernetes.client import ApiException

from ...crds.const import CRD_GROUP, CRD_KIND_ROUTING, CRD_PLURAL_ROUTING, CRD_VERSION


@dataclass(frozen=True)
class ResourceKind:
    kind: str
    group: str
    version: str
    plural: str
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def custom(self) -> bool:
        return self.kind not in _TYPED_SUFFIX


# Typed API method suffixes for built-in kinds; everything else is a custom object.
_TYPED_SUFFIX = {
    "Service": "namespaced_service",
    "Ingress": "namespaced_ingress",
}

SERVICE = ResourceKind("Service", "", "v1", "services")
INGRESS = ResourceKind("Ingress", "networking.k8s.io", "v1", "ingresses")
ROUTE = ResourceKind("Route", "route.openshift.io", "v1", "routes")
OAUTH_CLIENT = ResourceKind("OAuthClient", "oauth.openshift.io", "v1", "oauthclients", namespaced=False)
WORKSPACE_ROUTING = ResourceKind(CRD_KIND_ROUTING, CRD_GROUP, CRD_VERSION, CRD_PLURAL_ROUTING)


class ClusterClient:
    def __init__(
        self,
        core_v1: Optional[client.CoreV1Api] = None,
        networking_v1: Optional[client.NetworkingV1Api] = None,
        custom_objects: Optional[client.CustomObjectsApi] = None,
    ) -> None:
        self.core_v1 = core_v1 or client.CoreV1Api()
        self.networking_v1 = networking_v1 or client.NetworkingV1Api()
        self.custom_objects = custom_objects or client.CustomObjectsApi()
        self._serializer = client.ApiClient()

    def _to_dict(self, obj: Any) -> Dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self._serializer.sanitize_for_serialization(obj)

    def _typed_api(self, kind: ResourceKind) -> Any:
        return self.core_v1 if kind.kind == "Service" else self.networking_v1

    async def _typed_call(self, verb: str, kind: ResourceKind, **kwargs: Any) -> Any:
        method = getattr(self._typed_api(kind), f"{verb}_{_TYPED_SUFFIX[kind.kind]}")
        return await asyncio.to_thread(method, **kwargs)

    async def _custom_call(
        self, verb: str, kind: ResourceKind, namespace: Optional[str], **kwargs: Any
    ) -> Any:
        if kind.namespaced:
            method = getattr(self.custom_objects, f"{verb}_namespaced_custom_object")
            kwargs["namespace"] = namespace
        else:
            method = getattr(self.custom_objects, f"{verb}_cluster_custom_object")
        return await asyncio.to_thread(
            method, group=kind.group, version=kind.version, plural=kind.plural, **kwargs
        )

    async def get(
        self, kind: ResourceKind, name: str, namespace: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Fetch an object; None if it does not exist."""
        try:
            if kind.custom:
                obj = await self._custom_call("get", kind, namespace, name=name)
            else:
                obj = await self._typed_call("read", kind, name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return self._to_dict(obj)

    async def list(
        self, kind: ResourceKind, namespace: Optional[str] = None, label_selector: str = ""
    ) -> List[Dict[str, Any]]:
        if kind.custom:
            result = await self._custom_call(
                "list", kind, namespace, label_selector=label_selector
            )
            return list(result.get("items", []))
        result = await self._typed_call(
            "list", kind, namespace=namespace, label_selector=label_selector
        )
        return [self._to_dict(item) for item in result.items]

    async def create(self, kind: ResourceKind, body: Dict[str, Any]) -> Dict[str, Any]:
        namespace = body["metadata"].get("namespace")
        if kind.custom:
            obj = await self._custom_call("create", kind, namespace, body=body)
        else:
            obj = await self._typed_call("create", kind, namespace=namespace, body=body)
        return self._to_dict(obj)

    async def replace(self, kind: ResourceKind, body: Dict[str, Any]) -> Dict[str, Any]:
        """Replace an object; body must carry the resourceVersion it was read at."""
        name = body["metadata"]["name"]
        namespace = body["metadata"].get("namespace")
        if kind.custom:
            obj = await self._custom_call("replace", kind, namespace, name=name, body=body)
        else:
            obj = await self._typed_call(
                "replace", kind, name=name, namespace=namespace, body=body
            )
        return self._to_dict(obj)

    async def delete(self, kind: ResourceKind, name: str, namespace: Optional[str] = None) -> bool:
        """Delete an object; False if it was already gone."""
        try:
            if kind.custom:
                await self._custom_call("delete", kind, namespace, name=name)
            else:
                await self._typed_call("delete", kind, name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    async def patch(
        self, kind: ResourceKind, name: str, body: Dict[str, Any], namespace: Optional[str] = None
    ) -> Dict[str, Any]:
        if kind.custom:
            obj = await self._custom_call("patch", kind, namespace, name=name, body=body)
        else:
            obj = await self._typed_call("patch", kind, name=name, namespace=namespace, body=body)
        return self._to_dict(obj)

    async def api_group_available(self, group: str) -> bool:
        versions = await asyncio.to_thread(client.ApisApi().get_api_versions)
        return any(g.name == group for g in versions.groups or [])
