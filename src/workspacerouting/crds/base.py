from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from kubernetes import client


@dataclass
class ObjectMeta:
    name: str
    namespace: Optional[str] = None
    uid: Optional[str] = None
    generation: Optional[int] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    finalizers: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ObjectMeta":
        return cls(
            name=data["name"],
            namespace=data.get("namespace"),
            uid=data.get("uid"),
            generation=data.get("generation"),
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
            finalizers=list(data.get("finalizers") or []),
        )


class BaseCustomResource:
    group: str
    version: str
    kind: str
    plural: str
    namespaced: bool

    metadata: ObjectMeta

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BaseCustomResource":
        raise NotImplementedError

    @classmethod
    def list(
        cls,
        *,
        namespace: Optional[str] = None,
        api: Optional[client.CustomObjectsApi] = None,
    ) -> List["BaseCustomResource"]:
        api_instance = api or client.CustomObjectsApi()
        if cls.namespaced and namespace:
            data = api_instance.list_namespaced_custom_object(
                group=cls.group,
                version=cls.version,
                namespace=namespace,
                plural=cls.plural,
            )
        else:
            data = api_instance.list_cluster_custom_object(
                group=cls.group,
                version=cls.version,
                plural=cls.plural,
            )
        return [cls.from_dict(item) for item in data.get("items", [])]

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"

    def owner_reference(self) -> Dict[str, Any]:
        """Controller owner reference pointing at this resource."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.metadata.name,
            "uid": self.metadata.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }
