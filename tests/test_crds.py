import pathlib

import pytest
import yaml

from workspacerouting.crds.base import ObjectMeta
from workspacerouting.crds.const import CRD_GROUP, CRD_KIND_ROUTING, CRD_PLURAL_ROUTING
from workspacerouting.crds.routing import (
    Endpoint,
    ExposedEndpoint,
    Exposure,
    PodAdditions,
    RoutingSpec,
    WorkspaceRouting,
    exposed_endpoints_to_dict,
)

from tests.helpers import make_routing

# Path to the CRD directory
CRD_DIR = pathlib.Path(__file__).parent.parent / "src" / "workspacerouting" / "crds"


def test_workspacerouting_crd_loads():
    """
    Tests that the WorkspaceRouting CRD file can be loaded and parsed as YAML.
    """
    crd_file = CRD_DIR / f"{CRD_GROUP}_{CRD_PLURAL_ROUTING}.yaml"
    assert crd_file.exists(), "WorkspaceRouting CRD file not found."

    with open(crd_file, "r") as f:
        crd = yaml.safe_load(f)

    assert crd is not None, "Failed to parse WorkspaceRouting CRD YAML."
    assert crd["kind"] == "CustomResourceDefinition"
    assert crd["metadata"]["name"] == f"{CRD_PLURAL_ROUTING}.{CRD_GROUP}"
    assert crd["spec"]["names"]["kind"] == CRD_KIND_ROUTING
    assert crd["spec"]["scope"] == "Namespaced"


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, Exposure.PUBLIC),
        ("", Exposure.PUBLIC),
        ("public", Exposure.PUBLIC),
        ("Internal", Exposure.INTERNAL),
        ("none", Exposure.NONE),
    ],
)
def test_exposure_parse(value, expected):
    assert Exposure.parse(value) == expected


def test_exposure_parse_rejects_unknown_values():
    with pytest.raises(ValueError):
        Exposure.parse("everywhere")


def test_endpoint_from_dict_defaults():
    endpoint = Endpoint.from_dict({"name": "web", "targetPort": "3000"})

    assert endpoint.target_port == 3000
    assert endpoint.exposure == Exposure.PUBLIC
    assert endpoint.protocol == "http"
    assert endpoint.secure is False
    assert endpoint.path == ""
    assert endpoint.annotations is None
    assert endpoint.discoverable is False
    assert endpoint.endpoint_type is None


def test_endpoint_from_dict_keeps_empty_annotations():
    endpoint = Endpoint.from_dict(
        {
            "name": "web",
            "targetPort": 3000,
            "secure": "true",
            "annotations": {},
            "attributes": {"discoverable": "true", "type": "main"},
        }
    )

    assert endpoint.secure is True
    assert endpoint.annotations == {}
    assert endpoint.discoverable is True
    assert endpoint.endpoint_type == "main"


def test_routing_spec_from_dict():
    spec = RoutingSpec.from_dict(
        {
            "workspaceId": "workspace1",
            "endpoints": {"main": [{"name": "web", "targetPort": 3000}], "empty": None},
            "service": {"main": {"annotations": {"key": "value"}}},
        }
    )

    assert spec.routing_class == ""
    assert [e.name for e in spec.endpoints["main"]] == ["web"]
    assert spec.endpoints["empty"] == []
    assert spec.service["main"].annotations == {"key": "value"}


def test_workspace_routing_from_dict():
    routing = WorkspaceRouting.from_dict(make_routing(status={"phase": "Ready"}))

    assert routing.metadata.name == "routing1"
    assert routing.metadata.generation == 1
    assert routing.spec.workspace_id == "workspace1"
    assert routing.phase == "Ready"


def test_owner_reference():
    routing = WorkspaceRouting.from_dict(make_routing())

    assert routing.owner_reference() == {
        "apiVersion": f"{CRD_GROUP}/v1alpha1",
        "kind": "WorkspaceRouting",
        "name": "routing1",
        "uid": "uid-1",
        "controller": True,
        "blockOwnerDeletion": True,
    }


def test_object_meta_from_dict():
    meta = ObjectMeta.from_dict(
        {
            "name": "routing1",
            "namespace": "test",
            "uid": "uid-1",
            "generation": 3,
            "labels": {"a": "b"},
            "annotations": None,
            "finalizers": ["f"],
        }
    )

    assert meta.labels == {"a": "b"}
    assert meta.annotations == {}
    assert meta.finalizers == ["f"]
    assert meta.generation == 3


def test_status_helpers():
    exposed = {"main": [ExposedEndpoint(name="web", url="http://host", attributes={"type": "main"})]}

    assert exposed_endpoints_to_dict(exposed) == {
        "main": [{"name": "web", "url": "http://host", "attributes": {"type": "main"}}]
    }
    assert PodAdditions().to_dict() == {}
    assert PodAdditions(volumes=[{"name": "v"}]).to_dict() == {"volumes": [{"name": "v"}]}
