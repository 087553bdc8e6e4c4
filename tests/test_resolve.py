import pytest

from workspacerouting.crds.const import ENDPOINT_NAME_ANNOTATION
from workspacerouting.crds.routing import Endpoint, Exposure
from workspacerouting.operator.routing.solvers.common import RoutingObjects
from workspacerouting.operator.routing.solvers.errors import RoutingInvalid
from workspacerouting.operator.routing.solvers.resolve import (
    get_exposed_endpoints,
    get_secure_protocol,
    get_url_for_endpoint,
    resolve_url_for_endpoint,
)


@pytest.mark.parametrize(
    "base_path, endpoint_path, secure, expected",
    [
        ("", "", False, "http://example.com"),
        ("", "", True, "https://example.com"),
        ("/test/path/", "", True, "https://example.com/test/path/"),
        ("/test/path", "", True, "https://example.com/test/path"),
        ("", "/endpoint/path/", True, "https://example.com/endpoint/path/"),
        ("base/path/", "endpoint/path/", True, "https://example.com/base/path/endpoint/path/"),
        ("", "?test=param", True, "https://example.com/?test=param"),
        ("/base/path/", "?test=param", True, "https://example.com/base/path/?test=param"),
        ("/base/path", "?test=param", True, "https://example.com/base/path?test=param"),
        (
            "base/path/",
            "endpoint/path?test=param",
            True,
            "https://example.com/base/path/endpoint/path?test=param",
        ),
        ("base/path/", "endpoint/path#test", True, "https://example.com/base/path/endpoint/path#test"),
        ("/base/path/", "/endpoint/path", True, "https://example.com/base/path/endpoint/path"),
        ("/base/path/", "/?query=param", True, "https://example.com/base/path/?query=param"),
    ],
)
def test_get_url_for_endpoint(base_path, endpoint_path, secure, expected):
    endpoint = Endpoint(name="test", target_port=8080, protocol="http", secure=True, path=endpoint_path)
    assert get_url_for_endpoint(endpoint, "example.com", base_path, secure) == expected


def test_insecure_endpoint_is_not_upgraded_on_secure_transport():
    endpoint = Endpoint(name="test", target_port=8080, protocol="http", secure=False)
    assert get_url_for_endpoint(endpoint, "example.com", "", True) == "http://example.com"


def test_get_secure_protocol():
    assert get_secure_protocol("http") == "https"
    assert get_secure_protocol("ws") == "wss"
    assert get_secure_protocol("tcp") == "tcp"


def _route(endpoint_name, host, tls=True, path=None):
    spec = {"host": host}
    if tls:
        spec["tls"] = {"termination": "edge"}
    if path is not None:
        spec["path"] = path
    return {
        "metadata": {"name": f"route-{endpoint_name}", "annotations": {ENDPOINT_NAME_ANNOTATION: endpoint_name}},
        "spec": spec,
    }


def _ingress(endpoint_name, host, rules=1):
    rule = {"host": host, "http": {"paths": [{"path": "/"}]}}
    return {
        "metadata": {"name": f"ingress-{endpoint_name}", "annotations": {ENDPOINT_NAME_ANNOTATION: endpoint_name}},
        "spec": {"rules": [rule] * rules},
    }


def test_resolve_url_from_route():
    endpoint = Endpoint(name="web", target_port=3000, secure=True, path="/ide")
    objects = RoutingObjects(routes=[_route("web", "web.apps.example.com", path="/")])

    assert resolve_url_for_endpoint(endpoint, objects) == "https://web.apps.example.com/ide"


def test_resolve_url_from_route_status_host():
    """A route without spec.host gets its host from the router."""
    endpoint = Endpoint(name="web", target_port=3000)
    route = _route("web", "", tls=False)
    route["status"] = {"ingress": [{"host": "assigned.apps.example.com"}]}

    assert resolve_url_for_endpoint(endpoint, RoutingObjects(routes=[route])) == "http://assigned.apps.example.com"


def test_resolve_url_from_ingress():
    endpoint = Endpoint(name="web", target_port=3000, secure=True)
    objects = RoutingObjects(ingresses=[_ingress("web", "web.example.com")])

    # Ingresses carry no TLS so the URL stays plain http.
    assert resolve_url_for_endpoint(endpoint, objects) == "http://web.example.com"


def test_resolve_url_rejects_ingress_with_multiple_rules():
    endpoint = Endpoint(name="web", target_port=3000)
    objects = RoutingObjects(ingresses=[_ingress("web", "web.example.com", rules=2)])

    with pytest.raises(RoutingInvalid):
        resolve_url_for_endpoint(endpoint, objects)


def test_resolve_url_missing_object():
    endpoint = Endpoint(name="web", target_port=3000)
    with pytest.raises(RoutingInvalid, match="could not find ingress/route for endpoint 'web'"):
        resolve_url_for_endpoint(endpoint, RoutingObjects())


def test_get_exposed_endpoints_skips_non_public_endpoints():
    endpoints = {
        "main": [
            Endpoint(name="web", target_port=3000, attributes={"type": "main"}),
            Endpoint(name="debug", target_port=5005, exposure=Exposure.INTERNAL),
            Endpoint(name="hidden", target_port=9000, exposure=Exposure.NONE),
        ]
    }
    objects = RoutingObjects(ingresses=[_ingress("web", "web.example.com")])

    exposed, ready = get_exposed_endpoints(endpoints, objects)

    assert ready is True
    assert [e.to_dict() for e in exposed["main"]] == [
        {"name": "web", "url": "http://web.example.com", "attributes": {"type": "main"}}
    ]


def test_get_exposed_endpoints_not_ready_without_host():
    endpoints = {"main": [Endpoint(name="web", target_port=3000)]}
    objects = RoutingObjects(routes=[_route("web", "", tls=False)])

    exposed, ready = get_exposed_endpoints(endpoints, objects)

    assert ready is False
    assert exposed["main"][0].url == ""
