"""
Resolution of externally reachable URLs for workspace endpoints.

URLs are always computed from the cluster copies of Routes and Ingresses so
that status reflects what is actually served.
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ....crds.const import ENDPOINT_NAME_ANNOTATION
from ....crds.routing import Endpoint, EndpointMap, ExposedEndpoint, Exposure
from .common import RoutingObjects, iter_endpoints
from .errors import RoutingInvalid

SECURE_PROTOCOLS = {
    "http": "https",
    "ws": "wss",
}

ExposedEndpointMap = Dict[str, List[ExposedEndpoint]]


def get_secure_protocol(protocol: str) -> str:
    """Secure variant of `protocol`; unknown protocols are returned unchanged."""
    return SECURE_PROTOCOLS.get(protocol, protocol)


def _join_paths(base_path: str, path: str) -> str:
    if not base_path:
        joined = path
    elif not path:
        joined = base_path
    else:
        joined = base_path.rstrip("/") + "/" + path.lstrip("/")
    if joined and not joined.startswith("/"):
        joined = "/" + joined
    return joined


def _split_suffix(path: str) -> Tuple[str, str]:
    # Query strings and fragments are kept verbatim after the resolved path.
    for index, char in enumerate(path):
        if char in "?#":
            return path[:index], path[index:]
    return path, ""


def get_url_for_endpoint(endpoint: Endpoint, host: str, base_path: str, secure: bool) -> str:
    protocol = endpoint.protocol
    if secure and endpoint.secure:
        protocol = get_secure_protocol(protocol)

    path, suffix = _split_suffix(endpoint.path)
    full_path = _join_paths(base_path, path)
    if suffix and not full_path:
        full_path = "/"
    return f"{protocol}://{host}{full_path}{suffix}"


def _base_path(path: Optional[str]) -> str:
    # A root path carries no information for URL composition.
    if not path or path == "/":
        return ""
    return path


def _annotations(obj: Mapping[str, Any]) -> Mapping[str, str]:
    return obj.get("metadata", {}).get("annotations") or {}


def _route_host(route: Mapping[str, Any]) -> str:
    host = route.get("spec", {}).get("host")
    if host:
        return host
    for ingress in route.get("status", {}).get("ingress") or []:
        if ingress.get("host"):
            return ingress["host"]
    return ""


def resolve_url_for_endpoint(endpoint: Endpoint, routing_objects: RoutingObjects) -> str:
    """
    URL of `endpoint` from the Route or Ingress annotated with its name.

    An empty string means the host is not assigned yet.
    """
    for route in routing_objects.routes:
        if _annotations(route).get(ENDPOINT_NAME_ANNOTATION) != endpoint.name:
            continue
        spec = route.get("spec", {})
        return _resolve(endpoint, _route_host(route), _base_path(spec.get("path")), bool(spec.get("tls")))

    for ingress in routing_objects.ingresses:
        if _annotations(ingress).get(ENDPOINT_NAME_ANNOTATION) != endpoint.name:
            continue
        spec = ingress.get("spec", {})
        rules = spec.get("rules") or []
        if len(rules) != 1:
            raise RoutingInvalid(
                f"ingress {ingress['metadata']['name']} must contain exactly one rule"
            )
        paths = (rules[0].get("http") or {}).get("paths") or [{}]
        return _resolve(
            endpoint, rules[0].get("host", ""), _base_path(paths[0].get("path")), bool(spec.get("tls"))
        )

    raise RoutingInvalid(f"could not find ingress/route for endpoint '{endpoint.name}'")


def _resolve(endpoint: Endpoint, host: str, base_path: str, secure: bool) -> str:
    if not host:
        return ""
    return get_url_for_endpoint(endpoint, host, base_path, secure)


def get_exposed_endpoints(
    endpoints: EndpointMap, routing_objects: RoutingObjects
) -> Tuple[ExposedEndpointMap, bool]:
    """
    Resolve every public endpoint.

    Returns the component -> exposed endpoint mapping and whether every URL
    could be resolved; when not ready the caller has to retry.
    """
    exposed: ExposedEndpointMap = {}
    ready = True
    for component, endpoint in iter_endpoints(endpoints):
        if endpoint.exposure != Exposure.PUBLIC:
            continue
        url = resolve_url_for_endpoint(endpoint, routing_objects)
        if not url:
            ready = False
        exposed.setdefault(component, []).append(
            ExposedEndpoint(name=endpoint.name, url=url, attributes=dict(endpoint.attributes))
        )
    return exposed, ready
