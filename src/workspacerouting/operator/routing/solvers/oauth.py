"""
Routing for OpenShift that puts an oauth-proxy in front of secure endpoints.

Each public, secure, non-terminal endpoint gets its own sidecar listening on
HTTPS (ports from 4400) and forwarding to the endpoint over loopback. A single
cluster-scoped OAuthClient per workspace lists the callback URL of every
proxied Route.
"""
import logging
from typing import Any, Dict, List, Tuple

from ....crds.const import ENDPOINT_NAME_ANNOTATION
from ....crds.routing import Endpoint, EndpointMap, Exposure, RoutingSpec
from ...config import OperatorConfig
from ..sync import delete_oauth_clients
from .basic import with_routing_suffix
from .common import (
    RoutingObjects,
    WorkspaceMetadata,
    check_unique_object_names,
    endpoint_annotation_override,
    get_discoverable_services_for_endpoints,
    get_route_for_endpoint,
    get_routes_for_spec,
    get_services_for_endpoints,
    iter_endpoints,
)
from .naming import oauth_client_name, oauth_proxy_secret_name
from .proxy import (
    PROXY_HTTP_PORT_START,
    PROXY_HTTPS_PORT_START,
    ProxyEndpoint,
    client_secret,
    get_proxy_pod_additions,
)
from .resolve import ExposedEndpointMap, get_exposed_endpoints

SERVING_CERT_ANNOTATION = "service.alpha.openshift.io/serving-cert-secret-name"

TERMINAL_ENDPOINT_TYPE = "terminal"


def endpoint_needs_proxy(endpoint: Endpoint) -> bool:
    return (
        endpoint.exposure == Exposure.PUBLIC
        and endpoint.secure
        and endpoint.endpoint_type != TERMINAL_ENDPOINT_TYPE
    )


def split_proxied_endpoints(endpoints: EndpointMap) -> Tuple[EndpointMap, EndpointMap]:
    proxy: EndpointMap = {}
    no_proxy: EndpointMap = {}
    for component, endpoint in iter_endpoints(endpoints):
        target = proxy if endpoint_needs_proxy(endpoint) else no_proxy
        target.setdefault(component, []).append(endpoint)
    return proxy, no_proxy


def get_proxy_endpoints(endpoints: EndpointMap) -> List[ProxyEndpoint]:
    """
    Assign proxy ports to every endpoint in `endpoints`.

    Endpoints are ordered by component and name first so that the same
    workspace always gets the same ports.
    """
    ordered = sorted(iter_endpoints(endpoints), key=lambda item: (item[0], item[1].name))
    proxies = []
    for index, (component, endpoint) in enumerate(ordered):
        public = Endpoint(
            name=f"{endpoint.name}-proxy",
            target_port=PROXY_HTTPS_PORT_START + index,
            exposure=Exposure.PUBLIC,
            protocol=endpoint.protocol,
            secure=True,
            path=endpoint.path,
            attributes=dict(endpoint.attributes),
            annotations=endpoint.annotations,
        )
        proxies.append(
            ProxyEndpoint(
                component=component,
                upstream=endpoint,
                public=public,
                http_port=PROXY_HTTP_PORT_START + index,
            )
        )
    return proxies


class OpenShiftOAuthSolver:
    finalizer_required = True

    def __init__(self, config: OperatorConfig) -> None:
        self.config = config

    async def finalize(self, cluster, meta: WorkspaceMetadata, logger: logging.Logger) -> None:
        await delete_oauth_clients(cluster, meta.workspace_id, logger)

    def get_spec_objects(self, spec: RoutingSpec, meta: WorkspaceMetadata) -> RoutingObjects:
        meta = with_routing_suffix(meta, self.config)
        proxied, not_proxied = split_proxied_endpoints(spec.endpoints)
        proxies = get_proxy_endpoints(proxied)

        # The shared Service carries the proxies' HTTPS ports in place of the
        # upstream ports of proxied endpoints.
        service_endpoints: EndpointMap = {}
        for proxy in proxies:
            service_endpoints.setdefault(proxy.component, []).append(proxy.public)
        for component, endpoint in iter_endpoints(not_proxied):
            service_endpoints.setdefault(component, []).append(endpoint)

        services = get_services_for_endpoints(
            service_endpoints,
            meta,
            spec.service,
            annotations={SERVING_CERT_ANNOTATION: oauth_proxy_secret_name(meta.workspace_id)},
        )
        services += get_discoverable_services_for_endpoints(service_endpoints, meta)

        proxy_routes = [self._get_proxy_route(proxy, meta) for proxy in proxies]
        default_routes = get_routes_for_spec(not_proxied, meta, self.config.routing_annotations)

        pod_additions = None
        if proxies:
            pod_additions = get_proxy_pod_additions(
                proxies,
                meta.workspace_id,
                meta.uid,
                self.config.oauth_proxy_image,
                self.config.sidecar_pull_policy,
            )

        objects = RoutingObjects(
            services=services,
            routes=proxy_routes + default_routes,
            pod_additions=pod_additions,
            oauth_client=self._get_oauth_client(proxy_routes, meta),
        )
        check_unique_object_names(objects)
        return objects

    def _get_proxy_route(self, proxy: ProxyEndpoint, meta: WorkspaceMetadata) -> Dict[str, Any]:
        override = endpoint_annotation_override(proxy.upstream, self.config.routing_annotations)
        route = get_route_for_endpoint(proxy.public, meta, override)
        # URL resolution looks routes up by the upstream endpoint's name.
        route["metadata"]["annotations"][ENDPOINT_NAME_ANNOTATION] = proxy.upstream.name
        route["spec"]["path"] = "/"
        route["spec"]["tls"] = {
            "termination": "reencrypt",
            "insecureEdgeTerminationPolicy": "Redirect",
        }
        return route

    def _get_oauth_client(
        self, proxy_routes: List[Dict[str, Any]], meta: WorkspaceMetadata
    ) -> Dict[str, Any]:
        redirect_uris = [
            f"https://{route['spec']['host']}/oauth/callback" for route in proxy_routes
        ]
        return {
            "apiVersion": "oauth.openshift.io/v1",
            "kind": "OAuthClient",
            "metadata": {
                "name": oauth_client_name(meta.workspace_id),
                "labels": meta.labels(),
            },
            "grantMethod": "prompt",
            "secret": client_secret(meta.workspace_id, meta.uid),
            "redirectURIs": redirect_uris,
        }

    def get_exposed_endpoints(
        self, endpoints: EndpointMap, routing_objects: RoutingObjects
    ) -> Tuple[ExposedEndpointMap, bool]:
        return get_exposed_endpoints(endpoints, routing_objects)
