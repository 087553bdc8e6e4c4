"""Deterministic names for generated objects."""
import re

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")

MAX_HOSTNAME_LABEL_LENGTH = 63


def endpoint_name(name: str) -> str:
    """Normalize an endpoint name into a DNS-1035 friendly label."""
    normalized = _NON_ALPHANUMERIC.sub("-", name.lower())
    return normalized.strip("-")


def service_name(workspace_id: str) -> str:
    return f"{workspace_id}-service"


def discoverable_service_name(name: str) -> str:
    return endpoint_name(name)


def route_name(workspace_id: str, name: str) -> str:
    return f"{workspace_id}-{name}"


def endpoint_hostname(workspace_id: str, name: str, port: int, routing_suffix: str) -> str:
    hostname = f"{workspace_id}-{name}-{port}"
    if len(hostname) > MAX_HOSTNAME_LABEL_LENGTH:
        hostname = hostname[:MAX_HOSTNAME_LABEL_LENGTH].rstrip("-")
    return f"{hostname}.{routing_suffix}"


def oauth_client_name(workspace_id: str) -> str:
    return f"{workspace_id}-oauth-client"


def oauth_proxy_secret_name(workspace_id: str) -> str:
    return f"{workspace_id}-oauth-proxy-tls"


def serving_cert_volume_name(service: str) -> str:
    return f"{service}-serving-cert"


def service_port_name(name: str, port: int) -> str:
    """Service port names are IANA service names: at most 15 characters."""
    normalized = endpoint_name(name)
    if normalized and len(normalized) <= 15 and any(c.isalpha() for c in normalized):
        return normalized
    return f"port-{port}"
