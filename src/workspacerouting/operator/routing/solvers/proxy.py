"""oauth-proxy sidecars placed in front of secure public endpoints."""
import hashlib
from dataclasses import dataclass
from typing import Any, Dict, List

from ....crds.routing import Endpoint, PodAdditions
from .naming import oauth_client_name, oauth_proxy_secret_name

PROXY_HTTPS_PORT_START = 4400
PROXY_HTTP_PORT_START = 4180

TLS_MOUNT_PATH = "/etc/tls/private"
SECRET_DEFAULT_MODE = 420


@dataclass(frozen=True)
class ProxyEndpoint:
    component: str
    upstream: Endpoint
    public: Endpoint
    http_port: int


def derive_secret(workspace_id: str, seed: str, purpose: str, length: int = 32) -> str:
    """
    Stable per-workspace secret.

    The OAuthClient and every sidecar of the workspace must agree on the
    value across reconciles, so it is derived instead of generated.
    """
    digest = hashlib.sha256(f"{seed}:{workspace_id}:{purpose}".encode()).hexdigest()
    return digest[:length]


def client_secret(workspace_id: str, seed: str) -> str:
    return derive_secret(workspace_id, seed, "client-secret")


def cookie_secret(workspace_id: str, seed: str) -> str:
    # oauth-proxy accepts 16, 24 or 32 byte cookie secrets.
    return derive_secret(workspace_id, seed, "cookie-secret", 32)


def build_secret_volume(secret_name: str) -> Dict[str, Any]:
    return {
        "name": secret_name,
        "secret": {
            "secretName": secret_name,
            "defaultMode": SECRET_DEFAULT_MODE,
        },
    }


def get_proxy_container(
    proxy: ProxyEndpoint,
    volume: Dict[str, Any],
    workspace_id: str,
    secret_seed: str,
    image: str,
    pull_policy: str,
) -> Dict[str, Any]:
    upstream_port = proxy.upstream.target_port
    https_port = proxy.public.target_port
    return {
        "name": f"oauth-proxy-{upstream_port}-{https_port}",
        "image": image,
        "imagePullPolicy": pull_policy,
        "ports": [{"containerPort": https_port, "protocol": "TCP"}],
        "volumeMounts": [{"name": volume["name"], "mountPath": TLS_MOUNT_PATH}],
        "terminationMessagePolicy": "FallbackToLogsOnError",
        "args": [
            f"--https-address=:{https_port}",
            f"--http-address=127.0.0.1:{proxy.http_port}",
            "--provider=openshift",
            f"--upstream=http://localhost:{upstream_port}",
            f"--tls-cert={TLS_MOUNT_PATH}/tls.crt",
            f"--tls-key={TLS_MOUNT_PATH}/tls.key",
            f"--cookie-secret={cookie_secret(workspace_id, secret_seed)}",
            f"--client-id={oauth_client_name(workspace_id)}",
            f"--client-secret={client_secret(workspace_id, secret_seed)}",
            "--pass-user-bearer-token=false",
            "--pass-access-token=true",
            "--scope=user:full",
        ],
    }


def get_proxy_pod_additions(
    proxies: List[ProxyEndpoint],
    workspace_id: str,
    secret_seed: str,
    image: str,
    pull_policy: str,
) -> PodAdditions:
    volume = build_secret_volume(oauth_proxy_secret_name(workspace_id))
    containers = [
        get_proxy_container(proxy, volume, workspace_id, secret_seed, image, pull_policy)
        for proxy in proxies
    ]
    return PodAdditions(containers=containers, volumes=[volume])
