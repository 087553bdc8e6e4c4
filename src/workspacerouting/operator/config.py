"""
Operator configuration.

Values come from environment variables and can be overlaid by a YAML file
named by WORKSPACE_ROUTING_CONFIG. The configuration is read once at startup
and is read-only afterwards.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

CONFIG_FILE_ENV = "WORKSPACE_ROUTING_CONFIG"

DEFAULT_OAUTH_PROXY_IMAGE = "quay.io/openshift/origin-oauth-proxy:4.14"


class ConfigurationError(Exception):
    """Raised when the operator configuration cannot be loaded."""


@dataclass(frozen=True)
class OperatorConfig:
    default_routing_class: str = ""
    cluster_host_suffix: str = ""
    # None: platform defaults; {}: no annotations; otherwise replaces the defaults.
    routing_annotations: Optional[Dict[str, str]] = None
    # None: detect from the cluster at startup.
    is_openshift: Optional[bool] = None
    oauth_proxy_image: str = DEFAULT_OAUTH_PROXY_IMAGE
    sidecar_pull_policy: str = "IfNotPresent"
    worker_limit: int = 5
    posting_enabled: bool = False
    requeue_delay: float = 1.0


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ConfigurationError(f"Invalid boolean for {key}: '{value}'")


def _parse_number(value: Any, key: str, kind: type) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for {key}: {e}")


# YAML key -> (env var, field, parser)
_FIELDS = {
    "defaultRoutingClass": ("WORKSPACE_ROUTING_DEFAULT_CLASS", "default_routing_class", str),
    "clusterHostSuffix": ("WORKSPACE_ROUTING_CLUSTER_HOST_SUFFIX", "cluster_host_suffix", str),
    "isOpenShift": ("WORKSPACE_ROUTING_OPENSHIFT", "is_openshift", bool),
    "oauthProxyImage": ("WORKSPACE_ROUTING_OAUTH_PROXY_IMAGE", "oauth_proxy_image", str),
    "sidecarPullPolicy": ("WORKSPACE_ROUTING_SIDECAR_PULL_POLICY", "sidecar_pull_policy", str),
    "workerLimit": ("WORKSPACE_ROUTING_WORKER_LIMIT", "worker_limit", int),
    "postingEnabled": ("WORKSPACE_ROUTING_POSTING_ENABLED", "posting_enabled", bool),
    "requeueDelay": ("WORKSPACE_ROUTING_REQUEUE_DELAY", "requeue_delay", float),
}


def _convert(key: str, value: Any, kind: type) -> Any:
    if kind is bool:
        return _parse_bool(value, key)
    if kind in (int, float):
        return _parse_number(value, key, kind)
    return str(value)


def load_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse config file {path}: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def load_config(environ: Optional[Mapping[str, str]] = None) -> OperatorConfig:
    """Build the configuration: defaults, then environment, then the YAML file."""
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    for key, (env_var, field_name, kind) in _FIELDS.items():
        if environ.get(env_var):
            values[field_name] = _convert(env_var, environ[env_var], kind)

    config_path = environ.get(CONFIG_FILE_ENV)
    if config_path:
        data = load_config_file(Path(config_path))
        for key, (_, field_name, kind) in _FIELDS.items():
            if key in data and data[key] is not None:
                values[field_name] = _convert(key, data[key], kind)
        if "annotations" in data:
            annotations = data["annotations"]
            if annotations is not None and not isinstance(annotations, dict):
                raise ConfigurationError("annotations must be a mapping")
            values["routing_annotations"] = (
                None if annotations is None else {str(k): str(v) for k, v in annotations.items()}
            )

    if values.get("worker_limit", 1) < 1:
        raise ConfigurationError("workerLimit must be at least 1")
    if values.get("requeue_delay", 1.0) <= 0:
        raise ConfigurationError("requeueDelay must be positive")

    return OperatorConfig(**values)
