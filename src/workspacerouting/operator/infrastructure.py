"""Detection of the cluster flavour the operator runs on."""
import logging

from .config import OperatorConfig
from .routing.cluster import ClusterClient

OPENSHIFT_ROUTE_GROUP = "route.openshift.io"


async def detect_openshift(
    cluster: ClusterClient, config: OperatorConfig, logger: logging.Logger
) -> bool:
    """
    Whether the cluster is OpenShift.

    An explicit setting in the configuration wins; otherwise the presence of
    the Route API group decides. Called once at startup.
    """
    if config.is_openshift is not None:
        logger.info("Platform forced by configuration: openshift=%s", config.is_openshift)
        return config.is_openshift
    is_openshift = await cluster.api_group_available(OPENSHIFT_ROUTE_GROUP)
    logger.info("Detected platform: %s", "OpenShift" if is_openshift else "Kubernetes")
    return is_openshift
