"""
Kubernetes operator for WorkspaceRouting custom resources.

The handlers are kept thin and delegate to specialized modules for:
- Configuration (config.py)
- Platform detection (infrastructure.py)
- Routing reconciliation (routing/reconciler.py)
"""
import logging
from typing import Any

import kopf

from .config import ConfigurationError, load_config
from .infrastructure import detect_openshift
from .routing.cluster import ClusterClient
from .routing.reconciler import RoutingReconciler
from .routing.solvers import SolverGetter
from ..utils.kube import KubernetesConfigurationError, configure_kube_client


@kopf.on.startup()
async def on_startup(
    settings: kopf.OperatorSettings,
    memo: kopf.Memo,
    logger: logging.Logger,
    **kwargs: Any,
) -> None:
    """
    Handle the startup of the operator.

    This loads the configuration, detects the platform and builds the
    reconciler shared by every handler through the memo.
    """
    try:
        configure_kube_client(logger)
    except KubernetesConfigurationError:
        raise kopf.PermanentError("Could not configure Kubernetes client.")

    try:
        config = memo.get("config") or load_config()
    except ConfigurationError as e:
        raise kopf.PermanentError(f"Invalid operator configuration: {e}")

    # The default worker limit is unbounded which means you can EASILY flood
    # your API server on restart unless you limit it.
    settings.batching.worker_limit = config.worker_limit

    # All logs by default go to the k8s event api.
    settings.posting.enabled = config.posting_enabled

    cluster = ClusterClient()
    is_openshift = await detect_openshift(cluster, config, logger)
    solver_getter = SolverGetter(config, is_openshift)

    memo.config = config
    memo.cluster = cluster
    memo.is_openshift = is_openshift
    memo.solver_getter = solver_getter
    memo.routing_reconciler = RoutingReconciler(
        solver_getter, cluster, is_openshift, requeue_delay=config.requeue_delay
    )
    logger.info("Operator started.")
