"""
This module contains the handler functions for the CLI commands.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import kopf
import yaml
from kubernetes import client
from rich.console import Console
from rich.table import Table

from ..crds.routing import WorkspaceRouting
from ..operator.config import OperatorConfig
from ..operator.routing.reconciler import EMPTY_ROUTING_CLASS_MESSAGE, workspace_metadata
from ..operator.routing.solvers import SolverGetter
from ..operator.routing.solvers.errors import RoutingInvalid, RoutingNotSupported
from ..utils.kube import KubernetesConfigurationError, configure_kube_client

logger = logging.getLogger(__name__)


def run_operator(config: OperatorConfig, namespaces: Tuple[str, ...]) -> None:
    """Run the operator in the foreground until interrupted."""
    # Import the operator module to register handlers
    import workspacerouting.operator  # noqa: F401

    console = Console()
    if namespaces:
        console.print(f"Watching namespace(s): [cyan]{', '.join(namespaces)}[/cyan]")
    else:
        console.print("Watching all namespaces")

    kopf.run(
        registry=kopf.get_default_registry(),
        standalone=True,
        namespaces=list(namespaces),
        clusterwide=not namespaces,
        memo=kopf.Memo(config=config),
    )


def load_routing(path: Path) -> WorkspaceRouting:
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict) or "metadata" not in data:
        raise ValueError(f"{path} does not contain a WorkspaceRouting manifest")
    data["metadata"].setdefault("namespace", "default")
    return WorkspaceRouting.from_dict(data)


def render_objects(
    routing: WorkspaceRouting, config: OperatorConfig, is_openshift: bool
) -> List[Dict[str, Any]]:
    """The objects the routing's solver would create, without talking to a cluster."""
    solver_getter = SolverGetter(config, is_openshift)
    routing_class = solver_getter.resolve_class(routing.spec.routing_class)
    if not routing_class:
        raise RoutingInvalid(EMPTY_ROUTING_CLASS_MESSAGE)
    solver = solver_getter.get_solver(routing_class)
    objects = solver.get_spec_objects(routing.spec, workspace_metadata(routing))
    documents: List[Dict[str, Any]] = list(objects.namespaced_objects())
    if objects.oauth_client is not None:
        documents.append(objects.oauth_client)
    if objects.pod_additions is not None and objects.pod_additions.to_dict():
        documents.append({"podAdditions": objects.pod_additions.to_dict()})
    return documents


def render_routing(path: Path, config: OperatorConfig, is_openshift: bool) -> None:
    console = Console()
    routing = load_routing(path)
    try:
        documents = render_objects(routing, config, is_openshift)
    except RoutingNotSupported as e:
        console.print(f"[yellow]{e}[/yellow]")
        return
    except RoutingInvalid as e:
        console.print(f"[red]{e}[/red]")
        return
    output = yaml.safe_dump_all(documents, sort_keys=False)
    console.print(output, end="", markup=False, highlight=False, soft_wrap=True)


def _endpoint_urls(status: Dict[str, Any]) -> str:
    exposed = status.get("exposedEndpoints") or {}
    urls = [
        f"{endpoint['name']}: {endpoint.get('url', '')}"
        for endpoints in exposed.values()
        for endpoint in endpoints
    ]
    return "\n".join(urls)


def show_status(namespace: Optional[str] = None) -> None:
    """Lists WorkspaceRoutings with their phase and exposed URLs."""
    console = Console()
    try:
        configure_kube_client(logger)
    except KubernetesConfigurationError as e:
        console.print(f"[red]Could not configure Kubernetes client: {e}[/red]")
        return

    try:
        routings = WorkspaceRouting.list(namespace=namespace)
    except client.ApiException as e:
        console.print(f"An error occurred: {e.reason}")
        return

    if not routings:
        console.print("No WorkspaceRoutings found.")
        return

    table = Table(title="WorkspaceRoutings")
    table.add_column("Namespace", style="magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Class", style="yellow")
    table.add_column("Phase", style="green")
    table.add_column("Endpoints")
    table.add_column("Message", style="red")
    for routing in routings:
        table.add_row(
            routing.metadata.namespace or "",
            routing.metadata.name,
            routing.spec.routing_class or "<default>",
            routing.phase or "Unknown",
            _endpoint_urls(routing.status),
            routing.status.get("message", ""),
        )
    console.print(table)
