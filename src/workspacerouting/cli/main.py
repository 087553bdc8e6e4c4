import os
from pathlib import Path

import click
from rich.console import Console

from . import handlers
from ..operator.config import CONFIG_FILE_ENV, ConfigurationError, load_config


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="Path to the operator config file.",
)
@click.pass_context
def main(ctx, config_path) -> None:
    """Route workspace endpoints to Services, Ingresses and Routes."""
    ctx.ensure_object(dict)
    environ = dict(os.environ)
    if config_path:
        environ[CONFIG_FILE_ENV] = str(config_path)
    try:
        ctx.obj["CONFIG"] = load_config(environ)
    except ConfigurationError as e:
        raise click.ClickException(str(e))


@main.command(help="Run the operator.")
@click.option(
    "--namespace",
    "-n",
    "namespaces",
    multiple=True,
    help="Namespace to watch (can be given multiple times, default: all namespaces).",
)
@click.pass_context
def run(ctx, namespaces: tuple) -> None:
    """Run the operator."""
    handlers.run_operator(ctx.obj["CONFIG"], namespaces)


@main.command(help="Print the objects generated for a WorkspaceRouting manifest.")
@click.argument("file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--openshift", is_flag=True, help="Render for an OpenShift cluster.")
@click.pass_context
def render(ctx, file: Path, openshift: bool) -> None:
    """Render a WorkspaceRouting without a cluster."""
    try:
        handlers.render_routing(file, ctx.obj["CONFIG"], openshift)
    except ValueError as e:
        Console().print(f"[red]{e}[/red]")
        ctx.exit(1)


@main.command(help="List WorkspaceRoutings and their exposed endpoints.")
@click.option("--namespace", "-n", type=str, default=None, help="Namespace to list.")
def status(namespace: str) -> None:
    """List WorkspaceRoutings."""
    handlers.show_status(namespace=namespace)


if __name__ == "__main__":
    main()
