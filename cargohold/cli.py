#!/usr/bin/env python

import importlib.metadata
import sys
from enum import Enum
from typing import Iterable, List, Optional

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from cargohold import __version__, logger
from cargohold import api as http_api
from cargohold.main import app as http_app
from cargohold.config import Settings, load_settings
from cargohold.engine_manager import EngineManager
from cargohold.errors import CargoholdError
from cargohold.logging_utils import open_log_channel
from cargohold.operations import confirmation_message, requires_confirmation
from cargohold.policy import NOT_RUNNING_GROUP, RUNNING_GROUP
from cargohold.presentation import (
    TreeNode,
    build_tree,
    error_tree,
    format_megabytes,
    format_timestamp,
    short_id,
)
from cargohold.schemas import EntityKind, Operation, OperationParams, Outcome

app = typer.Typer(
    name="cargohold",
    help="Inventory and control of local containers, images, networks and volumes.",
    context_settings={"help_option_names": ["-h", "--help"]},
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()

# Resolved in the callback; commands build the manager from it on first use.
settings: Optional[Settings] = None
engine_manager: Optional[EngineManager] = None


class PruneTarget(str, Enum):
    CONTAINERS = "containers"
    IMAGES = "images"
    VOLUMES = "volumes"
    NETWORKS = "networks"
    ALL = "all"


PRUNE_OPERATIONS = {
    PruneTarget.CONTAINERS: Operation.PRUNE_CONTAINERS,
    PruneTarget.IMAGES: Operation.PRUNE_IMAGES,
    PruneTarget.VOLUMES: Operation.PRUNE_VOLUMES,
    PruneTarget.NETWORKS: Operation.PRUNE_NETWORKS,
    PruneTarget.ALL: Operation.PRUNE_ALL,
}


def init_engine_manager() -> EngineManager:
    """Returns the shared EngineManager, creating it from the resolved settings."""
    global engine_manager

    if engine_manager is None:
        engine_manager = EngineManager(settings=settings or load_settings())
    return engine_manager


def _fail(action: str, error: Exception) -> None:
    console.print(f"[bold red]Error {action}: {escape(str(error))}[/bold red]")
    logger.error(f"CLI: Error {action}: {error}")
    raise typer.Exit(code=1)


def _require(value: Optional[str], prompt: str) -> str:
    if not value:
        value = typer.prompt(prompt, default="", show_default=False)
    if not value or not value.strip():
        console.print("[bold red]A value is required.[/bold red]")
        raise typer.Exit(code=1)
    return value.strip()


def _report(outcome: Outcome) -> None:
    console.print(f"[green]{escape(outcome.message)}[/green]")
    if outcome.warning:
        console.print(f"[yellow]{outcome.warning}[/yellow]")
    for kind, error in outcome.refresh_errors.items():
        console.print(f"[yellow]Could not refresh {kind.value}: {escape(error)}[/yellow]")


def _execute(
    operation: Operation,
    identifier: Optional[str] = None,
    params: Optional[OperationParams] = None,
    yes: bool = False,
) -> Outcome:
    """Confirms (when destructive), runs one operation and reports its outcome."""
    if requires_confirmation(operation) and not yes:
        if not typer.confirm(confirmation_message(operation, identifier), default=False):
            console.print("Cancelled")
            logger.info(f"CLI: {operation.value} declined by user")
            raise typer.Exit(code=0)

    manager = init_engine_manager()
    logger.info(f"CLI: Running {operation.value} (target: {identifier or '-'})")
    try:
        outcome = manager.execute(operation, identifier, params, confirmed=True)
    except CargoholdError as e:
        _fail(f"running {operation.value}", e)
    _report(outcome)
    return outcome


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="debug, info, warn or error."),
    engine: Optional[str] = typer.Option(None, "--engine", help="Engine CLI binary (default: docker)."),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds allowed per engine call; 0 disables the limit."
    ),
    config: Optional[str] = typer.Option(None, "--config", help="Path to a YAML settings file."),
):
    """Container-engine inventory and control."""
    global settings

    try:
        resolved = load_settings(
            config,
            engine_binary=engine,
            log_level=log_level,
            command_timeout=timeout if timeout and timeout > 0 else None,
        )
    except CargoholdError as e:
        console.print(f"[bold red]Configuration error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1)
    if timeout is not None and timeout <= 0:
        resolved = resolved.model_copy(update={"command_timeout": None})
    settings = resolved
    ctx.with_resource(open_log_channel(settings.log_level))


# --- inventory ---


def _add_node(parent: Tree, node: TreeNode) -> None:
    label = escape(node.label)
    if node.description:
        label = f"{label} [dim]{escape(node.description)}[/dim]"
    branch = parent.add(label)
    for child in node.children:
        _add_node(branch, child)


def _render_tree(title: str, nodes: Iterable[TreeNode]) -> None:
    root = Tree(f"[bold]{title}[/bold]")
    for node in nodes:
        _add_node(root, node)
    console.print(root)


@app.command("tree", help="Show the grouped inventory tree for one kind, or for all of them.")
def tree_command(
    kind: Optional[EntityKind] = typer.Argument(None, help="containers, images, networks or volumes."),
):
    manager = init_engine_manager()
    kinds: List[EntityKind] = [kind] if kind else list(EntityKind)
    for k in kinds:
        try:
            nodes = build_tree(manager.refresh(k))
        except CargoholdError as e:
            logger.error(f"CLI: Failed to list {k.value}: {e}")
            nodes = error_tree(e)
        _render_tree(k.value.capitalize(), nodes)


def _list(kind: EntityKind):
    manager = init_engine_manager()
    logger.info(f"CLI: Listing {kind.value}")
    try:
        return manager.refresh(kind)
    except CargoholdError as e:
        _fail(f"listing {kind.value}", e)


@app.command("ps", help="List all containers, running ones first.")
def list_containers_command():
    snapshot = _list(EntityKind.CONTAINERS)
    if not snapshot.items:
        console.print("No containers found.")
        return

    table = Table(title="Containers")
    table.add_column("ID", style="dim", width=14)
    table.add_column("Name", style="green")
    table.add_column("Image", style="cyan")
    table.add_column("State", style="magenta")
    table.add_column("Status")
    table.add_column("Ports")

    running = snapshot.group(RUNNING_GROUP)
    stopped = snapshot.group(NOT_RUNNING_GROUP)
    for container in (*running, *stopped):
        ports = ", ".join(
            f"{p.host_port}->{p.container_port}/{p.protocol}" if p.host_port else f"{p.container_port}/{p.protocol}"
            for p in container.ports
        )
        table.add_row(
            short_id(container.id),
            container.name,
            container.image.original_name,
            container.state.value,
            container.status,
            ports,
        )
    console.print(table)


@app.command("images", help="List images, newest first.")
def list_images_command():
    snapshot = _list(EntityKind.IMAGES)
    if not snapshot.items:
        console.print("No images found.")
        return

    table = Table(title="Images")
    table.add_column("ID", style="dim", width=14)
    table.add_column("Repository", style="cyan")
    table.add_column("Tag", style="green")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    for image in snapshot.items:
        table.add_row(
            short_id(image.id),
            image.ref.repository,
            image.ref.tag,
            format_megabytes(image.size_bytes),
            format_timestamp(image.created_at),
        )
    console.print(table)


@app.command("networks", help="List networks by name.")
def list_networks_command():
    snapshot = _list(EntityKind.NETWORKS)
    if not snapshot.items:
        console.print("No networks found.")
        return

    table = Table(title="Networks")
    table.add_column("ID", style="dim", width=14)
    table.add_column("Name", style="green")
    table.add_column("Driver", style="cyan")
    table.add_column("Scope")
    for network in snapshot.items:
        table.add_row(short_id(network.id), network.name, network.driver, network.scope)
    console.print(table)


@app.command("volumes", help="List volumes by name.")
def list_volumes_command():
    snapshot = _list(EntityKind.VOLUMES)
    if not snapshot.items:
        console.print("No volumes found.")
        return

    table = Table(title="Volumes")
    table.add_column("Name", style="green")
    table.add_column("Driver", style="cyan")
    table.add_column("Scope")
    table.add_column("Mountpoint", style="dim")
    for volume in snapshot.items:
        table.add_row(volume.name, volume.driver, volume.scope, volume.mountpoint)
    console.print(table)


# --- containers ---


@app.command("start", help="Start a container.")
def start_command(container_id: Optional[str] = typer.Argument(None, help="Container ID or name.")):
    _execute(Operation.START, _require(container_id, "Container ID or name"))


@app.command("stop", help="Stop a container.")
def stop_command(container_id: Optional[str] = typer.Argument(None, help="Container ID or name.")):
    _execute(Operation.STOP, _require(container_id, "Container ID or name"))


@app.command("restart", help="Restart a container.")
def restart_command(container_id: Optional[str] = typer.Argument(None, help="Container ID or name.")):
    _execute(Operation.RESTART, _require(container_id, "Container ID or name"))


@app.command("rm", help="Remove a container.")
def remove_container_command(
    container_id: Optional[str] = typer.Argument(None, help="Container ID or name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    _execute(Operation.REMOVE_CONTAINER, _require(container_id, "Container ID or name to remove"), yes=yes)


@app.command("logs", help="Show the last 500 log lines of a container.")
def logs_command(container_id: Optional[str] = typer.Argument(None, help="Container ID or name.")):
    container_id = _require(container_id, "Container ID or name")
    manager = init_engine_manager()
    logger.info(f"CLI: Fetching logs for container '{container_id}'")
    try:
        outcome = manager.execute(Operation.LOGS, container_id)
    except CargoholdError as e:
        _fail(f"fetching logs for '{container_id}'", e)
    if outcome.output:
        typer.echo(outcome.output.rstrip("\n"))
    else:
        console.print(f"No logs returned for container {container_id}.")


@app.command("inspect", help="Show the engine's JSON description of a container or image.")
def inspect_command(target: Optional[str] = typer.Argument(None, help="Container or image ID or name.")):
    target = _require(target, "Container or image ID or name")
    manager = init_engine_manager()
    try:
        outcome = manager.execute(Operation.INSPECT, target)
    except CargoholdError as e:
        _fail(f"inspecting '{target}'", e)
    typer.echo(outcome.output.rstrip("\n"))


# --- images ---


@app.command("pull", help="Pull an image.")
def pull_command(image: Optional[str] = typer.Argument(None, help="Image name, e.g. nginx:latest.")):
    _execute(Operation.PULL, _require(image, "Image to pull (e.g. nginx:latest)"))


@app.command("rmi", help="Remove an image.")
def remove_image_command(
    image: Optional[str] = typer.Argument(None, help="Image ID or name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    _execute(Operation.REMOVE_IMAGE, _require(image, "Image ID or name to remove"), yes=yes)


@app.command("tag", help="Add a tag to an image.")
def tag_command(
    image: Optional[str] = typer.Argument(None, help="Image ID or name."),
    new_tag: Optional[str] = typer.Argument(None, help="New tag, e.g. myrepo/app:v2."),
):
    image = _require(image, "Image ID or name")
    new_tag = _require(new_tag, "New tag (e.g. myrepo/app:v2)")
    _execute(Operation.TAG, image, OperationParams(new_tag=new_tag))


@app.command("run", help="Start a detached container from an image.")
def run_command(
    image: Optional[str] = typer.Argument(None, help="Image name."),
    name: Optional[str] = typer.Option(None, "--name", help="Container name."),
    publish_all: bool = typer.Option(False, "--publish-all", "-P", help="Publish all exposed ports."),
):
    image = _require(image, "Image to run")
    outcome = _execute(Operation.RUN, image, OperationParams(name=name, publish_all_ports=publish_all))
    if outcome.output.strip():
        console.print(f"Container ID: [cyan]{short_id(outcome.output.strip())}[/cyan]")


@app.command("prune", help="Remove unused containers, images, volumes, networks, or all of them.")
def prune_command(
    target: PruneTarget = typer.Argument(..., help="containers, images, volumes, networks or all."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    outcome = _execute(PRUNE_OPERATIONS[target], yes=yes)
    if outcome.output.strip():
        typer.echo(outcome.output.rstrip("\n"))


# --- service ---


@app.command("serve", help="Serve the HTTP API with uvicorn.")
def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Host to bind to."),
    port: Optional[int] = typer.Option(None, "--port", help="Port to bind to."),
):
    current = settings or load_settings()
    host = host or current.api_host
    port = port or current.api_port
    http_api.engine_manager = init_engine_manager()
    console.print(f"Serving cargohold API at http://{host}:{port}/cargohold (docs at /docs)")
    uvicorn_level = "warning" if current.log_level == "warn" else current.log_level
    uvicorn.run(http_app, host=host, port=port, log_level=uvicorn_level)


@app.command("version", help="Show version information.")
def version_command():
    try:
        version = importlib.metadata.version("cargohold")
    except importlib.metadata.PackageNotFoundError:
        version = __version__

    version_info = (
        f"[bold cyan]cargohold[/bold cyan] v{version}\n"
        f"Python: {sys.version.split()[0]}\n"
        f"Platform: {sys.platform}"
    )
    console.print(Panel(version_info, title="Version Info", border_style="blue"))


if __name__ == "__main__":
    app()
