"""
Presentation mapping from entities to toolkit-neutral tree nodes.

A view (tree widget, terminal, HTTP client) adapts TreeNode instead of
subclassing anything; NodeKind tells it what a node is without type tests.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from cargohold.policy import NOT_RUNNING_GROUP, RUNNING_GROUP
from cargohold.schemas import (
    Container,
    ContainerState,
    EntityKind,
    Image,
    InventorySnapshot,
    Network,
    Volume,
)

MAX_VOLUME_LABELS = 5


class NodeKind(str, Enum):
    GROUP = "group"
    CONTAINER = "container"
    IMAGE = "image"
    NETWORK = "network"
    VOLUME = "volume"
    DETAIL = "detail"
    MESSAGE = "message"


class TreeNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: NodeKind
    label: str
    description: str = ""
    tooltip: str = ""
    icon: Optional[str] = None
    context: Optional[str] = None
    identifier: Optional[str] = None
    expanded: bool = False
    children: Tuple["TreeNode", ...] = ()


def format_megabytes(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


def short_id(value: str) -> str:
    return value.split(":", 1)[-1][:12]


def detail(label: str, value: str) -> TreeNode:
    return TreeNode(kind=NodeKind.DETAIL, label=label, description=value, icon="symbol-property")


def message(text: str) -> TreeNode:
    return TreeNode(kind=NodeKind.MESSAGE, label=text)


def _container_look(state: ContainerState) -> Tuple[str, str]:
    if state == ContainerState.RUNNING:
        return "play-circle", "container-running"
    if state == ContainerState.PAUSED:
        return "debug-pause", "container-paused"
    # exited, created, dead, ... can all be started again
    return "debug-stop", "container-stopped"


def container_node(container: Container) -> TreeNode:
    details: List[TreeNode] = [
        detail("ID", short_id(container.id)),
        detail("Image", container.image.original_name),
        detail("Status", container.status),
        detail("Created", format_timestamp(container.created_at)),
    ]
    if container.networks:
        details.append(detail("Networks", ", ".join(container.networks)))
    published = [f"{p.host_port}:{p.container_port}" for p in container.ports if p.host_port]
    if published:
        details.append(detail("Ports", ", ".join(published)))

    icon, context = _container_look(container.state)
    return TreeNode(
        kind=NodeKind.CONTAINER,
        label=container.name,
        description=container.status,
        tooltip=f"{container.name}\n{container.image.original_name}\nStatus: {container.status}",
        icon=icon,
        context=context,
        identifier=container.name,
        children=tuple(details),
    )


def image_node(image: Image) -> TreeNode:
    size = format_megabytes(image.size_bytes)
    created = format_timestamp(image.created_at)
    return TreeNode(
        kind=NodeKind.IMAGE,
        label=image.ref.original_name,
        description=size,
        tooltip=f"{image.ref.original_name}\nSize: {size}\nCreated: {created}",
        icon="package",
        context="image",
        identifier=image.ref.original_name,
        children=(
            detail("ID", short_id(image.id)),
            detail("Repository", image.ref.repository),
            detail("Tag", image.ref.tag),
            detail("Size", size),
            detail("Created", created),
        ),
    )


def network_node(network: Network) -> TreeNode:
    return TreeNode(
        kind=NodeKind.NETWORK,
        label=network.name,
        description=network.driver,
        tooltip=f"{network.name}\nDriver: {network.driver}\nScope: {network.scope}",
        icon="globe",
        context="network",
        identifier=network.id,
        children=(
            detail("ID", short_id(network.id)),
            detail("Driver", network.driver),
            detail("Scope", network.scope),
            detail("IPv6", "Enabled" if network.ipv6 else "Disabled"),
            detail("Internal", "Yes" if network.internal else "No"),
            detail("Created", format_timestamp(network.created_at)),
        ),
    )


def volume_node(volume: Volume) -> TreeNode:
    details = [
        detail("Driver", volume.driver),
        detail("Scope", volume.scope),
        detail("Mountpoint", volume.mountpoint),
    ]
    labelled = [(k, v) for k, v in volume.labels.items() if k and v]
    details.extend(detail(k, v) for k, v in labelled[:MAX_VOLUME_LABELS])
    return TreeNode(
        kind=NodeKind.VOLUME,
        label=volume.name,
        description=volume.driver,
        tooltip=f"{volume.name}\nDriver: {volume.driver}\nMountpoint: {volume.mountpoint}",
        icon="database",
        context="volume",
        identifier=volume.name,
        children=tuple(details),
    )


_NODE_BUILDERS = {
    EntityKind.CONTAINERS: container_node,
    EntityKind.IMAGES: image_node,
    EntityKind.NETWORKS: network_node,
    EntityKind.VOLUMES: volume_node,
}


def _container_groups(snapshot: InventorySnapshot) -> List[TreeNode]:
    nodes: List[TreeNode] = []
    running = snapshot.group(RUNNING_GROUP)
    stopped = snapshot.group(NOT_RUNNING_GROUP)
    if running:
        nodes.append(TreeNode(
            kind=NodeKind.GROUP,
            label=f"Running ({len(running)})",
            icon="play-circle",
            context="container-group-running",
            expanded=True,
            children=tuple(container_node(c) for c in running),
        ))
    if stopped:
        nodes.append(TreeNode(
            kind=NodeKind.GROUP,
            label=f"Stopped ({len(stopped)})",
            icon="debug-stop",
            context="container-group-stopped",
            children=tuple(container_node(c) for c in stopped),
        ))
    return nodes


def build_tree(snapshot: InventorySnapshot) -> List[TreeNode]:
    """Root nodes for one snapshot, with details as children."""
    if not snapshot.items:
        return [message(f"No {snapshot.kind.value} found")]
    if snapshot.kind == EntityKind.CONTAINERS:
        return _container_groups(snapshot)
    build = _NODE_BUILDERS[snapshot.kind]
    return [build(item) for item in snapshot.items]


def error_tree(error: Exception) -> List[TreeNode]:
    return [message(f"Error: {error}")]
