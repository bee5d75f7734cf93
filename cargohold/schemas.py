from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    CONTAINERS = "containers"
    IMAGES = "images"
    NETWORKS = "networks"
    VOLUMES = "volumes"


class ContainerState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    RESTARTING = "restarting"
    REMOVING = "removing"
    EXITED = "exited"
    DEAD = "dead"


class Operation(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    REMOVE_CONTAINER = "remove-container"
    LOGS = "logs"
    INSPECT = "inspect"
    PULL = "pull"
    REMOVE_IMAGE = "remove-image"
    TAG = "tag"
    RUN = "run"
    PRUNE_CONTAINERS = "prune-containers"
    PRUNE_IMAGES = "prune-images"
    PRUNE_VOLUMES = "prune-volumes"
    PRUNE_NETWORKS = "prune-networks"
    PRUNE_ALL = "prune-all"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ContainerImageRef(_Frozen):
    """Image reference as written by the engine, split into repository and tag."""
    original_name: str
    repository: str
    tag: str = "latest"


class PortMapping(_Frozen):
    host_ip: Optional[str] = None
    host_port: Optional[int] = None
    container_port: int
    protocol: str = "tcp"


class Container(_Frozen):
    """Schema for a container row of the engine's `ps -a` report."""
    id: str
    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    image: ContainerImageRef
    ports: Tuple[PortMapping, ...] = ()
    networks: Tuple[str, ...] = ()
    created_at: datetime
    state: ContainerState
    status: str = ""

    @property
    def is_running(self) -> bool:
        return self.state == ContainerState.RUNNING


class Image(_Frozen):
    """Schema for an image row of the engine's `images` report."""
    id: str
    ref: ContainerImageRef
    created_at: datetime
    size_bytes: int = Field(0, ge=0)


class Network(_Frozen):
    """Schema for a network row. ipv6/internal are not part of the plain listing."""
    id: str
    name: str
    driver: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    scope: str = ""
    ipv6: bool = False
    internal: bool = False
    created_at: datetime


class Volume(_Frozen):
    """Schema for a volume row. Volumes are identified by name."""
    name: str
    driver: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    mountpoint: str = ""
    scope: str = "local"


Entity = Union[Container, Image, Network, Volume]


class ContainerGroups(_Frozen):
    running: Tuple[Container, ...] = ()
    not_running: Tuple[Container, ...] = ()


class EntityGroup(_Frozen):
    name: str
    items: Tuple[Entity, ...] = ()


class InventorySnapshot(_Frozen):
    """Result of the most recent successful listing for one entity kind."""
    kind: EntityKind
    items: Tuple[Entity, ...] = ()
    groups: Tuple[EntityGroup, ...] = ()
    fetched_at: datetime

    def group(self, name: str) -> Tuple[Entity, ...]:
        for group in self.groups:
            if group.name == name:
                return group.items
        raise KeyError(name)

    def __len__(self) -> int:
        return len(self.items)


class RefreshResult(_Frozen):
    """Per-kind result of a refresh_all() call."""
    kind: EntityKind
    snapshot: Optional[InventorySnapshot] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class OperationParams(_Frozen):
    name: Optional[str] = None
    publish_all_ports: bool = False
    new_tag: Optional[str] = None


class Outcome(_Frozen):
    """Schema for the result of a mutating or read-only operation."""
    operation: Operation
    success: bool
    message: str
    output: str = ""
    warning: Optional[str] = None
    refreshed: List[EntityKind] = Field(default_factory=list)
    refresh_errors: Dict[EntityKind, str] = Field(default_factory=dict)


# --- HTTP API ---


class OperationRequest(BaseModel):
    identifier: Optional[str] = None
    params: OperationParams = Field(default_factory=OperationParams)
    confirmed: bool = False


class ConfirmationInfo(BaseModel):
    operation: Operation
    requires_confirmation: bool
    message: str = ""


class RefreshSummary(BaseModel):
    kind: EntityKind
    ok: bool
    count: int = 0
    error: Optional[str] = None
