"""Ordering and grouping applied to every fetched listing. Pure functions, no I/O."""

from typing import Iterable, List, Sequence, Tuple

from cargohold.schemas import (
    Container,
    ContainerGroups,
    Entity,
    EntityGroup,
    EntityKind,
    Image,
)

RUNNING_GROUP = "running"
NOT_RUNNING_GROUP = "not-running"


def group_containers(containers: Iterable[Container]) -> ContainerGroups:
    """Splits containers into running and everything else, keeping source order in each."""
    running: List[Container] = []
    not_running: List[Container] = []
    for container in containers:
        (running if container.is_running else not_running).append(container)
    return ContainerGroups(running=tuple(running), not_running=tuple(not_running))


def sort_images(images: Iterable[Image]) -> List[Image]:
    """Newest first. sorted() is stable, so ties keep their input order."""
    return sorted(images, key=lambda image: image.created_at, reverse=True)


def sort_by_name(items: Iterable[Entity]) -> List[Entity]:
    """Ascending, case-sensitive ordinal order on `name`."""
    return sorted(items, key=lambda item: item.name)


def arrange(kind: EntityKind, items: Sequence[Entity]) -> Tuple[Tuple[Entity, ...], Tuple[EntityGroup, ...]]:
    """
    Applies the policy for one entity kind.

    Returns:
        (ordered items, named groups). Only containers carry groups.
    """
    if kind == EntityKind.CONTAINERS:
        groups = group_containers(items)
        return tuple(items), (
            EntityGroup(name=RUNNING_GROUP, items=groups.running),
            EntityGroup(name=NOT_RUNNING_GROUP, items=groups.not_running),
        )
    if kind == EntityKind.IMAGES:
        return tuple(sort_images(items)), ()
    return tuple(sort_by_name(items)), ()
