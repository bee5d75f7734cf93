"""Inventory cache: one snapshot slot per entity kind plus the refresh contract."""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from cargohold import logger as package_logger
from cargohold.errors import CargoholdError
from cargohold.parsers import PARSERS
from cargohold.policy import arrange
from cargohold.runner import EngineRunner
from cargohold.schemas import EntityKind, InventorySnapshot, RefreshResult

JSON_FORMAT = ["--format", "{{json .}}"]

LISTING_ARGS: Dict[EntityKind, List[str]] = {
    EntityKind.CONTAINERS: ["ps", "-a", *JSON_FORMAT],
    EntityKind.IMAGES: ["images", *JSON_FORMAT],
    EntityKind.NETWORKS: ["network", "ls", *JSON_FORMAT],
    EntityKind.VOLUMES: ["volume", "ls", *JSON_FORMAT],
}

SnapshotListener = Callable[[EntityKind, InventorySnapshot], None]


class Inventory:
    """
    Holds the last successful snapshot of each entity kind.

    A refresh always re-fetches the whole listing. On success the slot is
    replaced in a single assignment and listeners are told; on failure the
    error propagates and the slot keeps its previous snapshot.
    """

    def __init__(self, runner: EngineRunner, logger: Optional[logging.Logger] = None):
        self.runner = runner
        self.logger = logger or package_logger
        self._slots: Dict[EntityKind, Optional[InventorySnapshot]] = {kind: None for kind in EntityKind}
        self._listeners: List[SnapshotListener] = []

    # --- snapshot access ---

    def snapshot(self, kind: EntityKind) -> Optional[InventorySnapshot]:
        return self._slots[EntityKind(kind)]

    def invalidate(self, kind: Optional[EntityKind] = None) -> None:
        """Drops one cached slot, or all of them."""
        kinds = list(EntityKind) if kind is None else [EntityKind(kind)]
        for k in kinds:
            self._slots[k] = None
        self.logger.debug(f"Invalidated snapshots: {[k.value for k in kinds]}")

    # --- refresh contract ---

    def refresh(self, kind: EntityKind, cancel_event: Optional[threading.Event] = None) -> InventorySnapshot:
        """
        Re-fetches one entity kind and replaces its slot.

        Raises:
            EngineCommandError: If the listing command fails (slot untouched).
            InventoryParseError: If the report cannot be parsed (slot untouched).
        """
        kind = EntityKind(kind)
        self.logger.debug(f"Refreshing {kind.value}")
        result = self.runner.run(LISTING_ARGS[kind], cancel_event=cancel_event)
        entities = PARSERS[kind](result.stdout)
        items, groups = arrange(kind, entities)
        snapshot = InventorySnapshot(
            kind=kind,
            items=items,
            groups=groups,
            fetched_at=datetime.now(timezone.utc),
        )
        self._slots[kind] = snapshot
        self.logger.info(f"Refreshed {kind.value}: {len(items)} item(s)")
        self._notify(kind, snapshot)
        return snapshot

    def refresh_many(self, kinds: Iterable[EntityKind]) -> Dict[EntityKind, RefreshResult]:
        """Refreshes each kind independently; one failure never blocks the others."""
        results: Dict[EntityKind, RefreshResult] = {}
        for kind in kinds:
            kind = EntityKind(kind)
            try:
                results[kind] = RefreshResult(kind=kind, snapshot=self.refresh(kind))
            except CargoholdError as e:
                self.logger.error(f"Failed to refresh {kind.value}: {e}")
                results[kind] = RefreshResult(kind=kind, error=str(e))
        return results

    def refresh_all(self) -> Dict[EntityKind, RefreshResult]:
        return self.refresh_many(EntityKind)

    def list_containers(self) -> InventorySnapshot:
        return self.refresh(EntityKind.CONTAINERS)

    def list_images(self) -> InventorySnapshot:
        return self.refresh(EntityKind.IMAGES)

    def list_networks(self) -> InventorySnapshot:
        return self.refresh(EntityKind.NETWORKS)

    def list_volumes(self) -> InventorySnapshot:
        return self.refresh(EntityKind.VOLUMES)

    # --- change notifications ---

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Registers listener(kind, snapshot). Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: EntityKind, snapshot: InventorySnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, snapshot)
            except Exception as e:
                self.logger.error(f"Snapshot listener {listener!r} failed for {kind.value}: {e}", exc_info=True)
