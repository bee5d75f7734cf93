import logging
import threading
from typing import Callable, Dict, Optional, Union

from cargohold import logger as package_logger
from cargohold.config import Settings, load_settings
from cargohold.inventory import Inventory, SnapshotListener
from cargohold.operations import OperationExecutor, confirmation_message, requires_confirmation
from cargohold.runner import EngineRunner
from cargohold.schemas import (
    EntityKind,
    InventorySnapshot,
    Operation,
    OperationParams,
    Outcome,
    RefreshResult,
)


class EngineManager:
    """Inventory and control of one container engine, driven through its CLI."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[EngineRunner] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes EngineManager.

        Args:
            settings: Engine binary, timeout and log level. Loaded from the
                      settings file and environment when omitted.
            runner: Pre-built runner (tests pass a double here).
            logger: Logger handle for everything this manager does. Defaults to
                    the package logger.
        """
        self.settings = settings or load_settings()
        self.logger = logger or package_logger
        self.runner = runner or EngineRunner(
            binary=self.settings.engine_binary,
            timeout=self.settings.command_timeout,
            logger=self.logger,
        )
        self.inventory = Inventory(self.runner, logger=self.logger)
        self.executor = OperationExecutor(self.runner, self.inventory, logger=self.logger)
        self.logger.info(
            f"EngineManager initialized. Engine: {self.settings.engine_binary}, "
            f"timeout: {self.settings.command_timeout if self.settings.command_timeout else 'none'}"
        )

    # --- inventory ---

    def list_containers(self) -> InventorySnapshot:
        return self.inventory.list_containers()

    def list_images(self) -> InventorySnapshot:
        return self.inventory.list_images()

    def list_networks(self) -> InventorySnapshot:
        return self.inventory.list_networks()

    def list_volumes(self) -> InventorySnapshot:
        return self.inventory.list_volumes()

    def refresh(self, kind: Union[EntityKind, str], cancel_event: Optional[threading.Event] = None) -> InventorySnapshot:
        return self.inventory.refresh(EntityKind(kind), cancel_event=cancel_event)

    def refresh_all(self) -> Dict[EntityKind, RefreshResult]:
        return self.inventory.refresh_all()

    def snapshot(self, kind: Union[EntityKind, str]) -> Optional[InventorySnapshot]:
        return self.inventory.snapshot(EntityKind(kind))

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self.inventory.subscribe(listener)

    # --- operations ---

    def execute(
        self,
        operation: Union[Operation, str],
        identifier: Optional[str] = None,
        params: Optional[OperationParams] = None,
        *,
        confirmed: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> Outcome:
        return self.executor.execute(
            operation, identifier, params, confirmed=confirmed, cancel_event=cancel_event
        )

    @staticmethod
    def requires_confirmation(operation: Union[Operation, str]) -> bool:
        return requires_confirmation(operation)

    @staticmethod
    def confirmation_message(operation: Union[Operation, str], identifier: Optional[str] = None) -> str:
        return confirmation_message(operation, identifier)
