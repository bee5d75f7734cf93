"""
Mutating and read-only engine operations.

Every operation is described once in OPERATIONS: whether it needs an
identifier, whether it is destructive (and so needs caller confirmation),
the warning shown before it runs and which entity kinds to refresh after it
succeeds. OperationExecutor turns a request into an argument vector, runs
it, and refreshes the affected kinds.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from cargohold import logger as package_logger
from cargohold.errors import (
    ConfirmationRequiredError,
    InvalidArgumentError,
    MissingIdentifierError,
    MissingParameterError,
)
from cargohold.inventory import Inventory
from cargohold.runner import EngineRunner
from cargohold.schemas import EntityKind, Operation, OperationParams, Outcome

LOG_TAIL_LINES = 500
DATA_LOSS_WARNING = "This may result in data loss!"

ALL_KINDS = tuple(EntityKind)

ArgsBuilder = Callable[[Optional[str], OperationParams], List[str]]


@dataclass(frozen=True)
class OperationSpec:
    operation: Operation
    build_args: ArgsBuilder
    needs_identifier: bool = True
    destructive: bool = False
    refresh: Tuple[EntityKind, ...] = ()
    prompt: str = ""
    data_loss: bool = False
    success_message: str = ""


def _verb(verb: str) -> ArgsBuilder:
    return lambda identifier, params: [verb, identifier]


def _logs_args(identifier: Optional[str], params: OperationParams) -> List[str]:
    return ["logs", "--tail", str(LOG_TAIL_LINES), identifier]


def _tag_args(identifier: Optional[str], params: OperationParams) -> List[str]:
    return ["tag", identifier, params.new_tag]


def _run_args(identifier: Optional[str], params: OperationParams) -> List[str]:
    args = ["run", "-d"]
    if params.name:
        args.extend(["--name", params.name])
    if params.publish_all_ports:
        args.append("-P")
    args.append(identifier)
    return args


def _prune(*args: str) -> ArgsBuilder:
    return lambda identifier, params: list(args)


_SPECS = [
    OperationSpec(Operation.START, _verb("start"), refresh=(EntityKind.CONTAINERS,),
                  success_message='Container "{identifier}" started'),
    OperationSpec(Operation.STOP, _verb("stop"), refresh=(EntityKind.CONTAINERS,),
                  success_message='Container "{identifier}" stopped'),
    OperationSpec(Operation.RESTART, _verb("restart"), refresh=(EntityKind.CONTAINERS,),
                  success_message='Container "{identifier}" restarted'),
    OperationSpec(Operation.REMOVE_CONTAINER, _verb("rm"), destructive=True,
                  refresh=(EntityKind.CONTAINERS,),
                  prompt='Are you sure you want to remove container "{identifier}"?',
                  success_message='Container "{identifier}" removed'),
    OperationSpec(Operation.LOGS, _logs_args,
                  success_message='Fetched logs for "{identifier}"'),
    OperationSpec(Operation.INSPECT, _verb("inspect"),
                  success_message='Inspected "{identifier}"'),
    OperationSpec(Operation.PULL, _verb("pull"), refresh=(EntityKind.IMAGES,),
                  success_message='Image "{identifier}" pulled'),
    OperationSpec(Operation.REMOVE_IMAGE, _verb("rmi"), destructive=True,
                  refresh=(EntityKind.IMAGES,),
                  prompt='Are you sure you want to remove image "{identifier}"?',
                  success_message='Image "{identifier}" removed'),
    OperationSpec(Operation.TAG, _tag_args, refresh=(EntityKind.IMAGES,),
                  success_message='Image tagged as "{new_tag}"'),
    OperationSpec(Operation.RUN, _run_args, refresh=(EntityKind.CONTAINERS,),
                  success_message='Container started from image "{identifier}"'),
    OperationSpec(Operation.PRUNE_CONTAINERS, _prune("container", "prune", "-f"), needs_identifier=False,
                  destructive=True, refresh=(EntityKind.CONTAINERS,),
                  prompt="Remove all stopped containers?",
                  success_message="Stopped containers pruned"),
    OperationSpec(Operation.PRUNE_IMAGES, _prune("image", "prune", "-f"), needs_identifier=False,
                  destructive=True, refresh=(EntityKind.IMAGES,),
                  prompt="Remove all unused images?",
                  success_message="Unused images pruned"),
    OperationSpec(Operation.PRUNE_VOLUMES, _prune("volume", "prune", "-f"), needs_identifier=False,
                  destructive=True, refresh=(EntityKind.VOLUMES,), data_loss=True,
                  prompt="Remove all unused volumes?",
                  success_message="Unused volumes pruned"),
    OperationSpec(Operation.PRUNE_NETWORKS, _prune("network", "prune", "-f"), needs_identifier=False,
                  destructive=True, refresh=(EntityKind.NETWORKS,),
                  prompt="Remove all unused networks?",
                  success_message="Unused networks pruned"),
    OperationSpec(Operation.PRUNE_ALL, _prune("system", "prune", "-f", "--volumes"), needs_identifier=False,
                  destructive=True, refresh=ALL_KINDS, data_loss=True,
                  prompt="Remove all unused containers, images, networks, and volumes?",
                  success_message="All unused resources pruned"),
]

OPERATIONS: Dict[Operation, OperationSpec] = {spec.operation: spec for spec in _SPECS}


def get_spec(operation: Union[Operation, str]) -> OperationSpec:
    """Raises ValueError for an unknown operation name."""
    return OPERATIONS[Operation(operation)]


def requires_confirmation(operation: Union[Operation, str]) -> bool:
    return get_spec(operation).destructive


def confirmation_message(operation: Union[Operation, str], identifier: Optional[str] = None) -> str:
    """Warning text to show before a destructive operation. Empty for the others."""
    spec = get_spec(operation)
    if not spec.destructive:
        return ""
    message = spec.prompt.format(identifier=identifier or "")
    if spec.data_loss:
        message = f"{message} {DATA_LOSS_WARNING}"
    return message


def build_args(
    operation: Union[Operation, str],
    identifier: Optional[str] = None,
    params: Optional[OperationParams] = None,
) -> List[str]:
    """
    Validates a request and returns the engine argument vector for it.

    Raises:
        MissingIdentifierError: If the operation needs an identifier and none was given.
        MissingParameterError: If `tag` has no new_tag.
        InvalidArgumentError: If an operand starts with "-".
    """
    spec = get_spec(operation)
    params = params or OperationParams()
    identifier = (identifier or "").strip() or None
    if spec.needs_identifier and identifier is None:
        raise MissingIdentifierError(spec.operation.value)
    if spec.operation == Operation.TAG and not (params.new_tag or "").strip():
        raise MissingParameterError(spec.operation.value, "new_tag")
    operands = {"identifier": identifier, "new_tag": params.new_tag, "name": params.name}
    for parameter, value in operands.items():
        if value and value.strip().startswith("-"):
            raise InvalidArgumentError(spec.operation.value, parameter, value)
    return spec.build_args(identifier, params)


class OperationExecutor:
    def __init__(self, runner: EngineRunner, inventory: Inventory, logger: Optional[logging.Logger] = None):
        self.runner = runner
        self.inventory = inventory
        self.logger = logger or package_logger

    def execute(
        self,
        operation: Union[Operation, str],
        identifier: Optional[str] = None,
        params: Optional[OperationParams] = None,
        *,
        confirmed: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> Outcome:
        """
        Runs one operation against the engine and refreshes what it changed.

        Args:
            operation: Operation or its name (e.g. "remove-container").
            identifier: Container/image id or name; image name for pull and run.
            params: Extra parameters for tag and run.
            confirmed: Must be True for destructive operations.
            cancel_event: Passed through to the runner.

        Returns:
            An Outcome. `output` carries stdout (logs, inspect JSON, prune report).

        Raises:
            OperationError: If the request is incomplete or unconfirmed; nothing is run.
            EngineCommandError: If the engine rejects the command.
        """
        spec = get_spec(operation)
        params = params or OperationParams()
        args = build_args(spec.operation, identifier, params)
        identifier = (identifier or "").strip() or None

        if spec.destructive and not confirmed:
            self.logger.info(f"Refusing unconfirmed {spec.operation.value} on {identifier or 'all'}")
            raise ConfirmationRequiredError(spec.operation.value, confirmation_message(spec.operation, identifier))

        self.logger.info(f"Executing {spec.operation.value} (target: {identifier or '-'})")
        result = self.runner.run(args, cancel_event=cancel_event)

        refresh_errors: Dict[EntityKind, str] = {}
        refreshed: List[EntityKind] = []
        if spec.refresh:
            for kind, refresh_result in self.inventory.refresh_many(spec.refresh).items():
                if refresh_result.ok:
                    refreshed.append(kind)
                else:
                    refresh_errors[kind] = refresh_result.error
                    self.logger.warning(f"{spec.operation.value} succeeded but refreshing {kind.value} failed")

        message = spec.success_message.format(identifier=identifier or "", new_tag=params.new_tag or "")
        warning = DATA_LOSS_WARNING if spec.data_loss else None
        return Outcome(
            operation=spec.operation,
            success=True,
            message=message,
            output=result.stdout,
            warning=warning,
            refreshed=refreshed,
            refresh_errors=refresh_errors,
        )
