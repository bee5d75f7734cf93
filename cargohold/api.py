from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from cargohold import logger
from cargohold.engine_manager import EngineManager
from cargohold.errors import (
    CargoholdError,
    ConfirmationRequiredError,
    EngineCommandError,
    EngineTimeoutError,
    InventoryParseError,
    OperationError,
)
from cargohold.operations import confirmation_message, requires_confirmation
from cargohold.presentation import TreeNode, build_tree, error_tree
from cargohold.schemas import (
    ConfirmationInfo,
    EntityKind,
    Operation,
    OperationRequest,
    Outcome,
    RefreshSummary,
)

router = APIRouter()

# Created on first request; `cargohold serve` and tests set it directly.
engine_manager: Optional[EngineManager] = None


def get_engine_manager() -> EngineManager:
    global engine_manager
    if engine_manager is None:
        engine_manager = EngineManager()
    return engine_manager


def _http_error(e: CargoholdError) -> HTTPException:
    if isinstance(e, ConfirmationRequiredError):
        return HTTPException(status_code=428, detail={"message": str(e), "prompt": e.prompt})
    if isinstance(e, OperationError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, EngineTimeoutError):
        return HTTPException(status_code=504, detail=str(e))
    if isinstance(e, (EngineCommandError, InventoryParseError)):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@router.get("/operations/{operation}", response_model=ConfirmationInfo, summary="Describe an operation")
def describe_operation(operation: Operation, identifier: Optional[str] = Query(None)):
    """
    Tell a client whether an operation must be confirmed, and with what warning.
    - **operation**: Operation name, e.g. `remove-container`.
    - **identifier**: Target, used to fill in the warning text.
    """
    return ConfirmationInfo(
        operation=operation,
        requires_confirmation=requires_confirmation(operation),
        message=confirmation_message(operation, identifier),
    )


@router.post("/operations/{operation}", response_model=Outcome, summary="Run an operation")
def run_operation(operation: Operation, request: OperationRequest):
    """
    Run one engine operation. Destructive operations need `confirmed: true`
    and answer 428 with the warning text otherwise.
    """
    manager = get_engine_manager()
    try:
        return manager.execute(
            operation, request.identifier, request.params, confirmed=request.confirmed
        )
    except CargoholdError as e:
        logger.warning(f"API: {operation.value} failed: {e}")
        raise _http_error(e)


@router.post("/refresh", response_model=List[RefreshSummary], summary="Refresh every entity kind")
def refresh_all():
    """Refresh all four kinds. One failing kind does not stop the others."""
    results = get_engine_manager().refresh_all()
    return [
        RefreshSummary(
            kind=kind,
            ok=result.ok,
            count=len(result.snapshot) if result.snapshot is not None else 0,
            error=result.error,
        )
        for kind, result in results.items()
    ]


@router.get("/{kind}", summary="List one entity kind")
def list_kind(
    kind: EntityKind,
    cached: bool = Query(False, description="Return the last snapshot instead of re-fetching."),
):
    """
    List containers, images, networks or volumes.
    - **cached**: If true and a snapshot exists, it is returned without calling the engine.
    """
    manager = get_engine_manager()
    if cached:
        snapshot = manager.snapshot(kind)
        if snapshot is not None:
            return snapshot.model_dump(mode="json")
    try:
        return manager.refresh(kind).model_dump(mode="json")
    except CargoholdError as e:
        raise _http_error(e)


@router.get("/{kind}/tree", response_model=List[TreeNode], summary="Tree view of one entity kind")
def tree_for_kind(kind: EntityKind):
    """Grouped nodes with detail children; a failed listing becomes a single error node."""
    try:
        return build_tree(get_engine_manager().refresh(kind))
    except CargoholdError as e:
        logger.error(f"API: Failed to list {kind.value}: {e}")
        return error_tree(e)
