"""One-shot command and named-operation endpoints."""

from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException

from borgbridge.auth import require_api_key
from borgbridge.models.commands import CommandResult, LogEvent
from borgbridge.models.responses import (
    ExecuteRequest,
    ExecuteResponse,
    OperationRequest,
)
from borgbridge.services.executor import command_executor
from borgbridge.services.operations import (
    OperationError,
    UnknownOperation,
    build_operation,
    operation_names,
)

router = APIRouter(tags=["commands"], dependencies=[Depends(require_api_key)])


def _new_command_id() -> str:
    return uuid4().hex[:12]


@router.post("/commands", response_model=ExecuteResponse)
async def run_command(req: ExecuteRequest) -> ExecuteResponse:
    """Run borg (or a forced binary) once and return its result and output.

    Output is also streamed live on ``/ws/output/{command_id}``.
    """
    command_id = req.command_id or _new_command_id()
    output: list[LogEvent] = []
    result = await command_executor.execute(
        req.args,
        command_id,
        req.overrides,
        output.append,
        binary=req.binary,
        cwd=req.cwd,
    )
    return ExecuteResponse(command_id=command_id, result=result, output=output)


@router.get("/operations", response_model=list[str])
async def list_operations() -> list[str]:
    return operation_names()


@router.post("/operations/{operation}", response_model=ExecuteResponse)
async def run_operation(operation: str, req: OperationRequest) -> ExecuteResponse:
    """Build and run a named borg operation (init, create, prune, ...)."""
    try:
        call = build_operation(operation, req, command_executor.cfg)
    except UnknownOperation as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except OperationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    command_id = req.command_id or _new_command_id()
    if call.local_message is not None:
        return ExecuteResponse(
            command_id=command_id,
            result=CommandResult(success=True, exit_code=0),
            output=[LogEvent(id=command_id, text=call.local_message)],
        )

    output: list[LogEvent] = []
    result = await command_executor.execute(
        call.args,
        command_id,
        call.merged_overrides(req.overrides),
        output.append,
        binary=call.binary,
        cwd=call.cwd,
    )
    return ExecuteResponse(command_id=command_id, result=result, output=output)
