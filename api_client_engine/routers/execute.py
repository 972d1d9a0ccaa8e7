"""
Request execution API routes.

Provides the endpoint that runs a request definition through the
execution pipeline against optional environment and collection scopes.
"""

from fastapi import APIRouter, Depends, Request

from ..exceptions import ErrorResponse
from ..schemas.execute import ExecuteCommand, ExecutionResult
from ..services.orchestrator import RequestExecutor


router = APIRouter(prefix="/api/execute", tags=["execute"])


def get_executor(request: Request) -> RequestExecutor:
    """Dependency returning the executor created at application startup."""
    return request.app.state.executor


@router.post(
    "",
    response_model=ExecutionResult,
    responses={422: {"model": ErrorResponse, "description": "Malformed execution command"}},
)
async def execute_request(
    command: ExecuteCommand,
    executor: RequestExecutor = Depends(get_executor)
):
    """
    Execute a request definition.

    Variables from the given environment and collection are substituted,
    the pre-request script runs, the request is sent, the test script runs
    and any variable changes made by the scripts are saved.

    Args:
        command: The request definition plus optional scope ids
        executor: The shared request executor

    Returns:
        ExecutionResult. Network failures and invalid bodies are reported
        with ``success=false`` in the payload, not as HTTP errors.
    """
    return await executor.execute(
        command.request,
        environment_id=command.environment_id,
        collection_id=command.collection_id,
    )
