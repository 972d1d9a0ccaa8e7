"""
Execution orchestrator.

Sequences one request execution:

    resolve -> pre-request hook -> re-resolve on mutation -> build & send
    -> test hook -> persist pending mutations -> result

Variable mutations from both hooks are collected in memory and written to
the store once, at the end, whatever the outcome of the request.
"""

import time
from datetime import datetime, timezone
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from loguru import logger

from ..exceptions import RequestBuildError, TransportError
from ..schemas.execute import ExecutionResult, RequestEcho, ScriptOutcome
from ..schemas.request import RequestDefinition
from ..schemas.variables import ScopeKind, VariableUpdates
from .http_executor import HttpTransport
from .request_builder import build_request
from .result_assembler import (
    build_error_result,
    build_success_result,
    build_validation_error_result,
    echo_from_definition,
    hook_failure_summary,
    request_echo,
    summarize_tests,
)
from .script_hooks import ScriptRunner
from .variable_store import VariableStore
from .variable_substitution import resolve_definition, variables_from_entries


def apply_updates_in_memory(variables: dict[str, str], updates: VariableUpdates) -> None:
    for key, value in updates.items():
        if value is None:
            variables.pop(key, None)
        else:
            variables[key] = value


class RequestExecutor:
    """
    Executes request definitions against optional environment and collection scopes.

    The executor holds no per-execution state, so one instance can serve
    concurrent executions.
    Store access and script hooks are blocking, so they run in the threadpool
    and never stall the event loop.
    """

    def __init__(
        self,
        store: Optional[VariableStore],
        script_runner: Optional[ScriptRunner],
        transport: HttpTransport,
    ):
        self.store = store
        self.script_runner = script_runner
        self.transport = transport

    async def _load_scope(self, scope_kind: ScopeKind, scope_id: int | None) -> dict[str, str]:
        if scope_id is None or self.store is None:
            return {}
        try:
            collection = await run_in_threadpool(self.store.get, scope_kind, scope_id)
        except Exception:
            logger.exception(f"Failed to load {scope_kind} {scope_id} variables")
            return {}
        if collection is None:
            logger.info(f"{scope_kind} {scope_id} not found, resolving without it")
            return {}
        return variables_from_entries(collection.variables)

    @staticmethod
    def _snapshot(definition: RequestDefinition) -> RequestEcho:
        try:
            return request_echo(build_request(definition))
        except RequestBuildError:
            return echo_from_definition(definition)

    async def _run_pre_request(
        self,
        script: str,
        definition: RequestDefinition,
        env_vars: dict[str, str],
        coll_vars: dict[str, str],
    ) -> Optional[ScriptOutcome]:
        try:
            outcome = await run_in_threadpool(
                self.script_runner.run_pre_request,
                script, self._snapshot(definition), dict(env_vars), dict(coll_vars),
            )
        except Exception:
            logger.exception("Pre-request script execution failed")
            return None

        for line in outcome.console_output:
            logger.debug(f"[pre-request] {line}")
        return outcome

    async def _run_test(
        self,
        script: str,
        result: ExecutionResult,
        env_vars: dict[str, str],
        coll_vars: dict[str, str],
    ) -> Optional[ScriptOutcome]:
        start = time.perf_counter()
        try:
            outcome = await run_in_threadpool(
                self.script_runner.run_test, script, result, dict(env_vars), dict(coll_vars)
            )
        except Exception as e:
            logger.exception("Test script execution failed")
            result.test_results = hook_failure_summary(str(e) or type(e).__name__)
            return None

        for line in outcome.console_output:
            logger.debug(f"[test] {line}")
        result.test_results = summarize_tests(outcome, int((time.perf_counter() - start) * 1000))
        return outcome

    async def _send(self, definition: RequestDefinition, executed_at: datetime) -> ExecutionResult:
        try:
            request = build_request(definition)
        except RequestBuildError as e:
            logger.info(f"Request rejected before sending: {e.message}")
            return build_validation_error_result(echo_from_definition(definition), e, executed_at)

        echo = request_echo(request)
        try:
            response = await self.transport.send(request)
        except TransportError as e:
            logger.warning(f"{request.method} {request.url} failed: [{e.code}] {e.message}")
            return build_error_result(echo, e, executed_at)

        return build_success_result(echo, response, executed_at)

    async def _persist(
        self, scope_kind: ScopeKind, scope_id: int | None, updates: VariableUpdates
    ) -> None:
        if scope_id is None or not updates or self.store is None:
            return
        try:
            await run_in_threadpool(self.store.patch, scope_kind, scope_id, updates)
        except Exception:
            logger.exception(f"Failed to persist {scope_kind} {scope_id} variable updates")

    async def execute(
        self,
        definition: RequestDefinition,
        environment_id: int | None = None,
        collection_id: int | None = None,
    ) -> ExecutionResult:
        """
        Execute one request definition.

        Args:
            definition: The templated request; never modified
            environment_id: Environment scope, or None to skip it
            collection_id: Collection (or folder) scope, or None to skip it

        Returns:
            The execution result. Validation, transport and hook failures are
            reported inside the result; nothing is raised.
        """
        executed_at = datetime.now(timezone.utc)
        env_vars = await self._load_scope("environment", environment_id)
        coll_vars = await self._load_scope("collection", collection_id)
        pending_env: VariableUpdates = {}
        pending_coll: VariableUpdates = {}

        resolved = resolve_definition(definition, env_vars, coll_vars)

        pre_script = (definition.pre_request_script or "").strip()
        if pre_script and self.script_runner is not None:
            outcome = await self._run_pre_request(pre_script, resolved, env_vars, coll_vars)
            if outcome is not None and outcome.has_mutations:
                apply_updates_in_memory(env_vars, outcome.environment_updates)
                apply_updates_in_memory(coll_vars, outcome.collection_updates)
                pending_env.update(outcome.environment_updates)
                pending_coll.update(outcome.collection_updates)
                # Start again from the template so new values reach every field
                resolved = resolve_definition(definition, env_vars, coll_vars)

        result = await self._send(resolved, executed_at)

        test_script = (definition.test_script or "").strip()
        if test_script and self.script_runner is not None:
            outcome = await self._run_test(test_script, result, env_vars, coll_vars)
            if outcome is not None:
                pending_env.update(outcome.environment_updates)
                pending_coll.update(outcome.collection_updates)

        await self._persist("environment", environment_id, pending_env)
        await self._persist("collection", collection_id, pending_coll)
        return result
