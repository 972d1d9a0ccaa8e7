"""
Script hook contract.

The execution pipeline calls user scripts at two points, before the
request is sent and after the outcome is known. Any runtime that can
honour this interface can be plugged in.
"""

from typing import Mapping, Protocol

from ..schemas.execute import ExecutionResult, RequestEcho, ScriptOutcome


class ScriptRunner(Protocol):
    """
    Runs pre-request and test scripts.

    Implementations receive read-only snapshots of both variable scopes and
    report mutations in the returned ``ScriptOutcome``; they must not write
    to any store themselves. Raising is allowed: the pipeline isolates it.
    """

    def run_pre_request(
        self,
        script: str,
        request: RequestEcho,
        env_vars: Mapping[str, str],
        coll_vars: Mapping[str, str],
    ) -> ScriptOutcome:
        ...

    def run_test(
        self,
        script: str,
        result: ExecutionResult,
        env_vars: Mapping[str, str],
        coll_vars: Mapping[str, str],
    ) -> ScriptOutcome:
        ...
