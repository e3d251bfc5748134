"""Submit a statement batch one statement at a time through the exec RPC."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from supadeploy.core.errors import RemoteCallError, StatementExecutionError
from supadeploy.core.logging_utils import log_event
from supadeploy.services.reporter import Reporter, preview


@dataclass
class ExecutionResult:
    """Statements applied by a finished batch and how many needed the raw fallback."""

    applied: List[str] = field(default_factory=list)
    fallbacks: int = 0


class StatementExecutor:
    """Run statements in order through ``client.rpc`` with a one-shot ``client.raw_rpc`` retry.

    There is no rollback: a failure part-way through leaves earlier statements applied
    and the error carries them in ``applied`` so the operator can see where it stopped.
    """

    def __init__(
        self,
        client: Any,
        *,
        rpc_name: str = "exec_sql",
        param_name: str = "sql",
        reporter: Optional[Reporter] = None,
    ) -> None:
        self.client = client
        self.rpc_name = rpc_name
        self.param_name = param_name
        self.reporter = reporter

    def _payload(self, statement: str) -> Dict[str, Any]:
        return {self.param_name: statement}

    def submit(self, statement: str) -> bool:
        """Submit one statement; return True when the raw fallback was needed.

        Raises:
            RemoteCallError: If both the client call and the raw request fail.
        """
        try:
            self.client.rpc(self.rpc_name, self._payload(statement))
            return False
        except RemoteCallError as exc:
            log_event("statement_fallback", {"rpc": self.rpc_name, "error": exc.message})
            if self.reporter is not None:
                self.reporter.warn(f"client call failed ({exc.message}); retrying with a direct request")
        self.client.raw_rpc(self.rpc_name, self._payload(statement))
        return True

    def run(self, statements: Sequence[str]) -> ExecutionResult:
        """Apply ``statements`` in order, aborting on the first unrecoverable failure.

        Raises:
            StatementExecutionError: With the failed index and the statements already applied.
        """
        result = ExecutionResult()
        total = len(statements)
        for index, statement in enumerate(statements):
            if self.reporter is not None:
                self.reporter.step(f"[{index + 1}/{total}] {preview(statement)}")
            try:
                used_fallback = self.submit(statement)
            except RemoteCallError as exc:
                log_event("statement_failed", {"index": index, "error": exc.message, "code": exc.code})
                raise StatementExecutionError(index, statement, result.applied, exc) from exc
            if used_fallback:
                result.fallbacks += 1
            result.applied.append(statement)
            log_event("statement_applied", {"index": index, "fallback": used_fallback})
        return result
