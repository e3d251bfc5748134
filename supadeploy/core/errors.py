"""Errors raised by credential loading, remote calls, and statement batches."""

from __future__ import annotations

from typing import List, Optional, Sequence


class SupadeployError(RuntimeError):
    """Base error for deployment and verification failures."""


class MissingCredentialsError(SupadeployError):
    """Raised when required project settings are absent from the environment."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__("Missing required environment variables: " + ", ".join(self.missing))


class RemoteCallError(SupadeployError):
    """Raised when an RPC or REST call against the project fails.

    ``transport`` is true when no HTTP response was received at all.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status: Optional[int] = None,
        transport: bool = False,
    ) -> None:
        self.message = str(message or "")
        self.code = code
        self.status = status
        self.transport = transport
        super().__init__(self.message)


class StatementExecutionError(SupadeployError):
    """Raised when a statement fails on both the client call and the raw request."""

    def __init__(self, index: int, statement: str, applied: List[str], cause: RemoteCallError) -> None:
        self.index = index
        self.statement = statement
        self.applied = list(applied)
        self.cause = cause
        super().__init__(f"Statement {index + 1} failed: {cause.message}")
