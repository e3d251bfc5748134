"""Decide whether remote functions exist by calling them with sentinel arguments.

The classification reads the error text: only a message containing one of the
not-found phrases counts as missing. Any other error means the function answered,
so it exists. If the platform rewords its error, every probe degrades to "exists".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from supadeploy.core.config import DEFAULT_NOT_FOUND_PHRASES, SENTINEL_UUID
from supadeploy.core.errors import RemoteCallError
from supadeploy.core.logging_utils import log_event

FOUND = "found"
MISSING = "missing"
INCONCLUSIVE = "inconclusive"

FunctionSpecs = Union[Mapping[str, Mapping[str, Any]], Iterable[Tuple[str, Mapping[str, Any]]]]


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one sentinel call."""

    name: str
    status: str
    detail: str = ""

    @property
    def exists(self) -> bool:
        return self.status != MISSING


@dataclass
class VerificationReport:
    """Ordered probe results for one verification run."""

    results: List[ProbeResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.exists for result in self.results)

    @property
    def missing(self) -> List[str]:
        return [result.name for result in self.results if not result.exists]

    @property
    def existing(self) -> List[str]:
        return [result.name for result in self.results if result.exists]


def sentinel_params(names: Sequence[str]) -> dict:
    """Map each parameter name to the all-zero UUID."""
    return {str(name): SENTINEL_UUID for name in names}


def classify_error(message: str, phrases: Sequence[str] = tuple(DEFAULT_NOT_FOUND_PHRASES)) -> str:
    """Return ``missing`` when ``message`` carries a not-found phrase, else ``inconclusive``."""
    text = str(message or "").lower()
    for phrase in phrases:
        if phrase and phrase.lower() in text:
            return MISSING
    return INCONCLUSIVE


def probe_function(
    client: Any,
    name: str,
    params: Optional[Mapping[str, Any]] = None,
    *,
    phrases: Sequence[str] = tuple(DEFAULT_NOT_FOUND_PHRASES),
) -> ProbeResult:
    """Call ``name`` with ``params`` and classify the response."""
    try:
        client.rpc(name, dict(params or {}))
    except RemoteCallError as exc:
        if exc.transport:
            raise
        result = ProbeResult(name=name, status=classify_error(exc.message, phrases), detail=exc.message)
    else:
        result = ProbeResult(name=name, status=FOUND)
    log_event("probe_result", {"function": name, "status": result.status})
    return result


def _iter_specs(specs: FunctionSpecs) -> Iterable[Tuple[str, Mapping[str, Any]]]:
    if isinstance(specs, Mapping):
        return list(specs.items())
    return [(name, params) for name, params in specs]


def verify_functions(
    client: Any,
    specs: FunctionSpecs,
    *,
    phrases: Sequence[str] = tuple(DEFAULT_NOT_FOUND_PHRASES),
) -> VerificationReport:
    """Probe every function in ``specs`` in order.

    Args:
        client (Any): Object with an ``rpc(name, params)`` method.
        specs (FunctionSpecs): Function name to sentinel params, as a mapping or pairs.
        phrases (Sequence[str]): Not-found phrases.

    Returns:
        VerificationReport: One result per function, in input order.
    """
    report = VerificationReport()
    for name, params in _iter_specs(specs):
        report.results.append(probe_function(client, name, params, phrases=phrases))
    return report


def print_report(reporter: Any, report: VerificationReport) -> None:
    """Write one line per function plus a summary line."""
    for result in report.results:
        if result.status == FOUND:
            reporter.line(f"  exists     {result.name}")
        elif result.status == INCONCLUSIVE:
            reporter.line(f"  exists     {result.name} (responded: {result.detail})")
        else:
            reporter.line(f"  NOT FOUND  {result.name}")
    reporter.line(f"{len(report.existing)} exist, {len(report.missing)} missing")
