"""Tests for function existence probes and their report."""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from supadeploy.core.config import SENTINEL_UUID
from supadeploy.core.errors import RemoteCallError
from supadeploy.services import verifier
from supadeploy.services.reporter import Reporter


class _FakeClient:
    def __init__(self, errors=None):
        self.errors = dict(errors or {})
        self.calls = []

    def rpc(self, name, params):
        self.calls.append((name, dict(params)))
        if name in self.errors:
            raise self.errors[name]
        return []


def test_classify_error_matches_not_found_phrase_case_insensitively() -> None:
    assert verifier.classify_error("Could not find the function public.f(p_id) in the schema cache") == verifier.MISSING
    assert verifier.classify_error("could not find the function f") == verifier.MISSING
    assert verifier.classify_error('invalid input syntax for type uuid: "test"') == verifier.INCONCLUSIVE
    assert verifier.classify_error("") == verifier.INCONCLUSIVE
    assert verifier.classify_error("no such routine", phrases=["no such routine"]) == verifier.MISSING


def test_probe_outcomes() -> None:
    client = _FakeClient(
        errors={
            "gone": RemoteCallError("Could not find the function public.gone without parameters", code="PGRST202"),
            "guarded": RemoteCallError("Unauthorized", code="P0001"),
        }
    )
    assert verifier.probe_function(client, "ok_fn").status == verifier.FOUND
    missing = verifier.probe_function(client, "gone")
    assert missing.status == verifier.MISSING
    assert missing.exists is False
    guarded = verifier.probe_function(client, "guarded", {"p_id": SENTINEL_UUID})
    assert guarded.status == verifier.INCONCLUSIVE
    assert guarded.exists is True
    assert guarded.detail == "Unauthorized"
    assert client.calls[-1] == ("guarded", {"p_id": SENTINEL_UUID})


def test_probe_reraises_transport_errors() -> None:
    client = _FakeClient(errors={"f": RemoteCallError("connection refused", transport=True)})
    with pytest.raises(RemoteCallError):
        verifier.probe_function(client, "f")


def test_three_functions_one_missing_fails_overall(capsys) -> None:
    client = _FakeClient(
        errors={
            "get_profile_tree_context": RemoteCallError("Profile not found"),
            "search_name_chain": RemoteCallError("Could not find the function public.search_name_chain(p_limit, p_names)"),
        }
    )
    specs = [
        ("search_profiles_by_name_chain", {"p_name_chain": "test"}),
        ("get_profile_tree_context", verifier.sentinel_params(["p_profile_id"])),
        ("search_name_chain", {"p_names": ["test"], "p_limit": 1}),
    ]
    report = verifier.verify_functions(client, specs)

    assert [name for name, _ in client.calls] == [name for name, _ in specs]
    assert report.existing == ["search_profiles_by_name_chain", "get_profile_tree_context"]
    assert report.missing == ["search_name_chain"]
    assert report.ok is False

    verifier.print_report(Reporter(), report)
    out = capsys.readouterr().out
    assert "  exists     search_profiles_by_name_chain\n" in out
    assert "  exists     get_profile_tree_context (responded: Profile not found)" in out
    assert "  NOT FOUND  search_name_chain" in out
    assert "2 exist, 1 missing" in out


def test_sentinel_params_use_zero_uuid() -> None:
    assert verifier.sentinel_params(["a", "b"]) == {"a": SENTINEL_UUID, "b": SENTINEL_UUID}
