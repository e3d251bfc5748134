"""Tests for the zero-argument scripts under tools/."""

import importlib.util
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from supadeploy.core import config
from supadeploy.core.errors import RemoteCallError


def _load_mod(path: str, name: str):
    spec = importlib.util.spec_from_file_location(name, (ROOT / path).resolve())
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


class _FakeClient:
    def __init__(self, rpc_errors=None):
        self.rpc_errors = dict(rpc_errors or {})
        self.calls = []

    def rpc(self, name, params):
        self.calls.append((name, dict(params)))
        if name in self.rpc_errors:
            raise self.rpc_errors[name]
        return []

    def raw_rpc(self, name, params):
        raise AssertionError("fallback not expected")


@pytest.fixture
def project(monkeypatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("SUPADEPLOY_ROOT", str(tmp_path))
    monkeypatch.delenv("SUPADEPLOY_CONFIG", raising=False)
    for key in list(config.ENV_CONFIG_MAP) + ["DATABASE_URL"]:
        monkeypatch.setenv(key, "")
    monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "svc-key")
    return tmp_path


def test_deploy_auth_backend_applies_then_verifies(monkeypatch, project: Path) -> None:
    mod = _load_mod("tools/deploy_auth_backend.py", "deploy_auth_backend")
    fake = _FakeClient()
    monkeypatch.setattr(mod, "open_client", lambda credentials, timeout=30.0: fake)

    assert mod.main() == 0
    exec_calls = [params["sql"] for name, params in fake.calls if name == "exec_sql"]
    probes = [name for name, _ in fake.calls if name != "exec_sql"]
    assert len(exec_calls) == 11
    assert exec_calls[0].endswith("UNIQUE(user_id, profile_id)\n)")
    assert probes == ["search_profiles_by_name_chain", "get_profile_tree_context"]


def test_deploy_auth_backend_fails_when_function_missing(monkeypatch, project: Path) -> None:
    mod = _load_mod("tools/deploy_auth_backend.py", "deploy_auth_backend")
    missing = RemoteCallError("Could not find the function public.get_profile_tree_context(p_profile_id)")
    monkeypatch.setattr(mod, "open_client", lambda credentials, timeout=30.0: _FakeClient({"get_profile_tree_context": missing}))
    assert mod.main() == 1


def test_verify_admin_functions_uses_anon_key_when_needed(monkeypatch, project: Path) -> None:
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    mod = _load_mod("tools/verify_admin_functions.py", "verify_admin_functions")
    captured = {}
    fake = _FakeClient({"is_admin": RemoteCallError("Unauthorized")})

    def _fake_open(credentials, timeout=30.0):
        captured["kind"] = credentials.key_kind
        return fake

    monkeypatch.setattr(mod, "open_client", _fake_open)
    assert mod.main() == 0
    assert captured["kind"] == "anon"
    assert [name for name, _ in fake.calls] == list(mod.ADMIN_FUNCTIONS)


def test_fix_user_roles_references_deploys_rewritten_functions(monkeypatch, project: Path) -> None:
    mod = _load_mod("tools/fix_user_roles_references.py", "fix_user_roles_references")
    fake = _FakeClient()
    monkeypatch.setattr(mod, "open_client", lambda credentials, timeout=30.0: fake)

    assert mod.main() == 0
    sent = [params["sql"] for _, params in fake.calls]
    assert len(sent) == 2
    assert all("user_roles" not in text for text in sent)
    assert "public.profiles ur" in sent[0]


def test_tools_exit_one_without_credentials(monkeypatch, project: Path, capsys) -> None:
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY")
    mod = _load_mod("tools/fix_user_roles_references.py", "fix_user_roles_references")

    def _no_client(*args, **kwargs):
        raise AssertionError("client opened")

    monkeypatch.setattr(mod, "open_client", _no_client)
    assert mod.main() == 1
    assert "SUPABASE_SERVICE_ROLE_KEY" in capsys.readouterr().err
