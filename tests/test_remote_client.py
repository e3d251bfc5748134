"""Tests for the remote project handle without network access."""

import json
import sys
from pathlib import Path
from types import SimpleNamespace

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest
import requests
from postgrest.exceptions import APIError

from supadeploy.core.config import ProjectCredentials
from supadeploy.core.errors import RemoteCallError
from supadeploy.remote import client as client_module

CREDS = ProjectCredentials(endpoint_url="https://abc.supabase.co", access_key="svc-key", key_kind="service_role")


class _FakeQuery:
    def __init__(self, log, *, data=None, error=None):
        self.log = log
        self.data = data
        self.error = error

    @property
    def not_(self):
        self.log.append(("not_",))
        return self

    def select(self, columns):
        self.log.append(("select", columns))
        return self

    def limit(self, count):
        self.log.append(("limit", count))
        return self

    def is_(self, column, value):
        self.log.append(("is_", column, value))
        return self

    def order(self, column, desc=False):
        self.log.append(("order", column))
        return self

    def range(self, start, end):
        self.log.append(("range", start, end))
        return self

    def update(self, values):
        self.log.append(("update", values))
        return self

    def eq(self, column, value):
        self.log.append(("eq", column, value))
        return self

    def execute(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.data)


class _FakeSupabase:
    def __init__(self, *, data=None, error=None):
        self.log = []
        self.data = data
        self.error = error

    def rpc(self, name, params):
        self.log.append(("rpc", name, params))
        return _FakeQuery(self.log, data=self.data, error=self.error)

    def table(self, name):
        self.log.append(("table", name))
        return _FakeQuery(self.log, data=self.data, error=self.error)


class _FakeResponse:
    def __init__(self, status_code, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else json.dumps(payload))

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.captured = {}

    def post(self, url, headers=None, json=None, timeout=None):
        self.captured.update({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_default_constructor_disables_session_persistence(monkeypatch) -> None:
    captured = {}

    def _fake_create_client(url, key, options=None):
        captured["url"] = url
        captured["key"] = key
        captured["options"] = options
        return _FakeSupabase()

    monkeypatch.setattr(client_module, "create_client", _fake_create_client)
    client_module.open_client(CREDS, timeout=7)
    assert captured["url"] == "https://abc.supabase.co"
    assert captured["key"] == "svc-key"
    assert captured["options"].auto_refresh_token is False
    assert captured["options"].persist_session is False


def test_rpc_returns_data() -> None:
    fake = _FakeSupabase(data=[{"ok": True}])
    remote = client_module.RemoteClient(CREDS, client=fake)
    assert remote.rpc("exec_sql", {"sql": "SELECT 1"}) == [{"ok": True}]
    assert fake.log[0] == ("rpc", "exec_sql", {"sql": "SELECT 1"})


def test_rpc_api_error_becomes_remote_call_error() -> None:
    error = APIError({"message": "Could not find the function public.exec_sql(sql)", "code": "PGRST202"})
    remote = client_module.RemoteClient(CREDS, client=_FakeSupabase(error=error))
    with pytest.raises(RemoteCallError) as excinfo:
        remote.rpc("exec_sql", {"sql": "SELECT 1"})
    assert excinfo.value.code == "PGRST202"
    assert "Could not find the function" in excinfo.value.message
    assert excinfo.value.transport is False


def test_rpc_transport_error_is_flagged() -> None:
    remote = client_module.RemoteClient(CREDS, client=_FakeSupabase(error=httpx.ConnectError("refused")))
    with pytest.raises(RemoteCallError) as excinfo:
        remote.rpc("f")
    assert excinfo.value.transport is True


def test_raw_rpc_posts_to_rest_endpoint() -> None:
    session = _FakeSession(response=_FakeResponse(200, payload={"result": "ok"}))
    remote = client_module.RemoteClient(CREDS, timeout=12, client=_FakeSupabase(), session=session)
    assert remote.raw_rpc("exec_sql", {"sql": "SELECT 1"}) == {"result": "ok"}
    assert session.captured["url"] == "https://abc.supabase.co/rest/v1/rpc/exec_sql"
    assert session.captured["headers"]["apikey"] == "svc-key"
    assert session.captured["headers"]["Authorization"] == "Bearer svc-key"
    assert session.captured["json"] == {"sql": "SELECT 1"}
    assert session.captured["timeout"] == 12.0


def test_raw_rpc_empty_body_returns_none() -> None:
    session = _FakeSession(response=_FakeResponse(204))
    remote = client_module.RemoteClient(CREDS, client=_FakeSupabase(), session=session)
    assert remote.raw_rpc("exec_sql", {"sql": "SELECT 1"}) is None


def test_raw_rpc_error_status_carries_message_and_code() -> None:
    payload = {"message": "Could not find the function public.exec_sql(sql)", "code": "PGRST202"}
    session = _FakeSession(response=_FakeResponse(404, payload=payload))
    remote = client_module.RemoteClient(CREDS, client=_FakeSupabase(), session=session)
    with pytest.raises(RemoteCallError) as excinfo:
        remote.raw_rpc("exec_sql", {"sql": "SELECT 1"})
    assert excinfo.value.status == 404
    assert excinfo.value.code == "PGRST202"
    assert excinfo.value.message == payload["message"]


def test_raw_rpc_non_json_error_uses_body_text() -> None:
    session = _FakeSession(response=_FakeResponse(502, text="Bad Gateway"))
    remote = client_module.RemoteClient(CREDS, client=_FakeSupabase(), session=session)
    with pytest.raises(RemoteCallError) as excinfo:
        remote.raw_rpc("exec_sql")
    assert excinfo.value.message == "Bad Gateway"
    assert excinfo.value.status == 502


def test_raw_rpc_connection_failure_is_transport(monkeypatch) -> None:
    def _fake_post(*args, **kwargs):
        raise requests.ConnectionError("no route to host")

    monkeypatch.setattr(client_module.requests, "post", _fake_post)
    remote = client_module.RemoteClient(CREDS, client=_FakeSupabase())
    with pytest.raises(RemoteCallError) as excinfo:
        remote.raw_rpc("exec_sql", {"sql": "SELECT 1"})
    assert excinfo.value.transport is True


def test_fetch_rows_builds_null_filters_and_range() -> None:
    fake = _FakeSupabase(data=[{"id": 1}])
    remote = client_module.RemoteClient(CREDS, client=fake)
    rows = remote.fetch_rows(
        "profiles",
        ["id", "father_name", "father_id"],
        not_null=["father_name"],
        is_null=["father_id"],
        order_by="id",
        offset=500,
        limit=250,
    )
    assert rows == [{"id": 1}]
    assert fake.log == [
        ("table", "profiles"),
        ("select", "id,father_name,father_id"),
        ("not_",),
        ("is_", "father_name", "null"),
        ("is_", "father_id", "null"),
        ("order", "id"),
        ("range", 500, 749),
    ]


def test_probe_table_and_update_row() -> None:
    fake = _FakeSupabase(data=None)
    remote = client_module.RemoteClient(CREDS, client=fake)
    assert remote.probe_table("marriages") == []
    assert remote.update_row("profiles", "id", 7, {"father_id": "abc"}) == []
    assert ("limit", 1) in fake.log
    assert fake.log[-2:] == [("update", {"father_id": "abc"}), ("eq", "id", 7)]
