"""Thin project handle for RPC and table calls, with a raw HTTP path to the same RPC endpoint."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx
import requests
from postgrest.exceptions import APIError
from supabase import ClientOptions, create_client

from supadeploy.core.config import ProjectCredentials
from supadeploy.core.errors import RemoteCallError


def _api_error(exc: APIError) -> RemoteCallError:
    message = str(getattr(exc, "message", "") or exc)
    code = getattr(exc, "code", None)
    return RemoteCallError(message, code=str(code) if code else None)


def _error_from_response(resp: requests.Response) -> RemoteCallError:
    message = ""
    code = None
    try:
        data = resp.json() if resp.text else {}
    except ValueError:
        data = {}
    if isinstance(data, dict):
        message = str(data.get("message") or data.get("error") or "")
        code = data.get("code")
    if not message:
        message = str(resp.text or "")[:240] or f"HTTP {resp.status_code}"
    return RemoteCallError(message, code=str(code) if code else None, status=int(resp.status_code))


class RemoteClient:
    """Project handle bound to one endpoint URL and one access key.

    RPC and table calls go through the ``supabase`` client library; ``raw_rpc`` posts
    the same payload straight to ``/rest/v1/rpc/<name>`` with ``requests``. All
    failures surface as :class:`RemoteCallError`.
    """

    def __init__(
        self,
        credentials: ProjectCredentials,
        *,
        timeout: float = 30.0,
        client: Any = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.credentials = credentials
        self.timeout = float(timeout)
        if client is None:
            client = create_client(
                credentials.endpoint_url,
                credentials.access_key,
                options=ClientOptions(auto_refresh_token=False, persist_session=False),
            )
        self._client = client
        self._session = session

    def _headers(self) -> Dict[str, str]:
        key = self.credentials.access_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _execute(self, query: Any) -> Any:
        try:
            response = query.execute()
        except APIError as exc:
            raise _api_error(exc) from exc
        except httpx.HTTPError as exc:
            raise RemoteCallError(str(exc), transport=True) from exc
        return getattr(response, "data", None)

    def rpc(self, name: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Call a named remote procedure through the client library."""
        try:
            query = self._client.rpc(name, dict(params or {}))
        except APIError as exc:
            raise _api_error(exc) from exc
        return self._execute(query)

    def raw_rpc(self, name: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Call a named remote procedure with a direct HTTP POST."""
        url = f"{self.credentials.endpoint_url}/rest/v1/rpc/{name}"
        poster = self._session.post if self._session is not None else requests.post
        try:
            resp = poster(url, headers=self._headers(), json=dict(params or {}), timeout=self.timeout)
        except requests.RequestException as exc:
            raise RemoteCallError(str(exc), transport=True) from exc
        if int(resp.status_code) >= 400:
            raise _error_from_response(resp)
        if not resp.text:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    def probe_table(self, table: str) -> List[Dict[str, Any]]:
        """Read at most one row from ``table``."""
        return self._execute(self._client.table(table).select("*").limit(1)) or []

    def fetch_rows(
        self,
        table: str,
        columns: Sequence[str],
        *,
        not_null: Sequence[str] = (),
        is_null: Sequence[str] = (),
        order_by: Optional[str] = None,
        offset: int = 0,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """Fetch one page of rows filtered on null / non-null columns.

        Pass ``order_by`` when paging; without it the row order between requests is undefined.
        """
        query = self._client.table(table).select(",".join(columns))
        for column in not_null:
            query = query.not_.is_(column, "null")
        for column in is_null:
            query = query.is_(column, "null")
        if order_by:
            query = query.order(order_by)
        query = query.range(int(offset), int(offset) + int(limit) - 1)
        return self._execute(query) or []

    def update_row(self, table: str, key_column: str, key: Any, values: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Update a single row identified by ``key_column = key``."""
        return self._execute(self._client.table(table).update(dict(values)).eq(key_column, key)) or []


def open_client(credentials: ProjectCredentials, *, timeout: float = 30.0) -> RemoteClient:
    """Build a :class:`RemoteClient` for one invocation."""
    return RemoteClient(credentials, timeout=timeout)
