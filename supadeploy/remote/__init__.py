"""Remote project access over the client library and raw HTTP."""

from .client import RemoteClient, open_client

__all__ = ["RemoteClient", "open_client"]
