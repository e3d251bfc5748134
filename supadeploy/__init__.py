"""supadeploy package exports for SQL deployment and verification helpers."""

from .services.statements import split_statements
from .services.verifier import probe_function, verify_functions

__all__ = [
    "probe_function",
    "split_statements",
    "verify_functions",
]
