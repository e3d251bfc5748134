"""Service-layer modules shared by the CLI and the tools scripts."""

from . import backfill, diagnose, executor, history, reporter, rewrite, safety, statements, verifier

__all__ = [
    "backfill",
    "diagnose",
    "executor",
    "history",
    "reporter",
    "rewrite",
    "safety",
    "statements",
    "verifier",
]
