"""
core/diagnostics.py -- Environment snapshot for the operator diagnostics route.

This module reads the live process environment on purpose, so an operator
sees the value the running process actually has rather than the one cached
in Settings at startup. It does no access control of its own: the only caller
is GET /debug_env, which requires an operator session (auth.dependencies).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    secret: str


def snapshot(var_name: str, environ: Mapping[str, str] | None = None) -> DiagnosticsSnapshot:
    """Read var_name from environ (default: os.environ). Missing reads as ""."""
    env = os.environ if environ is None else environ
    return DiagnosticsSnapshot(secret=env.get(var_name, ""))
