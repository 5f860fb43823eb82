"""Config-driven backup and restore sessions for a single directory."""

from __future__ import annotations

from .config import Configuration, load_config  # noqa: F401
from .dispatcher import CommandDispatcher  # noqa: F401
from .session import SessionSupervisor  # noqa: F401
