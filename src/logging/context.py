# src/logging/context.py
"""Contextual logging support: attach batch_id, file_id and stage to records.

Each asyncio task runs in a copy of the current context, so per-file values
set inside a conversion job never leak into sibling jobs.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_batch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_id", default=None
)
_file_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "file_id", default=None
)
_file_name: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "file_name", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Snapshot of current logging context."""

    batch_id: str | None = None
    file_id: str | None = None
    file_name: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        batch_id=_batch_id.get(),
        file_id=_file_id.get(),
        file_name=_file_name.get(),
        stage=_stage.get(),
    )


def set_batch_context(batch_id: str) -> None:
    """Set batch-level context (called once per pipeline run)."""
    _batch_id.set(batch_id)


def set_file_context(file_id: str, file_name: str | None = None) -> None:
    """Set file-level context (called at the start of each conversion job)."""
    _file_id.set(file_id)
    _file_name.set(file_name)


def set_stage(stage: str | None) -> None:
    """Record the pipeline stage the current job is in."""
    _stage.set(stage)


def clear_context() -> None:
    """Reset all context variables."""
    _batch_id.set(None)
    _file_id.set(None)
    _file_name.set(None)
    _stage.set(None)
