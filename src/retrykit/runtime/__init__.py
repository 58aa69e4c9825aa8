"""Runtime - cancellation helpers and logging setup."""

from __future__ import annotations

from .concurrency import INTERRUPTION_KINDS, checkpoint, is_interruption
from .logging import configure_logging

__all__ = ["INTERRUPTION_KINDS", "checkpoint", "is_interruption", "configure_logging"]
