"""Generic adapter implementation for unknown database types."""
from __future__ import annotations

from .base_adapter import BaseDbAdapter


class GenericAdapter(BaseDbAdapter):
    db_type = "GENERIC"
