"""Adapter registry for dialect-specific SQL and error handling."""
from __future__ import annotations
from typing import Dict

from .base_adapter import BaseDbAdapter
from .generic_adapter import GenericAdapter
from .mysql_adapter import MysqlAdapter
from .postgres_adapter import PostgresAdapter


_ADAPTERS: Dict[str, BaseDbAdapter] = {
    "MYSQL": MysqlAdapter(),
    "MARIADB": MysqlAdapter(),
    "POSTGRES": PostgresAdapter(),
    "POSTGRESQL": PostgresAdapter(),
    "GENERIC": GenericAdapter(),
}


def get_db_adapter(db_type: str) -> BaseDbAdapter:
    db_key = (db_type or "GENERIC").upper()
    return _ADAPTERS.get(db_key, GenericAdapter())
