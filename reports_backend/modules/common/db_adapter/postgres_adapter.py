"""PostgreSQL adapter implementation."""
from __future__ import annotations
from typing import Iterable, Optional

from .base_adapter import BaseDbAdapter


class PostgresAdapter(BaseDbAdapter):
    db_type = "POSTGRESQL"

    # undefined_function, undefined_table
    missing_routine_sqlstates = {"42883", "42P01"}

    def connection_info_sql(self) -> str:
        return (
            "SELECT current_database() AS db, inet_server_addr()::text AS hostname, "
            "inet_server_port() AS port, current_user AS user"
        )

    def build_call_sql(self, schema: Optional[str], procedure: str, param_names: Iterable[str]) -> str:
        # Reporting routines are set-returning functions on PostgreSQL
        binds = ", ".join(f":{name}" for name in param_names)
        return f"SELECT * FROM {self.format_routine_ref(schema, procedure)}({binds})"

    def is_connection_error(self, exc: BaseException) -> bool:
        state = self.sqlstate(exc)
        if state and state.startswith("08"):
            return True
        return super().is_connection_error(exc)
