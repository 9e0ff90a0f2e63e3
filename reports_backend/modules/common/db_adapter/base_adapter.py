"""
Base database adapter contract for procedure calls and error classification.
"""
from __future__ import annotations
from typing import Iterable, Optional, Set


def _driver_error(exc: BaseException) -> BaseException:
    """Return the DBAPI error wrapped by SQLAlchemy, or the exception itself."""
    return getattr(exc, "orig", None) or exc


class BaseDbAdapter:
    db_type: str = "GENERIC"

    # Driver error numbers meaning "the routine/view is not there"
    missing_routine_errnos: Set[int] = set()
    missing_routine_sqlstates: Set[str] = set()
    connection_errnos: Set[int] = set()

    def connection_info_sql(self) -> str:
        return "SELECT 1 AS ping"

    def quote_identifier(self, name: str) -> str:
        return f'"{name}"'

    def format_routine_ref(self, schema: Optional[str], name: str) -> str:
        if schema:
            return f"{self.quote_identifier(schema)}.{name}"
        return name

    def build_call_sql(self, schema: Optional[str], procedure: str, param_names: Iterable[str]) -> str:
        binds = ", ".join(f":{name}" for name in param_names)
        return f"CALL {self.format_routine_ref(schema, procedure)}({binds})"

    def build_view_sql(self, schema: Optional[str], view: str, date_column: Optional[str]) -> str:
        sql = f"SELECT * FROM {self.format_routine_ref(schema, view)}"
        if date_column:
            column = self.quote_identifier(date_column)
            sql += f" WHERE {column} >= :fecha_inicio AND {column} <= :fecha_fin"
        return sql

    def error_code(self, exc: BaseException) -> Optional[int]:
        orig = _driver_error(exc)
        errno = getattr(orig, "errno", None)
        if isinstance(errno, int):
            return errno
        args = getattr(orig, "args", ())
        if args and isinstance(args[0], int):
            return args[0]
        return None

    def sqlstate(self, exc: BaseException) -> Optional[str]:
        orig = _driver_error(exc)
        return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)

    def is_missing_routine_error(self, exc: BaseException) -> bool:
        if self.error_code(exc) in self.missing_routine_errnos:
            return True
        state = self.sqlstate(exc)
        if state and state in self.missing_routine_sqlstates:
            return True
        message = str(_driver_error(exc)).lower()
        return "does not exist" in message or "no such table" in message

    def is_connection_error(self, exc: BaseException) -> bool:
        if getattr(exc, "connection_invalidated", False):
            return True
        return self.error_code(exc) in self.connection_errnos
