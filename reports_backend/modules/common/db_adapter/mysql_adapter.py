"""MySQL adapter implementation."""
from __future__ import annotations

from .base_adapter import BaseDbAdapter


class MysqlAdapter(BaseDbAdapter):
    db_type = "MYSQL"

    # ER_SP_DOES_NOT_EXIST, ER_NO_SUCH_TABLE
    missing_routine_errnos = {1305, 1146}
    missing_routine_sqlstates = {"42000", "42S02"}
    # access denied, can't connect, unknown host, server gone away, lost connection
    connection_errnos = {1045, 2002, 2003, 2005, 2006, 2013}

    def connection_info_sql(self) -> str:
        return "SELECT DATABASE() AS db, @@hostname AS hostname, @@port AS port, USER() AS user"

    def quote_identifier(self, name: str) -> str:
        return f"`{name}`"

    def is_missing_routine_error(self, exc: BaseException) -> bool:
        # 42000 is shared with syntax errors, so the errno decides when present
        code = self.error_code(exc)
        if code is not None:
            return code in self.missing_routine_errnos
        return super().is_missing_routine_error(exc)
