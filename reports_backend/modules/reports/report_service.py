from contextlib import contextmanager, suppress
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from reports_backend.database.dbconnect import (
    ConfigurationError,
    create_temporary_connection,
    get_engine,
    get_target,
)
from reports_backend.modules.common.db_adapter.base_adapter import BaseDbAdapter
from reports_backend.modules.common.db_adapter.registry import get_db_adapter
from reports_backend.modules.common.fallback import FallbackConfig, FallbackRunner
from reports_backend.modules.logger import debug, error, info, warning


class ReportServiceError(Exception):
    """Domain-specific exception for report failures."""

    def __init__(self, message: str, status_code: int = 400, code: str = "REPORT_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}


class DataSourceConnectionError(ReportServiceError):
    """The database target could not be reached."""

    def __init__(self, message: str, original: Optional[BaseException] = None, target: Optional[str] = None):
        super().__init__(message, status_code=500, code="CONNECTION_ERROR", details={"target": target})
        self.original = original


class QueryError(ReportServiceError):
    """A statement failed on the database side."""

    def __init__(self, message: str, original: Optional[BaseException] = None, target: Optional[str] = None):
        super().__init__(message, status_code=500, code="QUERY_ERROR", details={"target": target})
        self.original = original


def _driver_message(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


class ReportDataService:
    """
    Runs reporting statements against the configured database targets and
    hands back the raw driver-shaped result for the normalization pipeline.
    """

    def adapter_for(self, target: str, connection: Optional[Connection] = None) -> BaseDbAdapter:
        if connection is not None:
            return get_db_adapter(connection.dialect.name)
        try:
            return get_db_adapter(get_engine(target).dialect.name)
        except ConfigurationError as exc:
            raise ReportServiceError(str(exc), status_code=500, code="CONFIGURATION_ERROR") from exc

    @contextmanager
    def _connect(self, target: str, connection: Optional[Connection] = None) -> Iterator[Connection]:
        if connection is not None:
            yield connection
            return
        try:
            conn = get_engine(target).connect()
        except ConfigurationError as exc:
            raise ReportServiceError(str(exc), status_code=500, code="CONFIGURATION_ERROR") from exc
        except SQLAlchemyError as exc:
            error(f"[{target}] Could not connect: {_driver_message(exc)}")
            raise DataSourceConnectionError(_driver_message(exc), original=exc, target=target) from exc
        try:
            yield conn
        finally:
            with suppress(Exception):
                conn.close()

    def execute(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        target: str = "firmas",
        connection: Optional[Connection] = None,
    ) -> Any:
        """
        Execute one bound statement and return the raw result.

        Returns:
            list of row dicts for queries, [rows, status] for procedure
            calls, or a status dict for statements without rows

        Raises:
            DataSourceConnectionError: If the target is unreachable
            QueryError: If the statement fails
        """
        debug(f"[{target}] Executing: {sql}")
        with self._connect(target, connection) as conn:
            adapter = get_db_adapter(conn.dialect.name)
            try:
                result = conn.execute(text(sql), dict(params or {}))
                return self._raw_result(sql, result)
            except SQLAlchemyError as exc:
                message = _driver_message(exc)
                if adapter.is_connection_error(exc):
                    error(f"[{target}] Connection lost: {message}")
                    raise DataSourceConnectionError(message, original=exc, target=target) from exc
                raise QueryError(message, original=exc, target=target) from exc

    def _raw_result(self, sql: str, result) -> Any:
        status = {"affectedRows": max(result.rowcount, 0)}
        if not result.returns_rows:
            return status
        rows = [dict(row) for row in result.mappings().all()]
        if sql.lstrip().upper().startswith("CALL"):
            # Same nesting a MySQL driver uses: result set first, status packet last
            return [rows, status]
        return rows

    def check_connection(self, target: str) -> Dict[str, Any]:
        """Report which server/database a target actually points at. Never raises."""
        try:
            adapter = self.adapter_for(target)
            rows = self.execute(adapter.connection_info_sql(), target=target)
            row = rows[0] if isinstance(rows, list) and rows else {}
            info(f"[{target} DB verificar] {get_target(target).describe()} | SERVER {row}")
            return {"ok": True, "target": target, "server": row}
        except ReportServiceError as exc:
            warning(f"[{target} DB verificar] No se pudo obtener info DB: {exc.message}")
            return {"ok": False, "target": target, "error": exc.message}

    def is_source_unavailable(self, exc: Exception, target: str) -> bool:
        """True when a target cannot serve a report: unreachable, or the routine is missing."""
        if isinstance(exc, DataSourceConnectionError):
            return True
        if isinstance(exc, QueryError) and exc.original is not None:
            return self.adapter_for(target).is_missing_routine_error(exc.original)
        return False

    def _missing_routine(self, adapter: BaseDbAdapter):
        def is_recoverable(exc: Exception) -> bool:
            return isinstance(exc, QueryError) and exc.original is not None and adapter.is_missing_routine_error(exc.original)
        return is_recoverable

    def call_procedure(
        self,
        target: str,
        procedures: Sequence[str],
        params: Mapping[str, Any],
        schema: Optional[str] = None,
        connection: Optional[Connection] = None,
    ) -> Any:
        """
        Call the first procedure in `procedures` that exists on the target.
        Only a "procedure does not exist" error moves on to the next name.
        """
        adapter = self.adapter_for(target, connection)
        runner = FallbackRunner(FallbackConfig(is_recoverable=self._missing_routine(adapter)))

        def call(procedure: str) -> Any:
            sql = adapter.build_call_sql(schema, procedure, list(params.keys()))
            return self.execute(sql, params, target=target, connection=connection)

        return runner.run(list(procedures), call, label=f"[{target}] CALL")

    def query_view(
        self,
        target: str,
        view: str,
        params: Mapping[str, Any],
        date_column: Optional[str] = None,
        schema: Optional[str] = None,
    ) -> Any:
        adapter = self.adapter_for(target)
        sql = adapter.build_view_sql(schema, view, date_column)
        bound = {k: v for k, v in params.items() if f":{k}" in sql}
        return self.execute(sql, bound, target=target)

    def call_with_temporary_connection(
        self,
        target: str,
        procedures: Sequence[str],
        params: Mapping[str, Any],
        schema: Optional[str] = None,
    ) -> Any:
        """Run a procedure call on a one-off connection that is closed afterwards."""
        try:
            connection = create_temporary_connection(target)
        except ConfigurationError as exc:
            raise ReportServiceError(str(exc), status_code=500, code="CONFIGURATION_ERROR") from exc
        except SQLAlchemyError as exc:
            raise DataSourceConnectionError(_driver_message(exc), original=exc, target=target) from exc
        try:
            return self.call_procedure(target, procedures, params, schema=schema, connection=connection)
        finally:
            with suppress(Exception):
                connection.close()
            info(f"[{target}] Temporary connection closed")
