from __future__ import annotations

import io
import re
from datetime import date, datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict

from reports_backend.database.dbconnect import TARGET_INDEX, get_target
from reports_backend.modules.common.fallback import FallbackConfig, FallbackRunner
from reports_backend.modules.logger import error, info
from reports_backend.modules.reports.excel_export import (
    XLSX_MEDIA_TYPE,
    EmptyDatasetError,
    export_filename,
    export_sheet,
)
from reports_backend.modules.reports.report_catalog import REPORTS, ReportDefinition
from reports_backend.modules.reports.report_service import (
    ReportDataService,
    ReportServiceError,
)
from reports_backend.modules.reports.result_pipeline import (
    build_columns,
    filter_by_attribute,
    normalize_results,
    paginate,
    unwrap_json_cells,
)

router = APIRouter(tags=["reportes"])
data_service = ReportDataService()

_STRICT_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ReportRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    fecha_inicio: Optional[str] = None
    fecha_fin: Optional[str] = None
    generarExcel: bool = False
    page: Optional[Any] = None
    pageSize: Optional[Any] = None


def normalize_date(value: Any, strict: bool = False) -> str:
    """
    Return the date part of `value` as YYYY-MM-DD.
    Strict mode only accepts that exact format.

    Raises:
        ValueError: If value is not a date
    """
    text = str(value).strip()
    if strict:
        if not _STRICT_DATE.match(text):
            raise ValueError(f"Invalid date: {value}")
        return date.fromisoformat(text).isoformat()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return date.fromisoformat(text[:10]).isoformat()


def _error(status_code: int, message: str, detail: Optional[str] = None) -> JSONResponse:
    content: Dict[str, Any] = {"error": message}
    if detail is not None:
        content["message"] = detail
    return JSONResponse(status_code=status_code, content=content)


def _schema_for(report: ReportDefinition, target: str) -> Optional[str]:
    if not report.use_schema:
        return None
    return get_target(target).database or None


def fetch_raw(report: ReportDefinition, params: Dict[str, Any]) -> Any:
    """Run the report's data-access call and return the driver-shaped result."""
    if report.view:
        return data_service.query_view(
            report.target,
            report.view,
            params,
            date_column=report.view_date_column,
            schema=_schema_for(report, report.target),
        )

    if not report.fallback_target:
        return data_service.call_procedure(
            report.target, report.procedures, params, schema=_schema_for(report, report.target)
        )

    def from_source(target: str) -> Any:
        schema = _schema_for(report, target)
        if target == report.target:
            return data_service.call_procedure(target, report.procedures, params, schema=schema)
        return data_service.call_with_temporary_connection(target, report.procedures, params, schema=schema)

    runner = FallbackRunner(
        FallbackConfig(is_recoverable=lambda exc: data_service.is_source_unavailable(exc, report.target))
    )
    return runner.run([report.target, report.fallback_target], from_source, label=f"[{report.key}] origen")


def build_rows(report: ReportDefinition, raw: Any, body: Dict[str, Any]):
    rows = normalize_results(raw)
    if report.unwrap_json:
        rows = unwrap_json_cells(rows)
    if report.attribute_filter:
        rows = filter_by_attribute(rows, body.get(report.attribute_filter))
    return rows


async def run_report(report: ReportDefinition, payload: Optional[ReportRequest]):
    body = (payload or ReportRequest()).model_dump()
    info(
        f"[{report.key}] Petición: fecha_inicio={body.get('fecha_inicio')} fecha_fin={body.get('fecha_fin')} "
        f"generarExcel={body.get('generarExcel')} page={body.get('page')} pageSize={body.get('pageSize')}"
    )

    if not body.get("fecha_inicio") or not body.get("fecha_fin"):
        return _error(400, "Las fechas son requeridas")
    try:
        fecha_inicio = normalize_date(body["fecha_inicio"], strict=report.strict_dates)
        fecha_fin = normalize_date(body["fecha_fin"], strict=report.strict_dates)
    except ValueError:
        return _error(400, "Formato de fecha inválido. Use YYYY-MM-DD.")

    params: Dict[str, Any] = {}
    for name in report.params:
        value = body.get(name)
        params[name] = value if value not in (None, "") else report.defaults.get(name)
    params["fecha_inicio"] = fecha_inicio
    params["fecha_fin"] = fecha_fin

    try:
        raw = await run_in_threadpool(fetch_raw, report, params)
        rows = build_rows(report, raw, body)
        info(f"[{report.key}] Filas encontradas entre {fecha_inicio} y {fecha_fin}: {len(rows)}")

        if body.get("generarExcel") and report.allow_excel:
            columns = build_columns(rows, report.preferred_columns)
            content = await run_in_threadpool(
                export_sheet, rows, columns, report.sheet_title, report.max_width
            )
            filename = export_filename(report.filename_prefix, fecha_inicio, fecha_fin)
            return StreamingResponse(
                io.BytesIO(content),
                media_type=XLSX_MEDIA_TYPE,
                headers={"Content-Disposition": f"attachment; filename={filename}"},
            )

        if report.paginate:
            return paginate(rows, body.get("page"), body.get("pageSize"))
        return rows
    except EmptyDatasetError as exc:
        return _error(exc.status_code, exc.message)
    except ReportServiceError as exc:
        error(f"[{report.key}] Error al ejecutar procedimiento: {exc.message}")
        return _error(500, "Error en la base de datos", exc.message)


def _make_endpoint(report: ReportDefinition):
    async def endpoint(payload: Optional[ReportRequest] = None):
        return await run_report(report, payload)

    endpoint.__name__ = report.key
    endpoint.__doc__ = f"{report.sheet_title} ({report.target})"
    return endpoint


for _report in REPORTS:
    router.add_api_route(_report.path, _make_endpoint(_report), methods=["POST"], name=_report.key)


@router.get("/health/databases")
async def database_health():
    """Connection check for every configured database target."""
    results = []
    for target in TARGET_INDEX:
        results.append(await run_in_threadpool(data_service.check_connection, target))
    status_code = 200 if all(item["ok"] for item in results) else 503
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"databases": results}))
