"""
Spreadsheet export for report rows: one styled sheet rendered to .xlsx bytes.
"""
from __future__ import annotations

import io
import json
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from reports_backend.modules.reports.report_service import ReportServiceError

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(fill_type="solid", start_color="FFD3D3D3", end_color="FFD3D3D3")

MIN_COLUMN_WIDTH = 10
DEFAULT_MAX_COLUMN_WIDTH = 60

# Excel limits sheet titles to 31 characters and forbids a few symbols
_SHEET_TITLE_MAX = 31
_SHEET_TITLE_FORBIDDEN = set('[]:*?/\\')


class EmptyDatasetError(ReportServiceError):
    """Raised when an export is requested for a result with no rows."""

    def __init__(self, message: str = "No hay datos para exportar"):
        super().__init__(message, status_code=404, code="EMPTY_DATASET")


def _get(row: Any, column: str) -> Any:
    return row.get(column) if isinstance(row, Mapping) else None


def _cell_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        # openpyxl refuses timezone-aware datetimes
        return value.replace(tzinfo=None)
    if isinstance(value, (int, float, bool, datetime, date, time)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _display_length(value: Any) -> int:
    if value is None:
        return 0
    return len(str(value))


def _safe_sheet_title(title: Optional[str]) -> str:
    cleaned = "".join("_" if ch in _SHEET_TITLE_FORBIDDEN else ch for ch in (title or "Reporte"))
    return cleaned[:_SHEET_TITLE_MAX] or "Reporte"


def column_widths(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[str],
    max_width: int = DEFAULT_MAX_COLUMN_WIDTH,
) -> Dict[str, int]:
    """Width per column: longest text (header included) + 2, clamped to [10, max_width]."""
    widths = {}
    for column in columns:
        longest = len(column.upper())
        for row in rows:
            longest = max(longest, _display_length(_cell_value(_get(row, column))))
        widths[column] = min(max(longest + 2, MIN_COLUMN_WIDTH), max_width)
    return widths


def build_workbook(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[str],
    sheet_title: str = "Reporte",
    max_width: int = DEFAULT_MAX_COLUMN_WIDTH,
) -> Workbook:
    if not rows:
        raise EmptyDatasetError()

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = _safe_sheet_title(sheet_title)

    sheet.append([column.upper() for column in columns])
    for cell in sheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL

    for row in rows:
        sheet.append([_cell_value(_get(row, column)) for column in columns])

    for idx, width in enumerate(column_widths(rows, columns, max_width).values(), start=1):
        sheet.column_dimensions[get_column_letter(idx)].width = width

    return workbook


def export_sheet(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[str],
    sheet_title: str = "Reporte",
    max_width: int = DEFAULT_MAX_COLUMN_WIDTH,
) -> bytes:
    """
    Render rows as a single-sheet .xlsx document and return its bytes.

    Raises:
        EmptyDatasetError: If rows is empty (no headers-only files)
    """
    workbook = build_workbook(rows, columns, sheet_title=sheet_title, max_width=max_width)
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def export_filename(prefix: str, fecha_inicio: str, fecha_fin: str) -> str:
    return f"{prefix}_{fecha_inicio}_{fecha_fin}.xlsx"


