"""
Result normalization pipeline shared by every report endpoint.

Stored procedure calls come back from the driver in several shapes: nested
result sets, status packets mixed with rows, a single row object, or an
array serialized as an object with "0", "1", ... keys. The functions here
turn any of those into a plain list of row dicts and never raise on odd
input; a shape they do not understand degrades to an empty list.
"""
from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

METADATA_KEYS = frozenset(
    {
        "fieldCount",
        "affectedRows",
        "insertId",
        "info",
        "serverStatus",
        "warningStatus",
        "changedRows",
    }
)

# Wrapper key for string rows that are not valid JSON
RAW_VALUE_KEY = "valor"

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 50

DISTRIBUTOR_KEYS = (
    "Codigo_Distribuidor",
    "codigo_distribuidor",
    "CODIGO_DISTRIBUIDOR",
    "RUC_Distribuidor",
    "ruc_distribuidor",
    "DISTRIBUIDOR",
    "distribuidor",
    "Nombre_Distribuidor",
    "codigo",
)

MAX_EXTRACT_DEPTH = 3

_NON_DIGITS = re.compile(r"\D+")
_LEADING_INT = re.compile(r"^\s*([+-]?[0-9]+)")


class RawShape(str, Enum):
    EMPTY = "empty"
    FLAT_ROWS = "flat_rows"
    NESTED_ROWS = "nested_rows"
    SINGLE_RECORD = "single_record"
    INDEXED_PSEUDO_ARRAY = "indexed_pseudo_array"
    METADATA_PACKET = "metadata_packet"


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def is_metadata_packet(value: Any) -> bool:
    """True for driver status objects (keys are a non-empty subset of METADATA_KEYS)."""
    if not isinstance(value, Mapping) or not value:
        return False
    return all(key in METADATA_KEYS for key in value.keys())


def is_indexed_pseudo_array(value: Any) -> bool:
    """True for a mapping whose keys are all non-negative integers ("0", "1", ...)."""
    if not isinstance(value, Mapping) or not value:
        return False
    return all(str(key).isdecimal() for key in value.keys())


def classify_raw_result(raw: Any) -> RawShape:
    """Map any driver payload to exactly one RawShape."""
    if raw is None:
        return RawShape.EMPTY
    if _is_sequence(raw):
        if len(raw) == 0:
            return RawShape.EMPTY
        if _is_sequence(raw[0]):
            return RawShape.NESTED_ROWS
        if is_indexed_pseudo_array(raw[0]):
            return RawShape.INDEXED_PSEUDO_ARRAY
        return RawShape.FLAT_ROWS
    if is_metadata_packet(raw):
        return RawShape.METADATA_PACKET
    if is_indexed_pseudo_array(raw):
        return RawShape.INDEXED_PSEUDO_ARRAY
    return RawShape.SINGLE_RECORD


def _indexed_values(value: Mapping) -> List[Any]:
    return [value[key] for key in sorted(value.keys(), key=lambda k: int(str(k)))]


def _clean(rows: Iterable[Any]) -> List[Any]:
    cleaned = []
    for row in rows:
        if row is None or is_metadata_packet(row):
            continue
        if isinstance(row, Mapping) and not row:
            continue
        cleaned.append(row)
    return cleaned


def normalize_results(raw: Any) -> List[Dict[str, Any]]:
    """
    Turn a raw query result into an ordered list of row dicts.

    - None or an empty sequence gives []
    - [[row, row], status] keeps only the first result set
    - [row, status, row] drops the status packets
    - a single row object becomes [row]
    - {"0": row, "1": row} (alone or as first element) becomes its values
    """
    shape = classify_raw_result(raw)

    if shape in (RawShape.EMPTY, RawShape.METADATA_PACKET):
        working: List[Any] = []
    elif shape == RawShape.NESTED_ROWS:
        working = list(raw[0])
    elif shape in (RawShape.FLAT_ROWS, RawShape.INDEXED_PSEUDO_ARRAY) and _is_sequence(raw):
        working = [row for row in raw if not is_metadata_packet(row)]
    else:
        working = [raw]

    if working and is_indexed_pseudo_array(working[0]) and not _is_sequence(working[0]):
        working = _indexed_values(working[0])

    return _clean(working)


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


def unwrap_json_cells(rows: Iterable[Any]) -> List[Any]:
    """
    Recover rows that a procedure returned as one JSON text column.

    A string row is parsed (or wrapped as {"valor": text} when it is not JSON).
    A row with a single string value is replaced by the parsed value when it
    parses and left alone otherwise. None and empty rows are dropped.
    """
    parsed = []
    for row in rows or []:
        if isinstance(row, str):
            try:
                row = json.loads(row, parse_constant=_reject_constant)
            except ValueError:
                row = {RAW_VALUE_KEY: row}
        elif isinstance(row, Mapping) and len(row) == 1:
            (value,) = row.values()
            if isinstance(value, str):
                try:
                    row = json.loads(value, parse_constant=_reject_constant)
                except ValueError:
                    pass
        parsed.append(row)

    return [row for row in parsed if row is not None and not (isinstance(row, Mapping) and not row)]


def build_columns(rows: Iterable[Any], preferred: Iterable[str] = ()) -> List[str]:
    """
    Header order for export: preferred columns that exist in at least one
    row (in the given order), then every other key in first-seen order.
    """
    records = [row for row in rows or [] if isinstance(row, Mapping)]
    if not records:
        return []

    columns: Dict[str, None] = {}
    for name in preferred or ():
        if name not in columns and any(name in row for row in records):
            columns[name] = None
    for row in records:
        for key in row.keys():
            if key not in columns:
                columns[key] = None
    return list(columns)


def _positive_int(value: Any, default: int) -> int:
    """Leading integer of the value's text ("2.0" -> 2, "3abc" -> 3), else default."""
    if value is None or isinstance(value, bool):
        return default
    match = _LEADING_INT.match(str(value))
    if not match:
        return default
    number = int(match.group(1))
    return number if number > 0 else default


def paginate(rows: Sequence[Any], page: Any = None, page_size: Any = None) -> Dict[str, Any]:
    """Slice rows into a page envelope. Out-of-range pages give empty items."""
    page_number = max(1, _positive_int(page, DEFAULT_PAGE))
    size = max(1, _positive_int(page_size, DEFAULT_PAGE_SIZE))
    total = len(rows)
    start = (page_number - 1) * size
    return {
        "items": list(rows[start:start + size]),
        "total": total,
        "page": page_number,
        "pageSize": size,
        "totalPages": max(1, math.ceil(total / size)),
    }


def digits_only(value: Any) -> str:
    return _NON_DIGITS.sub("", str(value))


def extract_primitives(value: Any, depth: int = 0) -> List[Any]:
    """Collect str/number/bool leaves of a nested value, up to MAX_EXTRACT_DEPTH levels."""
    if isinstance(value, (str, bool, int, float)):
        return [value]
    if depth >= MAX_EXTRACT_DEPTH:
        return []
    if isinstance(value, Mapping):
        children = value.values()
    elif _is_sequence(value):
        children = value
    else:
        return []
    found = []
    for child in children:
        found.extend(extract_primitives(child, depth + 1))
    return found


def _value_matches(candidate: Any, needle: str, needle_digits: str) -> bool:
    if candidate is None:
        return False
    text = str(candidate)
    if needle.lower() in text.lower():
        return True
    # TODO: short numeric codes can match unrelated values here; needs a rule for
    # which of the substring and digits checks wins once the business defines one
    return bool(needle_digits) and digits_only(text) == needle_digits


def row_matches_attribute(row: Any, value: str, candidate_keys: Sequence[str] = DISTRIBUTOR_KEYS) -> bool:
    needle = str(value).strip()
    needle_digits = digits_only(needle)
    if isinstance(row, Mapping):
        for key in candidate_keys:
            if key in row and _value_matches(row[key], needle, needle_digits):
                return True
    return any(_value_matches(leaf, needle, needle_digits) for leaf in extract_primitives(row))


def filter_by_attribute(
    rows: Sequence[Any],
    value: Optional[Any],
    candidate_keys: Sequence[str] = DISTRIBUTOR_KEYS,
) -> List[Any]:
    """
    Keep rows matching a business key (e.g. a distributor code) the
    procedure does not filter by itself. An empty value skips the filter.
    """
    if value is None or not str(value).strip():
        return list(rows)
    return [row for row in rows if row_matches_attribute(row, value, candidate_keys)]
