"""Flattens extraction results into rows and writes them to an XLSX file."""

import json
import logging
from pathlib import Path
from typing import Any, Union

import openpyxl
from openpyxl.styles import Font, PatternFill

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Scraped Data"


def _is_error_marker(value: Any) -> bool:
    return isinstance(value, dict) and set(value) == {"error"}


def _records_from(value: Any) -> list[dict[str, Any]]:
    """Pull record objects out of one chunk's JSON value.

    Accepts a list of objects, a single object, or an object wrapping one
    list of objects (e.g. ``{"results": [...]}``).
    """
    if isinstance(value, list):
        records = []
        for item in value:
            records.extend(_records_from(item))
        return records
    if isinstance(value, dict):
        list_values = [v for v in value.values() if isinstance(v, list)]
        if len(value) == 1 and len(list_values) == 1 and all(
            isinstance(item, dict) for item in list_values[0]
        ):
            return _records_from(list_values[0])
        return [value]
    return []


def flatten_results(results: list[Any]) -> list[dict[str, Any]]:
    """Turn per-chunk outputs into a flat list of records.

    Chunk error markers are skipped.
    """
    records: list[dict[str, Any]] = []
    skipped = 0
    for value in results:
        if _is_error_marker(value):
            skipped += 1
            continue
        records.extend(_records_from(value))
    if skipped:
        logger.warning("Skipped %d failed chunks while flattening results", skipped)
    return records


def _columns(records: list[dict[str, Any]]) -> list[str]:
    columns: list[str] = []
    seen: set[str] = set()
    for record in records:
        for key in record:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


def _cell_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return json.dumps(value, ensure_ascii=False)


def write_workbook(
    records: list[dict[str, Any]],
    file_path: Union[str, Path],
    sheet_name: str = DEFAULT_SHEET_NAME,
) -> Path:
    """Write ``records`` to an XLSX workbook.

    Columns are the union of record keys in first-seen order. Nested
    values are written as JSON text.

    Args:
        records: Flat record objects.
        file_path: Path to save file.
        sheet_name: Name of the sheet.

    Returns:
        The path written.
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_name

    columns = _columns(records)
    for col_idx, col_name in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_idx, value=col_name)
        cell.font = Font(bold=True)
        cell.fill = PatternFill(start_color="4CAF50", end_color="4CAF50", fill_type="solid")

    for row_idx, record in enumerate(records, 2):
        for col_idx, col_name in enumerate(columns, 1):
            ws.cell(row=row_idx, column=col_idx, value=_cell_value(record.get(col_name, "")))

    wb.save(path)
    logger.info("Wrote %d records (%d columns) to %s", len(records), len(columns), path)
    return path
