"""Excel workbook reading for the bulk importer."""

import logging
from io import BytesIO
from typing import Any

from openpyxl import load_workbook

from gradebook.core.exceptions import UploadError

logger = logging.getLogger(__name__)


def read_workbook(file_content: bytes) -> dict[str, list[tuple[Any, ...]]]:
    """Read every sheet of an .xlsx file into raw cell rows, keyed by sheet name.

    Cell values are returned as stored (formulas resolved to their cached
    values). Trailing empty rows are dropped.
    """
    logger.debug(f"[EXCEL PARSE] Reading workbook of {len(file_content)} bytes")
    try:
        workbook = load_workbook(filename=BytesIO(file_content), read_only=True, data_only=True)
    except Exception as e:
        logger.error(f"[EXCEL PARSE] Failed to load Excel: {str(e)}")
        raise UploadError(f"Invalid Excel file: {str(e)}")

    sheets: dict[str, list[tuple[Any, ...]]] = {}
    try:
        for sheet in workbook.worksheets:
            rows = list(sheet.iter_rows(values_only=True))
            while rows and not any(value not in (None, "") for value in rows[-1]):
                rows.pop()
            sheets[sheet.title] = rows
            logger.debug(f"[EXCEL PARSE] Sheet '{sheet.title}': {len(rows)} rows")
    finally:
        workbook.close()

    logger.info(f"[EXCEL PARSE] Summary: {len(sheets)} sheets read ({', '.join(sheets)})")
    return sheets
