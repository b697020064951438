"""Reading uploaded .xlsx / .csv sheets into row dicts."""

import csv
import io
import logging
import math
import re
import unicodedata
from typing import Any

import openpyxl

from backoffice.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

# str \s covers non-breaking and other unicode spaces too
_SPACES = re.compile(r"\s+")


def normalize_name(name: Any) -> str:
    """Comparable form of a name: lower-case, no accents, single spaces."""
    if name is None:
        return ""
    text = unicodedata.normalize("NFKD", str(name).lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _SPACES.sub(" ", text).strip()


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def read_rows(filename: str, content: bytes) -> list[dict[str, Any]]:
    """Read the first sheet of an upload; the first row holds the headers.

    Header names are stripped. Completely empty rows are skipped.

    Raises:
        ValidationError: unsupported extension or unreadable file
    """
    lowered = (filename or "").lower()
    if lowered.endswith(".xlsx"):
        rows = _read_xlsx(content)
    elif lowered.endswith(".csv"):
        rows = _read_csv(content)
    else:
        raise ValidationError("Only .xlsx and .csv files are supported")

    result = [row for row in rows if any(v is not None for v in row.values())]
    logger.debug(f"Read {len(result)} data rows from {filename}")
    return result


def _read_xlsx(content: bytes) -> list[dict[str, Any]]:
    try:
        # data_only=True returns cached values instead of formulas
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        logger.error(f"Failed to load Excel file: {e}", exc_info=True)
        raise ValidationError("Cannot read the Excel file, make sure it is a valid .xlsx file") from e

    try:
        sheet = workbook.active
        values = sheet.iter_rows(values_only=True)
        header = next(values, None)
        if header is None:
            return []
        keys = [str(h).strip() if h is not None else "" for h in header]
        return [
            {key: _clean(value) for key, value in zip(keys, row) if key}
            for row in values
        ]
    finally:
        workbook.close()


def _read_csv(content: bytes) -> list[dict[str, Any]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("CSV files must be UTF-8 encoded") from e
    reader = csv.DictReader(io.StringIO(text))
    return [
        {key.strip(): _clean(value) for key, value in row.items() if key}
        for row in reader
    ]


def pick(row: dict[str, Any], *aliases: str) -> Any:
    """First non-empty value among alternative column names."""
    for alias in aliases:
        value = row.get(alias)
        if value is not None:
            return value
    return None


def to_number(value: Any, default: float | None = 0.0) -> float | None:
    """Spreadsheet cell to float; anything that is not a finite number gives the default."""
    if value is None:
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).replace(",", "").strip())
        except ValueError:
            return default
    return number if math.isfinite(number) else default
