from __future__ import annotations

import csv
import hashlib
import io
import logging
from pathlib import Path
from typing import Iterable

from word_drill.game.models import WordPair

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
CSV_SUFFIXES = {".csv"}
SUPPORTED_SUFFIXES = EXCEL_SUFFIXES | CSV_SUFFIXES


class DeckImportError(ValueError):
    """The payload could not be turned into any playable word pairs."""


def parse_deck(filename: str, payload: bytes) -> list[WordPair]:
    """Read column A (source) and column B (target) into unique word pairs.

    Blank rows are skipped quietly; half-filled, short and duplicate rows are
    skipped with a warning. Duplicates compare case-insensitively on the
    (source, target) combination and the first occurrence wins.
    """
    name = filename or "uploaded file"
    if not payload:
        raise DeckImportError(f"{name} is empty")

    suffix = Path(name).suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        rows = _rows_from_excel(payload, name)
    elif suffix in CSV_SUFFIXES:
        rows = _rows_from_csv(payload, name)
    else:
        raise DeckImportError(
            f"Unsupported file type {suffix or '(none)'} for {name}; use one of {', '.join(sorted(SUPPORTED_SUFFIXES))}"
        )

    pairs = build_pairs(rows, source_name=name)
    if not pairs:
        raise DeckImportError(
            f"{name} is empty or contains no valid, unique word pairs in the first two columns "
            "(A: source, B: target)."
        )
    return pairs


def build_pairs(rows: Iterable[list], *, source_name: str = "uploaded file") -> list[WordPair]:
    pairs: list[WordPair] = []
    seen: set[str] = set()

    for line_no, row in enumerate(rows, start=1):
        cells = [_cell_text(cell) for cell in (row or [])]
        if len(cells) < 2:
            if any(cells):
                logger.warning(
                    "Skipping malformed row %d in %s: expected 2 columns, found %d",
                    line_no,
                    source_name,
                    len(cells),
                )
            continue

        source, target = cells[0], cells[1]
        if not source or not target:
            if source or target:
                logger.warning(
                    "Skipping row %d in %s due to missing value(s): A=%r, B=%r",
                    line_no,
                    source_name,
                    source,
                    target,
                )
            continue

        key = combination_key(source, target)
        if key in seen:
            logger.warning("Skipping duplicate pair at row %d in %s: A=%r, B=%r", line_no, source_name, source, target)
            continue
        seen.add(key)
        pairs.append(WordPair(id=pair_id(source, target), source_text=source, target_text=target))

    return pairs


def combination_key(source: str, target: str) -> str:
    return f"{source.lower()}|{target.lower()}"


def pair_id(source: str, target: str) -> str:
    digest = hashlib.sha1(combination_key(source, target).encode("utf-8")).hexdigest()[:12]
    return f"pair-{digest}"


def _rows_from_excel(payload: bytes, name: str) -> list[list]:
    from openpyxl import load_workbook

    try:
        wb = load_workbook(io.BytesIO(payload), read_only=True, data_only=True)
    except Exception as exc:
        raise DeckImportError(f"Could not read workbook {name}: {exc}") from exc

    # read_only sheets parse lazily, so row errors surface while iterating.
    try:
        if not wb.worksheets:
            return []
        ws = wb.worksheets[0]
        return [list(row) for row in ws.iter_rows(values_only=True)]
    except Exception as exc:
        raise DeckImportError(f"Could not read workbook {name}: {exc}") from exc
    finally:
        wb.close()


def _rows_from_csv(payload: bytes, name: str) -> list[list]:
    data = payload.decode("utf-8-sig", errors="ignore")
    reader = csv.reader(io.StringIO(data))
    try:
        return [row for row in reader]
    except csv.Error as exc:
        raise DeckImportError(f"Could not read {name}: {exc}") from exc


def _cell_text(cell: object) -> str:
    if cell is None:
        return ""
    if isinstance(cell, float) and cell.is_integer():
        return str(int(cell))
    return str(cell).strip()
