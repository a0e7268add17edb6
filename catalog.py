# catalog.py
"""
Item -> Description catalog used to populate the /newitem modal.

Provides:
- Catalog (immutable item -> descriptions mapping)
- DEFAULT_CATALOG
- load_catalog (JSON / XLSX structured source, CSV / TSV fallback, built-in default)
- normalize_descriptions

Every item's description list keeps source order, drops blanks and repeats,
and ends with the CUSTOM sentinel exactly once.
"""
from __future__ import annotations

import csv
import json
import logging
import os
import re
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from openpyxl import load_workbook

logger = logging.getLogger("catalog")

CUSTOM = "Custom"

# Slack rejects select option values longer than this
MAX_VALUE_LENGTH = 150

ITEM_HEADER = re.compile(r"item", re.IGNORECASE)
DESCRIPTION_HEADER = re.compile(r"desc", re.IGNORECASE)

DELIMITED_EXTENSIONS = {".csv", ".tsv"}


class CatalogLoadError(Exception):
    """Raised by the per-format readers; load_catalog turns it into a fallback."""


def clip_value(value: str, kind: str) -> str:
    if len(value) <= MAX_VALUE_LENGTH:
        return value
    logger.warning("Trimming %s longer than %d characters: %r", kind, MAX_VALUE_LENGTH, value[:40])
    return value[:MAX_VALUE_LENGTH].rstrip()


def normalize_descriptions(values: Iterable[Any], item: str = "") -> Tuple[str, ...]:
    seen = set()
    out: List[str] = []
    for raw in values:
        value = clip_value(str(raw if raw is not None else "").strip(), "description")
        if not value or value == CUSTOM:
            continue
        if value in seen:
            logger.warning("Dropping repeated description %r for item %r", value, item)
            continue
        seen.add(value)
        out.append(value)
    out.append(CUSTOM)
    return tuple(out)


class Catalog:
    """Read-only mapping of item name to its ordered description tuple."""

    def __init__(self, entries: Mapping[str, Iterable[Any]]):
        grouped: Dict[str, List[Any]] = {}
        for item, descriptions in entries.items():
            name = clip_value(str(item).strip(), "item")
            if not name:
                continue
            grouped.setdefault(name, []).extend(descriptions)
        self._entries = MappingProxyType({name: normalize_descriptions(values, name) for name, values in grouped.items()})

    def items(self) -> List[str]:
        return sorted(self._entries)

    def descriptions_for(self, item: str) -> Tuple[str, ...]:
        descriptions = self._entries.get(item)
        if descriptions is None:
            logger.warning("Unknown catalog item %r; offering only %s", item, CUSTOM)
            return (CUSTOM,)
        return descriptions

    def as_dict(self) -> Dict[str, List[str]]:
        return {item: list(descriptions) for item, descriptions in self._entries.items()}

    def __contains__(self, item: object) -> bool:
        return item in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Catalog):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    def __repr__(self) -> str:
        return f"Catalog({dict(self._entries)!r})"


DEFAULT_CATALOG = Catalog({
    "Stickers": ["Kiss Cut", "Die Cut", "Sheet", "Roll", CUSTOM],
    "Business Cards": ["Matte", "Glossy", "Soft Touch", "Rounded Corners", CUSTOM],
})

# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------

def _detect_columns(headers: Sequence[Any]) -> Tuple[int, int]:
    names = [str(h or "").strip() for h in headers]
    item_col = next((i for i, h in enumerate(names) if ITEM_HEADER.search(h)), 0)
    desc_col = next((i for i, h in enumerate(names) if DESCRIPTION_HEADER.search(h)), None)
    if desc_col is None:
        desc_col = 1 if len(names) > 1 else 0
    return item_col, desc_col


def _group_rows(rows: Iterable[Sequence[Any]], item_col: int, desc_col: int) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for row in rows:
        if row is None:
            continue
        item = str(row[item_col] if item_col < len(row) and row[item_col] is not None else "").strip()
        desc = str(row[desc_col] if desc_col < len(row) and row[desc_col] is not None else "").strip()
        if not item or not desc:
            continue
        grouped.setdefault(item, []).append(desc)
    return grouped


def _read_json(path: str) -> Dict[str, List[str]]:
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        grouped: Dict[str, List[str]] = {}
        for item, descriptions in data.items():
            if not isinstance(descriptions, list):
                raise CatalogLoadError(f"descriptions for {item!r} must be a list")
            grouped[str(item)] = [str(d) for d in descriptions if d is not None]
        return grouped
    if isinstance(data, list):
        rows = []
        for record in data:
            if not isinstance(record, dict):
                raise CatalogLoadError("list entries must be objects")
            rows.append((record.get("item"), record.get("description")))
        return _group_rows(rows, 0, 1)
    raise CatalogLoadError("expected an object or a list of records")


def _read_xlsx(path: str) -> Dict[str, List[str]]:
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        headers = next(rows, None)
        if not headers:
            return {}
        item_col, desc_col = _detect_columns(headers)
        return _group_rows(rows, item_col, desc_col)
    finally:
        wb.close()


def _read_delimited(path: str) -> Dict[str, List[str]]:
    delimiter = "\t" if path.lower().endswith(".tsv") else ","
    with open(path, "r", encoding="utf-8-sig", newline="") as fh:
        reader = csv.reader(fh, delimiter=delimiter)
        headers = next(reader, None)
        if not headers:
            return {}
        item_col, desc_col = _detect_columns(headers)
        return _group_rows(reader, item_col, desc_col)


def read_source(path: str) -> Dict[str, List[str]]:
    ext = os.path.splitext(path)[1].lower()
    if ext == ".json":
        return _read_json(path)
    if ext in {".xlsx", ".xlsm"}:
        return _read_xlsx(path)
    if ext in DELIMITED_EXTENSIONS:
        return _read_delimited(path)
    raise CatalogLoadError(f"unsupported catalog format: {ext or path}")

# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_catalog(primary_path: Optional[str] = None, fallback_path: Optional[str] = None) -> Catalog:
    """
    Build the catalog from the first source that exists.

    The structured file (JSON or spreadsheet) wins over the delimited file;
    with neither present, or on any read failure, DEFAULT_CATALOG is returned.
    """
    for path in (primary_path, fallback_path):
        if not path:
            continue
        if not os.path.exists(path):
            logger.info("Catalog source not found: %s", path)
            continue
        try:
            grouped = read_source(path)
        except Exception as exc:
            logger.warning("Catalog source %s could not be read (%s); using built-in catalog", path, exc)
            return DEFAULT_CATALOG
        catalog = Catalog(grouped)
        if not len(catalog):
            logger.warning("Catalog source %s has no usable rows; using built-in catalog", path)
            return DEFAULT_CATALOG
        logger.info("Loaded %d catalog items from %s", len(catalog), path)
        return catalog
    logger.warning("No catalog source available; using built-in catalog")
    return DEFAULT_CATALOG
