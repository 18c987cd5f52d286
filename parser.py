"""
Vendor feed parser.

Turns raw CSV text into rows (column name -> cell string) and locates the
best image URL in a row without relying on exact column names. Vendors name
their image columns freely ("Image URL", "Large Image URL", "image_url"...),
so columns are matched on a normalized form of their header.

No network access and no per-vendor logic.
"""

import csv
import io
import logging
import re

logger = logging.getLogger(__name__)

# Size/role tokens in image column names, most preferred first.
IMAGE_COLUMN_PREFERENCE = ("thumb", "small", "medium", "large", "primary", "main", "base")

# Bare image columns used when no "...image...url..." column has a value
_BARE_IMAGE_COLUMNS = ("image", "img")

_COLUMN_SEPARATORS = re.compile(r"[\s_\-]+")


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def parse_feed(text: str) -> list[dict[str, str]]:
    """Parse CSV feed text with a header row into a list of row dicts.

    Blank lines are skipped, short rows are padded with "", and cells beyond
    the header are dropped.
    """
    text = text.lstrip("\ufeff")
    if not text.strip():
        return []

    reader = csv.DictReader(io.StringIO(text, newline=""))
    rows: list[dict[str, str]] = []
    for raw in reader:
        row = {
            key.strip(): (value if isinstance(value, str) else "")
            for key, value in raw.items()
            if key is not None
        }
        if not any(v.strip() for v in row.values()):
            continue
        rows.append(row)

    logger.debug(f"Parsed {len(rows)} rows, columns: {reader.fieldnames}")
    return rows


# ---------------------------------------------------------------------------
# Column lookup
# ---------------------------------------------------------------------------


def normalize_column_name(name: str) -> str:
    """Lower-case a header and drop whitespace, underscores and dashes."""
    return _COLUMN_SEPARATORS.sub("", name.lower())


def first_value(row: dict[str, str], names: tuple[str, ...]) -> str:
    """Return the first non-empty value among the exact column names given."""
    for name in names:
        value = row.get(name)
        if value is not None and value.strip():
            return value.strip()
    return ""


def first_column(row: dict[str, str], names: tuple[str, ...]) -> str | None:
    """Return which of the exact column names would supply the value, if any."""
    for name in names:
        value = row.get(name)
        if value is not None and value.strip():
            return name
    return None


# ---------------------------------------------------------------------------
# Image column detection
# ---------------------------------------------------------------------------


def image_candidates(row: dict[str, str]) -> list[tuple[str, str]]:
    """All (normalized column name, value) pairs that look like image URL columns.

    Keeps feed column order and skips empty cells.
    """
    candidates: list[tuple[str, str]] = []
    for column, value in row.items():
        normalized = normalize_column_name(column)
        if "image" in normalized and "url" in normalized and value.strip():
            candidates.append((normalized, value.strip()))
    return candidates


def pick_image_column(row: dict[str, str]) -> str:
    """Pick the best candidate image URL from a row, normalized. Empty if none."""
    candidates = image_candidates(row)

    url = ""
    for token in IMAGE_COLUMN_PREFERENCE:
        url = next((value for name, value in candidates if token in name), "")
        if url:
            break

    if not url and candidates:
        url = candidates[0][1]

    if not url:
        for column, value in row.items():
            if normalize_column_name(column) in _BARE_IMAGE_COLUMNS and value.strip():
                url = value.strip()
                break

    return normalize_image_url(url)


def normalize_image_url(url: str) -> str:
    """Force https on protocol-relative and plain-http URLs."""
    url = url.strip()
    if url.startswith("//"):
        url = "https:" + url
    if url.startswith("http://"):
        url = "https://" + url[len("http://"):]
    return url
