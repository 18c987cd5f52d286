"""Gender taxonomy for vendor feeds.

Vendors describe audience with free text ("Men's", "LADIES", "Shop All",
"Youth Boys"...) either in a dedicated column or only in the category. This
module folds that text into the fixed ``Gender`` enum and applies the
operator-maintained override file on top:

  - normalize_gender(): ordered word-boundary rules, unknown -> UNISEX
  - load_overrides(): read data/gender-overrides.json, tolerate anything
  - apply_overrides(): SKU match first, then name pattern
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import orjson
from pydantic import ValidationError

from models import CatalogItem, Gender, GenderOverride

logger = logging.getLogger(__name__)

# =====================================================================
# Normalization
# =====================================================================

# Checked in order; first hit wins. Any mention of women/female/ladies is
# WOMENS, even alongside men. The men rule needs a non-word character (or the
# start) before "men" and a word boundary around "male".
_GENDER_RULES: list[tuple[re.Pattern, Gender]] = [
    (re.compile(r"women|female|ladies|\bw\b"), Gender.WOMENS),
    (re.compile(r"(^|\W)men('?s)?(\W|$)|\bmale\b|\bm\b"), Gender.MENS),
    (re.compile(r"\bunisex\b|\buni\b"), Gender.UNISEX),
    (re.compile(r"\bchild|\bkid|\bboy|\bgirl|\byouth|\bbaby"), Gender.CHILDRENS),
]


def normalize_gender(raw_gender: str | None, fallback_category: str | None = None) -> Gender:
    """Map free-text gender (or, failing that, category text) onto ``Gender``.

    Never returns anything outside the enum. Vendor catch-all buckets ("Shop
    All", "Misc", "Other") and any unknown text are UNISEX so the item still
    shows up in every gender-filtered view.
    """
    signal = (raw_gender or "").strip() or (fallback_category or "").strip()
    s = signal.lower()
    if not s:
        return Gender.UNISEX

    for pattern, gender in _GENDER_RULES:
        if pattern.search(s):
            return gender

    return Gender.UNISEX


# =====================================================================
# Overrides
# =====================================================================

_INLINE_CI = "(?i)"


@dataclass(frozen=True)
class CompiledOverride:
    """A validated override rule with its name pattern compiled."""

    gender: Gender
    sku: str | None = None
    pattern: re.Pattern | None = None


def compile_override(rule: GenderOverride) -> CompiledOverride:
    """Compile one rule. Raises re.error for an invalid name pattern."""
    pattern = None
    if rule.name_regex:
        source = rule.name_regex
        if source.startswith(_INLINE_CI):
            source = source[len(_INLINE_CI):]
        pattern = re.compile(source, re.IGNORECASE)

    sku = rule.sku.strip().lower() if rule.sku and rule.sku.strip() else None
    return CompiledOverride(gender=rule.gender, sku=sku, pattern=pattern)


def load_overrides(path: str | Path) -> list[CompiledOverride]:
    """Load the ordered override rules from a JSON file.

    A missing or malformed file means no overrides. Individual bad rules are
    skipped; the rest still apply.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No gender override file at {path}")
        return []

    try:
        data = orjson.loads(path.read_bytes())
    except (OSError, orjson.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable override file {path}: {e}")
        return []

    if not isinstance(data, list):
        logger.warning(f"Ignoring override file {path}: expected a JSON list")
        return []

    overrides: list[CompiledOverride] = []
    for i, raw in enumerate(data):
        if not isinstance(raw, dict):
            logger.warning(f"  Override #{i} skipped: not an object")
            continue
        try:
            overrides.append(compile_override(GenderOverride(**raw)))
        except ValidationError as e:
            logger.warning(f"  Override #{i} skipped: {e.errors()[0]['msg']}")
        except re.error as e:
            logger.warning(f"  Override #{i} skipped: bad name_regex ({e})")

    logger.info(f"Loaded {len(overrides)} gender overrides from {path}")
    return overrides


def apply_overrides(item: CatalogItem, overrides: list[CompiledOverride]) -> Gender | None:
    """Return the forced gender for an item, or None when no rule matches.

    Every SKU rule is checked before any name rule.
    """
    if item.sku:
        sku = item.sku.lower()
        for rule in overrides:
            if rule.sku is not None and rule.sku == sku:
                return rule.gender

    if item.name:
        for rule in overrides:
            if rule.pattern is not None and rule.pattern.search(item.name):
                return rule.gender

    return None
