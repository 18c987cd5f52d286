"""
Row -> CatalogItem extraction.

Vendor feeds never agree on column names, so every field is read from an
ordered list of known header variants (first non-empty wins). Numeric cells
are coerced leniently: currency signs, thousands separators and stray text
are stripped, and anything unparsable becomes 0 instead of raising.
"""

import html as html_lib
import logging
import re

from config import PricingPolicy, Settings
from models import CatalogItem
from parser import first_value, pick_image_column
from taxonomy import normalize_gender

logger = logging.getLogger(__name__)

# Known header variants per field, most specific first
SKU_COLUMNS = ("SKU", "Sku", "Item", "ItemNumber")
NAME_COLUMNS = ("Product Name", "Title", "Name", "Description")
BRAND_COLUMNS = ("Brand", "Manufacturer")
CATEGORY_COLUMNS = ("Category", "Type")
GENDER_COLUMNS = ("Gender",)
STOCK_COLUMNS = ("Current Stock", "Quantity", "Qty", "Available", "InStock")
PRICE_COLUMNS = ("WholesalePrice", "Cost", "Price")

FIELD_COLUMNS = {
    "sku": SKU_COLUMNS,
    "name": NAME_COLUMNS,
    "brand": BRAND_COLUMNS,
    "category": CATEGORY_COLUMNS,
    "gender": GENDER_COLUMNS,
    "stock": STOCK_COLUMNS,
    "price": PRICE_COLUMNS,
}

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


# ===== Numeric coercion =====


def parse_number(value: str | None) -> float:
    """Lenient number parse: keep digits, dots and minus signs; 0 on failure."""
    cleaned = _NON_NUMERIC.sub("", str(value or ""))
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError:  # "-", "1.2.3", "--5"
        return 0.0


def parse_stock(row: dict[str, str], safety_buffer: int = 0) -> int:
    """Stock quantity from the first stock column present, never negative."""
    stock = int(parse_number(first_value(row, STOCK_COLUMNS)))
    return max(stock - safety_buffer, 0)


def parse_price(
    row: dict[str, str],
    policy: PricingPolicy = PricingPolicy.NONE,
    multiplier: float = 1.35,
) -> float | None:
    """Retail price under the configured policy.

    NONE emits no price at all. MARKUP multiplies the wholesale value and rounds
    to cents; free or missing wholesale values stay 0.
    """
    if policy is PricingPolicy.NONE:
        return None

    wholesale = parse_number(first_value(row, PRICE_COLUMNS))
    if not wholesale:
        return 0.0
    return round(wholesale * multiplier, 2)


# ===== Text cleanup =====


def _clean_text(text: str) -> str:
    """Unescape entities, strip HTML tags and normalize whitespace."""
    text = html_lib.unescape(text)
    text = re.sub(r"<[^>]+>", " ", text)
    return re.sub(r"\s+", " ", text).strip()


# ===== Row -> item =====


def build_item(row: dict[str, str], settings: Settings | None = None) -> CatalogItem:
    """Build the draft catalog item for one feed row.

    ``image`` is left empty; the candidate remote URL rides along in
    ``source_image`` until the image store decides what to persist.
    """
    settings = settings or Settings()

    category = _clean_text(first_value(row, CATEGORY_COLUMNS))
    return CatalogItem(
        sku=first_value(row, SKU_COLUMNS),
        name=_clean_text(first_value(row, NAME_COLUMNS)),
        brand=_clean_text(first_value(row, BRAND_COLUMNS)),
        category=category,
        gender=normalize_gender(first_value(row, GENDER_COLUMNS), category),
        qty=parse_stock(row, settings.safety_buffer),
        price=parse_price(row, settings.pricing_policy, settings.price_markup),
        source_image=pick_image_column(row),
    )
