"""
FastAPI server for the synced catalog.

Loads inventory.json at startup into memory and serves:
- GET /api/inventory          → in-stock items, optionally filtered
- GET /api/inventory/{sku}    → one item
- GET /api/summary            → counts by gender and brand
- /images/*                   → the mirrored image files
"""

import logging
from pathlib import Path

import orjson
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from config import Settings
from models import CatalogItem, Gender

logger = logging.getLogger("server")

# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class CatalogSummary(BaseModel):
    total: int
    with_image: int
    by_gender: dict[str, int]
    by_brand: dict[str, int]


# ---------------------------------------------------------------------------
# Data loading
# ---------------------------------------------------------------------------

SETTINGS = Settings.from_env()

# In-memory stores populated at startup
_items: list[CatalogItem] = []
_items_by_sku: dict[str, CatalogItem] = {}


def load_inventory(path: Path) -> None:
    """Load inventory.json into memory and build the SKU lookup."""
    global _items, _items_by_sku

    if not path.exists():
        raise FileNotFoundError(f"{path} not found. Run 'python main.py' first to sync the feed.")

    raw: list[dict] = orjson.loads(path.read_bytes())
    items = [CatalogItem.model_validate(entry) for entry in raw]

    by_sku: dict[str, CatalogItem] = {}
    for item in items:
        if item.sku:
            by_sku.setdefault(item.sku.lower(), item)

    _items = items
    _items_by_sku = by_sku
    logger.info("Loaded %d catalog items from %s", len(items), path)


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Vendor Catalog API",
    default_response_class=ORJSONResponse,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_methods=["GET"],
    allow_headers=["*"],
    max_age=86400,
)
app.mount("/images", StaticFiles(directory=SETTINGS.images_dir, check_dir=False), name="images")


@app.on_event("startup")
async def startup() -> None:
    load_inventory(SETTINGS.output_file)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


def _as_payload(items: list[CatalogItem]) -> list[dict]:
    return [item.to_json_dict() for item in items]


@app.get("/api/inventory")
async def list_inventory(gender: Gender | None = None, brand: str | None = None, q: str | None = None):
    """Return catalog items, optionally filtered by gender, brand and name substring."""
    items = _items
    if gender is not None:
        items = [i for i in items if i.gender == gender]
    if brand:
        wanted = brand.strip().lower()
        items = [i for i in items if i.brand.lower() == wanted]
    if q:
        needle = q.strip().lower()
        items = [i for i in items if needle in i.name.lower()]
    return _as_payload(items)


@app.get("/api/inventory/{sku}")
async def get_item(sku: str):
    """Return a single item by SKU (case-insensitive)."""
    item = _items_by_sku.get(sku.strip().lower())
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item.to_json_dict()


@app.get("/api/summary", response_model=CatalogSummary)
async def summary():
    """Counts by gender and brand for the storefront's filter UI."""
    by_gender = {g.value: 0 for g in Gender}
    by_brand: dict[str, int] = {}
    for item in _items:
        by_gender[item.gender.value] += 1
        if item.brand:
            by_brand[item.brand] = by_brand.get(item.brand, 0) + 1

    return CatalogSummary(
        total=len(_items),
        with_image=sum(1 for i in _items if i.image),
        by_gender=by_gender,
        by_brand=dict(sorted(by_brand.items(), key=lambda x: (-x[1], x[0]))),
    )
