"""
Catalog sync orchestrator.

Pulls the vendor feed (remote URL, or the local fallback CSV), runs every row
through: parse -> extract -> in-stock filter -> gender overrides, mirrors each
item's image with a fixed-size asyncio worker pool, and writes the catalog to
public/inventory.json.
"""

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import httpx
import orjson

from config import Settings
from extractor import build_item
from fetcher import fetch_image
from models import CatalogItem
from parser import parse_feed
from store import ImageStore, filename_base
from taxonomy import CompiledOverride, apply_overrides, load_overrides

logger = logging.getLogger(__name__)

FEED_TIMEOUT = 60.0


class FeedError(Exception):
    """The remote feed could not be retrieved. Aborts the run."""


# ===== Feed =====


async def load_feed_text(settings: Settings, client: httpx.AsyncClient) -> str:
    """Feed CSV text from the configured URL, else from the local fallback file.

    The local fallback never raises: an unreadable file is an empty feed.
    """
    if not settings.feed_url:
        logger.info(f"No feed URL configured, reading {settings.feed_file}")
        try:
            return settings.feed_file.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Local feed unavailable ({e}); continuing with an empty feed")
            return ""

    logger.info("Fetching vendor feed...")
    response = await client.get(settings.feed_url, follow_redirects=True, timeout=FEED_TIMEOUT)
    if not response.is_success:
        raise FeedError(f"Feed HTTP {response.status_code}")
    return response.text


def build_catalog(
    rows: list[dict[str, str]],
    settings: Settings,
    overrides: list[CompiledOverride],
) -> list[CatalogItem]:
    """Draft an item per row, keep in-stock items, apply gender overrides. Keeps feed order.

    Only the first in-stock row per SKU is kept; SKUs are compared by the
    image filename they map to, case-insensitively.
    """
    items: list[CatalogItem] = []
    seen_skus: set[str] = set()
    forced = 0
    duplicates = 0
    for row in rows:
        item = build_item(row, settings)
        if not item.in_stock:
            continue
        if item.sku:
            key = filename_base(item.sku, "").lower()
            if key in seen_skus:
                # Images are named by SKU, so a second row would share the first one's file
                logger.warning(f"  Duplicate SKU {item.sku!r} ({item.name!r}), keeping the first row")
                duplicates += 1
                continue
            seen_skus.add(key)
        gender = apply_overrides(item, overrides)
        if gender is not None:
            if gender != item.gender:
                forced += 1
            item.gender = gender
        items.append(item)

    logger.info(
        f"  {len(items)}/{len(rows)} rows kept, {duplicates} duplicate SKUs dropped, "
        f"{forced} genders changed by overrides"
    )
    return items


# ===== Image mirroring =====


class MirrorOutcome(str, Enum):
    SAVED = "saved"  # fetched and written this run
    REUSED = "reused"  # already on disk, no network
    FAILED = "failed"  # every fetch strategy exhausted (or write failed)
    SKIPPED = "skipped"  # row had no image column


@dataclass
class MirrorStats:
    """Run-level image counters. Progress is logged every ``progress_every`` items."""

    total: int = 0
    progress_every: int = 25
    done: int = 0
    attempted: int = 0  # items that needed the network
    saved: int = 0
    reused: int = 0
    failed: int = 0
    skipped: int = 0

    def record(self, outcome: MirrorOutcome) -> None:
        # Called from the event loop thread without awaiting, so updates never interleave
        self.done += 1
        if outcome in (MirrorOutcome.SAVED, MirrorOutcome.FAILED):
            self.attempted += 1
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

        if self.done % self.progress_every == 0 or self.done == self.total:
            logger.info(
                f"  Images {self.done}/{self.total}: attempted={self.attempted} "
                f"saved={self.saved} reused={self.reused} failed={self.failed}"
            )


async def mirror_item(
    item: CatalogItem,
    store: ImageStore,
    client: httpx.AsyncClient,
    settings: Settings,
) -> tuple[str, MirrorOutcome]:
    """Reuse-check, fetch, store one item's image. Returns (relative path or "", outcome)."""
    url = item.source_image
    if not url:
        return "", MirrorOutcome.SKIPPED

    existing = store.find_existing(item.sku, url)
    if existing:
        return existing, MirrorOutcome.REUSED

    result = await fetch_image(
        client,
        url,
        store_url=settings.store_url,
        timeout=settings.image_timeout,
    )
    if result is None:
        return "", MirrorOutcome.FAILED

    try:
        path = store.save(item.sku, url, result.content, result.content_type)
    except OSError as e:
        logger.warning(f"  Could not write image for {item.sku or url}: {e}")
        return "", MirrorOutcome.FAILED
    return path, MirrorOutcome.SAVED


async def mirror_images(
    items: list[CatalogItem],
    settings: Settings,
    client: httpx.AsyncClient,
    store: ImageStore | None = None,
) -> MirrorStats:
    """Mirror every item's image with ``settings.concurrency`` workers on a shared queue.

    Each worker writes into the item's own slot, so the catalog keeps feed
    order no matter which downloads finish first.
    """
    store = store or ImageStore(settings.images_dir, settings.public_dir)
    stats = MirrorStats(total=len(items), progress_every=settings.progress_every)
    slots: list[str] = [""] * len(items)

    queue: asyncio.Queue[int] = asyncio.Queue()
    for index in range(len(items)):
        queue.put_nowait(index)

    async def worker() -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            path, outcome = await mirror_item(items[index], store, client, settings)
            slots[index] = path
            stats.record(outcome)

    n_workers = min(settings.concurrency, len(items)) or 1
    logger.info(f"Mirroring {len(items)} images with {n_workers} workers...")
    await asyncio.gather(*[worker() for _ in range(n_workers)])

    for item, path in zip(items, slots):
        item.image = path
    return stats


# ===== Output =====


def write_catalog(items: list[CatalogItem], path: Path, store: ImageStore | None = None) -> None:
    """Serialize the catalog. Images missing from disk at this point are blanked."""
    if store is not None:
        for item in items:
            if item.image and not store.exists(item.image):
                logger.warning(f"  Image for {item.sku} vanished before write, dropping it")
                item.image = ""

    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [item.to_json_dict() for item in items]
    path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2) + b"\n")


async def sync(settings: Settings, client: httpx.AsyncClient) -> tuple[list[CatalogItem], MirrorStats]:
    csv_text = await load_feed_text(settings, client)
    rows = parse_feed(csv_text)
    logger.info(f"Parsed {len(rows)} feed rows")

    overrides = load_overrides(settings.overrides_file)
    items = build_catalog(rows, settings, overrides)

    store = ImageStore(settings.images_dir, settings.public_dir)
    if settings.mirror_images:
        stats = await mirror_images(items, settings, client, store)
    else:
        logger.info("Image mirroring disabled")
        stats = MirrorStats(total=len(items), skipped=len(items), done=len(items))

    write_catalog(items, settings.output_file, store)
    logger.info(
        f"Wrote {settings.output_file} with {len(items)} in-stock items (overrides={len(overrides)})"
    )
    return items, stats


async def run(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> tuple[list[CatalogItem], MirrorStats]:
    """Full pipeline. Uses the given client (tests) or opens one for the run."""
    if client is not None:
        return await sync(settings, client)

    limits = httpx.Limits(max_connections=settings.concurrency * 2)
    async with httpx.AsyncClient(limits=limits) as owned:
        return await sync(settings, owned)


# ===== Report =====


def print_report(items: list[CatalogItem], stats: MirrorStats, wall_clock: float) -> None:
    """Print the end-of-run summary."""
    print(f"\n{'=' * 60}")
    print("SYNC REPORT")
    print(f"{'=' * 60}")

    print("\n── Catalog ──")
    print(f"  In-stock items:   {len(items)}")
    by_gender: dict[str, int] = {}
    for item in items:
        by_gender[item.gender.value] = by_gender.get(item.gender.value, 0) + 1
    for gender, count in sorted(by_gender.items(), key=lambda x: -x[1]):
        print(f"    {gender:<12} {count}")

    print("\n── Images ──")
    print(f"  Attempted:        {stats.attempted}")
    print(f"  Saved:            {stats.saved}")
    print(f"  Reused:           {stats.reused}")
    print(f"  Failed:           {stats.failed}")
    print(f"  No image column:  {stats.skipped}")
    with_image = sum(1 for i in items if i.image)
    if items:
        print(f"  Coverage:         {with_image}/{len(items)} ({with_image / len(items) * 100:.0f}%)")

    print(f"\n  Wall clock: {wall_clock:.2f}s")
    print(f"{'=' * 60}")


# ===== CLI =====


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Sync a vendor CSV feed into public/inventory.json.")
    ap.add_argument("--feed-url", help="Vendor feed URL (default: $VENDOR_FEED_URL)")
    ap.add_argument("--feed-file", type=Path, help="Local CSV used when no feed URL is set")
    ap.add_argument("--public-dir", type=Path, help="Output root for inventory.json and images/")
    ap.add_argument("--concurrency", type=int, help="Image download workers")
    ap.add_argument("--no-images", action="store_true", help="Skip image mirroring")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every fetch attempt")
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        settings = Settings.from_env(
            feed_url=args.feed_url,
            feed_file=args.feed_file,
            public_dir=args.public_dir,
            concurrency=args.concurrency,
            mirror_images=False if args.no_images else None,
        )
        t_wall_start = time.monotonic()
        items, stats = asyncio.run(run(settings))
        wall_clock = time.monotonic() - t_wall_start
    except FeedError as e:
        logger.error(f"Sync aborted: {e}")
        return 1
    except Exception as e:
        logger.error(f"Sync failed: {e}", exc_info=e)
        return 1

    print_report(items, stats, wall_clock)
    return 0


if __name__ == "__main__":
    sys.exit(main())
