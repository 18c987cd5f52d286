"""Local image store: deterministic filenames, write-once, reuse on re-run."""

import contextlib
import hashlib
import logging
import os
import re
import tempfile
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from fetcher import MIN_IMAGE_BYTES

logger = logging.getLogger(__name__)

KNOWN_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".avif")

_UNSAFE_CHARS = re.compile(r"[^\w.\-]")


def filename_base(sku: str, url: str) -> str:
    """Sanitized SKU, or a hash of the URL when the item has no SKU."""
    sku = sku.strip()
    if sku:
        return _UNSAFE_CHARS.sub("_", sku)
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:24]


def extension_for(url: str, content_type: str | None = None) -> str:
    """Image extension from the URL path when present, else one inferred from the content type."""
    try:
        suffix = PurePosixPath(urlsplit(url).path).suffix.lower()
    except ValueError:  # malformed host, e.g. an unclosed IPv6 bracket
        suffix = ""
    if suffix in KNOWN_EXTENSIONS:
        return suffix

    content_type = (content_type or "").lower()
    if "webp" in content_type:
        return ".webp"
    if "png" in content_type:
        return ".png"
    if "gif" in content_type:
        return ".gif"
    return ".jpg"


def filename_for(sku: str, url: str, content_type: str | None = None) -> str:
    return filename_base(sku, url) + extension_for(url, content_type)


class ImageStore:
    """Mirrored images under ``images_dir``, addressed relative to ``asset_root``.

    Filenames are a pure function of (sku, url), so concurrent workers never
    share a path unless they are handling the same item.
    """

    def __init__(self, images_dir: str | Path, asset_root: str | Path | None = None):
        self.images_dir = Path(images_dir)
        self.asset_root = Path(asset_root) if asset_root is not None else self.images_dir.parent

    def relative_path(self, filename: str) -> str:
        return (self.images_dir / filename).relative_to(self.asset_root).as_posix()

    def _usable(self, path: Path) -> bool:
        try:
            return path.is_file() and path.stat().st_size >= MIN_IMAGE_BYTES
        except OSError:
            return False

    def find_existing(self, sku: str, url: str) -> str | None:
        """Relative path of an already-mirrored image for this item, if usable.

        When the URL has no extension the saved file took its extension from
        the response content type, so every known extension is checked.
        """
        base = filename_base(sku, url)
        candidates = [filename_for(sku, url)]
        candidates.extend(base + ext for ext in KNOWN_EXTENSIONS if base + ext not in candidates)

        for name in candidates:
            if self._usable(self.images_dir / name):
                return self.relative_path(name)
        return None

    def exists(self, relative: str) -> bool:
        """Whether a relative path handed out by this store still points at a usable file."""
        return bool(relative) and self._usable(self.asset_root / relative)

    def save(self, sku: str, url: str, content: bytes, content_type: str | None = None) -> str:
        """Write image bytes atomically and return the relative path."""
        self.images_dir.mkdir(parents=True, exist_ok=True)
        filename = filename_for(sku, url, content_type)
        target = self.images_dir / filename

        fd, tmp_name = tempfile.mkstemp(dir=self.images_dir, prefix=".tmp-", suffix=target.suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_name, target)
        except OSError:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise

        logger.debug(f"  Saved {len(content)} bytes -> {target}")
        return self.relative_path(filename)
