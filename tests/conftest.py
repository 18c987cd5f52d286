from pathlib import Path

import httpx
import pytest

from config import Settings

# A tiny but valid PNG header padded past the minimum image size
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 600
WEBP_BYTES = b"RIFF\x00\x00\x00\x00WEBPVP8 " + b"\x00" * 600


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        feed_file=tmp_path / "data" / "catalog.csv",
        overrides_file=tmp_path / "data" / "gender-overrides.json",
        public_dir=tmp_path / "public",
        concurrency=4,
        image_timeout=2.0,
    )


def image_response(content: bytes = PNG_BYTES, content_type: str = "image/png") -> httpx.Response:
    return httpx.Response(200, content=content, headers={"content-type": content_type})


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
