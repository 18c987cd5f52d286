"""
Runtime configuration for the feed sync.

Settings are built once (usually from the environment plus an optional .env
file) and passed explicitly into the pipeline entry point.
"""

import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

BASE_DIR = Path(__file__).parent


class PricingPolicy(str, Enum):
    NONE = "none"  # no price key in the output
    MARKUP = "markup"  # wholesale * price_markup, rounded to cents


class Settings(BaseModel):
    feed_url: str | None = None
    feed_file: Path = BASE_DIR / "data" / "catalog.csv"
    overrides_file: Path = BASE_DIR / "data" / "gender-overrides.json"
    public_dir: Path = BASE_DIR / "public"
    store_url: str | None = None

    concurrency: int = Field(default=8, ge=1)
    image_timeout: float = Field(default=20.0, gt=0)
    progress_every: int = Field(default=25, ge=1)
    mirror_images: bool = True

    pricing_policy: PricingPolicy = PricingPolicy.NONE
    price_markup: float = Field(default=1.35, gt=0)
    safety_buffer: int = Field(default=0, ge=0)

    @field_validator("feed_url", "store_url")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    @property
    def output_file(self) -> Path:
        return self.public_dir / "inventory.json"

    @property
    def images_dir(self) -> Path:
        return self.public_dir / "images"

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Build settings from the process environment (after loading .env).

        Keyword overrides win over the environment; ``None`` values are ignored
        so CLI flags that were not given fall through.
        """
        load_dotenv()

        env_map = {
            "feed_url": "VENDOR_FEED_URL",
            "feed_file": "FEED_FILE",
            "overrides_file": "OVERRIDES_FILE",
            "public_dir": "PUBLIC_DIR",
            "store_url": "STORE_URL",
            "concurrency": "IMAGE_CONCURRENCY",
            "image_timeout": "IMAGE_TIMEOUT",
            "progress_every": "PROGRESS_EVERY",
            "mirror_images": "MIRROR_IMAGES",
            "pricing_policy": "PRICING_POLICY",
            "price_markup": "PRICE_MARKUP",
            "safety_buffer": "STOCK_SAFETY_BUFFER",
        }
        values: dict = {}
        for field_name, env_name in env_map.items():
            raw = os.environ.get(env_name)
            if raw is not None and raw != "":
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
