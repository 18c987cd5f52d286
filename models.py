from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Gender(str, Enum):
    MENS = "MENS"
    WOMENS = "WOMENS"
    UNISEX = "UNISEX"
    CHILDRENS = "CHILDRENS"


class CatalogItem(BaseModel):
    """One normalized feed row, as persisted to inventory.json."""

    model_config = ConfigDict(populate_by_name=True)

    sku: str = ""
    name: str = ""
    brand: str = ""
    category: str = ""
    gender: Gender = Gender.UNISEX
    qty: int = 0
    in_stock: bool = Field(default=False, alias="inStock")
    image: str = ""  # relative local path (images/<file>) or ""
    price: float | None = None  # only set when a pricing policy is configured

    # Candidate remote URL picked from the feed row. Never serialized.
    source_image: str = Field(default="", exclude=True)

    @field_validator("sku", "name", "brand", "category", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("qty")
    @classmethod
    def clamp_qty(cls, v: int) -> int:
        return max(v, 0)

    @model_validator(mode="after")
    def derive_in_stock(self) -> "CatalogItem":
        self.in_stock = self.qty > 0
        return self

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GenderOverride(BaseModel):
    """A forced gender for one SKU, or for every item whose name matches a pattern."""

    sku: str | None = None
    name_regex: str | None = None
    gender: Gender

    @field_validator("sku", mode="before")
    @classmethod
    def sku_as_text(cls, v: object) -> object:
        # Numeric SKUs are common in hand-edited override files
        return str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v

    @field_validator("gender", mode="before")
    @classmethod
    def upper_gender(cls, v: object) -> object:
        return v.strip().upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def require_one_matcher(self) -> "GenderOverride":
        has_sku = bool(self.sku and str(self.sku).strip())
        has_regex = bool(self.name_regex)
        if not has_sku and not has_regex:
            raise ValueError("override needs either 'sku' or 'name_regex'")
        return self


class HeaderProfile(BaseModel):
    """A named bundle of outbound request headers used to fetch one image."""

    model_config = ConfigDict(frozen=True)

    name: str
    headers: dict[str, str]
