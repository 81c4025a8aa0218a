# app/schemas/filters.py
import re
from typing import Any, Literal, get_args

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

SortBy = Literal["newest", "price-low", "price-high", "name", "popularity"]

SORT_OPTIONS: tuple[str, ...] = get_args(SortBy)

MultiSelectDimension = Literal["collections", "categories", "types", "colors", "subcategories"]

MULTI_SELECT_FIELDS: tuple[str, ...] = get_args(MultiSelectDimension)

# Non-negative decimal as typed by the user: "1500", "1500.50", ".5"
_PRICE_RE = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")


class FilterState(SQLModel):
    """
    Canonical catalog filter object.

    Every field is normalized on construction, so any FilterState is
    already in canonical form:
      - search: trimmed, empty => None
      - min_price / max_price: non-negative numeric strings kept verbatim,
        anything else => None (min > max is allowed)
      - multi-select lists: empty fragments dropped, duplicates removed,
        first-seen order kept
      - sort_by: unknown values => None
      - featured: True or None, never False
    """

    model_config = ConfigDict(extra="ignore")

    search: str | None = None
    min_price: str | None = None
    max_price: str | None = None
    collections: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    subcategories: list[str] = Field(default_factory=list)
    sort_by: SortBy | None = None
    featured: bool | None = None

    @field_validator("search", mode="before")
    @classmethod
    def normalize_search(cls, v: Any) -> str | None:
        if not isinstance(v, str):
            return None
        v = v.strip()
        return v or None

    @field_validator("min_price", "max_price", mode="before")
    @classmethod
    def normalize_price(cls, v: Any) -> str | None:
        if isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            v = str(v)
        if not isinstance(v, str):
            return None
        v = v.strip()
        return v if _PRICE_RE.match(v) else None

    @field_validator(*MULTI_SELECT_FIELDS, mode="before")
    @classmethod
    def normalize_values(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        try:
            items = list(v)
        except TypeError:
            return []

        out: list[str] = []
        for item in items:
            if not isinstance(item, str):
                continue
            item = item.strip()
            if item and item not in out:
                out.append(item)
        return out

    @field_validator("sort_by", mode="before")
    @classmethod
    def normalize_sort(cls, v: Any) -> str | None:
        return v if v in SORT_OPTIONS else None

    @field_validator("featured", mode="before")
    @classmethod
    def normalize_featured(cls, v: Any) -> bool | None:
        return True if v is True or v == "true" else None

    def is_empty(self) -> bool:
        return self == FilterState()


class FilterStateRead(SQLModel):
    """
    Response model describing a normalized filter set.
    """

    filters: FilterState
    query: str
    catalog_params: dict[str, str]
    active_count: int
