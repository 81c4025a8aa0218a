# app/services/filter_service.py
import logging
import warnings
from typing import Any, Callable, Mapping
from urllib.parse import parse_qsl, quote, urlencode

from pydantic import ValidationError

from app.core.stores import UrlStore
from app.schemas.filters import FilterState, MULTI_SELECT_FIELDS

logger = logging.getLogger(__name__)

# URL key -> FilterState field, in canonical output order
URL_KEYS: dict[str, str] = {
    "search": "search",
    "minPrice": "min_price",
    "maxPrice": "max_price",
    "collections": "collections",
    "categories": "categories",
    "types": "types",
    "colors": "colors",
    "subcategories": "subcategories",
    "sortBy": "sort_by",
    "featured": "featured",
}

# Older links use ?q= for the free-text search
SEARCH_ALIAS_KEY = "q"

RECOGNIZED_KEYS = frozenset(URL_KEYS) | {SEARCH_ALIAS_KEY}

# Catalog query service keys; the service reads the colour list as `color`
CATALOG_KEYS: dict[str, str] = {
    ("color" if key == "colors" else key): field for key, field in URL_KEYS.items()
}

FILTER_FIELDS = frozenset(URL_KEYS.values())

# camelCase wire names accepted by update()
WIRE_NAMES: dict[str, str] = {
    "minPrice": "min_price",
    "maxPrice": "max_price",
    "sortBy": "sort_by",
}

# Deprecated `selected*` names still sent by older filter sidebars
DEPRECATED_ALIASES: dict[str, str] = {
    alias: field
    for field in MULTI_SELECT_FIELDS
    for alias in (f"selected_{field}", f"selected{field.capitalize()}")
}


def _split_query(query: str) -> list[tuple[str, str]]:
    return parse_qsl(query.lstrip("?"), keep_blank_values=True)


def _encode(pairs: list[tuple[str, str]]) -> str:
    return urlencode(pairs, quote_via=quote, safe=",")


def _filter_pairs(state: FilterState, keys: Mapping[str, str]) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for key, field in keys.items():
        value = getattr(state, field)
        if not value:
            continue
        if isinstance(value, list):
            value = ",".join(value)
        elif value is True:
            value = "true"
        pairs.append((key, value))
    return pairs


def parse_filters(query: str | None) -> FilterState:
    """
    Build a FilterState from a URL query string.

    - First occurrence of a repeated key wins.
    - `q` overrides `search` when both are non-empty.
    - Unknown keys are ignored; malformed values become absent.
    Never raises.
    """
    raw: dict[str, str] = {}
    for key, value in _split_query(query or ""):
        raw.setdefault(key, value)

    data: dict[str, Any] = {
        field: raw[key] for key, field in URL_KEYS.items() if key in raw
    }
    if raw.get(SEARCH_ALIAS_KEY, "").strip():
        data["search"] = raw[SEARCH_ALIAS_KEY]

    try:
        return FilterState.model_validate(data)
    except ValidationError as e:
        logger.warning("Unparseable filter query %r: %s", query, e)
        return FilterState()


def serialize_filters(state: FilterState) -> str:
    """
    Encode a FilterState as a query string.

    Only non-empty fields are emitted, in URL_KEYS order. Prices are
    written exactly as typed.
    """
    return _encode(_filter_pairs(state, URL_KEYS))


def to_catalog_params(state: FilterState) -> dict[str, str]:
    """
    Flatten a FilterState into the catalog query service's parameters.
    """
    return dict(_filter_pairs(state, CATALOG_KEYS))


def active_filter_count(state: FilterState) -> int:
    """
    Number of filter dimensions in use. The price range counts once.
    """
    count = 0
    if state.search:
        count += 1
    if state.min_price or state.max_price:
        count += 1
    for field in MULTI_SELECT_FIELDS:
        if getattr(state, field):
            count += 1
    if state.featured:
        count += 1
    return count


def resolve_filter_aliases(changes: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map incoming update keys onto FilterState field names.

    Precedence when several names target one field:
    field name > camelCase wire name > deprecated `selected*` alias.
    Unknown keys are dropped.
    """
    resolved: dict[str, Any] = {}
    rank: dict[str, int] = {}

    for key, value in changes.items():
        if key in FILTER_FIELDS:
            field, level = key, 0
        elif key in WIRE_NAMES:
            field, level = WIRE_NAMES[key], 1
        elif key in DEPRECATED_ALIASES:
            field, level = DEPRECATED_ALIASES[key], 2
            warnings.warn(
                f"Filter key {key!r} is deprecated, use {field!r}",
                DeprecationWarning,
                stacklevel=3,
            )
        else:
            logger.warning("Ignoring unknown filter key %r", key)
            continue

        if field not in rank or level < rank[field]:
            resolved[field] = value
            rank[field] = level

    return resolved


class FilterStateManager:
    """
    Owns the active FilterState and keeps it in sync with the URL.

    Every mutation pushes the new query string to the UrlStore, keeping
    any query keys this manager does not own, and then notifies
    listeners (typically the catalog query refresh).
    """

    def __init__(
        self,
        url_store: UrlStore,
        on_change: Callable[[FilterState], None] | None = None,
    ):
        self.url_store = url_store
        self._listeners: list[Callable[[FilterState], None]] = []
        if on_change is not None:
            self._listeners.append(on_change)
        self._state = parse_filters(url_store.read())

    @property
    def state(self) -> FilterState:
        return self._state

    def subscribe(self, listener: Callable[[FilterState], None]) -> None:
        self._listeners.append(listener)

    def sync_from_url(self) -> FilterState:
        """
        Re-read the URL after an external navigation (back/forward).
        """
        self._state = parse_filters(self.url_store.read())
        return self._state

    def update(self, changes: Mapping[str, Any] | None = None, **kwargs: Any) -> FilterState:
        """
        Shallow-merge `changes` into the current state.

        Supplied fields replace the current value wholesale; None clears
        a field.
        """
        partial = resolve_filter_aliases({**(changes or {}), **kwargs})
        merged = {**self._state.model_dump(), **partial}
        return self._commit(FilterState.model_validate(merged))

    def toggle(self, dimension: str, value: str) -> FilterState:
        if dimension not in MULTI_SELECT_FIELDS:
            raise ValueError(f"Unknown filter dimension: {dimension}")

        value = value.strip()
        current = list(getattr(self._state, dimension))
        if value in current:
            current.remove(value)
        else:
            current.append(value)
        return self.update({dimension: current})

    def clear(self) -> FilterState:
        return self._commit(FilterState())

    def active_count(self) -> int:
        return active_filter_count(self._state)

    def query_string(self) -> str:
        return serialize_filters(self._state)

    def catalog_params(self) -> dict[str, str]:
        return to_catalog_params(self._state)

    def _commit(self, state: FilterState) -> FilterState:
        self._state = state

        foreign = [
            (key, value)
            for key, value in _split_query(self.url_store.read())
            if key not in RECOGNIZED_KEYS
        ]
        self.url_store.push(_encode(_filter_pairs(state, URL_KEYS) + foreign))

        for listener in self._listeners:
            listener(state)
        return state
