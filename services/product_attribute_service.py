"""
Product attribute definitions with a short-lived in-memory cache.

Definitions change rarely (admin edits) but are read on every product
form and filter panel, so they are cached for a configurable TTL. The
admin workflow calls invalidate() after an edit.
"""

import time
from typing import Any, Callable, Optional
import structlog

from config import get_supabase_client, settings
from exceptions import DatabaseError
from models.product_attribute import ProductAttributeDefinition, ProductAttributeOption
from utils.number_utils import to_int_or_none

logger = structlog.get_logger(__name__)

ALL = "all"
FILTERABLE = "filterable"


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def normalize_options(rows: Any) -> list[ProductAttributeOption]:
    """Live options only (not archived, not merged), sorted by label."""
    options = [
        ProductAttributeOption(
            id=opt["id"],
            definition_id=opt.get("definition_id"),
            label=opt.get("label") or "",
            slug=opt.get("slug"),
            is_archived=bool(opt.get("is_archived")),
            merged_into_id=opt.get("merged_into_id"),
        )
        for opt in _as_list(rows)
    ]
    live = [o for o in options if not o.is_archived and o.merged_into_id is None]
    return sorted(live, key=lambda o: o.label.lower())


def normalize_definitions(rows: list[dict]) -> list[ProductAttributeDefinition]:
    """
    Clean raw definition rows.

    Booleans are coerced, list columns default to [], display width
    defaults to "full" and an unparseable sort order becomes 0. Results are
    sorted by sort order, then label.
    """
    defs = [
        ProductAttributeDefinition(
            id=row["id"],
            key=row.get("key") or "",
            label=row.get("label") or "",
            data_type=row.get("data_type") or "",
            is_required=bool(row.get("is_required")),
            is_filterable=bool(row.get("is_filterable")),
            enum_options=row.get("enum_options"),
            validation=row.get("validation"),
            applies_to_product_types=_as_list(row.get("applies_to_product_types")),
            applies_to_category_ids=_as_list(row.get("applies_to_category_ids")),
            applies_to_subcategory_ids=_as_list(row.get("applies_to_subcategory_ids")),
            display_width=row.get("display_width") or "full",
            options=normalize_options(row.get("options")),
            sort_order=to_int_or_none(row.get("sort_order")) or 0,
        )
        for row in rows or []
    ]
    return sorted(defs, key=lambda d: (d.sort_order, d.label))


class ProductAttributeCache:
    """
    TTL cache with one entry per definition set ("all", "filterable").

    The clock returns seconds and is injectable so tests can move time.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.ttl_seconds = (
            settings.product_attribute_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        )
        self.clock = clock or time.monotonic
        self._entries: dict[str, tuple[float, list[ProductAttributeDefinition]]] = {}

    def get(self, key: str) -> Optional[list[ProductAttributeDefinition]]:
        """Cached value, or None when missing or stale."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: list[ProductAttributeDefinition]) -> None:
        self._entries[key] = (self.clock(), value)

    def invalidate(self) -> None:
        """Drop every entry."""
        self._entries.clear()


class ProductAttributeService:
    """
    Read access to product attribute definitions.

    Loads from `product_attribute_definitions` with nested options and
    serves repeat reads from ProductAttributeCache.
    """

    def __init__(self, cache: Optional[ProductAttributeCache] = None):
        self.db = get_supabase_client()
        self.table = "product_attribute_definitions"
        self.cache = cache or ProductAttributeCache()

    def get_all(self) -> list[ProductAttributeDefinition]:
        """All definitions."""
        return self._get(ALL, filterable_only=False)

    def get_filterable(self) -> list[ProductAttributeDefinition]:
        """Definitions shown in product filters."""
        return self._get(FILTERABLE, filterable_only=True)

    def invalidate(self) -> None:
        logger.info("product_attribute_cache_invalidated")
        self.cache.invalidate()

    def _get(self, key: str, filterable_only: bool) -> list[ProductAttributeDefinition]:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        logger.debug("loading_product_attribute_definitions", key=key)
        try:
            query = self.db.table(self.table).select(
                "*, options:product_attribute_options(*)"
            )
            if filterable_only:
                query = query.eq("is_filterable", True)
            result = query.order("sort_order").execute()
        except Exception as e:
            logger.error("load_product_attributes_failed", key=key, error=str(e))
            raise DatabaseError("select", str(e))

        defs = normalize_definitions(result.data or [])
        self.cache.set(key, defs)
        logger.info("product_attributes_loaded", key=key, count=len(defs))
        return defs


# Singleton instance
_service: Optional[ProductAttributeService] = None


def get_product_attribute_service() -> ProductAttributeService:
    """Get or create ProductAttributeService instance."""
    global _service
    if _service is None:
        _service = ProductAttributeService()
    return _service
