import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from bs4 import BeautifulSoup
from fastapi.concurrency import run_in_threadpool

from .models import CatalogEntry, CatalogSnapshot, CatalogVariant

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 300.0
FETCH_LIMIT = 50
SEARCH_RESULT_LIMIT = 5
SEARCH_DESCRIPTION_CHARS = 150


class ProductFetcher(Protocol):
    def fetch_products(self, limit: int) -> List[Dict[str, Any]]: ...


def _clean_html(raw: str) -> str:
    if not raw:
        return ""
    if "<" not in raw:
        return raw.strip()
    text = BeautifulSoup(raw, "html.parser").get_text(separator="\n").strip()
    return re.sub(r"\n\s*\n", "\n", text)


def _price_display(price: Optional[Dict[str, Any]]) -> str:
    if not price:
        return "Not specified"
    try:
        amount = float(price.get("amount") or 0)
    except (TypeError, ValueError):
        return "Not specified"
    return f"{price.get('currencyCode', '')} {amount:.2f}".strip()


def normalize_product(node: Dict[str, Any], storefront_url: str) -> CatalogEntry:
    """Maps a raw Storefront product node to the compact CatalogEntry shape."""
    handle = node.get("handle") or "unknown"
    min_price = (node.get("priceRange") or {}).get("minVariantPrice")
    variants = [
        CatalogVariant(
            id=str(v["node"].get("id", "")),
            title=str(v["node"].get("title") or ""),
            price_display=_price_display(v["node"].get("price")),
            available=bool(v["node"].get("availableForSale")),
        )
        for v in (node.get("variants") or {}).get("edges", [])
        if v.get("node")
    ]
    return CatalogEntry(
        id=str(node.get("id", "")),
        title=str(node.get("title") or ""),
        description=_clean_html(node.get("description") or ""),
        price_display=_price_display(min_price),
        available=bool(node.get("availableForSale")),
        tags=list(node.get("tags") or []),
        product_type=str(node.get("productType") or ""),
        handle=handle,
        url=f"{storefront_url.rstrip('/')}/products/{handle}",
        variants=variants,
    )


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class ProductCatalog:
    """
    Live product catalog with a fixed TTL.

    A failed refresh never discards the last good snapshot: stale entries are
    served until a fetch succeeds again. Only a catalog that has never been
    fetched successfully comes back empty.
    """

    def __init__(
        self,
        fetcher: ProductFetcher,
        storefront_url: str,
        ttl: float = CACHE_TTL_SECONDS,
        fetch_limit: int = FETCH_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher
        self.storefront_url = storefront_url
        self.ttl = ttl
        self.fetch_limit = fetch_limit
        self._clock = clock
        self._snapshot: Optional[CatalogSnapshot] = None
        self._refresh_lock = asyncio.Lock()
        self._refresh_count = 0

    def _is_fresh(self) -> bool:
        return self._snapshot is not None and (self._clock() - self._snapshot.fetched_at) < self.ttl

    async def get_all(self) -> List[CatalogEntry]:
        if self._is_fresh():
            return self._snapshot.entries

        seen = self._refresh_count
        async with self._refresh_lock:
            # A refresh finished while we waited, successful or not
            if self._refresh_count != seen or self._is_fresh():
                return self._snapshot.entries if self._snapshot else []
            try:
                return await self._refresh()
            finally:
                self._refresh_count += 1

    async def _refresh(self) -> List[CatalogEntry]:
        try:
            nodes = await run_in_threadpool(self.fetcher.fetch_products, self.fetch_limit)
            entries = [normalize_product(node, self.storefront_url) for node in nodes]
        except Exception as e:
            if self._snapshot is not None:
                logger.warning("Catalog refresh failed, serving stale snapshot (%d products): %s",
                               len(self._snapshot.entries), e)
                return self._snapshot.entries
            logger.error("Catalog refresh failed and no snapshot is cached: %s", e)
            return []

        self._snapshot = CatalogSnapshot(
            entries=entries,
            fetched_at=self._clock(),
            fetched_at_wall=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Catalog refreshed with %d products", len(entries))
        return entries

    async def search(self, keywords: str) -> str:
        products = await self.get_all()
        if not products:
            return "No products available at the moment."

        tokens = keywords.lower().split()
        matches = [p for p in products if any(t in p.searchable_text() for t in tokens)]
        if not matches:
            return (f'No products found for: "{keywords}". We have {len(products)} products available. '
                    "Would you like to see the full catalog?")

        blocks = []
        for p in matches[:SEARCH_RESULT_LIMIT]:
            variants = ""
            if len(p.variants) > 1:
                variants = "\n   Variants: " + ", ".join(f"{v.title} - {v.price_display}" for v in p.variants)
            blocks.append(
                f"📦 {p.title}\n"
                f"   Price: {p.price_display}\n"
                f"   {'✅ Available' if p.available else '❌ Unavailable'}\n"
                f"   🔗 Link: {p.url}\n"
                f"   {_truncate(p.description, SEARCH_DESCRIPTION_CHARS)}{variants}\n"
                f"   Tags: {', '.join(p.tags)}"
            )

        result = "\n\n---\n\n".join(blocks)
        if len(matches) > SEARCH_RESULT_LIMIT:
            result += (f"\n\n💡 Found {len(matches)} products, showing the first {SEARCH_RESULT_LIMIT}. "
                       f"{len(matches) - SEARCH_RESULT_LIMIT} more available.")
        return result

    async def get_by_id(self, product_id: str) -> Optional[CatalogEntry]:
        return next((p for p in await self.get_all() if p.id == product_id), None)

    async def get_by_tag(self, tag: str) -> List[CatalogEntry]:
        needle = tag.lower()
        return [p for p in await self.get_all() if any(needle in t.lower() for t in p.tags)]

    def clear(self) -> None:
        self._snapshot = None
        logger.info("Products cache cleared")

    def cache_info(self) -> Dict[str, Any]:
        return {
            "products_count": len(self._snapshot.entries) if self._snapshot else 0,
            "last_update": self._snapshot.fetched_at_wall if self._snapshot else None,
            "is_stale": not self._is_fresh(),
        }
