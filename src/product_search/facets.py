"""
Facet Aggregator.

Category counts, top brand counts, a fixed-width price histogram and
price/rating averages, all scoped to the free-text predicate only. The
numeric and categorical filters are deliberately not applied, so facets
show what the current query would return with filters cleared.
"""

from typing import Any, Callable, Dict, List, Optional

from config.constants import DEFAULT_FACET_CONFIG, FacetConfig
from product_search import query_builder as qb
from product_search.catalog import CatalogStore, Row
from product_search.collection import CatalogCollection
from product_search.fanout import run_parallel
from product_search.models import FacetCount, Facets, PriceBucket

_TASK_PREFIX = "facets."


class FacetAggregator:
    """Computes Facets for a normalized text query."""

    def __init__(self, store: CatalogStore, config: FacetConfig = DEFAULT_FACET_CONFIG):
        self._store = store
        self._config = config

    def tasks(self, query: str, collection: CatalogCollection) -> Dict[str, Callable[[], Any]]:
        """
        Independent aggregate reads, ready to be merged into a larger fan-out.

        Args:
            query: Already-normalized query text ("" = match all).
            collection: Target collection.
        """
        queries = {
            "categories": qb.category_facets_query(collection, query),
            "brands": qb.brand_facets_query(collection, query, self._config.BRAND_LIMIT),
            "prices": qb.price_histogram_query(collection, query, self._config.PRICE_BUCKET_WIDTH),
            "summary": qb.summary_query(collection, query),
        }
        return {
            _TASK_PREFIX + key: _fetch(self._store, q)
            for key, q in queries.items()
        }

    @staticmethod
    def assemble(results: Dict[str, Any]) -> Facets:
        """Build Facets from the results of tasks() (keyed by task name)."""
        summary = _first(results[_TASK_PREFIX + "summary"]) or {}
        return Facets(
            category_facets=_facet_counts(results[_TASK_PREFIX + "categories"]),
            brand_facets=_facet_counts(results[_TASK_PREFIX + "brands"]),
            price_histogram=[
                PriceBucket(min=float(r["min"]), max=float(r["max"]), count=int(r["count"]))
                for r in results[_TASK_PREFIX + "prices"]
            ],
            avg_price=float(summary.get("avg_price") or 0.0),
            avg_rating=float(summary.get("avg_rating") or 0.0),
        )

    def aggregate(
        self,
        query: str,
        collection: CatalogCollection,
        timeout: float = 10.0,
        max_workers: int = 4,
    ) -> Facets:
        """Compute facets on their own (outside a search fan-out)."""
        results = run_parallel(self.tasks(query, collection), timeout, max_workers)
        return self.assemble(results)


def _fetch(store: CatalogStore, query: qb.CatalogQuery) -> Callable[[], List[Row]]:
    return lambda: store.fetch_all(query.name, query.sql, query.params)


def _first(rows: List[Row]) -> Optional[Row]:
    return rows[0] if rows else None


def _facet_counts(rows: List[Row]) -> List[FacetCount]:
    return [
        FacetCount(value=str(r["value"]), count=int(r["count"]))
        for r in rows
        if r.get("value") is not None
    ]
