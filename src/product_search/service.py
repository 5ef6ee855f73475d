"""
Product Search Service: the entry point of the search layer.

Resolves the collection, dispatches a request to the engine for its mode,
and exposes single-product lookup and catalog analytics over the same
store.
"""

import time
import uuid
from typing import Optional

from config.constants import DEFAULT_ANALYTICS_CONFIG, AnalyticsConfig
from config.settings import Settings, get_settings
from core.logging import bound_context, get_logger
from product_search import query_builder as qb
from product_search.assembler import row_to_product
from product_search.catalog import CatalogStore
from product_search.collection import CatalogCollection, resolve_collection
from product_search.embeddings import EmbeddingProvider, HashEmbeddingProvider
from product_search.errors import ProductNotFoundError, SearchError
from product_search.facets import FacetAggregator
from product_search.fanout import run_parallel
from product_search.hybrid import HybridFusionEngine
from product_search.lexical import LexicalSearchAdapter
from product_search.models import (
    AnalyticsData,
    BrandStat,
    CategoryStat,
    PriceBucket,
    Product,
    RatingBucket,
    SearchFilters,
    SearchMode,
    SearchRequest,
    SearchResults,
)
from product_search.vector import VectorSearchAdapter

logger = get_logger(__name__)


class ProductSearchService:
    """
    Search, lookup and analytics over one catalog store.

    Args:
        store: Catalog store to query.
        settings: Settings (defaults to get_settings()).
        embedder: Query embedding provider (defaults to the hash placeholder
                  sized to settings.embedding_dimension).
        analytics_config: Histogram width and brand limit for get_analytics().
    """

    def __init__(
        self,
        store: CatalogStore,
        settings: Optional[Settings] = None,
        embedder: Optional[EmbeddingProvider] = None,
        analytics_config: AnalyticsConfig = DEFAULT_ANALYTICS_CONFIG,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._embedder = embedder or HashEmbeddingProvider(self._settings.embedding_dimension)
        self._analytics_config = analytics_config

        timeout = self._settings.search_timeout_seconds
        max_workers = self._settings.search_max_workers
        facets = FacetAggregator(store)

        self._engines = {
            SearchMode.LEXICAL: LexicalSearchAdapter(
                store, facets=facets, timeout=timeout, max_workers=max_workers,
            ),
            SearchMode.VECTOR: VectorSearchAdapter(
                store, embedder=self._embedder, timeout=timeout, max_workers=max_workers,
            ),
            SearchMode.HYBRID: HybridFusionEngine(
                store, embedder=self._embedder, facets=facets,
                timeout=timeout, max_workers=max_workers,
            ),
        }

    @property
    def store(self) -> CatalogStore:
        return self._store

    def _collection(self, name: Optional[str]) -> CatalogCollection:
        return resolve_collection(
            name or self._settings.catalog_schema,
            self._settings.allowed_catalog_schemas,
        )

    # =========================================================================
    # Search
    # =========================================================================

    def search(
        self,
        query: str,
        mode: SearchMode = SearchMode.HYBRID,
        filters: Optional[SearchFilters] = None,
        collection: Optional[str] = None,
    ) -> SearchResults:
        """
        Execute a search.

        Args:
            query: Free text. Empty or "*" matches every product.
            mode: Ranking strategy.
            filters: Filters, sort and pagination (defaults to none, which
                     also means page_size 0 and therefore no rows).
            collection: Catalog collection (defaults to settings.catalog_schema).

        Returns:
            SearchResults for the requested page.

        Raises:
            SearchError: On any failure. Typed subclasses (timeout, catalog,
                invalid collection) pass through; anything else is wrapped.
        """
        filters = filters or SearchFilters()
        request_mode = getattr(mode, "value", mode)

        with bound_context(request_id=uuid.uuid4().hex[:12], mode=request_mode):
            t0 = time.time()
            logger.info(
                "Search request",
                query=query,
                collection=collection or self._settings.catalog_schema,
                page=filters.page,
                page_size=filters.page_size,
                sort_by=filters.sort_by.value,
            )

            try:
                mode = SearchMode(mode)
                target = self._collection(collection)
                results = self._engines[mode].search(query, filters, target)

                logger.info(
                    "Search completed",
                    result_count=len(results.results),
                    total_count=results.total_count,
                    count_is_exact=results.count_is_exact,
                    elapsed_ms=int((time.time() - t0) * 1000),
                )
                return results
            except SearchError as e:
                logger.error("Search failed", error=str(e), error_type=type(e).__name__)
                raise
            except Exception as e:
                logger.error("Search failed", error=str(e), error_type=type(e).__name__)
                raise SearchError(f"Search failed: {e}") from e

    def execute(self, request: SearchRequest) -> SearchResults:
        """Execute a SearchRequest."""
        return self.search(
            request.query,
            mode=request.mode,
            filters=request.filters,
            collection=request.collection,
        )

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_product(self, product_id: int, collection: Optional[str] = None) -> Product:
        """
        Fetch a single product by id.

        Raises:
            ProductNotFoundError: If no product has this id.
            CatalogError: If the catalog cannot be queried.
        """
        target = self._collection(collection)
        q = qb.product_query(target, product_id)
        row = self._store.fetch_one(q.name, q.sql, q.params)
        if row is None:
            raise ProductNotFoundError(product_id, str(target))
        return row_to_product(row)

    # =========================================================================
    # Analytics
    # =========================================================================

    def get_analytics(self, collection: Optional[str] = None) -> AnalyticsData:
        """
        Catalog-wide statistics for dashboards.

        Returns:
            AnalyticsData with the product total, per-category counts and
            average prices, the floor(rating) distribution, a price
            histogram and the most common brands.
        """
        target = self._collection(collection)
        config = self._analytics_config

        queries = {
            "total": qb.total_products_query(target),
            "categories": qb.category_stats_query(target),
            "ratings": qb.rating_distribution_query(target),
            "prices": qb.price_histogram_query(
                target, "", config.PRICE_BUCKET_WIDTH, name="analytics_price_histogram",
            ),
            "brands": qb.top_brands_query(target, config.TOP_BRANDS),
        }
        tasks = {
            key: (lambda q=q: self._store.fetch_all(q.name, q.sql, q.params))
            for key, q in queries.items()
        }
        results = run_parallel(
            tasks,
            self._settings.search_timeout_seconds,
            self._settings.search_max_workers,
        )

        total_rows = results["total"]
        total = int(total_rows[0]["count"]) if total_rows else 0

        analytics = AnalyticsData(
            total_products=total,
            category_stats=[
                CategoryStat(
                    category=str(r["category"]),
                    count=int(r["count"]),
                    avg_price=float(r["avg_price"] or 0.0),
                )
                for r in results["categories"]
            ],
            rating_distribution=[
                RatingBucket(rating=float(r["rating"]), count=int(r["count"]))
                for r in results["ratings"]
                if r["rating"] is not None
            ],
            price_histogram=[
                PriceBucket(min=float(r["min"]), max=float(r["max"]), count=int(r["count"]))
                for r in results["prices"]
            ],
            top_brands=[
                BrandStat(brand=str(r["brand"]), count=int(r["count"]))
                for r in results["brands"]
                if r["brand"] is not None
            ],
        )

        logger.info(
            "Analytics computed",
            collection=str(target),
            total_products=total,
            categories=len(analytics.category_stats),
        )
        return analytics


def create_search_service(
    settings: Optional[Settings] = None,
    embedder: Optional[EmbeddingProvider] = None,
) -> ProductSearchService:
    """
    Build a service with its own connection pool.

    The caller owns the returned service; close its pool with
    ``service.store.close()`` on shutdown.
    """
    from config.database import create_connection_pool

    settings = settings or get_settings()
    store = CatalogStore(create_connection_pool(settings))
    return ProductSearchService(store, settings=settings, embedder=embedder)
