"""
Vector Search Adapter: cosine nearest neighbours via pgvector.

Filters are the same as lexical search; there is no text predicate and
no facets. Rows are ordered purely by distance, so rows with exactly
equal distance may come back in a different order between calls.
"""

import time
from typing import Optional

from core.logging import get_logger
from product_search import query_builder as qb
from product_search.assembler import build_results, row_to_search_result
from product_search.catalog import CatalogStore
from product_search.collection import CatalogCollection
from product_search.embeddings import EmbeddingProvider, HashEmbeddingProvider, embed_query
from product_search.fanout import run_parallel
from product_search.models import SearchFilters, SearchResults

logger = get_logger(__name__)


class VectorSearchAdapter:
    """
    Semantic similarity search over product description embeddings.

    total_count is the exact number of products matching the filters,
    counted by a separate query (count_is_exact=True).

    Args:
        store: Catalog store to query.
        embedder: Query embedding provider.
        timeout: Deadline in seconds for all sub-queries of a request.
        max_workers: Maximum concurrent sub-queries.
    """

    def __init__(
        self,
        store: CatalogStore,
        embedder: Optional[EmbeddingProvider] = None,
        timeout: float = 10.0,
        max_workers: int = 6,
    ):
        self._store = store
        self._embedder = embedder or HashEmbeddingProvider()
        self._timeout = timeout
        self._max_workers = max_workers

    def search(
        self,
        query: str,
        filters: SearchFilters,
        collection: CatalogCollection,
    ) -> SearchResults:
        t0 = time.time()
        text = qb.normalize_query(query)
        embedding = embed_query(self._embedder, text)

        rows_q = qb.vector_rows_query(collection, embedding, filters)
        count_q = qb.vector_count_query(collection, filters)

        results = run_parallel(
            {
                "rows": lambda: self._store.fetch_all(rows_q.name, rows_q.sql, rows_q.params),
                "count": lambda: self._store.fetch_count(count_q.name, count_q.sql, count_q.params),
            },
            self._timeout,
            self._max_workers,
        )

        items = [row_to_search_result(row) for row in results["rows"]]
        response = build_results(items, total_count=results["count"], count_is_exact=True)

        logger.info(
            "Vector search completed",
            query=text,
            collection=str(collection),
            result_count=len(items),
            total_count=response.total_count,
            elapsed_ms=int((time.time() - t0) * 1000),
        )
        return response
