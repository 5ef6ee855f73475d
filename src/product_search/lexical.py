"""
Lexical Search Adapter: BM25 relevance via ParadeDB pg_search.

Row query, exact count query and facet aggregates are issued together.
The count mirrors every predicate of the row query; facets use the text
predicate alone.
"""

import time
from typing import Optional

from core.logging import get_logger
from product_search import query_builder as qb
from product_search.assembler import build_results, row_to_search_result
from product_search.catalog import CatalogStore
from product_search.collection import CatalogCollection
from product_search.facets import FacetAggregator
from product_search.fanout import run_parallel
from product_search.models import SearchFilters, SearchResults

logger = get_logger(__name__)


class LexicalSearchAdapter:
    """
    Keyword search over name, description and brand.

    total_count is the exact number of products matching the text and the
    filters (count_is_exact=True).

    Args:
        store: Catalog store to query.
        facets: Facet aggregator (defaults to one over the same store).
        timeout: Deadline in seconds for all sub-queries of a request.
        max_workers: Maximum concurrent sub-queries.
    """

    def __init__(
        self,
        store: CatalogStore,
        facets: Optional[FacetAggregator] = None,
        timeout: float = 10.0,
        max_workers: int = 6,
    ):
        self._store = store
        self._facets = facets or FacetAggregator(store)
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

        rows_q = qb.lexical_rows_query(collection, text, filters)
        count_q = qb.lexical_count_query(collection, text, filters)

        tasks = {
            "rows": lambda: self._store.fetch_all(rows_q.name, rows_q.sql, rows_q.params),
            "count": lambda: self._store.fetch_count(count_q.name, count_q.sql, count_q.params),
        }
        tasks.update(self._facets.tasks(text, collection))

        results = run_parallel(tasks, self._timeout, self._max_workers)

        items = [row_to_search_result(row) for row in results["rows"]]
        response = build_results(
            items,
            total_count=results["count"],
            facets=self._facets.assemble(results),
            count_is_exact=True,
        )

        logger.info(
            "Lexical search completed",
            query=text,
            collection=str(collection),
            result_count=len(items),
            total_count=response.total_count,
            elapsed_ms=int((time.time() - t0) * 1000),
        )
        return response
