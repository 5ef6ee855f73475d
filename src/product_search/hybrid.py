"""
Hybrid Fusion Engine: lexical + vector candidates blended into one ranking.

Pipeline:
1. Retrieve lexical top-N (text predicate only) and vector top-N (no
   predicate), concurrently with the facet aggregates
2. Max-normalize lexical scores into [0, 1] within the window
3. Full outer join by product id (missing score = 0)
4. combined = 0.3 * lexical + 0.7 * vector
5. Apply the request filters to the fused candidates
6. Sort by combined score (id breaks ties) and paginate

Both retrievals ignore the filters so they stay cheap and bounded; the
filters are honoured afterwards on the fused set. total_count is the
number of fused candidates that pass the filters, which can be smaller
than the true matching population, so responses carry
count_is_exact=False.
"""

import time
from typing import Any, Dict, List, Optional

from config.constants import DEFAULT_HYBRID_CONFIG, HybridConfig
from core.logging import get_logger
from product_search import query_builder as qb
from product_search.assembler import build_results, row_to_search_result
from product_search.catalog import CatalogStore, Row
from product_search.collection import CatalogCollection
from product_search.embeddings import EmbeddingProvider, HashEmbeddingProvider, embed_query
from product_search.facets import FacetAggregator
from product_search.fanout import run_parallel
from product_search.models import SearchFilters, SearchResults

logger = get_logger(__name__)


def fuse_candidates(
    lexical_rows: List[Row],
    vector_rows: List[Row],
    config: HybridConfig = DEFAULT_HYBRID_CONFIG,
) -> List[Row]:
    """
    Merge two candidate lists by product id and score them.

    Args:
        lexical_rows: Rows carrying a raw ``bm25_score``.
        vector_rows: Rows carrying a ``vector_score`` in [0, 1].
        config: Fusion weights.

    Returns:
        Fused rows with bm25_score (normalized), vector_score and
        combined_score, sorted by combined score descending then id.
    """
    max_bm25 = max((float(r.get("bm25_score") or 0.0) for r in lexical_rows), default=0.0)

    fused: Dict[Any, Row] = {}

    for row in lexical_rows:
        raw = float(row.get("bm25_score") or 0.0)
        fused[row["id"]] = {
            **row,
            "bm25_score": raw / max_bm25 if max_bm25 > 0 else 0.0,
            "vector_score": 0.0,
        }

    for row in vector_rows:
        score = float(row.get("vector_score") or 0.0)
        pid = row["id"]
        if pid in fused:
            fused[pid]["vector_score"] = score
        else:
            fused[pid] = {**row, "bm25_score": 0.0, "vector_score": score}

    for item in fused.values():
        item["combined_score"] = (
            config.LEXICAL_WEIGHT * item["bm25_score"]
            + config.VECTOR_WEIGHT * item["vector_score"]
        )

    return sorted(fused.values(), key=lambda r: (-r["combined_score"], r["id"]))


def matches_filters(row: Row, filters: SearchFilters) -> bool:
    """Same inclusive filter semantics as the SQL filter predicate."""
    price = float(row["price"])
    if filters.price_min is not None and price < filters.price_min:
        return False
    if filters.price_max is not None and price > filters.price_max:
        return False
    if filters.categories and row["category"] not in filters.categories:
        return False
    if filters.min_rating is not None and float(row["rating"]) < filters.min_rating:
        return False
    if filters.in_stock_only and not row["in_stock"]:
        return False
    return True


class HybridFusionEngine:
    """
    Weighted fusion of lexical and vector rankings.

    total_count is the number of fused candidates passing the filters. It
    never looks beyond the two candidate windows, so it can undercount the
    true matching population (count_is_exact=False).

    Args:
        store: Catalog store to query.
        embedder: Query embedding provider.
        facets: Facet aggregator (defaults to one over the same store).
        config: Fusion weights and candidate window.
        timeout: Deadline in seconds for all sub-queries of a request.
        max_workers: Maximum concurrent sub-queries.
    """

    def __init__(
        self,
        store: CatalogStore,
        embedder: Optional[EmbeddingProvider] = None,
        facets: Optional[FacetAggregator] = None,
        config: HybridConfig = DEFAULT_HYBRID_CONFIG,
        timeout: float = 10.0,
        max_workers: int = 6,
    ):
        self._store = store
        self._embedder = embedder or HashEmbeddingProvider()
        self._facets = facets or FacetAggregator(store)
        self._config = config
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
        window = self._config.CANDIDATE_WINDOW

        lexical_q = qb.lexical_candidates_query(collection, text, window)
        vector_q = qb.vector_candidates_query(collection, embedding, window)

        tasks = {
            "lexical": lambda: self._store.fetch_all(lexical_q.name, lexical_q.sql, lexical_q.params),
            "vector": lambda: self._store.fetch_all(vector_q.name, vector_q.sql, vector_q.params),
        }
        tasks.update(self._facets.tasks(text, collection))

        results = run_parallel(tasks, self._timeout, self._max_workers)

        fused = fuse_candidates(results["lexical"], results["vector"], self._config)
        filtered = [row for row in fused if matches_filters(row, filters)]
        page = filtered[filters.offset:filters.offset + filters.limit]

        items = [row_to_search_result(row) for row in page]
        response = build_results(
            items,
            total_count=len(filtered),
            facets=self._facets.assemble(results),
            count_is_exact=False,
        )

        logger.info(
            "Hybrid search completed",
            query=text,
            collection=str(collection),
            lexical_candidates=len(results["lexical"]),
            vector_candidates=len(results["vector"]),
            fused=len(fused),
            filtered=len(filtered),
            result_count=len(items),
            elapsed_ms=int((time.time() - t0) * 1000),
        )
        return response
