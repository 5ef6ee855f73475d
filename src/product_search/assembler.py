"""
Result assembly: raw catalog rows -> response models. No I/O.
"""

from typing import Any, Dict, List, Optional

from config.constants import PRODUCT_COLUMNS
from product_search.models import Facets, Product, SearchResult, SearchResults


def row_to_product(row: Dict[str, Any]) -> Product:
    """Build a Product from the product columns of a row (extra keys ignored)."""
    data = {column: row.get(column) for column in PRODUCT_COLUMNS}
    data["tags"] = list(data["tags"] or [])
    return Product(**data)


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def row_to_search_result(row: Dict[str, Any]) -> SearchResult:
    """
    Build a SearchResult from a row carrying product columns and scores.

    ``combined_score`` falls back to whichever single engine score is
    present, so single-mode rows need not compute it in SQL.
    """
    bm25_score = _optional_float(row.get("bm25_score"))
    vector_score = _optional_float(row.get("vector_score"))

    combined = row.get("combined_score")
    if combined is None:
        combined = bm25_score if bm25_score is not None else vector_score

    return SearchResult(
        product=row_to_product(row),
        bm25_score=bm25_score,
        vector_score=vector_score,
        combined_score=float(combined or 0.0),
        snippet=row.get("snippet"),
    )


def build_results(
    results: List[SearchResult],
    total_count: int,
    facets: Optional[Facets] = None,
    count_is_exact: bool = True,
) -> SearchResults:
    """Package a page of results with totals and facets."""
    facets = facets or Facets()
    return SearchResults(
        results=results,
        total_count=total_count,
        count_is_exact=count_is_exact,
        category_facets=facets.category_facets,
        brand_facets=facets.brand_facets,
        price_histogram=facets.price_histogram,
        avg_price=facets.avg_price,
        avg_rating=facets.avg_rating,
    )
