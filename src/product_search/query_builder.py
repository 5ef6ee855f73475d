"""
Structured SQL building for the catalog queries.

Queries are composed from psycopg2.sql fragments. The collection schema
is the only identifier that varies and always goes through
sql.Identifier; every value (query text, bounds, categories, embedding,
limits) is a named parameter bound by the driver.

Lexical matching uses ParadeDB pg_search (``|||`` match-disjunction,
``pdb.score(id)`` relevance). Vector similarity uses pgvector's ``<=>``
cosine distance.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
from psycopg2 import sql

from config.constants import (
    EMBEDDING_COLUMN,
    LEXICAL_FIELDS,
    MATCH_ALL_QUERY,
    PRODUCT_COLUMNS,
)
from product_search.collection import CatalogCollection
from product_search.models import SearchFilters, SortOption

ALIAS = "p"


@dataclass
class CatalogQuery:
    """A named, parameterised query ready for CatalogStore."""
    name: str
    sql: sql.Composable
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Predicate:
    """A conjunction of SQL clauses plus the parameters they bind."""
    clauses: List[sql.Composable] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)

    def add(self, clause: sql.Composable, **params: Any) -> "Predicate":
        self.clauses.append(clause)
        self.params.update(params)
        return self

    def merge(self, other: "Predicate") -> "Predicate":
        merged = Predicate(list(self.clauses), dict(self.params))
        merged.clauses.extend(other.clauses)
        merged.params.update(other.params)
        return merged

    def where(self) -> sql.Composable:
        """Render as a WHERE clause, or nothing when empty."""
        if not self.clauses:
            return sql.SQL("")
        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(self.clauses)


def _col(name: str) -> sql.Identifier:
    return sql.Identifier(ALIAS, name)


def normalize_query(query: Optional[str]) -> str:
    """Strip whitespace and treat a lone ``*`` as the empty (match-all) query."""
    cleaned = (query or "").strip()
    if cleaned == MATCH_ALL_QUERY:
        return ""
    return cleaned


# =============================================================================
# Fragments
# =============================================================================

def product_columns() -> sql.Composable:
    return sql.SQL(", ").join(_col(c) for c in PRODUCT_COLUMNS)


def from_collection(collection: CatalogCollection) -> sql.Composable:
    return sql.SQL(" FROM {} AS {}").format(collection.table, sql.Identifier(ALIAS))


def text_predicate(query: str) -> Predicate:
    """
    Lexical match over name, description and brand.

    The empty query adds no clause at all, so every row passes.
    """
    predicate = Predicate()
    if not query:
        return predicate
    matches = sql.SQL(" OR ").join(
        sql.SQL("{} ||| %(query)s").format(_col(f)) for f in LEXICAL_FIELDS
    )
    return predicate.add(sql.SQL("(") + matches + sql.SQL(")"), query=query)


def filter_predicate(filters: SearchFilters) -> Predicate:
    """
    Non-text filters as inclusive conjunctive clauses.

    Unset bounds, an empty category list and in_stock_only=False add
    nothing, so they never exclude rows.
    """
    predicate = Predicate()
    if filters.price_min is not None:
        predicate.add(sql.SQL("{} >= %(price_min)s").format(_col("price")), price_min=filters.price_min)
    if filters.price_max is not None:
        predicate.add(sql.SQL("{} <= %(price_max)s").format(_col("price")), price_max=filters.price_max)
    if filters.categories:
        predicate.add(
            sql.SQL("{} = ANY(%(categories)s)").format(_col("category")),
            categories=list(filters.categories),
        )
    if filters.min_rating is not None:
        predicate.add(sql.SQL("{} >= %(min_rating)s").format(_col("rating")), min_rating=filters.min_rating)
    if filters.in_stock_only:
        predicate.add(sql.SQL("{} = TRUE").format(_col("in_stock")))
    return predicate


def relevance_score(query: str) -> sql.Composable:
    """BM25 score expression; constant 0 for the match-all query."""
    if not query:
        return sql.SQL("0.0::float8")
    return sql.SQL("pdb.score({})::float8").format(_col("id"))


def cosine_distance() -> sql.Composable:
    return sql.SQL("({} <=> %(embedding)s::vector)").format(_col(EMBEDDING_COLUMN))


def cosine_similarity() -> sql.Composable:
    """``1 - cosine_distance`` clamped to [0, 1]."""
    return sql.SQL("GREATEST(0.0, LEAST(1.0, 1 - {}))::float8").format(cosine_distance())


_SORT_COLUMNS = {
    SortOption.PRICE_ASC: ("price", "ASC"),
    SortOption.PRICE_DESC: ("price", "DESC"),
    SortOption.RATING_DESC: ("rating", "DESC"),
    SortOption.NEWEST: ("created_at", "DESC"),
}


def lexical_order(sort_by: SortOption, query: str) -> sql.Composable:
    """ORDER BY for lexical rows; id is the deterministic tiebreak."""
    if sort_by == SortOption.RELEVANCE:
        primary = relevance_score(query) + sql.SQL(" DESC")
    else:
        column, direction = _SORT_COLUMNS[sort_by]
        primary = _col(column) + sql.SQL(" " + direction)
    return sql.SQL(" ORDER BY ") + primary + sql.SQL(", {} ASC").format(_col("id"))


def pagination(filters: SearchFilters) -> Predicate:
    """LIMIT/OFFSET parameters; the clause itself is appended by callers."""
    return Predicate(params={"limit": filters.limit, "offset": filters.offset})


_LIMIT_OFFSET = sql.SQL(" LIMIT %(limit)s OFFSET %(offset)s")


def _embedding_param(embedding: np.ndarray) -> Dict[str, Any]:
    return {"embedding": np.asarray(embedding, dtype=np.float32)}


# =============================================================================
# Lexical
# =============================================================================

def lexical_rows_query(
    collection: CatalogCollection,
    query: str,
    filters: SearchFilters,
) -> CatalogQuery:
    predicate = text_predicate(query).merge(filter_predicate(filters))
    statement = (
        sql.SQL("SELECT ")
        + product_columns()
        + sql.SQL(", ")
        + relevance_score(query)
        + sql.SQL(" AS bm25_score")
        + from_collection(collection)
        + predicate.where()
        + lexical_order(filters.sort_by, query)
        + _LIMIT_OFFSET
    )
    params = {**predicate.params, **pagination(filters).params}
    return CatalogQuery("lexical_rows", statement, params)


def lexical_count_query(
    collection: CatalogCollection,
    query: str,
    filters: SearchFilters,
) -> CatalogQuery:
    """COUNT with the row query's text predicate and every one of its filters."""
    predicate = text_predicate(query).merge(filter_predicate(filters))
    statement = (
        sql.SQL("SELECT COUNT(*) AS count")
        + from_collection(collection)
        + predicate.where()
    )
    return CatalogQuery("lexical_count", statement, predicate.params)


def lexical_candidates_query(
    collection: CatalogCollection,
    query: str,
    window: int,
) -> CatalogQuery:
    """Top-N lexical candidates under the text predicate only."""
    predicate = text_predicate(query)
    statement = (
        sql.SQL("SELECT ")
        + product_columns()
        + sql.SQL(", ")
        + relevance_score(query)
        + sql.SQL(" AS bm25_score")
        + from_collection(collection)
        + predicate.where()
        + lexical_order(SortOption.RELEVANCE, query)
        + sql.SQL(" LIMIT %(window)s")
    )
    return CatalogQuery("lexical_candidates", statement, {**predicate.params, "window": window})


# =============================================================================
# Vector
# =============================================================================

def vector_rows_query(
    collection: CatalogCollection,
    embedding: np.ndarray,
    filters: SearchFilters,
) -> CatalogQuery:
    predicate = filter_predicate(filters)
    statement = (
        sql.SQL("SELECT ")
        + product_columns()
        + sql.SQL(", ")
        + cosine_similarity()
        + sql.SQL(" AS vector_score")
        + from_collection(collection)
        + predicate.where()
        + sql.SQL(" ORDER BY ")
        + cosine_distance()
        + _LIMIT_OFFSET
    )
    params = {**predicate.params, **_embedding_param(embedding), **pagination(filters).params}
    return CatalogQuery("vector_rows", statement, params)


def vector_count_query(
    collection: CatalogCollection,
    filters: SearchFilters,
) -> CatalogQuery:
    predicate = filter_predicate(filters)
    statement = (
        sql.SQL("SELECT COUNT(*) AS count")
        + from_collection(collection)
        + predicate.where()
    )
    return CatalogQuery("vector_count", statement, predicate.params)


def vector_candidates_query(
    collection: CatalogCollection,
    embedding: np.ndarray,
    window: int,
) -> CatalogQuery:
    """Top-N nearest neighbours with no predicate."""
    statement = (
        sql.SQL("SELECT ")
        + product_columns()
        + sql.SQL(", ")
        + cosine_similarity()
        + sql.SQL(" AS vector_score")
        + from_collection(collection)
        + sql.SQL(" ORDER BY ")
        + cosine_distance()
        + sql.SQL(" LIMIT %(window)s")
    )
    return CatalogQuery("vector_candidates", statement, {**_embedding_param(embedding), "window": window})


# =============================================================================
# Facets
# =============================================================================

def _group_count_query(
    name: str,
    collection: CatalogCollection,
    query: str,
    column: str,
    limit: Optional[int] = None,
) -> CatalogQuery:
    predicate = text_predicate(query)
    statement = (
        sql.SQL("SELECT {} AS value, COUNT(*) AS count").format(_col(column))
        + from_collection(collection)
        + predicate.where()
        + sql.SQL(" GROUP BY {} ORDER BY count DESC, value ASC").format(_col(column))
    )
    params = dict(predicate.params)
    if limit is not None:
        statement = statement + sql.SQL(" LIMIT %(limit)s")
        params["limit"] = limit
    return CatalogQuery(name, statement, params)


def category_facets_query(collection: CatalogCollection, query: str) -> CatalogQuery:
    return _group_count_query("category_facets", collection, query, "category")


def brand_facets_query(collection: CatalogCollection, query: str, limit: int) -> CatalogQuery:
    return _group_count_query("brand_facets", collection, query, "brand", limit=limit)


def price_histogram_query(
    collection: CatalogCollection,
    query: str,
    bucket_width: float,
    name: str = "price_histogram",
) -> CatalogQuery:
    """Buckets keyed by ``floor(price / width) * width``, ascending."""
    predicate = text_predicate(query)
    lower = sql.SQL("FLOOR({}::float8 / %(bucket_width)s) * %(bucket_width)s").format(_col("price"))
    statement = (
        sql.SQL("SELECT (") + lower + sql.SQL(")::float8 AS min, (")
        + lower + sql.SQL(" + %(bucket_width)s)::float8 AS max, COUNT(*) AS count")
        + from_collection(collection)
        + predicate.where()
        + sql.SQL(" GROUP BY 1, 2 ORDER BY 1 ASC")
    )
    return CatalogQuery(name, statement, {**predicate.params, "bucket_width": bucket_width})


def summary_query(collection: CatalogCollection, query: str) -> CatalogQuery:
    predicate = text_predicate(query)
    statement = (
        sql.SQL(
            "SELECT COALESCE(AVG({}), 0)::float8 AS avg_price, "
            "COALESCE(AVG({}), 0)::float8 AS avg_rating"
        ).format(_col("price"), _col("rating"))
        + from_collection(collection)
        + predicate.where()
    )
    return CatalogQuery("summary", statement, predicate.params)


# =============================================================================
# Lookup & Analytics
# =============================================================================

def product_query(collection: CatalogCollection, product_id: int) -> CatalogQuery:
    statement = (
        sql.SQL("SELECT ")
        + product_columns()
        + from_collection(collection)
        + sql.SQL(" WHERE {} = %(product_id)s").format(_col("id"))
    )
    return CatalogQuery("product", statement, {"product_id": product_id})


def total_products_query(collection: CatalogCollection) -> CatalogQuery:
    statement = sql.SQL("SELECT COUNT(*) AS count") + from_collection(collection)
    return CatalogQuery("total_products", statement)


def category_stats_query(collection: CatalogCollection) -> CatalogQuery:
    statement = (
        sql.SQL("SELECT {} AS category, COUNT(*) AS count, AVG({}::float8) AS avg_price").format(
            _col("category"), _col("price")
        )
        + from_collection(collection)
        + sql.SQL(" GROUP BY {} ORDER BY count DESC, category ASC").format(_col("category"))
    )
    return CatalogQuery("category_stats", statement)


def rating_distribution_query(collection: CatalogCollection) -> CatalogQuery:
    statement = (
        sql.SQL("SELECT FLOOR({}::float8) AS rating, COUNT(*) AS count").format(_col("rating"))
        + from_collection(collection)
        + sql.SQL(" GROUP BY 1 ORDER BY 1 ASC")
    )
    return CatalogQuery("rating_distribution", statement)


def top_brands_query(collection: CatalogCollection, limit: int) -> CatalogQuery:
    statement = (
        sql.SQL("SELECT {} AS brand, COUNT(*) AS count").format(_col("brand"))
        + from_collection(collection)
        + sql.SQL(" GROUP BY {} ORDER BY count DESC, brand ASC LIMIT %(limit)s").format(_col("brand"))
    )
    return CatalogQuery("top_brands", statement, {"limit": limit})
