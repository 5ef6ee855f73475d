"""
Product Search Module: BM25 (pg_search) + pgvector over a PostgreSQL catalog.

Provides:
- ProductSearchService: Mode dispatch, product lookup, catalog analytics
- LexicalSearchAdapter: Keyword relevance with exact counts and facets
- VectorSearchAdapter: Cosine nearest neighbours over description embeddings
- HybridFusionEngine: Weighted 0.3/0.7 fusion of both candidate lists
- FacetAggregator: Category, brand and price facets for a text query
- CatalogStore: Pooled, parameterised query execution
"""

from product_search.catalog import CatalogStore
from product_search.collection import CatalogCollection, resolve_collection
from product_search.embeddings import (
    CallableEmbeddingProvider,
    EmbeddingProvider,
    HashEmbeddingProvider,
)
from product_search.errors import (
    CatalogError,
    EmbeddingDimensionError,
    InvalidCollectionError,
    ProductNotFoundError,
    SearchError,
    SearchTimeoutError,
)
from product_search.facets import FacetAggregator
from product_search.hybrid import HybridFusionEngine
from product_search.lexical import LexicalSearchAdapter
from product_search.models import (
    AnalyticsData,
    Facets,
    Product,
    SearchFilters,
    SearchMode,
    SearchRequest,
    SearchResult,
    SearchResults,
    SortOption,
)
from product_search.service import ProductSearchService, create_search_service
from product_search.vector import VectorSearchAdapter

__all__ = [
    "ProductSearchService",
    "create_search_service",
    "LexicalSearchAdapter",
    "VectorSearchAdapter",
    "HybridFusionEngine",
    "FacetAggregator",
    "CatalogStore",
    "CatalogCollection",
    "resolve_collection",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "CallableEmbeddingProvider",
    "SearchError",
    "CatalogError",
    "SearchTimeoutError",
    "InvalidCollectionError",
    "ProductNotFoundError",
    "EmbeddingDimensionError",
    "AnalyticsData",
    "Facets",
    "Product",
    "SearchFilters",
    "SearchMode",
    "SearchRequest",
    "SearchResult",
    "SearchResults",
    "SortOption",
]
