"""
Pydantic models for the product search layer.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================

class SearchMode(str, Enum):
    """Ranking strategy for a search request."""
    LEXICAL = "lexical"  # BM25 keyword matching only
    VECTOR = "vector"    # Cosine similarity only
    HYBRID = "hybrid"    # 30% lexical + 70% vector

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]


_MODE_LABELS = {
    SearchMode.LEXICAL: "BM25",
    SearchMode.VECTOR: "Vector",
    SearchMode.HYBRID: "Hybrid",
}


class SortOption(str, Enum):
    """Result ordering. Anything but RELEVANCE overrides engine scores."""
    RELEVANCE = "relevance"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RATING_DESC = "rating_desc"
    NEWEST = "newest"

    @property
    def label(self) -> str:
        return _SORT_LABELS[self]


_SORT_LABELS = {
    SortOption.RELEVANCE: "Relevance",
    SortOption.PRICE_ASC: "Price: Low to High",
    SortOption.PRICE_DESC: "Price: High to Low",
    SortOption.RATING_DESC: "Rating: High to Low",
    SortOption.NEWEST: "Newest First",
}


# ============================================================================
# Catalog Entity
# ============================================================================

class Product(BaseModel):
    """A catalog item as seen by the search layer (read-only)."""
    id: int
    name: str
    description: str
    brand: str
    category: str
    subcategory: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    price: Decimal
    rating: Decimal
    review_count: int = 0
    stock_quantity: int = 0
    in_stock: bool = True
    featured: bool = False
    attributes: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Request Models
# ============================================================================

class SearchFilters(BaseModel):
    """
    Constraints of a single search request.

    No validation is performed: price_min > price_max passes through and
    simply matches nothing, and the default page_size of 0 returns no rows.
    A negative page or page_size also selects no rows, in every mode.
    """
    model_config = ConfigDict(frozen=True)

    categories: Tuple[str, ...] = Field(default=(), description="Category allow-list (empty = all)")
    price_min: Optional[float] = Field(None, description="Inclusive lower price bound")
    price_max: Optional[float] = Field(None, description="Inclusive upper price bound")
    min_rating: Optional[float] = Field(None, description="Inclusive minimum rating")
    in_stock_only: bool = Field(False, description="Only return in-stock products")
    sort_by: SortOption = SortOption.RELEVANCE
    page: int = Field(0, description="Zero-indexed page number")
    page_size: int = Field(0, description="Results per page")

    @property
    def offset(self) -> int:
        return max(self.page * self.page_size, 0)

    @property
    def limit(self) -> int:
        if self.page < 0 or self.page_size < 0:
            return 0
        return self.page_size


class SearchRequest(BaseModel):
    """Request contract: free text, ranking mode and filters."""
    model_config = ConfigDict(frozen=True)

    query: str = ""
    mode: SearchMode = SearchMode.HYBRID
    filters: SearchFilters = Field(default_factory=SearchFilters)
    collection: Optional[str] = Field(None, description="Catalog collection (defaults to settings)")


# ============================================================================
# Response Models
# ============================================================================

class SearchResult(BaseModel):
    """A product paired with the scores of the engines that ranked it."""
    product: Product
    bm25_score: Optional[float] = None
    vector_score: Optional[float] = None
    combined_score: float = 0.0
    snippet: Optional[str] = None  # Reserved for highlighting, never populated


class FacetCount(BaseModel):
    """A single facet value with its count."""
    value: str
    count: int


class PriceBucket(BaseModel):
    """A fixed-width price histogram bin [min, max)."""
    min: float
    max: float
    count: int


class Facets(BaseModel):
    """Facet aggregates and summary statistics for a text predicate."""
    category_facets: List[FacetCount] = Field(default_factory=list)
    brand_facets: List[FacetCount] = Field(default_factory=list)
    price_histogram: List[PriceBucket] = Field(default_factory=list)
    avg_price: float = 0.0
    avg_rating: float = 0.0


class SearchResults(BaseModel):
    """Full search response."""
    results: List[SearchResult] = Field(default_factory=list)
    total_count: int = 0
    count_is_exact: bool = Field(
        True,
        description="False when total_count only covers the hybrid candidate window",
    )
    category_facets: List[FacetCount] = Field(default_factory=list)
    brand_facets: List[FacetCount] = Field(default_factory=list)
    price_histogram: List[PriceBucket] = Field(default_factory=list)
    avg_price: float = 0.0
    avg_rating: float = 0.0


# ============================================================================
# Analytics Models
# ============================================================================

class CategoryStat(BaseModel):
    category: str
    count: int
    avg_price: float


class RatingBucket(BaseModel):
    rating: float
    count: int


class BrandStat(BaseModel):
    brand: str
    count: int


class AnalyticsData(BaseModel):
    """Catalog-wide aggregate statistics."""
    total_products: int
    category_stats: List[CategoryStat] = Field(default_factory=list)
    rating_distribution: List[RatingBucket] = Field(default_factory=list)
    price_histogram: List[PriceBucket] = Field(default_factory=list)
    top_brands: List[BrandStat] = Field(default_factory=list)
