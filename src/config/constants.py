"""
Search constants and algorithm configuration.

These are values that don't change based on environment. The hybrid
weights in particular are part of the ranking contract and are not
user-configurable.
"""

from dataclasses import dataclass


# =============================================================================
# Hybrid Fusion
# =============================================================================

@dataclass(frozen=True)
class HybridConfig:
    """Configuration for the hybrid fusion engine."""

    # Fixed blend: combined = 0.3 * lexical + 0.7 * vector
    LEXICAL_WEIGHT: float = 0.3
    VECTOR_WEIGHT: float = 0.7

    # Top-N candidates retrieved from each engine before fusion
    CANDIDATE_WINDOW: int = 100


DEFAULT_HYBRID_CONFIG = HybridConfig()


# =============================================================================
# Facets
# =============================================================================

@dataclass(frozen=True)
class FacetConfig:
    """Configuration for facet aggregation."""

    BRAND_LIMIT: int = 20
    PRICE_BUCKET_WIDTH: int = 50


DEFAULT_FACET_CONFIG = FacetConfig()


# =============================================================================
# Catalog Analytics
# =============================================================================

@dataclass(frozen=True)
class AnalyticsConfig:
    """Configuration for the catalog analytics summary."""

    PRICE_BUCKET_WIDTH: int = 100
    TOP_BRANDS: int = 10


DEFAULT_ANALYTICS_CONFIG = AnalyticsConfig()


# =============================================================================
# Catalog Schema
# =============================================================================

# Every collection is a schema holding one products table
CATALOG_TABLE = "items"
EMBEDDING_COLUMN = "description_embedding"

# Text fields matched by the lexical engine
LEXICAL_FIELDS = ("name", "description", "brand")

# Product columns selected by every row query (embedding excluded)
PRODUCT_COLUMNS = (
    "id",
    "name",
    "description",
    "brand",
    "category",
    "subcategory",
    "tags",
    "price",
    "rating",
    "review_count",
    "stock_quantity",
    "in_stock",
    "featured",
    "attributes",
    "created_at",
    "updated_at",
)

# A query consisting of only this token means "match everything"
MATCH_ALL_QUERY = "*"
