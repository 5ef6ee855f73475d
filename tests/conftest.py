"""
Pytest configuration and shared fixtures for the product search tests.
"""
import os
import sys
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


# ============================================================================
# Helpers
# ============================================================================

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_product_row(product_id: int, **overrides: Any) -> Dict[str, Any]:
    """A catalog row as returned by RealDictCursor (product columns only)."""
    row = {
        "id": product_id,
        "name": f"Product {product_id}",
        "description": f"Description of product {product_id}",
        "brand": "Acme",
        "category": "Electronics",
        "subcategory": None,
        "tags": ["sample"],
        "price": Decimal("50.00"),
        "rating": Decimal("4.0"),
        "review_count": 10,
        "stock_quantity": 5,
        "in_stock": True,
        "featured": False,
        "attributes": None,
        "created_at": _BASE_TIME + timedelta(days=product_id),
        "updated_at": _BASE_TIME + timedelta(days=product_id),
    }
    row.update(overrides)
    return row


def render_sql(obj: Any) -> str:
    """Flatten a psycopg2.sql Composable into text without a connection."""
    from psycopg2 import sql

    if isinstance(obj, str):
        return obj
    if isinstance(obj, sql.Composed):
        return "".join(render_sql(part) for part in obj.seq)
    if isinstance(obj, sql.SQL):
        return obj.string
    if isinstance(obj, sql.Identifier):
        return ".".join('"%s"' % s for s in obj.strings)
    if isinstance(obj, sql.Placeholder):
        return "%(" + obj.name + ")s" if obj.name else "%s"
    raise TypeError(f"Cannot render {type(obj).__name__}")


RowSource = Union[List[Dict[str, Any]], Callable[[Dict[str, Any]], List[Dict[str, Any]]], Exception]


class FakeCatalogStore:
    """
    In-memory stand-in for CatalogStore.

    Rows are keyed by query name. A value may be a list of rows, a
    callable receiving the bound params, or an exception to raise.
    Unknown names return no rows.
    """

    def __init__(self, responses: Optional[Dict[str, RowSource]] = None):
        self.responses: Dict[str, RowSource] = dict(responses or {})
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def fetch_all(self, name, query, params=None):
        with self._lock:
            self.calls.append({"name": name, "sql": render_sql(query), "params": dict(params or {})})
        source = self.responses.get(name, [])
        if isinstance(source, Exception):
            raise source
        if callable(source):
            return [dict(r) for r in source(dict(params or {}))]
        return [dict(r) for r in source]

    def fetch_one(self, name, query, params=None):
        rows = self.fetch_all(name, query, params)
        return rows[0] if rows else None

    def fetch_count(self, name, query, params=None):
        row = self.fetch_one(name, query, params)
        return int(row["count"]) if row else 0

    def call(self, name: str) -> Dict[str, Any]:
        """The recorded call for a query name (the last one if repeated)."""
        matches = [c for c in self.calls if c["name"] == name]
        assert matches, f"query {name!r} was not issued; issued: {[c['name'] for c in self.calls]}"
        return matches[-1]

    def names(self) -> List[str]:
        return sorted(c["name"] for c in self.calls)


class FixedEmbedder:
    """Embedding provider returning the same small vector for every text."""

    def __init__(self, dimension: int = 4):
        self.dimension = dimension
        self.texts: List[str] = []

    def embed(self, text: str) -> np.ndarray:
        self.texts.append(text)
        return np.ones(self.dimension, dtype=np.float32)


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def product_row() -> Callable[..., Dict[str, Any]]:
    """Factory for catalog rows."""
    return make_product_row


@pytest.fixture
def sql_text() -> Callable[[Any], str]:
    """Render psycopg2.sql objects as text."""
    return render_sql


@pytest.fixture
def catalog_rows() -> List[Dict[str, Any]]:
    """A small mixed catalog."""
    return [
        make_product_row(1, name="Wireless Headphones", brand="Sonic", category="Electronics",
                         price=Decimal("99.99"), rating=Decimal("4.5")),
        make_product_row(2, name="Running Shoes", brand="Stride", category="Sports",
                         price=Decimal("79.00"), rating=Decimal("4.1")),
        make_product_row(3, name="Coffee Maker", brand="Brewster", category="Home",
                         price=Decimal("45.50"), rating=Decimal("3.8"), in_stock=False),
        make_product_row(4, name="Bluetooth Speaker", brand="Sonic", category="Electronics",
                         price=Decimal("150.00"), rating=Decimal("4.7")),
        make_product_row(5, name="Yoga Mat", brand="Stride", category="Sports",
                         price=Decimal("25.00"), rating=Decimal("4.9")),
    ]


# ============================================================================
# Fixtures: Mock Services
# ============================================================================

@pytest.fixture
def fake_store() -> Callable[..., FakeCatalogStore]:
    """Factory for FakeCatalogStore with canned responses."""
    return FakeCatalogStore


@pytest.fixture
def embedder() -> FixedEmbedder:
    return FixedEmbedder()


@pytest.fixture
def test_settings():
    """Settings that never read .env and allow two collections."""
    from config.settings import get_settings_for_testing
    return get_settings_for_testing(
        allowed_catalog_schemas=["products", "products_staging"],
        embedding_dimension=4,
        search_timeout_seconds=5.0,
    )


@pytest.fixture
def collection():
    from product_search.collection import CatalogCollection
    return CatalogCollection("products")


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Bound structlog context must not leak between tests."""
    yield
    from core.logging import clear_context
    clear_context()


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
