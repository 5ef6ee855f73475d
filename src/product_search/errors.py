"""
Typed failures raised by the search layer.

Every failure aborts the whole request; nothing here is retried.
The underlying driver exception is always chained as ``__cause__``.
"""


class SearchError(Exception):
    """A search request failed."""
    pass


class CatalogError(SearchError):
    """The catalog store is unreachable or rejected a query."""
    pass


class SearchTimeoutError(SearchError):
    """The per-request deadline expired before all sub-queries finished."""
    pass


class InvalidCollectionError(SearchError):
    """The requested collection is malformed or not allow-listed."""
    pass


class ProductNotFoundError(SearchError):
    """No product exists with the requested id."""

    def __init__(self, product_id: int, collection: str):
        super().__init__(f"Product {product_id} not found in {collection}")
        self.product_id = product_id
        self.collection = collection


class EmbeddingDimensionError(SearchError):
    """The embedding provider returned a vector of the wrong size."""
    pass
