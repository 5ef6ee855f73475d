"""
Query embedding providers.

The contract is text -> fixed-length float vector in the same space as
the stored product embeddings. HashEmbeddingProvider is a placeholder
until a real text-embedding model is wired in: it derives a uniform
vector in [-1, 1] from the query text, so it carries no semantics but
keeps repeated requests reproducible.
"""

import hashlib
from typing import Callable, Protocol, Sequence, Union

import numpy as np

from product_search.errors import EmbeddingDimensionError


class EmbeddingProvider(Protocol):
    """Anything that can turn query text into a fixed-size vector."""

    @property
    def dimension(self) -> int: ...

    def embed(self, text: str) -> np.ndarray: ...


class HashEmbeddingProvider:
    """
    Placeholder provider: uniform random vector seeded by the text.

    Args:
        dimension: Vector size (must match the stored embedding column).
    """

    def __init__(self, dimension: int = 1536):
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> np.ndarray:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        seed = int.from_bytes(digest[:8], "big")
        rng = np.random.default_rng(seed)
        return rng.uniform(-1.0, 1.0, self._dimension).astype(np.float32)


class CallableEmbeddingProvider:
    """
    Adapter for any encode function (e.g. a sentence-transformers model).

    Usage:
        model = SentenceTransformer("...")
        provider = CallableEmbeddingProvider(model.encode, dimension=768)
    """

    def __init__(
        self,
        encode: Callable[[str], Union[np.ndarray, Sequence[float]]],
        dimension: int,
    ):
        self._encode = encode
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> np.ndarray:
        return np.asarray(self._encode(text), dtype=np.float32)


def embed_query(provider: EmbeddingProvider, text: str) -> np.ndarray:
    """
    Embed text and check the vector has the provider's declared size.

    Raises:
        EmbeddingDimensionError: If the provider returned a wrong-size vector.
    """
    vector = np.asarray(provider.embed(text), dtype=np.float32).reshape(-1)
    if vector.shape[0] != provider.dimension:
        raise EmbeddingDimensionError(
            f"Embedding has {vector.shape[0]} dimensions, expected {provider.dimension}"
        )
    return vector
