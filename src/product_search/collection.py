"""
Catalog collection identifiers.

A collection is a PostgreSQL schema holding the ``items`` table. The
schema name is the only part of any query that varies structurally, so
it is checked against an allow-list and always composed with
psycopg2.sql.Identifier, never formatted into query text.
"""

import re
from dataclasses import dataclass
from typing import Iterable

from psycopg2 import sql

from config.constants import CATALOG_TABLE
from product_search.errors import InvalidCollectionError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


@dataclass(frozen=True)
class CatalogCollection:
    """A validated catalog collection (schema) name."""
    schema: str

    @property
    def table(self) -> sql.Identifier:
        """Qualified ``<schema>.items`` identifier."""
        return sql.Identifier(self.schema, CATALOG_TABLE)

    def __str__(self) -> str:
        return self.schema


def resolve_collection(name: str, allowed: Iterable[str]) -> CatalogCollection:
    """
    Validate a collection name against the allow-list.

    Args:
        name: Requested schema name.
        allowed: Schema names that may be searched.

    Returns:
        CatalogCollection for the name.

    Raises:
        InvalidCollectionError: If the name is malformed or not allowed.
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise InvalidCollectionError(f"Invalid collection identifier: {name!r}")
    if name not in set(allowed):
        raise InvalidCollectionError(f"Collection not allowed: {name!r}")
    return CatalogCollection(schema=name)
