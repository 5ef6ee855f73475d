"""
Unit tests for the lexical search adapter.

The store is a FakeCatalogStore keyed by query name; SQL shape is covered
in test_query_builder.py, so these tests focus on what the adapter issues
and how it assembles the response.
"""

from decimal import Decimal

import pytest

from product_search.models import SearchFilters, SortOption


def _scored(rows, scores):
    return [{**row, "bm25_score": score} for row, score in zip(rows, scores)]


@pytest.fixture
def responses(catalog_rows):
    return {
        "lexical_rows": _scored(catalog_rows[:3], [8.2, 5.1, 1.7]),
        "lexical_count": [{"count": 42}],
        "category_facets": [{"value": "Electronics", "count": 30}, {"value": "Home", "count": 12}],
        "brand_facets": [{"value": "Sonic", "count": 20}],
        "price_histogram": [{"min": 50.0, "max": 100.0, "count": 42}],
        "summary": [{"avg_price": 80.0, "avg_rating": 4.3}],
    }


@pytest.fixture
def adapter_for(fake_store):
    from product_search.lexical import LexicalSearchAdapter

    def build(responses):
        store = fake_store(responses)
        return LexicalSearchAdapter(store, timeout=5.0), store

    return build


class TestLexicalSearch:

    def test_assembles_rows_count_and_facets(self, adapter_for, responses, collection):
        adapter, store = adapter_for(responses)

        results = adapter.search("sonic", SearchFilters(page_size=3), collection)

        assert [r.product.id for r in results.results] == [1, 2, 3]
        assert [r.bm25_score for r in results.results] == [8.2, 5.1, 1.7]
        assert all(r.vector_score is None for r in results.results)
        assert results.total_count == 42
        assert results.count_is_exact is True
        assert results.category_facets[0].value == "Electronics"
        assert results.brand_facets[0].count == 20
        assert results.price_histogram[0].count == 42
        assert results.avg_price == 80.0
        assert results.avg_rating == 4.3

    def test_issues_rows_count_and_facet_queries(self, adapter_for, responses, collection):
        adapter, store = adapter_for(responses)

        adapter.search("sonic", SearchFilters(page_size=3), collection)

        assert store.names() == [
            "brand_facets", "category_facets", "lexical_count", "lexical_rows", "price_histogram", "summary",
        ]

    def test_count_and_rows_share_filters(self, adapter_for, responses, collection):
        adapter, store = adapter_for(responses)
        filters = SearchFilters(categories=("Electronics",), price_max=120, in_stock_only=True, page_size=3)

        adapter.search("sonic", filters, collection)

        rows_params = store.call("lexical_rows")["params"]
        count_params = store.call("lexical_count")["params"]
        assert count_params == {k: v for k, v in rows_params.items() if k not in ("limit", "offset")}
        assert count_params["categories"] == ["Electronics"]

    def test_facets_use_text_predicate_only(self, adapter_for, responses, collection):
        adapter, store = adapter_for(responses)

        adapter.search("sonic", SearchFilters(price_min=10, min_rating=4, page_size=3), collection)

        for name in ("category_facets", "brand_facets", "price_histogram", "summary"):
            params = store.call(name)["params"]
            assert params["query"] == "sonic"
            assert "price_min" not in params
            assert "min_rating" not in params

    def test_score_ordering(self, adapter_for, responses, collection):
        adapter, _ = adapter_for(responses)

        results = adapter.search("sonic", SearchFilters(page_size=3), collection)

        scores = [r.bm25_score for r in results.results]
        assert scores == sorted(scores, reverse=True)

    def test_wildcard_equivalent_to_empty(self, adapter_for, responses, collection):
        filters = SearchFilters(categories=("Home",), page=1, page_size=2)

        star_adapter, star_store = adapter_for(responses)
        empty_adapter, empty_store = adapter_for(responses)

        star = star_adapter.search("*", filters, collection)
        empty = empty_adapter.search("", filters, collection)

        assert star == empty
        assert [(c["name"], c["sql"], c["params"]) for c in sorted(star_store.calls, key=lambda c: c["name"])] == \
            [(c["name"], c["sql"], c["params"]) for c in sorted(empty_store.calls, key=lambda c: c["name"])]
        assert "|||" not in star_store.call("lexical_rows")["sql"]

    def test_impossible_price_returns_empty(self, adapter_for, collection):
        adapter, store = adapter_for({"lexical_count": [{"count": 0}]})

        results = adapter.search(
            "*", SearchFilters(price_min=999999, price_max=999999, page_size=10), collection
        )

        assert results.total_count == 0
        assert results.results == []
        assert store.call("lexical_rows")["params"]["price_min"] == 999999

    def test_pagination_params(self, adapter_for, responses, collection):
        adapter, store = adapter_for(responses)

        adapter.search("sonic", SearchFilters(page=4, page_size=25), collection)

        params = store.call("lexical_rows")["params"]
        assert params["limit"] == 25
        assert params["offset"] == 100

    def test_sort_reaches_row_query(self, adapter_for, responses, collection):
        adapter, store = adapter_for(responses)

        adapter.search("sonic", SearchFilters(sort_by=SortOption.PRICE_ASC, page_size=3), collection)

        assert '"p"."price" ASC, "p"."id" ASC' in store.call("lexical_rows")["sql"]

    def test_idempotent(self, adapter_for, responses, collection):
        adapter, _ = adapter_for(responses)
        filters = SearchFilters(page_size=3)

        assert adapter.search("sonic", filters, collection) == adapter.search("sonic", filters, collection)

    def test_catalog_error_aborts_request(self, adapter_for, responses, collection):
        from product_search.errors import CatalogError

        responses["brand_facets"] = CatalogError("brand_facets query failed: boom")
        adapter, _ = adapter_for(responses)

        with pytest.raises(CatalogError, match="brand_facets"):
            adapter.search("sonic", SearchFilters(page_size=3), collection)

    def test_prices_are_decimals(self, adapter_for, responses, collection):
        adapter, _ = adapter_for(responses)

        results = adapter.search("sonic", SearchFilters(page_size=3), collection)

        assert results.results[0].product.price == Decimal("99.99")
