#!/usr/bin/env python3
"""
Unit tests for the REST document fetcher
"""

import pytest
import requests
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from cache.errors import InvalidKeyConstruction
from cache.store import CacheStore
from documents.errors import FetchError
from documents.fetcher import RestDocumentFetcher
from documents.queries import DocumentRequest, ListingRequest, SearchRequest
from documents.service import ResourceService


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def calls():
    return []


@pytest.fixture
def respond(monkeypatch, calls):
    """Install a fake requests.get returning the given response."""

    def _install(response):
        def fake_get(url, params=None, headers=None, timeout=None):
            calls.append({"url": url, "params": params, "headers": headers})
            if isinstance(response, Exception):
                raise response
            return response

        monkeypatch.setattr("requests.get", fake_get)

    return _install


@pytest.fixture
def fetcher():
    return RestDocumentFetcher("http://db.local/", api_key="anon-key")


class TestQueryBuilding:

    def test_document_by_id(self, fetcher):
        params = fetcher.build_params(DocumentRequest("abc"))
        assert ("id", "eq.abc") in params
        assert ("select", "*") in params

    def test_search_params(self, fetcher):
        params = dict(fetcher.build_params(
            SearchRequest("  deep  learning ", {"program": "BSCS"}, ("-year",), page=2, page_size=10)
        ))

        assert params["or"] == "(title.ilike.*deep learning*,abstract.ilike.*deep learning*)"
        assert params["program"] == "ilike.bscs"
        assert params["status"] == "eq.published"
        assert params["order"] == "year.desc"
        assert params["limit"] == "11"
        assert params["offset"] == "10"

    def test_listing_membership_and_default_order(self, fetcher):
        params = dict(fetcher.build_params(ListingRequest({"year": [2024, 2023], "status": "pending"})))

        assert params["year"] == "in.(2023,2024)"
        assert params["status"] == "ilike.pending"
        assert params["order"] == "created_at.desc"
        assert "or" not in params

    def test_text_membership_is_case_insensitive(self, fetcher):
        params = dict(fetcher.build_params(ListingRequest({"program": ["BSIT", "bscs"]})))

        assert params["or"] == "(program.ilike.bscs,program.ilike.bsit)"
        assert "program" not in params

    def test_membership_and_search_groups_combined(self, fetcher):
        params = dict(fetcher.build_params(SearchRequest("ml", {"program": ["BSCS", "BSIT"]})))

        assert params["and"] == (
            "(or(program.ilike.bscs,program.ilike.bsit),"
            "or(title.ilike.*ml*,abstract.ilike.*ml*))"
        )
        assert "or" not in params

    def test_like_wildcards_in_values_are_literal(self, fetcher):
        params = dict(fetcher.build_params(ListingRequest({"code": "CS_101%"})))
        assert params["code"] == "ilike.cs\\_101\\%"

    def test_explicit_status_overrides_published_default(self, fetcher):
        params = fetcher.build_params(ListingRequest({"Status": "Pending"}))
        assert ("status", "ilike.pending") in params
        assert ("status", "eq.published") not in params


class TestKeyAgreement:
    """Requests sharing a cache key must send the same query."""

    @pytest.fixture
    def service(self, fetcher):
        return ResourceService(CacheStore(), fetcher)

    @pytest.mark.parametrize("first, second", [
        (ListingRequest({}), ListingRequest({"status": None})),
        (ListingRequest({}), ListingRequest({"adviser": "   "})),
        (ListingRequest({"program": "BSCS"}), ListingRequest({"program": "bscs"})),
        (ListingRequest({"Program": " BSCS "}), ListingRequest({"program": "bscs"})),
        (ListingRequest({"year": [2024]}), ListingRequest({"year": 2024})),
        (ListingRequest({"year": 2024}), ListingRequest({"year": "2024"})),
        (ListingRequest({"year": [2023, 2024]}), ListingRequest({"year": (2024, 2023.0)})),
        (ListingRequest({"program": ["BSIT", "bscs"]}), ListingRequest({"program": ["BSCS", "bsit"]})),
        (
            SearchRequest("Deep  Learning", sort=["-Year"]),
            SearchRequest("deep learning", sort=[("year", "DESC")]),
        ),
        (SearchRequest("  ", {"program": "BSIT"}), ListingRequest({"program": "bsit"})),
        (DocumentRequest(" abc "), DocumentRequest("abc")),
    ])
    def test_equal_keys_send_equal_queries(self, service, fetcher, first, second):
        assert service.key_for(first) == service.key_for(second)
        assert fetcher.build_params(first) == fetcher.build_params(second)

    def test_published_default_differs_from_explicit_status(self, service, fetcher):
        implicit = ListingRequest({})
        explicit = ListingRequest({"status": "draft"})

        assert service.key_for(implicit) != service.key_for(explicit)
        assert fetcher.build_params(implicit) != fetcher.build_params(explicit)

    def test_duplicate_names_after_normalization_rejected(self, fetcher):
        with pytest.raises(InvalidKeyConstruction):
            fetcher.build_params(ListingRequest({"Program": "BSCS", "program": "BSIT"}))


class TestFetch:

    def test_document_fetch(self, fetcher, respond, calls):
        respond(FakeResponse(payload=[{"id": "abc", "title": "T"}]))

        result = fetcher.fetch_sync(DocumentRequest("abc"))

        assert result.kind == "document"
        assert result.data == {"id": "abc", "title": "T"}
        assert calls[0]["url"] == "http://db.local/rest/v1/documents"
        assert calls[0]["headers"]["apikey"] == "anon-key"
        assert calls[0]["headers"]["Authorization"] == "Bearer anon-key"

    def test_missing_document(self, fetcher, respond):
        respond(FakeResponse(payload=[]))
        with pytest.raises(FetchError) as excinfo:
            fetcher.fetch_sync(DocumentRequest("nope"))
        assert excinfo.value.status == 404

    def test_has_more_from_extra_row(self, fetcher, respond):
        rows = [{"id": str(i)} for i in range(3)]
        respond(FakeResponse(payload=rows))

        result = fetcher.fetch_sync(ListingRequest(page_size=2))

        assert result.has_more is True
        assert len(result.data) == 2
        assert result.total == 3

    def test_last_page(self, fetcher, respond):
        respond(FakeResponse(payload=[{"id": "1"}]))
        result = fetcher.fetch_sync(SearchRequest("x", page_size=2))
        assert result.has_more is False
        assert result.total == 1

    def test_http_error(self, fetcher, respond):
        respond(FakeResponse(status_code=503, text="unavailable"))
        with pytest.raises(FetchError) as excinfo:
            fetcher.fetch_sync(ListingRequest())
        assert excinfo.value.status == 503
        assert fetcher.get_stats() == {"requests": 1, "errors": 1}

    def test_transport_error(self, fetcher, respond):
        respond(requests.ConnectionError("refused"))
        with pytest.raises(FetchError):
            fetcher.fetch_sync(ListingRequest())

    def test_invalid_json(self, fetcher, respond):
        respond(FakeResponse(payload=ValueError("bad json")))
        with pytest.raises(FetchError):
            fetcher.fetch_sync(ListingRequest())

    @pytest.mark.asyncio
    async def test_async_fetch_runs_in_thread(self, fetcher, respond):
        respond(FakeResponse(payload=[{"id": "1"}]))
        result = await fetcher.fetch_resource(DocumentRequest("1"))
        assert result.data["id"] == "1"
