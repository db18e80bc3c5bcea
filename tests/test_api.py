"""Tests for the HTTP adapter."""
import pytest
from fastapi.testclient import TestClient

from portor.api.main import create_app
from portor.config import config
from portor.errors import MalformedDocumentError, NoSessionError, RecordNotFoundError, UpstreamUnavailableError
from portor.parse.models import SearchPage, SummaryRecord, TenantDetail


class FakeLookup:
    cache_enabled = True

    def __init__(self, error=None):
        self.error = error
        self.criteria = []
        self.queries = []

    async def get_tenant(self, criteria):
        self.criteria.append(criteria)
        if self.error:
            raise self.error
        return TenantDetail(
            business={"naziv_obrta": "Example Trade"},
            owner={"oib": "12345678901"},
            activities=[{"djelatnost": "47.11"}],
        )

    async def search(self, query, page=1):
        self.queries.append((query, page))
        if self.error:
            raise self.error
        return SearchPage(data=[SummaryRecord(registry_id="987", business_id="12345678")], total_results=1)


def make_client(lookup):
    return TestClient(create_app(lookup=lookup))


def test_get_by_business_id():
    lookup = FakeLookup()
    response = make_client(lookup).get("/v1/", params={"id": "12345678"})

    assert response.status_code == 200
    assert response.json() == {
        "data": {
            "naziv_obrta": "Example Trade",
            "vlasnik": {"oib": "12345678901"},
            "djelatnosti": [{"djelatnost": "47.11"}],
        }
    }
    assert response.headers["cache-control"].startswith("public, immutable, max-age=")
    assert lookup.criteria[0].business_id == "12345678"


def test_get_requires_identifier():
    response = make_client(FakeLookup()).get("/v1/")

    assert response.status_code == 400
    errors = response.json()["errors"]
    assert [e["source"]["parameter"] for e in errors] == ["vatId", "id"]
    assert errors[0]["code"] == "invalidParameter"


def test_get_rejects_bad_vat_id():
    lookup = FakeLookup()
    response = make_client(lookup).get("/v1/", params={"vatId": "123"})

    assert response.status_code == 400
    assert response.json()["errors"][0]["detail"] == "Must be 11 digits"
    assert lookup.criteria == []


@pytest.mark.parametrize(
    "error, status_code",
    [
        (RecordNotFoundError("missing"), 404),
        (NoSessionError("captcha unsolved"), 503),
        (UpstreamUnavailableError("no response"), 503),
        (MalformedDocumentError("layout changed"), 502),
    ],
)
def test_error_mapping(error, status_code):
    response = make_client(FakeLookup(error=error)).get("/v1/", params={"portorId": "987"})

    assert response.status_code == status_code
    assert response.json() == {}


def test_search():
    lookup = FakeLookup()
    response = make_client(lookup).get("/v1/search", params={"name": "pekara", "page": 2})

    assert response.status_code == 200
    assert response.json() == {
        "data": [{"portorId": "987", "excerptId": "", "id": "12345678", "name": "", "status": ""}],
        "totalResults": 1,
        "pageSize": 100,
    }
    assert lookup.queries == [("pekara", 2)]


def test_search_query_takes_precedence():
    lookup = FakeLookup()
    make_client(lookup).get("/v1/search", params={"query": "12345678", "name": "pekara"})

    assert lookup.queries == [("12345678", 1)]


def test_search_upstream_down():
    response = make_client(FakeLookup(error=UpstreamUnavailableError("no response"))).get(
        "/v1/search", params={"query": "pekara"}
    )
    assert response.status_code == 503


def test_health_and_root():
    client = make_client(FakeLookup())

    assert client.get("/health").json()["status"] == "ok"
    response = client.get("/", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/docs"


def test_cache_headers_follow_each_ttl(monkeypatch):
    """Detail and search responses advertise their own cache lifetimes."""
    monkeypatch.setattr(config, "DETAIL_CACHE_TTL_SECONDS", 86400)
    monkeypatch.setattr(config, "SEARCH_CACHE_TTL_SECONDS", 60)
    client = make_client(FakeLookup())

    detail = client.get("/v1/", params={"id": "12345678"})
    search = client.get("/v1/search", params={"query": "pekara"})

    assert detail.headers["cache-control"] == "public, immutable, max-age=86400"
    assert search.headers["cache-control"] == "public, immutable, max-age=60"
