import pytest
from fastapi.testclient import TestClient

from conftest import StubExtractor, make_metadata
from import_scout.api import create_app
from import_scout.models import OpportunityReport, ProductMetadata
from import_scout.providers.local_retail import LocalRetailExtraction, MarketplaceSuggestion


@pytest.fixture
def client(make_pipeline):
    extractor = StubExtractor(
        {
            ProductMetadata: make_metadata(),
            MarketplaceSuggestion: MarketplaceSuggestion(domains=["falabella.com"], language_code="es"),
            LocalRetailExtraction: LocalRetailExtraction(),
            OpportunityReport: OpportunityReport(opportunity_score=55, overall_verdict="Viable."),
        }
    )
    with TestClient(create_app(pipeline=make_pipeline(extractor))) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_initiate_session_with_explicit_country(client):
    response = client.post("/sessions", json={"raw_query": "wireless earbuds", "country_code": "CL"})

    assert response.status_code == 200
    body = response.json()
    assert body["geolocation"]["country_code"] == "CL"
    assert body["product_metadata"]["hs_code"] == "851830"
    assert body["session_id"]


def test_initiate_session_geolocates_forwarded_ip(client, providers):
    providers.geolocation = {"status": "success", "countryCode": "MX", "country": "Mexico"}
    response = client.post(
        "/sessions",
        json={"raw_query": "wireless earbuds"},
        headers={"x-forwarded-for": "189.1.2.3, 10.0.0.1"},
    )

    assert response.json()["geolocation"]["country_code"] == "MX"
    assert any(request.url.path == "/json/189.1.2.3" for request in providers.requests)


def test_empty_query_is_rejected(client):
    assert client.post("/sessions", json={"raw_query": ""}).status_code == 422


def test_opportunity_before_sourcing_is_precondition_failure(client):
    session_id = client.post("/sessions", json={"raw_query": "earbuds", "country_code": "CL"}).json()["session_id"]
    response = client.post(f"/sessions/{session_id}/opportunity")

    assert response.status_code == 412
    body = response.json()
    assert body["code"] == "incomplete_prerequisites"
    assert body["details"]["missing"] == ["sourcing"]


def test_full_session_over_http(client):
    session_id = client.post("/sessions", json={"raw_query": "earbuds", "country_code": "CL"}).json()["session_id"]

    sourcing = client.post(
        f"/sessions/{session_id}/sourcing",
        json={"normalized_query": "wireless earbuds", "country_code": "CL"},
    )
    assert sourcing.status_code == 200
    assert sourcing.json()["local_currency_code"] == "CLP"

    assert client.get(f"/sessions/{session_id}/opportunity").status_code == 404

    first = client.post(f"/sessions/{session_id}/opportunity")
    second = client.post(f"/sessions/{session_id}/opportunity")
    assert first.status_code == 200
    assert first.json() == second.json()
    assert client.get(f"/sessions/{session_id}/opportunity").json()["opportunity_score"] == 55

    data = client.get(f"/sessions/{session_id}").json()["data"]
    assert set(data) == {"product_metadata", "sourcing"}


def test_unknown_session_is_not_found(client):
    response = client.get("/sessions/does-not-exist")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
