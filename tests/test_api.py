"""
Tests for the catalog HTTP endpoints.
"""
import pytest
from fastapi.testclient import TestClient

from tvcatalog.main import create_app
from tvcatalog.services.loaders import InMemoryEntityLoader


@pytest.fixture
def client(settings, make_service, collections):
    app = create_app(settings, make_service(InMemoryEntityLoader(collections)))
    with TestClient(app) as client:
        yield client


class TestViewEndpoints:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_country_view(self, client):
        """Country view is returned with groups, reference lists and stats."""
        response = client.get("/api/views/country")
        assert response.status_code == 200

        body = response.json()
        assert body["view_type"] == "country"
        assert [ch["name"] for ch in body["groups"]["France"]] == ["France 24 (1080p)", "Arte (FHD)"]
        assert [c["name"] for c in body["countries"]] == ["France", "Germany", "United Kingdom"]
        assert body["stats"]["orphan_streams"] == 1

    def test_category_view_with_caps(self, client):
        response = client.get("/api/views/category", params={"unlimited": "false"})
        assert response.status_code == 200
        assert len(response.json()["groups"]) == 4

    def test_unsupported_view_type(self, client):
        response = client.get("/api/views/language")
        assert response.status_code == 400
        assert "language" in response.json()["detail"]

    def test_stats(self, client):
        response = client.get("/api/stats")
        assert response.status_code == 200
        assert response.json()["channels_with_streams"] == 4

    def test_search(self, client):
        response = client.get("/api/search", params={"q": "arte"})
        body = response.json()
        assert body["total"] == 2
        assert {hit["category"] for hit in body["results"]} == {"Culture", "Movies"}

    def test_empty_search(self, client):
        response = client.get("/api/search", params={"q": ""})
        assert response.json()["results"] == []


class TestSourceUnavailable:

    def test_view_returns_503(self, settings, make_service, collections):
        """A loader failure is reported, not served as an empty view."""
        del collections["streams"]
        app = create_app(settings, make_service(InMemoryEntityLoader(collections)))

        with TestClient(app) as client:
            response = client.get("/api/views/category")

        assert response.status_code == 503
        assert "streams" in response.json()["detail"]


class TestPlaylistEndpoint:

    def test_parse_playlist(self, client, sample_m3u_content):
        response = client.post(
            "/api/playlist/parse",
            content=sample_m3u_content,
            headers={"Content-Type": "text/plain"},
        )
        assert response.status_code == 200

        body = response.json()
        assert list(body["groups"]) == ["Culture", "News", "Uncategorized"]
        assert body["groups"]["News"][0]["name"] == "BBC World"


class TestCacheEndpoint:

    def test_requires_admin_key(self, client):
        response = client.delete("/api/cache")
        assert response.status_code == 401
        assert "admin api key" in response.json()["detail"].lower()

    def test_clears_with_admin_key(self, client, settings):
        client.get("/api/views/country")
        response = client.delete("/api/cache", params={"X-Admin-Key": settings.admin_api_key})
        assert response.status_code == 200
        assert response.json() == {"status": "cleared"}


class TestAppFactory:

    def test_configures_logging(self, settings, make_service, collections, monkeypatch):
        """Logging is set up on every launch path, not only under __main__."""
        calls = []
        monkeypatch.setattr("tvcatalog.main.configure_logging", calls.append)

        create_app(settings, make_service(InMemoryEntityLoader(collections)))

        assert calls == [settings]
