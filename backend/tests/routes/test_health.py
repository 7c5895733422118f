"""Health and metrics endpoints."""


class TestHealth:
    def test_health(self, client, clock):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"]["connected"] is True
        assert response.headers["Cache-Control"] == "no-store"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestMetrics:
    def test_exposes_prometheus_text(self, client):
        client.get("/health")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "http_requests_total" in response.text

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "code": "NOT_FOUND", "details": {}}
