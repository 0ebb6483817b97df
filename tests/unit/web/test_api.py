"""End-to-end tests for the HTTP and WebSocket surface."""

import pytest
from fastapi.testclient import TestClient

from swiftqueue.app import App
from swiftqueue.core.modules.event.sink import EventHub
from swiftqueue.web.server import create_fastapi_app


@pytest.fixture
def client(app, config):
    fastapi_app = create_fastapi_app(app, config)
    with TestClient(fastapi_app) as test_client:
        yield test_client


def _issue(client, category="Parcel Drop-off"):
    response = client.post("/api/v1/tokens", json={"category": category})
    assert response.status_code == 201
    return response.json()


def _counter(client, number=1):
    response = client.post("/api/v1/counters", json={"number": number})
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestTokensApi:
    def test_generate_token(self, client):
        body = _issue(client)

        assert body["code"] == "P-001"
        assert body["state"] == "waiting"
        assert body["queue_position"] == 1
        assert body["estimated_wait_minutes"] == 0
        assert body["category"] == "Parcel Drop-off"

    def test_generate_accepts_category_name(self, client):
        assert _issue(client, "banking")["code"] == "B-001"

    def test_invalid_category(self, client):
        response = client.post("/api/v1/tokens", json={"category": "Lost Property"})

        assert response.status_code == 400
        assert response.json()["type"] == "invalid_category"

    def test_token_details(self, client):
        _issue(client)
        _issue(client)

        response = client.get("/api/v1/tokens/P-002")

        assert response.status_code == 200
        assert response.json()["queue_position"] == 2

    def test_unknown_token(self, client):
        response = client.get("/api/v1/tokens/X-999")

        assert response.status_code == 404
        assert response.json()["type"] == "not_found"

    def test_waiting_list_and_next(self, client):
        assert client.get("/api/v1/tokens/queue/next").json() is None
        _issue(client, "General Inquiry")
        _issue(client)

        waiting = client.get("/api/v1/tokens/queue/waiting", params={"limit": 1}).json()
        upcoming = client.get("/api/v1/tokens/queue/next").json()

        assert waiting["total"] == 2
        assert [item["code"] for item in waiting["items"]] == ["G-001"]
        assert upcoming["code"] == "G-001"

    def test_serve_flow(self, client):
        counter = _counter(client)
        _issue(client)
        _issue(client)

        called = client.post("/api/v1/tokens/call-next", json={"counter_id": counter["id"]})
        assert called.status_code == 200
        assert called.json()["code"] == "P-001"
        assert called.json()["state"] == "serving"
        assert called.json()["counter_number"] == 1

        busy = client.post("/api/v1/tokens/P-002/assign", json={"counter_id": counter["id"]})
        assert busy.status_code == 409
        assert busy.json()["type"] == "counter_unavailable"

        done = client.post("/api/v1/tokens/P-001/complete")
        assert done.status_code == 200
        assert done.json()["state"] == "completed"
        assert done.json()["counter_id"] is None

        again = client.post("/api/v1/tokens/P-001/complete")
        assert again.status_code == 409
        assert again.json()["type"] == "invalid_transition"

    def test_call_next_on_empty_queue(self, client):
        counter = _counter(client)

        response = client.post("/api/v1/tokens/call-next", json={"counter_id": counter["id"]})

        assert response.status_code == 404


class TestCountersApi:
    def test_register_and_list(self, client):
        created = _counter(client, 2)
        assert created["id"] == 1
        assert created["number"] == 2
        assert created["status"] == "active"

        listed = client.get("/api/v1/counters").json()
        assert [(c["number"], c["serving_token"]) for c in listed] == [(2, None)]

    def test_duplicate_number(self, client):
        _counter(client)

        response = client.post("/api/v1/counters", json={"number": 1})

        assert response.status_code == 409
        assert response.json()["type"] == "duplicate_counter"

    def test_invalid_number(self, client):
        assert client.post("/api/v1/counters", json={"number": 0}).status_code == 422

    def test_status_change_rejected_while_serving(self, client):
        counter = _counter(client)
        _issue(client)
        client.post("/api/v1/tokens/P-001/assign", json={"counter_id": counter["id"]})

        response = client.patch(f"/api/v1/counters/{counter['id']}/status", json={"status": "inactive"})

        assert response.status_code == 409
        assert response.json()["type"] == "counter_busy"
        assert client.get("/api/v1/counters/available").json() == []

    def test_deactivate_and_delete(self, client):
        counter = _counter(client)

        deactivated = client.patch(f"/api/v1/counters/{counter['id']}/status", json={"status": "inactive"})
        assert deactivated.status_code == 200
        assert deactivated.json()["status"] == "inactive"

        assert client.delete(f"/api/v1/counters/{counter['id']}").status_code == 204
        assert client.delete(f"/api/v1/counters/{counter['id']}").status_code == 404

    def test_auto_assign(self, client):
        assert client.post("/api/v1/counters/auto-assign", json={}).json() == {"assigned": False}
        counter = _counter(client)
        _issue(client)

        response = client.post("/api/v1/counters/auto-assign", json={"counter_id": counter["id"]})

        assert response.json() == {"assigned": True}
        assert client.get("/api/v1/tokens/P-001").json()["state"] == "serving"


class TestStatsApi:
    def test_statistics_endpoints(self, client):
        _counter(client)
        _issue(client)

        stats = client.get("/api/v1/stats").json()
        categories = client.get("/api/v1/stats/categories").json()
        hourly = client.get("/api/v1/stats/hourly").json()
        utilization = client.get("/api/v1/stats/counters").json()
        summary = client.get("/api/v1/stats/queue").json()

        assert stats["total_tokens_today"] == 1
        assert stats["active_counters"] == 1
        assert len(categories) == 4
        assert len(hourly) == 24
        assert utilization["busy_counters"] == 0
        assert summary["total_waiting"] == 1


class TestEventStream:
    def test_events_are_broadcast(self, client):
        with client.websocket_connect("/events") as websocket:
            _issue(client)

            message = websocket.receive_json()

        assert message["event"] == "token_generated"
        assert message["data"]["token"]["code"] == "P-001"
        assert message["data"]["statistics"]["tokens_in_queue"] == 1

    def test_disconnect_releases_subscription(self, config):
        hub = EventHub(queue_size=2)
        fastapi_app = create_fastapi_app(App(config, hub), config)
        with TestClient(fastapi_app) as client:
            with client.websocket_connect("/events") as websocket:
                _issue(client)
                assert websocket.receive_json()["event"] == "token_generated"
                assert hub.subscriber_count == 1

            assert hub.subscriber_count == 0
            for _ in range(3):
                _issue(client)
