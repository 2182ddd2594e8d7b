import json

import pytest

from conftest import FakeConnection, count_predictions, drain
from esc50monitor.app import create_app
from esc50monitor.broadcaster import Observer

DOG = {"audio_file": "1-000001-0-dog.wav", "predicted_class": "dog", "confidence": 0.93}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "OK"
    assert body["database"] == "ESC-50 Ready"
    assert body["timestamp"]


def test_post_then_list_dog_prediction(client):
    response = client.post("/api/predictions", json=DOG)
    assert response.status_code == 200
    body = response.get_json()
    assert body["id"] >= 1
    assert body["superclass"] == "Animals"
    assert body["message"]

    rows = client.get("/api/predictions").get_json()
    assert len(rows) == 1
    assert rows[0]["id"] == body["id"]
    assert rows[0]["predicted_class"] == "dog"
    assert rows[0]["superclass"] == "Animals"
    assert rows[0]["metadata"] == {}


def test_post_unknown_label_is_refused(client, database):
    response = client.post("/api/predictions", json={**DOG, "predicted_class": "unicorn"})
    assert response.status_code == 500
    assert "unicorn" in response.get_json()["error"]
    assert count_predictions(database) == 0
    assert client.get("/api/stats").get_json()["total_count"] == 0


@pytest.mark.parametrize("field", ["audio_file", "predicted_class", "confidence"])
def test_post_missing_field_is_client_error(client, database, field):
    body = {k: v for k, v in DOG.items() if k != field}
    response = client.post("/api/predictions", json=body)
    assert response.status_code == 400
    assert field in response.get_json()["error"]
    assert count_predictions(database) == 0


def test_post_non_json_body(client):
    response = client.post("/api/predictions", data="not json", content_type="text/plain")
    assert response.status_code == 400


def test_post_broadcasts_to_streaming_observers(app, client):
    service = app.extensions["prediction_service"]
    observer = Observer(FakeConnection())
    service.registry.add(observer)

    metadata = {"fold": 3, "model_version": "ESC-CNN-v2.1"}
    body = client.post("/api/predictions", json={**DOG, "metadata": metadata}).get_json()

    [msg] = drain(observer)
    payload = json.loads(msg)
    assert payload["id"] == body["id"]
    assert payload["metadata"] == metadata
    assert payload["audio_file"] == DOG["audio_file"]


def test_failed_post_broadcasts_nothing(app, client):
    observer = Observer(FakeConnection())
    app.extensions["prediction_service"].registry.add(observer)
    client.post("/api/predictions", json={**DOG, "predicted_class": "unicorn"})
    client.post("/api/predictions", json={"predicted_class": "dog"})
    assert drain(observer) == []


def test_stats_empty(client):
    body = client.get("/api/stats").get_json()
    assert body["total_count"] == 0
    assert body["average_confidence"] is None
    assert body["per_label_counts"] == []
    assert body["per_category_counts"] == []


def test_stats_after_posts(client):
    client.post("/api/predictions", json=DOG)
    client.post("/api/predictions", json={**DOG, "predicted_class": "rain", "confidence": 0.5})
    body = client.get("/api/stats").get_json()
    assert body["total_count"] == 2
    assert body["count_in_last_24h"] == 2
    assert body["average_confidence"] == pytest.approx(0.715)


def test_predictions_limit_param(client):
    for _ in range(4):
        client.post("/api/predictions", json=DOG)
    assert len(client.get("/api/predictions?limit=2").get_json()) == 2
    assert len(client.get("/api/predictions?limit=0").get_json()) == 1


def test_classes(client):
    rows = client.get("/api/classes").get_json()
    assert len(rows) == 50
    assert rows[0]["superclass"] == "Animals"
    assert rows[0]["name"] == "cat"


def test_esc50_info(client):
    body = client.get("/api/esc50-info").get_json()
    assert body["total_categories"] == 5
    assert body["total_classes"] == 50
    assert [c["category"] for c in body["categories"]][0] == "Animals"


def test_cors_allows_dashboard_origin(client):
    response = client.get("/api/health", headers={"Origin": "http://localhost:3000"})
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"


def test_storage_unavailable(tmp_path):
    app = create_app({
        "TESTING": True,
        "DATABASE_URL": f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}",
    })
    client = app.test_client()
    try:
        health = client.get("/api/health")
        assert health.status_code == 503
        assert health.get_json()["status"] == "DEGRADED"

        assert client.get("/api/predictions").status_code == 503
        assert client.get("/api/stats").status_code == 503
        assert client.post("/api/predictions", json=DOG).status_code == 503
    finally:
        app.extensions["prediction_service"].shutdown()


def test_post_huge_integer_confidence_is_stored(client):
    response = client.post("/api/predictions", json={**DOG, "confidence": 10**20})
    assert response.status_code == 200
    [row] = client.get("/api/predictions").get_json()
    assert row["confidence"] == 1e20


def test_post_out_of_range_number_is_client_error(client, database):
    body = '{"audio_file": "a.wav", "predicted_class": "dog", "confidence": 1' + "0" * 400 + "}"
    response = client.post("/api/predictions", data=body, content_type="application/json")
    assert response.status_code == 400
    assert "confidence" in response.get_json()["error"]
    assert count_predictions(database) == 0
