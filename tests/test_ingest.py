import json
import threading

import pytest
from websockets.protocol import State

from conftest import count_predictions, drain
from esc50monitor.database import Database
from esc50monitor.errors import MalformedMessage, StorageUnavailable, UnknownLabel
from esc50monitor.ingest import PredictionService
from esc50monitor.models import PredictionRequest


def _request(label="dog", **kwargs):
    return PredictionRequest(
        audio_file=kwargs.pop("audio_file", f"1-000001-0-{label}.wav"),
        predicted_class=label,
        confidence=kwargs.pop("confidence", 0.93),
        **kwargs,
    )


def test_ingest_stores_row_with_resolved_category(service, database):
    event = service.ingest(_request(metadata={"fold": 1}))

    assert event.id >= 1
    assert event.label.name == "dog"
    assert event.label.category.name == "Animals"
    with database.connect() as conn:
        row = conn.fetch_one(
            "SELECT p.audio_file, p.confidence, p.metadata, l.name AS label, c.name AS category "
            "FROM predictions p JOIN labels l ON p.label_id = l.id "
            "JOIN categories c ON l.category_id = c.id WHERE p.id = %s",
            (event.id,),
        )
    assert row["label"] == "dog"
    assert row["category"] == "Animals"
    assert row["confidence"] == 0.93
    assert json.loads(row["metadata"]) == {"fold": 1}


def test_unknown_label_writes_and_broadcasts_nothing(service, database, observer_factory):
    observer = observer_factory()

    with pytest.raises(UnknownLabel) as exc:
        service.submit(_request("unicorn")).result()

    assert exc.value.name == "unicorn"
    assert count_predictions(database) == 0
    assert drain(observer) == []


def test_ids_increase_and_duplicates_are_not_merged(service, database):
    first = service.ingest(_request(audio_file="same.wav"))
    second = service.ingest(_request(audio_file="same.wav"))
    assert second.id > first.id
    assert count_predictions(database) == 2


def test_values_are_stored_without_clamping(service):
    event = service.ingest(_request(confidence=1.5, processing_time=-1.0))
    assert event.confidence == 1.5
    assert event.processing_time == -1.0


def test_submit_broadcasts_to_every_live_observer(service, observer_factory):
    first = observer_factory()
    second = observer_factory()
    closed = observer_factory(state=State.CLOSED)

    event = service.submit(_request(metadata={"model_version": "ESC-CNN-v2.1"})).result()

    [msg_a] = drain(first)
    [msg_b] = drain(second)
    assert msg_a == msg_b
    payload = json.loads(msg_a)
    assert payload["type"] == "prediction"
    assert payload["id"] == event.id
    assert payload["predicted_class"] == "dog"
    assert payload["superclass"] == "Animals"
    assert payload["metadata"] == {"model_version": "ESC-CNN-v2.1"}
    assert drain(closed) == []


def test_submit_message_rejects_malformed_before_queueing(service, database):
    with pytest.raises(MalformedMessage):
        service.submit_message({"type": "prediction", "predicted_class": "dog"})
    assert count_predictions(database) == 0


def test_concurrent_submissions_are_neither_lost_nor_duplicated(service, database, observer_factory):
    observer = observer_factory()
    labels = ["dog", "cat", "rain", "siren", "train"] * 6
    results = []
    lock = threading.Lock()

    def produce(label):
        event = service.submit(_request(label)).result()
        with lock:
            results.append(event.id)

    threads = [threading.Thread(target=produce, args=(label,)) for label in labels]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(results) == len(labels)
    assert len(set(results)) == len(labels)
    assert count_predictions(database) == len(labels)
    # completion order may differ from arrival order; only the set is guaranteed
    broadcast_ids = [json.loads(msg)["id"] for msg in drain(observer)]
    assert sorted(broadcast_ids) == sorted(results)


def test_storage_failure_is_reported_to_the_caller(tmp_path):
    service = PredictionService(Database(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}"))
    try:
        with pytest.raises(StorageUnavailable):
            service.submit(_request()).result()
    finally:
        service.shutdown()
