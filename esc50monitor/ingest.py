# ingest.py
import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from .broadcaster import ConnectionRegistry, Observer, broadcast
from .errors import UnknownLabel
from .models import PredictionEvent, parse_prediction
from .taxonomy import resolve_label


class PredictionService:
    """
    Owns storage, the live connection registry and the single ingestion worker.

    Every accepted prediction goes resolve label -> write -> broadcast as one
    unit of work on the worker, so observers see events in acceptance order.
    """

    def __init__(self, database, queue_size=100):
        self.database = database
        self.registry = ConnectionRegistry()
        self.queue_size = queue_size
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ingest")

    # -- connections ---------------------------------------------------------

    def connect(self, connection):
        """Register a streaming connection and start its sender."""
        observer = Observer(connection, maxsize=self.queue_size)
        observer.start()
        self.registry.add(observer)
        print(f"🔗 New streaming connection ({len(self.registry)} live)")
        return observer

    def disconnect(self, observer):
        self.registry.remove(observer)
        observer.stop()
        print(f"🛑 Streaming connection closed ({len(self.registry)} live)")

    # -- ingestion -----------------------------------------------------------

    def ingest(self, prediction):
        """
        Resolve the label and append one row. Raises UnknownLabel (no write)
        or StorageUnavailable. Returns the stored PredictionEvent.
        """
        with self.database.connect() as conn:
            label = resolve_label(conn, prediction.predicted_class)
            if label is None:
                print(f"❌ Label not found: {prediction.predicted_class}")
                raise UnknownLabel(prediction.predicted_class)

            created_at = datetime.now(timezone.utc)
            prediction_id = conn.insert(
                "INSERT INTO predictions "
                "(audio_file, label_id, confidence, processing_time, metadata, created_at) "
                "VALUES (%s, %s, %s, %s, %s, %s)",
                (
                    prediction.audio_file,
                    label.id,
                    prediction.confidence,
                    prediction.processing_time,
                    json.dumps(prediction.metadata),
                    created_at,
                ),
            )

        print(f"✅ Prediction stored [ID: {prediction_id}] "
              f"{label.name} ({prediction.confidence:.3f})")
        return PredictionEvent(
            id=prediction_id,
            audio_file=prediction.audio_file,
            label=label,
            confidence=prediction.confidence,
            processing_time=prediction.processing_time,
            metadata=prediction.metadata,
            created_at=created_at,
            extra=prediction.extra,
        )

    def broadcast(self, event):
        return broadcast(self.registry, event.to_message())

    def _ingest_and_broadcast(self, prediction):
        event = self.ingest(prediction)
        self.broadcast(event)
        return event

    def submit(self, prediction):
        """Queue one prediction on the ingestion worker. Returns a Future."""
        return self._executor.submit(self._ingest_and_broadcast, prediction)

    def submit_message(self, data):
        """Validate a raw wire/body object and queue it. Raises MalformedMessage."""
        return self.submit(parse_prediction(data))

    def shutdown(self):
        self._executor.shutdown(wait=True)
