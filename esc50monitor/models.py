# models.py
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Real
from typing import Optional

from .errors import MalformedMessage, MissingField


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Label:
    id: int
    name: str
    category: Category
    description: Optional[str] = None


@dataclass
class PredictionRequest:
    """A validated inbound prediction, not yet stored."""
    audio_file: str
    predicted_class: str
    confidence: float
    processing_time: Optional[float] = None
    metadata: dict = field(default_factory=dict)
    # inbound keys beyond the known fields, echoed back in the broadcast
    extra: dict = field(default_factory=dict)


@dataclass
class PredictionEvent:
    """One durably stored prediction."""
    id: int
    audio_file: str
    label: Label
    confidence: float
    processing_time: Optional[float]
    metadata: dict
    created_at: datetime
    extra: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "id": self.id,
            "audio_file": self.audio_file,
            "predicted_class": self.label.name,
            "superclass": self.label.category.name,
            "confidence": self.confidence,
            "processing_time": self.processing_time,
            "metadata": self.metadata,
            "created_at": to_iso(self.created_at),
        }

    def to_message(self):
        """Wire shape pushed to observers."""
        return {**self.extra, "type": "prediction", **self.to_dict()}


def to_iso(value):
    # psycopg2 hands back datetimes, sqlite hands back the stored text
    if isinstance(value, datetime):
        return value.isoformat()
    return value


KNOWN_FIELDS = {"type", "audio_file", "predicted_class", "confidence", "processing_time", "metadata"}


def _to_float(name, value):
    if isinstance(value, bool) or not isinstance(value, Real):
        raise MalformedMessage(f"Field '{name}' must be a number")
    try:
        return float(value)
    except OverflowError:
        raise MalformedMessage(f"Field '{name}' is too large") from None


def parse_prediction(data):
    """
    Validate a wire message or request body into a PredictionRequest.
    Raises MissingField / MalformedMessage. Ranges are not checked.
    """
    if not isinstance(data, dict):
        raise MalformedMessage("Prediction must be a JSON object")

    for name in ("audio_file", "predicted_class"):
        value = data.get(name)
        if value is None or value == "":
            raise MissingField(name)
        if not isinstance(value, str):
            raise MalformedMessage(f"Field '{name}' must be a string")

    confidence = data.get("confidence")
    if confidence is None:
        raise MissingField("confidence")
    confidence = _to_float("confidence", confidence)

    processing_time = data.get("processing_time")
    if processing_time is not None:
        processing_time = _to_float("processing_time", processing_time)

    metadata = data.get("metadata")
    if metadata is None:
        metadata = {}
    elif not isinstance(metadata, dict):
        raise MalformedMessage("Field 'metadata' must be an object")

    return PredictionRequest(
        audio_file=data["audio_file"],
        predicted_class=data["predicted_class"],
        confidence=confidence,
        processing_time=processing_time,
        metadata=metadata,
        extra={k: v for k, v in data.items() if k not in KNOWN_FIELDS},
    )
