"""Exception hierarchy for the prediction monitor."""


class MonitorError(Exception):
    """Base exception for all monitor errors."""


class IngestError(MonitorError):
    """A prediction was refused. Reported to the caller only, never broadcast."""


class UnknownLabel(IngestError):
    """The predicted class has no matching taxonomy entry."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Label '{name}' not found in taxonomy")


class MalformedMessage(IngestError):
    """Payload is not parseable or has fields of the wrong type."""


class MissingField(MalformedMessage):
    """A required field is absent, null or empty."""

    def __init__(self, field):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class StorageUnavailable(MonitorError):
    """The underlying store could not be reached or failed mid-operation."""
