"""Exception hierarchy for the monitoring pipeline."""


class MonitorError(Exception):
    """Base class for pipeline errors."""
    pass


class ConfigurationError(MonitorError):
    """Invalid or incomplete configuration."""
    pass


class FetchError(MonitorError):
    """A source page could not be fetched."""

    def __init__(self, url: str, message: str, status: int | None = None):
        self.url = url
        self.status = status
        super().__init__(f"Failed to fetch {url}: {message}")


class StorageError(MonitorError):
    """Storage backend failure."""
    pass


class DuplicateRecordError(StorageError):
    """A unique constraint (URL or content hash) was violated."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Duplicate {field}: {value}")


class SourceNotFoundError(StorageError):
    """No source with the requested id."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Source not found: {source_id}")


class ClassifierError(MonitorError):
    """External sentiment classifier failure."""
    pass
