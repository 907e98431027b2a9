"""Domain exceptions raised by services and mapped to HTTP by the API layer."""


class BulkStageError(Exception):
    """Base class for application errors."""


class NotFoundError(BulkStageError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: object | None = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        label = entity.replace("_", " ").capitalize()
        super().__init__(f"{label} not found")


class UpstreamFailure(BulkStageError):
    """Raised when the persistence layer or the media store fails transiently."""


class ConflictError(BulkStageError):
    """Raised when a unique value (handle, email, community name) is already taken."""
