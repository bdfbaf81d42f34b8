class RecordsError(Exception):
    """Base class for every failure raised by the record services."""


class ValidationError(RecordsError):
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Invalid {field}: {message}")


class NotFoundError(RecordsError):
    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} not found: {entity_id}")


class DependencyError(RecordsError):
    """Deletion blocked while other records still reference the entity."""

    def __init__(self, entity_id: str, blocking_reasons: list[str]):
        self.entity_id = entity_id
        self.blocking_reasons = list(blocking_reasons)
        super().__init__(
            f"Cannot delete {entity_id}: has {', '.join(self.blocking_reasons)}"
        )


class PersistenceError(RecordsError):
    def __init__(self, path: str, message: str, action: str = "write"):
        self.path = path
        self.message = message
        self.action = action
        super().__init__(f"Could not {action} {path}: {message}")


class ConfigurationError(RecordsError):
    """Raised at startup when the services are wired incompletely."""
