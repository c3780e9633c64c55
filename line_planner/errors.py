# Error types for the production line planner.
# Version: 1.0.0
# Order form and import validation, settings, file import, and storage failures.

from pathlib import Path
from typing import Any


class PlannerError(Exception):
    """Base class for line planner errors.

    Attributes:
        message: Human-readable error description.
        details: Context rendered after the message, e.g. the failing field.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message


class ValidationError(PlannerError):
    """Raised when an order cannot be accepted as entered.

    The order form raises it for a missing product code; imports raise it
    for missing columns and blank products, with the offending row.

    Attributes:
        field: Form field or spreadsheet column.
        value: Value that was rejected.
        reason: Why the value was rejected.
        row: Row (spreadsheet, 1-indexed with header) or record number.
    """

    def __init__(
        self,
        field: str,
        value: Any,
        reason: str,
        row: int | None = None
    ) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        self.row = row

        details = {"field": field, "value": repr(value)}
        if row is not None:
            details["row"] = row

        location = f" in row {row}" if row else ""
        super().__init__(f"Invalid {field}{location}: {reason}. Got: {repr(value)}", details)


class ConfigurationError(PlannerError):
    """Raised when settings.yaml cannot be turned into planner settings.

    Examples are an unknown storage backend, a remote backend without a
    URL, and product entries without a code.

    Attributes:
        config_source: Settings section, e.g. "storage" or "products".
        issue: What is wrong with it.
    """

    def __init__(self, config_source: str, issue: str) -> None:
        self.config_source = config_source
        self.issue = issue
        super().__init__(
            f"Configuration error in {config_source}: {issue}",
            {"source": config_source}
        )


class FileLoadError(PlannerError):
    """Raised when an order import or the settings file cannot be read.

    Attributes:
        filepath: Path of the file.
        cause: Exception raised while reading or parsing it.
    """

    def __init__(self, filepath: str, cause: Exception) -> None:
        self.filepath = filepath
        self.cause = cause

        cause_type = type(cause).__name__
        super().__init__(
            f"Failed to load {Path(filepath).name}: {cause_type} - {cause}",
            {"filepath": filepath, "cause_type": cause_type}
        )


class StorageError(PlannerError):
    """Raised when a storage backend rejects a read or write.

    The planner reports these but never retries them; the caller decides
    whether to resubmit.

    Attributes:
        backend: Storage backend name ("local" or "remote").
        operation: Operation that failed (load, write, upsert, remove).
        cause: The underlying exception.
    """

    def __init__(self, backend: str, operation: str, cause: Exception) -> None:
        self.backend = backend
        self.operation = operation
        self.cause = cause

        cause_type = type(cause).__name__
        message = f"Storage {operation} failed on {backend} backend: {cause_type} - {cause}"
        super().__init__(
            message,
            {"backend": backend, "operation": operation, "cause_type": cause_type}
        )


class OrderNotFoundError(PlannerError):
    """Raised when an edit targets an order id that is not in the collection.

    Attributes:
        item_id: Identifier that was not found.
    """

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Order {item_id} not found", {"id": item_id})
