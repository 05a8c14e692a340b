"""
Shared error types for the store services.
"""


class ValidationError(ValueError):
    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        error_code: str | None = None,
        data: dict | None = None,
    ):
        super().__init__(message)
        self.field = field
        self.error_type = error_type
        self.error_code = error_code
        self.data = data


class UnknownKindError(ValidationError):
    """Raised for an unrecognised store, recall or search kind."""

    def __init__(self, message: str, kind: str | None = None):
        super().__init__(message, field="type", error_type="unknown_kind", data={"kind": kind})
        self.kind = kind


class ConsistencyFailure(RuntimeError):
    """Raised when the search index cannot be kept in step with a primary write."""
