"""
TOON errors.

Every error carries a machine-readable code plus an optional hint and
suggestion so tool handlers can surface something actionable to the caller.
"""

from typing import Any, Literal

ResolutionErrorCode = Literal[
    "UNKNOWN_SHORT_KEY",
    "INVALID_KEY_FORMAT",
    "ENTITY_NOT_FOUND",
    "AMBIGUOUS_KEY",
]

RegistryErrorCode = Literal[
    "REGISTRY_INIT_FAILED",
    "REGISTRY_STALE",
    "REGISTRY_CORRUPT",
    "WORKSPACE_FETCH_FAILED",
    "SESSION_NOT_FOUND",
]

EncodingErrorCode = Literal[
    "ENCODING_FAILED",
    "INVALID_SCHEMA",
    "INVALID_DATA",
    "FIELD_MISMATCH",
    "UNSUPPORTED_TYPE",
]


class ToonError(Exception):
    """Base class for short-key and encoding errors."""

    code: str = "TOON_ERROR"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        suggestion: str | None = None,
        cause: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.suggestion = suggestion
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Structured form for tool error payloads."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "hint": self.hint,
            "suggestion": self.suggestion,
            "cause": self.cause,
        }


class ToonResolutionError(ToonError):
    """A short key or UUID could not be resolved."""

    def __init__(
        self,
        code: ResolutionErrorCode,
        message: str,
        *,
        hint: str | None = None,
        suggestion: str | None = None,
        entity_type: str | None = None,
        short_key: str | None = None,
        available_keys: list[str] | None = None,
    ):
        super().__init__(message, hint=hint, suggestion=suggestion)
        self.code = code
        self.entity_type = entity_type
        self.short_key = short_key
        self.available_keys = available_keys

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "entityType": self.entity_type,
            "shortKey": self.short_key,
            "availableKeys": self.available_keys,
        }


class ToonRegistryError(ToonError):
    """The session registry could not be built or is unavailable."""

    def __init__(
        self,
        code: RegistryErrorCode,
        message: str,
        *,
        hint: str | None = None,
        suggestion: str | None = None,
        cause: str | None = None,
        session_id: str | None = None,
    ):
        super().__init__(message, hint=hint, suggestion=suggestion, cause=cause)
        self.code = code
        self.session_id = session_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "sessionId": self.session_id}


class ToonEncodingError(ToonError):
    """A response could not be encoded."""

    def __init__(
        self,
        code: EncodingErrorCode,
        message: str,
        *,
        hint: str | None = None,
        suggestion: str | None = None,
        cause: str | None = None,
        schema_name: str | None = None,
        field_name: str | None = None,
        row_index: int | None = None,
    ):
        super().__init__(message, hint=hint, suggestion=suggestion, cause=cause)
        self.code = code
        self.schema_name = schema_name
        self.field_name = field_name
        self.row_index = row_index

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "schemaName": self.schema_name,
            "fieldName": self.field_name,
            "rowIndex": self.row_index,
        }


def unknown_short_key_error(
    entity_type: str,
    short_key: str,
    available_keys: list[str],
) -> ToonResolutionError:
    """Resolution error for a well-formed key that is not registered."""
    shown = ", ".join(available_keys[:10])
    if len(available_keys) > 10:
        shown += "..."
    return ToonResolutionError(
        "UNKNOWN_SHORT_KEY",
        f"Unknown {entity_type} key '{short_key}'",
        hint=f"Available keys: {shown}",
        suggestion="Call workspace_metadata to refresh available options",
        entity_type=entity_type,
        short_key=short_key,
        available_keys=available_keys,
    )


def invalid_key_format_error(
    entity_type: str,
    short_key: str,
    prefix: str,
) -> ToonResolutionError:
    """Resolution error for a token that does not match the kind's key grammar."""
    return ToonResolutionError(
        "INVALID_KEY_FORMAT",
        f"Invalid {entity_type} key format '{short_key}'",
        hint=f"{entity_type.capitalize()} keys should be in format '{prefix}N' (e.g., {prefix}0, {prefix}1)",
        suggestion="Use the correct key format or call workspace_metadata to see available keys",
        entity_type=entity_type,
        short_key=short_key,
    )
