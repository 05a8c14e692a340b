"""
Shared validation helpers for agentmem services.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from agentmem.config import MAX_METADATA_BYTES, MAX_SHORT_TEXT_LENGTH
from agentmem.errors import ValidationError


def validate_required_text(value: str, field: str, max_len: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationError(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationError(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_content(value: Any, field: str, max_len: int) -> None:
    """Content may be empty but must be a string."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationError(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_agent_id(agent_id: str) -> None:
    validate_required_text(agent_id, "agent_id", MAX_SHORT_TEXT_LENGTH)


def validate_limit(value: int, field: str, max_value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field, error_type="invalid_type")
    if value <= 0 or value > max_value:
        raise ValidationError(f"{field} must be between 1 and {max_value}", field=field, error_type="out_of_range")


def validate_string_list(
    values: Optional[Sequence[str]],
    field: str,
    max_items: int,
    max_item_length: int,
) -> None:
    if values is None:
        return
    if not isinstance(values, (list, tuple)):
        raise ValidationError(f"{field} must be a list", field=field, error_type="invalid_type")
    if len(values) > max_items:
        raise ValidationError(f"{field} exceeds max items {max_items}", field=field, error_type="max_items")
    for item in values:
        if not isinstance(item, str):
            raise ValidationError(f"{field} must contain only strings", field=field, error_type="invalid_type")
        if len(item) > max_item_length:
            raise ValidationError(
                f"{field} item exceeds max length {max_item_length}",
                field=field,
                error_type="max_length",
            )


def validate_metadata(metadata: Optional[dict], field: str) -> None:
    if metadata is None:
        return
    if not isinstance(metadata, dict):
        raise ValidationError(f"{field} must be an object", field=field, error_type="invalid_type")
    try:
        size = len(json.dumps(metadata))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be JSON-serializable", field=field, error_type="invalid_type") from exc
    if size > MAX_METADATA_BYTES:
        raise ValidationError(
            f"{field} exceeds max size {MAX_METADATA_BYTES} bytes",
            field=field,
            error_type="max_bytes",
        )


def validate_non_negative_int(value: Any, field: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer", field=field, error_type="invalid_type")


def parse_timestamp(value: Any, field: str) -> datetime:
    """Parse an ISO-8601 value into naive UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(
                f"{field} must be an ISO-8601 timestamp",
                field=field,
                error_type="invalid_timestamp",
            ) from exc
    else:
        raise ValidationError(
            f"{field} must be an ISO-8601 timestamp",
            field=field,
            error_type="invalid_timestamp",
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_json_object(payload: Any, field: str) -> dict:
    """Accept a dict or a JSON string holding an object."""
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise ValidationError(f"{field} is not valid JSON: {exc}", field=field, error_type="malformed_json") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError(f"{field} must be a JSON object", field=field, error_type="invalid_type")
    return payload
