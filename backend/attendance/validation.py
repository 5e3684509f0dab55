from __future__ import annotations
from datetime import datetime
from attendance.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from attendance.errors import ValidationError


# Free-text fields are capped so a single entry cannot bloat exports
MAX_TEXT_LENGTH = 2000

TEXT = "text"
DATETIME = "datetime"
BOOL = "bool"
INT = "int"


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer for JSON request bodies:
    - fields: allowlist of accepted keys and their kind (text/datetime/bool/int)
    - required: keys that must be present and non-blank
    """
    fields: dict[str, str]
    required: set[str] = field(default_factory=set)


CLOCK_IN_POLICY = PayloadPolicy(fields={"note": TEXT, "deviceInfo": TEXT})

CLOCK_OUT_POLICY = PayloadPolicy(fields={"workSummary": TEXT})

EDIT_ENTRY_POLICY = PayloadPolicy(
    fields={
        "clockIn": DATETIME,
        "clockOut": DATETIME,
        "editReason": TEXT,
        "workSummary": TEXT,
        "versionId": INT,
    },
)

FLAG_ENTRY_POLICY = PayloadPolicy(
    fields={"isFlagged": BOOL, "flagReason": TEXT, "versionId": INT},
    required={"isFlagged"},
)

MANUAL_ENTRY_POLICY = PayloadPolicy(
    fields={
        "employeeId": INT,
        "clockIn": DATETIME,
        "clockOut": DATETIME,
        "workSummary": TEXT,
        "manualEntryReason": TEXT,
    },
    required={"employeeId", "clockIn", "clockOut"},
)


def _coerce_value(key: str, kind: str, value: Any):
    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if kind == INT:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or not stripped.lstrip("-").isdigit():
                raise ValidationError(f"{key} must be an integer")
            return int(stripped)
        raise ValidationError(f"{key} must be an integer")

    # Booleans are strict: the flag toggle must not flip on a truthy string
    if kind == BOOL:
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if kind == DATETIME:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{key} must be an ISO-8601 datetime")

    if kind == TEXT:
        text = str(value).strip()
        if len(text) > MAX_TEXT_LENGTH:
            raise ValidationError(f"{key} exceeds max length {MAX_TEXT_LENGTH}")
        return text

    return value


def validate_payload(payload: Any, policy: PayloadPolicy) -> dict:
    """
    Validates + normalizes an incoming JSON body against a PayloadPolicy.

    Unknown keys are rejected. Returns a cleaned dict containing only the keys
    that were supplied; blank text is normalized to None.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for k in payload.keys():
        if k not in policy.fields:
            raise ValidationError(f"Unknown field: {k}")

    cleaned: dict = {}
    for k, raw in payload.items():
        val = _coerce_value(k, policy.fields[k], raw)
        if isinstance(val, str) and val == "":
            val = None
        cleaned[k] = val

    missing = sorted(k for k in policy.required if cleaned.get(k) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    return cleaned


def require_text(value: str | None, field_name: str) -> str:
    """Return stripped text or raise if it is missing/blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def ensure_chronological(clock_in: datetime, clock_out: datetime | None) -> None:
    if clock_out is not None and clock_out < clock_in:
        raise ValidationError("clockOut must not be earlier than clockIn")
