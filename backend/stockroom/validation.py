from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models import RETURN_SOURCES


# Upper bound for a single movement; keeps typos like 10000000 out of the ledger
MAX_MOVEMENT_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate item code)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which JSON keys a route accepts for a model:
    - writable_fields: everything else is rejected outright
    - required_on_create: must be present (and non-null) when partial=False
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion shared by JSON payloads and spreadsheet cells.

    Accepts ints, digit strings and integral floats (spreadsheet cells often
    come back as 3.0); rejects bools, decimals and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    raise ValidationError(f"{key} must be an integer")


def _normalize(col, value: Any) -> Any:
    """JSON value -> column value. Integer columns refuse floats outright; text is stripped."""
    if isinstance(col.type, Integer):
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        return coerce_int(col.key, value)

    if isinstance(col.type, (String, Text)):
        text = str(value).strip()
        if isinstance(col.type, String) and col.type.length and len(text) > col.type.length:
            raise ValidationError(f"{col.key} exceeds max length {col.type.length}")
        return text

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validate request JSON against the policy and the model's columns.

    partial=False: create semantics (required_on_create enforced)
    partial=True: patch semantics (only the keys sent are checked)

    Returns a cleaned dict holding only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = {c.key: c for c in model.__mapper__.columns}

    unknown = sorted(k for k in payload if k not in policy.writable_fields or k not in cols)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    patch: dict = {}
    for key, raw in payload.items():
        col = cols[key]
        required = not partial and key in policy.required_on_create

        if raw is None:
            if required or not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = _normalize(col, raw)
        if value == "" and (required or not col.nullable):
            raise ValidationError(f"{key} cannot be blank")
        patch[key] = value

    return patch


def cell_text(value: Any) -> str:
    """
    Stripped text for a JSON value or spreadsheet cell. Integral floats
    (a code typed as 1001 comes back from openpyxl as 1001.0) lose the ".0".
    """
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def require_text(fields: dict[str, Any]) -> dict[str, str]:
    """
    Strip and require every value; used by service entry points that do not
    go through validate_payload (bulk imports, direct calls).
    """
    cleaned = {}
    missing = []
    for key, value in fields.items():
        text = cell_text(value)
        if not text:
            missing.append(key)
        cleaned[key] = text
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return cleaned


def enforce_rules_quantity(quantity: Any) -> int:
    qty = coerce_int("quantity", quantity)
    if qty <= 0:
        raise ValidationError("quantity must be > 0")
    if qty > MAX_MOVEMENT_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_MOVEMENT_QUANTITY}")
    return qty


def enforce_rules_borrow(patch: dict) -> None:
    for key in ("borrower", "purpose"):
        if not patch.get(key):
            raise ValidationError(f"{key} is required for a borrow")


def enforce_rules_return(patch: dict) -> None:
    source = patch.get("source")
    if source not in RETURN_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(RETURN_SOURCES)}")
