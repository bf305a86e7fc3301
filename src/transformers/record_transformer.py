#!/usr/bin/env python3
# src/transformers/record_transformer.py
"""Coerces raw text fields of an input row into typed record values."""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from src.errors import FieldCoercionError, MandatoryFieldMissingError
from src.models.entities import ENTITY_FIELDS, EntityKind, FieldSpec, FieldType

TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")


def _parse_int(value: str) -> int:
    """Parse an integer, accepting integral float text such as '3.0'."""
    try:
        return int(value)
    except ValueError:
        number = float(value)
        if not number.is_integer():
            raise ValueError(f"not an integer: {value!r}")
        return int(number)


def _parse_decimal(value: str) -> Decimal:
    """Parse a decimal amount; a decimal comma is accepted ('12,50')."""
    if "," in value and "." not in value:
        value = value.replace(",", ".")
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"not a decimal: {value!r}")
    if not number.is_finite():
        raise ValueError(f"not a finite decimal: {value!r}")
    return number


def _parse_timestamp(value: str) -> datetime:
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"not a timestamp (expected YYYY-MM-DD HH:MM:SS): {value!r}")


_PARSERS = {
    FieldType.STRING: str,
    FieldType.INTEGER: _parse_int,
    FieldType.DECIMAL: _parse_decimal,
    FieldType.TIMESTAMP: _parse_timestamp,
}


def coerce_field(spec: FieldSpec, raw: Optional[str]) -> Any:
    """
    Convert one raw field to its declared type.

    Args:
        spec: Declaration of the target attribute
        raw: Field text as read from the file (None when absent)

    Returns:
        The typed value, or None for an empty optional field

    Raises:
        MandatoryFieldMissingError: the field is empty but mandatory
        FieldCoercionError: the text cannot be converted or is out of range
    """
    value = raw.strip() if raw is not None else ""
    if value == "":
        if spec.mandatory:
            raise MandatoryFieldMissingError(spec.name)
        return None

    try:
        typed = _PARSERS[spec.type](value)
    except ValueError as e:
        raise FieldCoercionError(spec.name, f"Field '{spec.name}': {e}")

    if spec.non_negative and typed < 0:
        raise FieldCoercionError(
            spec.name, f"Field '{spec.name}' must not be negative, got {value!r}"
        )
    return typed


def transform_record(kind: EntityKind, raw: Dict[str, Optional[str]]) -> Dict[str, Any]:
    """
    Build a typed record for `kind` from a row keyed by attribute name.

    The first failing field raises; earlier fields are not reported.
    """
    return {spec.name: coerce_field(spec, raw.get(spec.name)) for spec in ENTITY_FIELDS[kind]}
