"""Boundary parsing package."""

from household_finance.validation.parsing import (
    parse_amount,
    parse_count,
    parse_date,
    parse_json_payload,
    parse_object_id,
    validate_identifier,
)

__all__ = [
    "parse_amount",
    "parse_count",
    "parse_date",
    "parse_json_payload",
    "parse_object_id",
    "validate_identifier",
]
