"""
Boundary Parsing

DESIGN DECISION: Every raw value entering the system is parsed here,
before any store call is made. Parsing NEVER silently fixes input:
a bad id, date, amount, or payload raises a typed error and the
operation does not proceed with partial data.

Callers may pass either the raw string forms (as received from a
transport) or already-typed Python values.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar, Union

from bson import ObjectId
from pydantic import TypeAdapter, ValidationError

from household_finance.services.storage.codec import to_object_id
from household_finance.services.storage.interface import (
    InvalidDateError,
    InvalidPayloadError,
)

T = TypeVar("T")

DateInput = Union[str, date, datetime]


def parse_date(value: DateInput) -> date:
    """
    Parse a calendar date.

    Accepts YYYY-MM-DD, a full ISO 8601 timestamp (its date part is used),
    or a date/datetime object.

    Raises:
        InvalidDateError: If the value is not a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDateError(f"Not a date: {value!r}")

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidDateError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def parse_amount(value: Union[str, int, float, Decimal]) -> Decimal:
    """
    Parse a monetary amount such as "123.45".

    Raises:
        InvalidPayloadError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidPayloadError(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidPayloadError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidPayloadError(f"Invalid amount: {value!r}")
    return amount


def parse_count(value: Union[str, int, None], name: str) -> int:
    """
    Parse a non-negative integer such as a limit or skip.

    Absent or empty values are 0.
    """
    if value is None or value == "":
        return 0
    try:
        count = int(str(value).strip())
    except ValueError:
        raise InvalidPayloadError(f"Invalid {name}: {value!r}")
    if count < 0:
        raise InvalidPayloadError(f"{name} cannot be negative: {value!r}")
    return count


def parse_object_id(value: Any) -> ObjectId:
    """
    Parse a record id.

    Raises:
        InvalidIdentifierError: If the value is not a 24-character hex id
    """
    return to_object_id(value)


def validate_identifier(value: Any) -> str:
    """Check a record id and return its string form."""
    return str(parse_object_id(value))


def parse_json_payload(raw: Any, type_: Any, field: str) -> Any:
    """
    Validate a structured payload against a type.

    raw may be JSON text or an already-decoded value.

    Raises:
        InvalidPayloadError: If the JSON is malformed or the shape is wrong
    """
    adapter = TypeAdapter(type_)
    try:
        if isinstance(raw, (str, bytes)):
            return adapter.validate_json(raw)
        return adapter.validate_python(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or field}: {error['msg']}"
            for error in e.errors()
        )
        raise InvalidPayloadError(f"Invalid {field}: {problems}") from e
