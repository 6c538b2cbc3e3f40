"""
Record <-> Document Conversion

Documents are what the store holds: camelCase keys, an ObjectId under
"_id", floats for amounts and midnight datetimes for calendar dates.
Records are the pydantic models the rest of the system works with.

Both storage backends share this codec so that predicates built once
match the same documents everywhere.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel, to_snake

from household_finance.services.storage.interface import (
    CorruptRecordError,
    InvalidIdentifierError,
)

R = TypeVar("R", bound=BaseModel)


def to_object_id(value: Any) -> ObjectId:
    """
    Convert a record id to the store's identifier type.

    Raises:
        InvalidIdentifierError: If the value is not a 24-character hex id
    """
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise InvalidIdentifierError(f"Invalid identifier: {value!r}")
    return ObjectId(value)


def document_field(name: str) -> str:
    """Map a model field name to its document key."""
    if name in ("id", "_id"):
        return "_id"
    if "_" not in name:
        return name
    return to_camel(name)


def encode_value(value: Any) -> Any:
    """Convert a Python value into something the store can hold."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, BaseModel):
        return {key: encode_value(item) for key, item in value.model_dump().items()}
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    """Convert a stored value back into its Python form."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, dict):
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def encode_record(record: BaseModel) -> dict:
    """
    Convert a record to a document.

    The record's id is never written; the store assigns "_id".
    """
    document = {}
    for name in type(record).model_fields:
        if name == "id":
            continue
        document[document_field(name)] = encode_value(getattr(record, name))
    return document


def encode_updates(updates: dict[str, Any], prefix: str = "") -> dict:
    """
    Convert a partial update keyed by model field names to a $set body.

    prefix addresses a nested document, e.g. "members.$.".
    """
    return {
        f"{prefix}{document_field(name)}": encode_value(value)
        for name, value in updates.items()
    }


def decode_record(model: type[R], document: dict) -> R:
    """
    Convert a document to a record, ignoring unknown keys.

    Raises:
        CorruptRecordError: If the document does not fit the record
    """
    fields = model.model_fields
    data = {}
    for key, value in document.items():
        name = "id" if key == "_id" else to_snake(key)
        if name in fields:
            data[name] = decode_value(value)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise CorruptRecordError(
            f"Stored {model.__name__} {document.get('_id')} is invalid: {e}"
        ) from e
