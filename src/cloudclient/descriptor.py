"""Parsing of remote descriptors and method-call payloads.

A descriptor is a JSON object whose ``$``-prefixed keys carry structure
(``$id``, ``$hash``, ``$ref``, ``$type``, ``$prototype``) and whose other
keys are members. A member whose value is an object tagged
``{"$type": "Function"}`` is a remotely callable method; everything else is
a property copied into instances.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from cloudclient.error import DescriptorError
from cloudclient.names import assert_valid_name

FUNCTION_TYPE = "Function"
DATE_TYPE = "Date"

STRUCTURAL_KEYS = frozenset({"$id", "$hash", "$ref", "$type", "$prototype"})

_URL_RE = re.compile(r"^(ftp|https?)://")


@dataclass(frozen=True, slots=True)
class Schema:
    """A classified schema descriptor.

    Attributes:
        body: The descriptor as received
        type_names: Parsed ``$type``, most-derived first
        methods: Names of remotely callable members, in descriptor order
        properties: Names of data members, in descriptor order
    """

    body: Mapping[str, Any]
    type_names: tuple[str, ...]
    methods: tuple[str, ...]
    properties: tuple[str, ...]

    @property
    def ref(self) -> str | None:
        return self.body.get("$ref")


def parse_type_to_array(value: Any) -> list[Any]:
    """Normalize ``$type`` to a list of type names."""
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        return [value]
    return []


def is_method_descriptor(value: Any) -> bool:
    return isinstance(value, Mapping) and value.get("$type") == FUNCTION_TYPE


def classify_descriptor(body: Any) -> Schema:
    """Split a schema descriptor into methods and properties.

    Raises:
        DescriptorError: If ``body`` is not an object
        InvalidNameError: If a member name is invalid or reserved
    """
    if not isinstance(body, Mapping):
        raise DescriptorError(f"Descriptor must be an object, got {type(body).__name__}")

    methods: list[str] = []
    properties: list[str] = []
    for key, value in body.items():
        if key in STRUCTURAL_KEYS:
            continue
        assert_valid_name(key)
        (methods if is_method_descriptor(value) else properties).append(key)

    return Schema(
        body=body,
        type_names=tuple(parse_type_to_array(body.get("$type"))),
        methods=tuple(methods),
        properties=tuple(properties),
    )


def is_url(value: Any) -> bool:
    return isinstance(value, str) and _URL_RE.match(value) is not None


def is_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def get_path(obj: Any, path: str) -> Any:
    """Look up a dotted path such as ``"payload.items.0"``.

    Digit segments index into lists. Missing segments resolve to ``None``.
    """
    value = obj
    for segment in path.split("."):
        if isinstance(value, Mapping):
            value = value.get(segment)
        elif isinstance(value, (list, tuple)) and segment.isdigit():
            index = int(segment)
            value = value[index] if index < len(value) else None
        else:
            return None
    return value


def to_datetime(value: Any) -> datetime:
    """Convert an epoch-milliseconds number or ISO 8601 string to UTC."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise DescriptorError(f"Date out of range: {value!r}") from e
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise DescriptorError(f"Invalid date string: {value!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise DescriptorError(f"Cannot convert {type(value).__name__} to a date")


def parse_payload(result: Any) -> Any:
    """Extract the return value from a method-call response.

    The response is ``{"$type": ..., "$path": ..., ...}``. The value lives
    at ``$path`` when one is given, otherwise it is the whole response.
    ``"Date"`` typed values are converted to ``datetime``.
    """
    if not isinstance(result, Mapping):
        return result
    payload_path = result.get("$path")
    payload = get_path(result, payload_path) if payload_path else result
    if result.get("$type") == DATE_TYPE:
        return to_datetime(payload)
    return payload
