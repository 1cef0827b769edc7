"""Validation of member and type names found in remote descriptors."""

from __future__ import annotations

import keyword
import re
from typing import Any

from cloudclient.error import InvalidNameError

_NAME_RE = re.compile(r"[A-Za-z$_][A-Za-z0-9$_]*")
_CLASS_NAME_RE = re.compile(r"[A-Za-z][A-Za-z0-9$_]*")

# Public attributes of ProxyInstance. A remote member with one of these
# names would be shadowed by the proxy API.
PROXY_ATTRIBUTES = frozenset({
    "type_name",
    "type_names",
    "proxy_type",
    "is_a",
    "to_dict",
    "stop_polling",
})

RESERVED = frozenset(keyword.kwlist) | frozenset(dir(object)) | PROXY_ATTRIBUTES


def is_reserved_word(name: Any) -> bool:
    """Check if ``name`` is reserved in Python or by the proxy API."""
    if not isinstance(name, str):
        return False
    if name.startswith("__") and name.endswith("__"):
        return True
    return name in RESERVED


def is_valid_name(name: Any) -> bool:
    return isinstance(name, str) and _NAME_RE.fullmatch(name) is not None


def is_valid_class_name(name: Any) -> bool:
    return isinstance(name, str) and _CLASS_NAME_RE.fullmatch(name) is not None


def assert_valid_name(name: Any) -> None:
    """Raise ``InvalidNameError`` unless ``name`` can name a member."""
    if not is_valid_name(name):
        raise InvalidNameError(name, "Name is not a valid name")
    if is_reserved_word(name):
        raise InvalidNameError(name, "Name is a reserved word")


def assert_valid_class_name(name: Any) -> None:
    """Raise ``InvalidNameError`` unless ``name`` can name a proxy type."""
    if not is_valid_class_name(name):
        raise InvalidNameError(name, "Class name is not a valid name")
    if is_reserved_word(name):
        raise InvalidNameError(name, "Class name is a reserved word")
