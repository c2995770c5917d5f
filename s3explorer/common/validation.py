"""Boundary validation for bucket names, object keys and uploaded filenames."""

from __future__ import annotations

import posixpath
import re

BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
MAX_OBJECT_KEY_LENGTH = 1024
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class InvalidInputError(ValueError):
    """Raised when a request carries a malformed bucket name, key or path."""


def is_valid_bucket_name(name: str | None) -> bool:
    if not name:
        return False
    return bool(BUCKET_NAME_PATTERN.match(name)) and ".." not in name


def is_valid_object_key(key: str | None) -> bool:
    if not key:
        return False
    return len(key) <= MAX_OBJECT_KEY_LENGTH and "../" not in key


def require_bucket_name(name: str | None, *, label: str = "bucket name") -> str:
    if name is None or not is_valid_bucket_name(name):
        raise InvalidInputError(f"Invalid {label}")
    return name


def require_object_key(key: str | None, *, label: str = "key") -> str:
    if key is None or not is_valid_object_key(key):
        raise InvalidInputError(f"Invalid {label}")
    return key


def sanitize_filename(filename: str) -> str:
    """Strip directory components and replace characters outside [A-Za-z0-9._-]."""
    # Windows clients may send backslash separated paths
    name = posixpath.basename(filename.replace("\\", "/"))
    return _UNSAFE_FILENAME_CHARS.sub("_", name)
