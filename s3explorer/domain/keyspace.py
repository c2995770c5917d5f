"""Folder semantics over a flat key space.

S3 has no directories. A "folder" is the set of keys sharing a prefix up to
the next delimiter, optionally materialized by a zero-byte marker object whose
key ends with the delimiter. Everything here is a pure function of keys and
listing data; whether an entry is a folder is decided at listing time and
never stored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from s3explorer.infra.storage.client import ObjectEntry

DELIMITER = "/"
MAX_NAME_SUFFIX = 1000

_NUMBERED_SUFFIX = re.compile(r"^(.+?)\s*\((\d+)\)$")


@dataclass(frozen=True, slots=True)
class ObjectInfo:
    key: str
    size: int = 0
    last_modified: datetime | None = None
    is_folder: bool = False
    content_type: str | None = None
    etag: str | None = None


@dataclass(frozen=True, slots=True)
class Listing:
    objects: list[ObjectInfo] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)


def classify_listing(
    prefix: str,
    entries: Iterable[ObjectEntry],
    common_prefixes: Iterable[str],
) -> Listing:
    """Turn a delimited listing into files followed by folders.

    The entry whose key equals the queried prefix is the folder's own marker
    and is never reported as a file.
    """
    objects = [
        ObjectInfo(
            key=entry.key,
            size=entry.size,
            last_modified=entry.last_modified,
            etag=entry.etag,
        )
        for entry in entries
        if entry.key != prefix
    ]
    prefixes = [p for p in common_prefixes if p]
    objects.extend(ObjectInfo(key=p, size=0, is_folder=True) for p in prefixes)
    return Listing(objects=objects, prefixes=prefixes)


def is_folder_key(key: str) -> bool:
    return key.endswith(DELIMITER)


def folder_key(path: str) -> str:
    """Normalize a folder path so it ends with the delimiter."""
    return path if path.endswith(DELIMITER) else f"{path}{DELIMITER}"


def join_key(prefix: str, name: str) -> str:
    return f"{prefix}{name}" if prefix else name


def rebase_key(key: str, old_prefix: str, new_prefix: str) -> str:
    """Move key from under old_prefix to under new_prefix, keeping its suffix."""
    if not key.startswith(old_prefix):
        raise ValueError(f"{key!r} is not under {old_prefix!r}")
    return f"{new_prefix}{key[len(old_prefix):]}"


def parent_prefix(key: str) -> str:
    """The folder containing key, with trailing delimiter ('' at the root)."""
    trimmed = key.rstrip(DELIMITER)
    index = trimmed.rfind(DELIMITER)
    return trimmed[: index + 1] if index >= 0 else ""


def basename(key: str) -> str:
    return key.rstrip(DELIMITER).rsplit(DELIMITER, 1)[-1]


def unique_name(name: str, existing: Iterable[str], *, is_folder: bool = False) -> str:
    """Return name, or ``name (n).ext`` when it collides (case-insensitively)."""
    taken = {item.lower() for item in existing}
    if name.lower() not in taken:
        return name

    stem, ext = name, ""
    if not is_folder:
        dot = name.rfind(".")
        if dot > 0:
            stem, ext = name[:dot], name[dot:]

    match = _NUMBERED_SUFFIX.match(stem)
    if match:
        stem = match.group(1).strip()

    candidate = name
    for counter in range(1, MAX_NAME_SUFFIX):
        candidate = f"{stem} ({counter}){ext}"
        if candidate.lower() not in taken:
            break
    return candidate


def resolve_conflicts(names: Sequence[str], existing: Iterable[str]) -> list[str]:
    """Disambiguate a batch of file names against existing ones and each other."""
    used = {item.lower() for item in existing}
    resolved: list[str] = []
    for name in names:
        unique = unique_name(name, used)
        resolved.append(unique)
        used.add(unique.lower())
    return resolved
