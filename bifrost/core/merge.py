"""Idempotent configuration merge engine.

Decides whether a plugin's configuration fragment is already present in a
project file and, if not, merges it in without destroying existing content.
Three file formats are handled, selected purely by file extension:

- structured: JSON / JSONC documents, merged as trees
- key-value: .env files, merged by key presence
- opaque-text: everything else, merged by insertion mode

The engine is pure: it takes and returns strings. Reading and writing files
is the caller's job (see ``bifrost.core.config_manager``).
"""

import json
import logging
import re
from enum import Enum
from pathlib import PurePath
from typing import Union

from bifrost.config.schemas import InsertType

logger = logging.getLogger("bifrost.merge")

# A parsed JSON document. Containment and merge dispatch exhaustively over it.
JsonValue = Union[None, bool, int, float, str, list["JsonValue"], dict[str, "JsonValue"]]

STRUCTURED_EXTENSIONS = frozenset({".json", ".jsonc"})
KEY_VALUE_EXTENSIONS = frozenset({".env"})

_WHITESPACE = re.compile(r"\s+")


class FileFormat(str, Enum):
    """Merge strategy for a target file."""

    STRUCTURED = "structured"
    KEY_VALUE = "key-value"
    OPAQUE_TEXT = "opaque-text"


class MergeError(Exception):
    """Error applying a configuration fragment."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


def classify(path: str | PurePath) -> FileFormat:
    """Map a target file to its merge strategy by extension.

    A bare ``.env`` file has no suffix in pathlib terms, so its name is
    checked as well.
    """
    pure = PurePath(path)
    suffix = pure.suffix.lower()
    name = pure.name.lower()

    if suffix in STRUCTURED_EXTENSIONS:
        return FileFormat.STRUCTURED
    if suffix in KEY_VALUE_EXTENSIONS or name in KEY_VALUE_EXTENSIONS:
        return FileFormat.KEY_VALUE
    return FileFormat.OPAQUE_TEXT


# =============================================================================
# Structured values
# =============================================================================


def values_equal(a: JsonValue, b: JsonValue) -> bool:
    """Structural equality over JSON values.

    Booleans never equal numbers (``True`` is not ``1``), while ints and
    floats compare numerically as they do in JSON.
    """
    if isinstance(a, dict):
        return (
            isinstance(b, dict)
            and a.keys() == b.keys()
            and all(values_equal(a[k], b[k]) for k in a)
        )
    if isinstance(a, list):
        return (
            isinstance(b, list)
            and len(a) == len(b)
            and all(values_equal(x, y) for x, y in zip(a, b))
        )
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)):
        return isinstance(b, (int, float)) and a == b
    return type(a) is type(b) and a == b


def _list_has(items: list[JsonValue], value: JsonValue) -> bool:
    return any(values_equal(item, value) for item in items)


def deep_contains(existing: JsonValue, new: JsonValue) -> bool:
    """Check that everything in ``new`` is present in ``existing``.

    Objects recurse key by key, arrays are a subset test ignoring order,
    scalars must be equal. Keys only present in ``existing`` are ignored.
    """
    if isinstance(new, dict):
        if not isinstance(existing, dict):
            return False
        return all(
            key in existing and deep_contains(existing[key], value) for key, value in new.items()
        )
    if isinstance(new, list):
        if not isinstance(existing, list):
            return False
        return all(_list_has(existing, item) for item in new)
    return values_equal(existing, new)


def union_lists(existing: list[JsonValue], new: list[JsonValue]) -> list[JsonValue]:
    """Union of two arrays with duplicates removed, existing items first."""
    result: list[JsonValue] = []
    for item in [*existing, *new]:
        if not _list_has(result, item):
            result.append(item)
    return result


def deep_merge(existing: JsonValue, new: JsonValue) -> JsonValue:
    """Merge ``new`` into ``existing``.

    Objects merge recursively, arrays union without duplicates, and any
    other combination takes the new value.
    """
    if isinstance(existing, dict) and isinstance(new, dict):
        merged = dict(existing)
        for key, value in new.items():
            merged[key] = deep_merge(existing[key], value) if key in existing else value
        return merged
    if isinstance(existing, list) and isinstance(new, list):
        return union_lists(existing, new)
    return new


def _parse_json(content: str) -> JsonValue:
    value: JsonValue = json.loads(content)
    return value


# =============================================================================
# Key-value (.env)
# =============================================================================


def _env_assignments(content: str) -> list[str]:
    """Non-blank, non-comment lines that assign a key."""
    lines = []
    for line in content.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        lines.append(line)
    return lines


def _env_key(line: str) -> str:
    return line.split("=", 1)[0].strip()


def parse_env_keys(content: str) -> list[str]:
    """Keys assigned in .env content, in order of appearance."""
    return [_env_key(line) for line in _env_assignments(content)]


# =============================================================================
# Containment
# =============================================================================


def normalize_text(content: str) -> str:
    """Trim and collapse whitespace runs to a single space."""
    return _WHITESPACE.sub(" ", content.strip())


def _structured_contained(existing: str, new: str) -> bool:
    try:
        existing_value = _parse_json(existing)
        new_value = _parse_json(new)
    except json.JSONDecodeError as e:
        logger.debug("Treating unparsable JSON as not contained: %s", e)
        return False
    return deep_contains(existing_value, new_value)


def _key_value_contained(existing: str, new: str) -> bool:
    defined = set(parse_env_keys(existing))
    return all(key in defined for key in parse_env_keys(new))


def _text_contained(existing: str, new: str) -> bool:
    return normalize_text(new) in normalize_text(existing)


def is_contained(existing: str, new: str, fmt: FileFormat) -> bool:
    """Check whether the semantics of ``new`` are already in ``existing``.

    This is the idempotence predicate: when it holds, applying the fragment
    again must be skipped.
    """
    if fmt is FileFormat.STRUCTURED:
        return _structured_contained(existing, new)
    if fmt is FileFormat.KEY_VALUE:
        return _key_value_contained(existing, new)
    return _text_contained(existing, new)


# =============================================================================
# Merge application
# =============================================================================


def _merge_structured(existing: str, new: str, path: str | None) -> str:
    try:
        existing_value = _parse_json(existing)
        new_value = _parse_json(new)
    except json.JSONDecodeError as e:
        target = path or "structured content"
        raise MergeError(f"Cannot merge into {target}: invalid JSON ({e})", path) from e

    return json.dumps(deep_merge(existing_value, new_value), indent=2, ensure_ascii=False)


def _merge_key_value(existing: str, new: str) -> str:
    defined = set(parse_env_keys(existing))
    missing = [line for line in _env_assignments(new) if _env_key(line) not in defined]
    if not missing:
        return existing
    return existing + "\n\n" + "\n".join(missing)


def _merge_text(existing: str, new: str, insert_type: InsertType) -> str:
    if insert_type == "replace":
        return new
    # "merge" has no structure to work with in free text, so it appends
    return existing + "\n\n" + new


def apply_merge(
    existing: str,
    new: str,
    fmt: FileFormat,
    insert_type: InsertType = "append",
    path: str | None = None,
) -> str:
    """Produce updated file content with ``new`` merged into ``existing``.

    ``insert_type`` only matters for opaque text; structured and key-value
    content is always merged.

    Raises:
        MergeError: If structured content cannot be parsed
    """
    if fmt is FileFormat.STRUCTURED:
        return _merge_structured(existing, new, path)
    if fmt is FileFormat.KEY_VALUE:
        return _merge_key_value(existing, new)
    return _merge_text(existing, new, insert_type)


def merge_if_missing(
    existing: str,
    new: str,
    path: str,
    insert_type: InsertType = "append",
) -> str | None:
    """Classify, check, and merge in one step.

    Returns:
        The updated content, or None if the fragment is already present
    """
    fmt = classify(path)
    if is_contained(existing, new, fmt):
        logger.debug("Fragment already present in %s (%s)", path, fmt.value)
        return None
    logger.debug("Merging fragment into %s (%s, %s)", path, fmt.value, insert_type)
    return apply_merge(existing, new, fmt, insert_type, path)
