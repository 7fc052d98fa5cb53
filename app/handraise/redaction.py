# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Display preparation for tool call arguments.

This module turns arbitrary nested call arguments into a bounded,
secret-scrubbed copy that is safe to show to a human approver or to
write to a log. The walk never raises: anything it cannot represent is
replaced by a marker.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .constants import (DEFAULT_MAX_ARRAY_LEN, DEFAULT_MAX_DEPTH,
                        DEFAULT_MAX_OBJECT_KEYS, DEFAULT_MAX_STRING_LEN,
                        MAX_DISPLAY_DEPTH,
                        DEFAULT_REDACTED_KEYS, REDACTED_MARKER,
                        TRUNCATED_ARRAY_MARKER, TRUNCATED_DEPTH_MARKER,
                        TRUNCATED_OBJECT_KEY, TRUNCATED_STRING_SUFFIX,
                        UNSERIALIZABLE_MARKER)


@dataclass(frozen=True)
class RedactionRule:
    """Replace the value of every key equal to ``key`` with ``replacement``."""
    key: str
    replacement: str = REDACTED_MARKER


@dataclass(frozen=True)
class DisplayOptions:
    """Limits and redaction rules applied when preparing values for display."""
    max_depth: int = DEFAULT_MAX_DEPTH
    max_string_len: int = DEFAULT_MAX_STRING_LEN
    max_array_len: int = DEFAULT_MAX_ARRAY_LEN
    max_object_keys: int = DEFAULT_MAX_OBJECT_KEYS
    rules: Tuple[RedactionRule, ...] = field(
        default_factory=lambda: tuple(RedactionRule(key) for key in DEFAULT_REDACTED_KEYS)
    )

    def with_overrides(
        self,
        max_depth: Optional[int] = None,
        max_string_len: Optional[int] = None,
        max_array_len: Optional[int] = None,
        max_object_keys: Optional[int] = None,
        rules: Optional[Sequence[RedactionRule]] = None
    ) -> "DisplayOptions":
        """
        Return a copy with each given limit overridden individually.

        A ``rules`` sequence replaces the existing rules entirely.
        """
        changes: Dict[str, Any] = {}
        if max_depth is not None:
            changes["max_depth"] = max_depth
        if max_string_len is not None:
            changes["max_string_len"] = max_string_len
        if max_array_len is not None:
            changes["max_array_len"] = max_array_len
        if max_object_keys is not None:
            changes["max_object_keys"] = max_object_keys
        if rules is not None:
            changes["rules"] = tuple(rules)
        return replace(self, **changes)


def default_display_options() -> DisplayOptions:
    """Return the default display options (redacts apiKey, token and password)."""
    return DisplayOptions()


class ValueKind(Enum):
    """Shape of a value as seen by the display walker."""
    SCALAR = "scalar"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    UNSUPPORTED = "unsupported"


def classify_value(value: Any) -> ValueKind:
    """Tag ``value`` with the shape the walker should treat it as."""
    if value is None or isinstance(value, (bool, int, float)):
        return ValueKind.SCALAR
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    return ValueKind.UNSUPPORTED


def prepare_for_display(value: Any, options: Optional[DisplayOptions] = None) -> Any:
    """
    Create a display-safe copy of ``value``.

    Args:
        value: Arbitrary nested call arguments
        options: Limits and redaction rules; defaults when omitted

    Returns:
        A JSON-serializable copy bounded in depth and size, with redacted keys
        replaced and unsupported values rendered as markers. Depth is capped
        at MAX_DISPLAY_DEPTH whatever the options allow.
    """
    options = options or default_display_options()
    if options.max_depth > MAX_DISPLAY_DEPTH:
        options = options.with_overrides(max_depth=MAX_DISPLAY_DEPTH)
    return _walk(value, options, 0)


def _walk(value: Any, options: DisplayOptions, depth: int) -> Any:
    if depth > options.max_depth:
        return TRUNCATED_DEPTH_MARKER

    kind = classify_value(value)
    if kind is ValueKind.SCALAR:
        # NaN and infinities have no JSON form
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value
    if kind is ValueKind.STRING:
        return _truncate_string(value, options.max_string_len)
    if kind is ValueKind.SEQUENCE:
        return _walk_sequence(value, options, depth)
    if kind is ValueKind.MAPPING:
        return _walk_mapping(value, options, depth)
    return UNSERIALIZABLE_MARKER


def _walk_sequence(value: Sequence[Any], options: DisplayOptions, depth: int) -> List[Any]:
    kept = value[:options.max_array_len]
    walked = [_walk(item, options, depth + 1) for item in kept]
    if len(value) > len(kept):
        walked.append(TRUNCATED_ARRAY_MARKER)
    return walked


def _walk_mapping(value: Mapping[Any, Any], options: DisplayOptions, depth: int) -> Dict[str, Any]:
    walked: Dict[str, Any] = {}
    for index, (key, item) in enumerate(value.items()):
        if index >= options.max_object_keys:
            walked[TRUNCATED_OBJECT_KEY] = True
            break
        display_key = key if isinstance(key, str) else str(key)
        replacement = _redaction_for(display_key, options.rules)
        if replacement is not None:
            walked[display_key] = replacement
            continue
        walked[display_key] = _walk(item, options, depth + 1)
    return walked


def _redaction_for(key: str, rules: Sequence[RedactionRule]) -> Optional[str]:
    for rule in rules:
        if key == rule.key:
            return rule.replacement
    return None


def _truncate_string(value: str, max_len: int) -> str:
    if len(value) <= max_len:
        return value
    return value[:max_len] + TRUNCATED_STRING_SUFFIX
