#!/usr/bin/env python3
"""
form_coerce.py - String to typed value coercion

Converts the string list found under a lookup key into the value of a
leaf field: str, bool, integers of every width, float32/float64, or a
list/tuple of one of those.

Rules:
    - absent key or empty list: MissingValueError unless optional
    - scalars take the first string only
    - bool accepts exactly "true" and "false"
    - numbers must start with a digit ('-' allowed for signed integers only)
      and are parsed as radix-10, range checked against the declared width
    - an empty number is accepted only for optional fields and leaves the
      zero value in place
"""

import math
import re
import struct
from typing import Any, List, Mapping, Sequence

from form_errors import MissingValueError, ParseError, UnsupportedTypeError
from form_types import INT_RANGES, LeafKind, TypeCategory, TypeInfo


class _Unchanged:
    """Marker returned when the field must keep its current value."""

    def __repr__(self) -> str:
        return 'UNCHANGED'


UNCHANGED = _Unchanged()

_SIGNED_INT_RE = re.compile(r'-?[0-9]+')
_UNSIGNED_INT_RE = re.compile(r'[0-9]+')
_FLOAT_RE = re.compile(r'[0-9]+(\.[0-9]*)?([eE][+-]?[0-9]+)?')

# Digits in 2**64, the widest magnitude any integer kind accepts
_MAX_INT_DIGITS = 20

TRUE_LITERAL = 'true'
FALSE_LITERAL = 'false'


def lookup(source: Mapping[str, Sequence[str]], key: str) -> List[str]:
    """Strings stored under key, empty when the key is absent."""
    values = source.get(key)
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    return list(values)


def _starts_numeric(raw: str, kind: LeafKind) -> bool:
    first = raw[0]
    if '0' <= first <= '9':
        return True
    return first == '-' and kind.is_signed


def _parse_int(raw: str, kind: LeafKind, key: str) -> int:
    pattern = _SIGNED_INT_RE if kind.is_signed else _UNSIGNED_INT_RE
    if not pattern.fullmatch(raw):
        raise ParseError(key=key, value=raw, target_type=kind.value,
                         detail="invalid syntax")
    digits = raw.lstrip('-').lstrip('0')
    if len(digits) > _MAX_INT_DIGITS:
        raise ParseError(key=key, value=raw, target_type=kind.value,
                         detail="value out of range")
    value = int(digits or '0', 10)
    if raw.startswith('-'):
        value = -value
    low, high = INT_RANGES[kind]
    if not low <= value <= high:
        raise ParseError(key=key, value=raw, target_type=kind.value,
                         detail="value out of range")
    return value


def _parse_float(raw: str, kind: LeafKind, key: str) -> float:
    if not _FLOAT_RE.fullmatch(raw):
        raise ParseError(key=key, value=raw, target_type=kind.value,
                         detail="invalid syntax")
    value = float(raw)
    if math.isinf(value):
        raise ParseError(key=key, value=raw, target_type=kind.value,
                         detail="value out of range")
    if kind is LeafKind.FLOAT32:
        try:
            value = struct.unpack('<f', struct.pack('<f', value))[0]
        except OverflowError as e:
            raise ParseError(key=key, value=raw, target_type=kind.value,
                             detail="value out of range") from e
    return value


def coerce_scalar(kind: LeafKind, raw: str, key: str, optional: bool = False) -> Any:
    """
    Convert one string to a value of the given leaf kind.

    Returns UNCHANGED for an empty number on an optional field.
    """
    if kind is LeafKind.STRING:
        return raw

    if kind is LeafKind.BOOL:
        if raw == TRUE_LITERAL:
            return True
        if raw == FALSE_LITERAL:
            return False
        if raw == '' and optional:
            return UNCHANGED
        raise ParseError(key=key, value=raw, target_type=kind.value)

    if raw == '':
        if optional:
            return UNCHANGED
        raise ParseError(key=key, value=raw, target_type=kind.value, detail="empty value")

    if not _starts_numeric(raw, kind):
        raise ParseError(key=key, value=raw, target_type=kind.value,
                         detail="must start with a digit")

    if kind.is_integer:
        return _parse_int(raw, kind, key)
    return _parse_float(raw, kind, key)


def coerce_field(type_info: TypeInfo, source: Mapping[str, Sequence[str]],
                 key: str, optional: bool = False) -> Any:
    """
    Produce the value for a leaf field looked up under key.

    Returns UNCHANGED when the field is optional and has nothing to decode.
    Sequences are built completely before being returned, so a failing
    element never yields a partial result.
    """
    values = lookup(source, key)
    if not values:
        if not optional:
            raise MissingValueError(key=key)
        return UNCHANGED

    if type_info.category is TypeCategory.SEQUENCE:
        items = [
            coerce_scalar(type_info.leaf, raw, f"{key}[{i}]")
            for i, raw in enumerate(values)
        ]
        return type_info.container(items)

    if type_info.category is TypeCategory.LEAF:
        return coerce_scalar(type_info.leaf, values[0], key, optional)

    raise UnsupportedTypeError(key=key, target_type=type_info.type_name)
