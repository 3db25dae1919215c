#!/usr/bin/env python3
"""
form_errors.py - Error types raised while decoding form values

Every failure is a DecodeError (a ValueError) tagged with an ErrorKind.
Errors raised inside nested records accumulate the effective names of the
fields they passed through, outermost first, in ``path``.

Usage:
    try:
        decoder.decode(values, record)
    except MissingValueError as e:
        print(e.field_path, e.key)
"""

from enum import Enum
from typing import List, Optional


class ErrorKind(Enum):
    INVALID_ARGUMENT = 'invalid_argument'
    MISSING_VALUE = 'missing_value'
    PARSE_FAILURE = 'parse_failure'
    UNSUPPORTED_TYPE = 'unsupported_type'
    INVALID_TAG = 'invalid_tag'


class DecodeError(ValueError):
    """
    Base class for decode failures.

    Attributes:
        kind: ErrorKind of the failure
        key: Lookup key (prefix included) of the failing field, if any
        value: Offending raw string, if any
        target_type: Name of the declared type involved, if any
        path: Effective field names from the outermost record down to the
            failing field
    """
    kind: ErrorKind = None

    def __init__(self, key: Optional[str] = None, value: Optional[str] = None,
                 target_type: Optional[str] = None, detail: Optional[str] = None,
                 path: Optional[List[str]] = None):
        self.key = key
        self.value = value
        self.target_type = target_type
        self.detail = detail
        self.path = list(path or [])
        super().__init__(self.describe())

    def describe(self) -> str:
        return self.detail or self.kind.value

    def wrap(self, name: str) -> 'DecodeError':
        """Prepend a field name to the error path and return the error."""
        self.path.insert(0, name)
        return self

    @property
    def field_path(self) -> str:
        return '.'.join(self.path)

    def to_dict(self) -> dict:
        return {
            'kind': self.kind.value,
            'path': self.field_path,
            'key': self.key,
            'value': self.value,
            'message': self.describe(),
        }

    def __str__(self) -> str:
        if self.path:
            return f"{self.field_path}: {self.describe()}"
        return self.describe()


class InvalidArgumentError(DecodeError):
    kind = ErrorKind.INVALID_ARGUMENT

    def describe(self) -> str:
        return f"target of type {self.target_type} is not a mutable dataclass instance"


class MissingValueError(DecodeError):
    kind = ErrorKind.MISSING_VALUE

    def describe(self) -> str:
        return f"value with name {self.key} is missing and is not optional"


class ParseError(DecodeError):
    kind = ErrorKind.PARSE_FAILURE

    def describe(self) -> str:
        message = f"failed to parse {self.value!r} to {self.target_type} to field {self.key}"
        if self.detail:
            message += f" ({self.detail})"
        return message


class UnsupportedTypeError(DecodeError):
    kind = ErrorKind.UNSUPPORTED_TYPE

    def describe(self) -> str:
        message = f"type {self.target_type} is not supported"
        if self.detail:
            message += f" ({self.detail})"
        return message


class InvalidTagError(DecodeError):
    kind = ErrorKind.INVALID_TAG

    def describe(self) -> str:
        return f"tag {self.value!r} on {self.key}: {self.detail}"


ERROR_CLASSES = {
    cls.kind: cls
    for cls in (InvalidArgumentError, MissingValueError, ParseError,
                UnsupportedTypeError, InvalidTagError)
}
