#!/usr/bin/env python3
"""
form_types.py - Leaf types and type classification for form decoding

Declares the width-specific scalar markers used in record annotations and
classifies a field's declared type into one of the categories the decoder
understands.

Usage:
    from dataclasses import dataclass
    from form_types import uint16, float32

    @dataclass
    class Reading:
        channel: uint16 = 0
        level: float32 = 0.0

Plain ``int`` decodes as a signed 64-bit integer and plain ``float`` as a
64-bit float.
"""

import collections.abc
import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, NewType, Optional, Tuple, get_args, get_origin


int8 = NewType('int8', int)
int16 = NewType('int16', int)
int32 = NewType('int32', int)
int64 = NewType('int64', int)
uint = NewType('uint', int)
uint8 = NewType('uint8', int)
uint16 = NewType('uint16', int)
uint32 = NewType('uint32', int)
uint64 = NewType('uint64', int)
float32 = NewType('float32', float)
float64 = NewType('float64', float)


class LeafKind(Enum):
    """Closed set of scalar kinds the coercer handles."""
    STRING = 'string'
    BOOL = 'bool'
    INT8 = 'int8'
    INT16 = 'int16'
    INT32 = 'int32'
    INT64 = 'int64'
    UINT8 = 'uint8'
    UINT16 = 'uint16'
    UINT32 = 'uint32'
    UINT64 = 'uint64'
    FLOAT32 = 'float32'
    FLOAT64 = 'float64'

    @property
    def is_integer(self) -> bool:
        return self in INT_RANGES

    @property
    def is_signed(self) -> bool:
        return self in (LeafKind.INT8, LeafKind.INT16, LeafKind.INT32, LeafKind.INT64)

    @property
    def is_float(self) -> bool:
        return self in (LeafKind.FLOAT32, LeafKind.FLOAT64)

    @property
    def is_numeric(self) -> bool:
        return self.is_integer or self.is_float

    @property
    def zero(self) -> Any:
        if self is LeafKind.STRING:
            return ''
        if self is LeafKind.BOOL:
            return False
        if self.is_float:
            return 0.0
        return 0


# Inclusive bounds per integer width
INT_RANGES: Dict[LeafKind, Tuple[int, int]] = {
    LeafKind.INT8: (-2**7, 2**7 - 1),
    LeafKind.INT16: (-2**15, 2**15 - 1),
    LeafKind.INT32: (-2**31, 2**31 - 1),
    LeafKind.INT64: (-2**63, 2**63 - 1),
    LeafKind.UINT8: (0, 2**8 - 1),
    LeafKind.UINT16: (0, 2**16 - 1),
    LeafKind.UINT32: (0, 2**32 - 1),
    LeafKind.UINT64: (0, 2**64 - 1),
}


LEAF_TYPES: Dict[Any, LeafKind] = {
    str: LeafKind.STRING,
    bool: LeafKind.BOOL,
    int: LeafKind.INT64,
    float: LeafKind.FLOAT64,
    int8: LeafKind.INT8,
    int16: LeafKind.INT16,
    int32: LeafKind.INT32,
    int64: LeafKind.INT64,
    uint: LeafKind.UINT64,
    uint8: LeafKind.UINT8,
    uint16: LeafKind.UINT16,
    uint32: LeafKind.UINT32,
    uint64: LeafKind.UINT64,
    float32: LeafKind.FLOAT32,
    float64: LeafKind.FLOAT64,
}


class TypeCategory(Enum):
    LEAF = 'leaf'
    SEQUENCE = 'sequence'
    RECORD = 'record'
    UNSUPPORTED = 'unsupported'


@dataclass(frozen=True)
class TypeInfo:
    """Classified form of a declared field type."""
    category: TypeCategory
    annotation: Any
    leaf: Optional[LeafKind] = None
    container: Optional[type] = None
    record_type: Optional[type] = None

    @property
    def type_name(self) -> str:
        return type_name(self.annotation)

    @property
    def zero(self) -> Any:
        """Zero value for a field of this type (records excluded)."""
        if self.category is TypeCategory.LEAF:
            return self.leaf.zero
        if self.category is TypeCategory.SEQUENCE:
            return self.container()
        return None


def type_name(annotation: Any) -> str:
    """Readable name of an annotation for error messages."""
    if isinstance(annotation, type):
        return annotation.__name__
    name = getattr(annotation, '__name__', None)
    if name and get_origin(annotation) is None:
        return name
    return repr(annotation).replace('typing.', '')


def _sequence_leaf(annotation: Any) -> Optional[Tuple[LeafKind, type]]:
    origin = get_origin(annotation)
    args = get_args(annotation)
    if origin in (list, collections.abc.Sequence, collections.abc.MutableSequence):
        if len(args) == 1 and args[0] in LEAF_TYPES:
            return LEAF_TYPES[args[0]], list
    elif origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis and args[0] in LEAF_TYPES:
            return LEAF_TYPES[args[0]], tuple
    return None


def classify(annotation: Any) -> TypeInfo:
    """
    Classify a declared field type.

    Leaf scalars and homogeneous sequences of leaf scalars are coerced from
    strings, dataclass types are decoded recursively, everything else
    (Optional/Union, dicts, nested sequences, sequences of records...) is
    unsupported.
    """
    if annotation in LEAF_TYPES:
        return TypeInfo(TypeCategory.LEAF, annotation, leaf=LEAF_TYPES[annotation])

    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return TypeInfo(TypeCategory.RECORD, annotation, record_type=annotation)

    sequence = _sequence_leaf(annotation)
    if sequence is not None:
        leaf, container = sequence
        return TypeInfo(TypeCategory.SEQUENCE, annotation, leaf=leaf, container=container)

    return TypeInfo(TypeCategory.UNSUPPORTED, annotation)
