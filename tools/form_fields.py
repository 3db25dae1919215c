#!/usr/bin/env python3
"""
form_fields.py - Record descriptors and per-field tag resolution

A record is any dataclass. Its descriptor lists the declared fields in
declaration order together with their classified types and metadata; the
resolver combines a field's annotation with the decoder configuration to
decide the lookup name and modifiers.

Annotation grammar (stored in the field metadata under the decoder tag,
``"form"`` by default), comma separated:

    optional     - absent or empty value leaves the field untouched
    notinlined   - nested record keys are prefixed with "<name>."
    !            - ignore marker (meaning flipped by invert_ignore_mark)
    <anything>   - effective name override (at most one)

Example:
    @dataclass
    class Query:
        text: str = field(default='', metadata={'form': 'q'})
        paging: Paging = field(default_factory=Paging,
                               metadata={'form': 'page,notinlined'})
"""

import dataclasses
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Optional, Tuple, get_type_hints

from form_errors import InvalidTagError, UnsupportedTypeError
from form_types import TypeCategory, TypeInfo, classify


logger = logging.getLogger(__name__)

DEFAULT_TAG = 'form'
TAG_SEPARATOR = ','

KEYWORD_OPTIONAL = 'optional'
KEYWORD_NOT_INLINED = 'notinlined'
KEYWORD_IGNORE = '!'


@dataclass(frozen=True)
class FieldDescriptor:
    """Static description of one declared record field."""
    name: str
    type_info: TypeInfo
    settable: bool
    metadata: Mapping[str, Any]

    @property
    def is_record(self) -> bool:
        return self.type_info.category is TypeCategory.RECORD

    def annotation(self, tag: str) -> Optional[Any]:
        return self.metadata.get(tag)


@dataclass(frozen=True)
class RecordDescriptor:
    record_type: type
    fields: Tuple[FieldDescriptor, ...]


@dataclass(frozen=True)
class ResolvedField:
    """A field after tag and configuration have been applied."""
    descriptor: FieldDescriptor
    effective_name: str
    optional: bool = False
    ignored: bool = False
    not_inlined: bool = False


@dataclass(frozen=True)
class TagFlags:
    """Parsed annotation tokens."""
    name: Optional[str] = None
    optional: bool = False
    not_inlined: bool = False
    marked: bool = False


@lru_cache(maxsize=None)
def describe_record(record_type: type) -> RecordDescriptor:
    """
    Build the descriptor for a dataclass type.

    Only configuration-independent data is kept, so the result is cached per
    type.
    """
    if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
        raise TypeError(f"{record_type!r} is not a dataclass type")

    try:
        hints = get_type_hints(record_type)
    except (NameError, TypeError) as e:
        raise UnsupportedTypeError(target_type=record_type.__name__,
                                   detail=f"cannot resolve annotations: {e}") from e

    fields = []
    for f in dataclasses.fields(record_type):
        annotation = hints.get(f.name, f.type)
        fields.append(FieldDescriptor(
            name=f.name,
            type_info=classify(annotation),
            settable=f.init and not f.name.startswith('_'),
            metadata=f.metadata,
        ))
    logger.debug(f"Described record {record_type.__name__}: {len(fields)} fields")
    return RecordDescriptor(record_type=record_type, fields=tuple(fields))


def parse_tag(raw: Any, field_name: str = '') -> TagFlags:
    """
    Parse an annotation string into its flags.

    Raises InvalidTagError for non-string annotations, empty tokens and more
    than one name override.
    """
    if not isinstance(raw, str):
        raise InvalidTagError(key=field_name, value=str(raw),
                              detail="annotation must be a string")

    name = None
    optional = not_inlined = marked = False
    for token in raw.split(TAG_SEPARATOR):
        if token == KEYWORD_OPTIONAL:
            optional = True
        elif token == KEYWORD_NOT_INLINED:
            not_inlined = True
        elif token == KEYWORD_IGNORE:
            marked = True
        elif not token:
            raise InvalidTagError(key=field_name, value=raw, detail="empty token")
        elif name is not None:
            raise InvalidTagError(key=field_name, value=raw,
                                  detail=f"more than one name override ({name!r}, {token!r})")
        else:
            name = token
    return TagFlags(name=name, optional=optional, not_inlined=not_inlined, marked=marked)


def resolve_field(descriptor: FieldDescriptor, config) -> ResolvedField:
    """Apply a field's annotation and the decoder configuration."""
    name = descriptor.name
    if config.lower_case_names:
        name = name.lower()

    optional = config.all_optional
    not_inlined = config.all_not_inlined
    marked = False

    raw = descriptor.annotation(config.tag)
    if raw is not None:
        flags = parse_tag(raw, descriptor.name)
        if flags.name is not None:
            name = flags.name
        optional = optional or flags.optional
        not_inlined = not_inlined or flags.not_inlined
        marked = flags.marked

    return ResolvedField(
        descriptor=descriptor,
        effective_name=name,
        optional=optional,
        ignored=marked != config.invert_ignore_mark,
        not_inlined=not_inlined,
    )


def child_prefix(prefix: str, resolved: ResolvedField) -> str:
    """Key prefix for the fields of a nested record."""
    if not resolved.not_inlined:
        return prefix
    return f"{prefix}{resolved.effective_name}."
