#!/usr/bin/env python3
"""
form_decoder.py - Decode multi-valued form mappings into dataclasses

Populates a dataclass instance from a mapping of string keys to string
lists, the shape produced by urllib.parse.parse_qs or an HTML form.
Nested dataclasses are decoded recursively, either inlined (same key
namespace as the parent) or prefixed with "<name>.".

Usage:
    from urllib.parse import parse_qs
    from form_decoder import Decoder, Option, decode

    values = parse_qs('q=shoes&page.number=2')
    request = SearchRequest()
    decode(values, request)

    decoder = Decoder.configure(Option.LOWER_CASE_NAMES, Option.ALL_OPTIONAL)
    request = decoder.decode_new(values, SearchRequest)

    # Decoder settings may also come from YAML
    decoder = Decoder(load_config('decoder.yaml'))
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Flag
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, Type, TypeVar, Union

import yaml

from form_coerce import UNCHANGED, coerce_field
from form_errors import DecodeError, InvalidArgumentError
from form_fields import DEFAULT_TAG, child_prefix, describe_record, resolve_field


logger = logging.getLogger(__name__)

T = TypeVar('T')

Source = Mapping[str, Sequence[str]]


class Option(Flag):
    """Decoder-wide switches, combinable with |."""
    NONE = 0
    LOWER_CASE_NAMES = 1
    ALL_OPTIONAL = 2
    ALL_NOT_INLINED = 4
    INVERT_IGNORE_MARK = 8


_OPTION_FIELDS = {
    Option.LOWER_CASE_NAMES: 'lower_case_names',
    Option.ALL_OPTIONAL: 'all_optional',
    Option.ALL_NOT_INLINED: 'all_not_inlined',
    Option.INVERT_IGNORE_MARK: 'invert_ignore_mark',
}


@dataclass(frozen=True)
class DecoderConfig:
    """
    Configuration applied to every field of every record in a decode.

    Attributes:
        lower_case_names: Default lookup name is the lower-cased field name
        all_optional: Every field behaves as tagged "optional"
        all_not_inlined: Every nested record behaves as tagged "notinlined"
        invert_ignore_mark: Fields are ignored unless tagged "!"
        tag: Metadata key holding the field annotation
    """
    lower_case_names: bool = False
    all_optional: bool = False
    all_not_inlined: bool = False
    invert_ignore_mark: bool = False
    tag: str = DEFAULT_TAG

    def __post_init__(self):
        if not isinstance(self.tag, str) or not self.tag:
            raise ValueError(f"tag must be a non-empty string, got {self.tag!r}")

    @classmethod
    def from_options(cls, options: Option = Option.NONE, tag: str = DEFAULT_TAG) -> 'DecoderConfig':
        flags = {name: bool(options & opt) for opt, name in _OPTION_FIELDS.items()}
        return cls(tag=tag, **flags)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'DecoderConfig':
        """
        Build from a plain mapping.

        Accepts the attribute names directly and/or an ``options`` list of
        Option names (e.g. ``['lower_case_names', 'ALL_OPTIONAL']``).
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"Decoder config must be a mapping, got {type(data).__name__}")

        known = {f.name for f in dataclasses.fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key == 'options':
                if isinstance(value, str):
                    value = [value]
                elif not isinstance(value, (list, tuple, type(None))):
                    raise ValueError(f"Decoder config 'options' must be a list of option names, got {value!r}")
                for name in value or []:
                    kwargs[_option_by_name(name)] = True
            elif key in known:
                kwargs[key] = value
            else:
                raise ValueError(f"Unknown decoder config key: {key}")

        for key, value in kwargs.items():
            if key != 'tag' and not isinstance(value, bool):
                raise ValueError(f"Decoder config '{key}' must be a boolean, got {value!r}")
        return cls(**kwargs)

    @property
    def options(self) -> Option:
        result = Option.NONE
        for opt, name in _OPTION_FIELDS.items():
            if getattr(self, name):
                result |= opt
        return result


def _option_by_name(name: str) -> str:
    try:
        return _OPTION_FIELDS[Option[str(name).upper()]]
    except KeyError:
        raise ValueError(f"Unknown decoder option: {name}") from None


def load_config(path: Union[str, Path]) -> DecoderConfig:
    """Load a DecoderConfig from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f)
    return DecoderConfig.from_dict(data)


def zero_value(record_type: Type[T]) -> T:
    """
    Create an instance of a dataclass with every init field at its declared
    default, or at its type's zero value when it has none.
    """
    descriptor = describe_record(record_type)
    kwargs = {}
    for f, desc in zip(dataclasses.fields(record_type), descriptor.fields):
        if not f.init:
            continue
        if f.default is not dataclasses.MISSING:
            kwargs[f.name] = f.default
        elif f.default_factory is not dataclasses.MISSING:
            kwargs[f.name] = f.default_factory()
        elif desc.is_record:
            kwargs[f.name] = zero_value(desc.type_info.record_type)
        else:
            kwargs[f.name] = desc.type_info.zero
    return record_type(**kwargs)


def _is_frozen(obj: Any) -> bool:
    params = getattr(type(obj), '__dataclass_params__', None)
    return bool(params and params.frozen)


@dataclass(frozen=True)
class Decoder:
    """
    Reusable, immutable decoder.

    A single instance may be shared by any number of concurrent decode calls
    as long as each call gets its own target.
    """
    config: DecoderConfig = field(default_factory=DecoderConfig)

    @classmethod
    def configure(cls, *options: Option, tag: str = DEFAULT_TAG) -> 'Decoder':
        combined = Option.NONE
        for opt in options:
            combined |= opt
        return cls(DecoderConfig.from_options(combined, tag=tag))

    def decode(self, source: Source, target: Any) -> None:
        """
        Populate target in place from source.

        Raises:
            InvalidArgumentError: target is not a mutable dataclass instance
            DecodeError: first field that failed; fields decoded before it
                keep their new values
        """
        if not dataclasses.is_dataclass(target) or isinstance(target, type) or _is_frozen(target):
            raise InvalidArgumentError(target_type=type(target).__name__)
        self._decode_record(source, target, '')

    def decode_new(self, source: Source, record_type: Type[T]) -> T:
        """Decode into a fresh zero-valued instance of record_type."""
        if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
            raise InvalidArgumentError(target_type=getattr(record_type, '__name__', repr(record_type)))
        target = zero_value(record_type)
        self.decode(source, target)
        return target

    def _decode_record(self, source: Source, target: Any, prefix: str) -> None:
        descriptor = describe_record(type(target))
        for desc in descriptor.fields:
            if not desc.settable:
                continue
            name = desc.name
            try:
                resolved = resolve_field(desc, self.config)
                name = resolved.effective_name
                if resolved.ignored:
                    logger.debug(f"Skipping ignored field {desc.name}")
                    continue

                if desc.is_record:
                    self._decode_nested(source, target, resolved, prefix)
                    continue

                key = prefix + resolved.effective_name
                value = coerce_field(desc.type_info, source, key, resolved.optional)
                if value is UNCHANGED:
                    logger.debug(f"Optional field {key} left unchanged")
                else:
                    setattr(target, desc.name, value)
            except DecodeError as e:
                e.wrap(name)
                raise

    def _decode_nested(self, source: Source, target: Any, resolved, prefix: str) -> None:
        desc = resolved.descriptor
        record_type = desc.type_info.record_type
        nested = getattr(target, desc.name, None)
        if not isinstance(nested, record_type):
            nested = zero_value(record_type)
            setattr(target, desc.name, nested)
        if _is_frozen(nested):
            raise InvalidArgumentError(target_type=record_type.__name__)

        nested_prefix = child_prefix(prefix, resolved)
        logger.debug(f"Decoding nested {record_type.__name__} at {desc.name!r} with prefix {nested_prefix!r}")
        self._decode_record(source, nested, nested_prefix)


DEFAULT_DECODER = Decoder()


def decode(source: Source, target: Any) -> None:
    """Decode with the default configuration."""
    DEFAULT_DECODER.decode(source, target)


def decode_new(source: Source, record_type: Type[T]) -> T:
    """Decode into a new instance with the default configuration."""
    return DEFAULT_DECODER.decode_new(source, record_type)
