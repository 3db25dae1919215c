#!/usr/bin/env python3
"""
validate_form_schema.py - Validate a form record schema and run test vectors

Usage:
    python tools/validate_form_schema.py schema.yaml
    python tools/validate_form_schema.py schema.yaml --verbose
    python tools/validate_form_schema.py schema.yaml --json

Schema format (YAML):

    name: search_request
    config:
      options: [lower_case_names]
    root: SearchRequest
    records:
      Paging:
        fields:
          - {name: Number, type: uint16}
          - {name: Size, type: uint8, tag: optional}
      SearchRequest:
        fields:
          - {name: Query, type: str, tag: q}
          - {name: Paging, type: Paging, tag: "page,notinlined"}
    test_vectors:
      - name: basic
        query: "q=shoes&page.number=2"
        expected: {Query: shoes, Paging: {Number: 2, Size: 0}}
      - name: no query
        query: "page.number=2"
        error: missing_value
        path: q

Features:
    - Validates schema structure and builds the declared dataclasses
    - Decodes every test vector (query string or explicit values mapping)
    - Compares decoded records or the raised error kind
    - Optionally outputs JSON results
"""

import argparse
import dataclasses
import json
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import yaml

# Add tools to path
sys.path.insert(0, str(Path(__file__).parent))
from form_decoder import Decoder, DecoderConfig
from form_errors import DecodeError, ErrorKind
from form_types import (
    classify, float32, float64, int8, int16, int32, int64,
    uint, uint8, uint16, uint32, uint64,
)


TYPE_NAMES: Dict[str, Any] = {
    'str': str,
    'string': str,
    'bool': bool,
    'int': int,
    'float': float,
    'int8': int8,
    'int16': int16,
    'int32': int32,
    'int64': int64,
    'uint': uint,
    'uint8': uint8,
    'uint16': uint16,
    'uint32': uint32,
    'uint64': uint64,
    'float32': float32,
    'float64': float64,
}

_SEQUENCE_RE = re.compile(r'(list|tuple)\[(\w+)\]')

ERROR_KINDS = {kind.value for kind in ErrorKind}


@dataclass
class VectorResult:
    """Result of a single test vector."""
    name: str
    passed: bool
    description: str = ""
    query: str = ""
    expected: Dict[str, Any] = field(default_factory=dict)
    actual: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class ValidationResult:
    """Result of schema validation."""
    schema_valid: bool
    schema_errors: List[str] = field(default_factory=list)
    test_results: List[VectorResult] = field(default_factory=list)

    @property
    def tests_passed(self) -> int:
        return sum(1 for t in self.test_results if t.passed)

    @property
    def tests_failed(self) -> int:
        return sum(1 for t in self.test_results if not t.passed)

    @property
    def total_tests(self) -> int:
        return len(self.test_results)

    @property
    def all_passed(self) -> bool:
        return self.schema_valid and self.tests_failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'schema_valid': self.schema_valid,
            'schema_errors': self.schema_errors,
            'tests_passed': self.tests_passed,
            'tests_failed': self.tests_failed,
            'total_tests': self.total_tests,
            'all_passed': self.all_passed,
            'test_results': [t.to_dict() for t in self.test_results],
        }


def values_match(expected: Any, actual: Any, tolerance: float = 0.001) -> Tuple[bool, str]:
    """Compare expected and actual values with tolerance for floats."""
    if isinstance(actual, tuple):
        actual = list(actual)

    if isinstance(expected, bool) or isinstance(actual, bool):
        if type(expected) != type(actual) or expected != actual:
            return False, f"expected {expected!r}, got {actual!r}"
        return True, ""

    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        if abs(expected - actual) > tolerance:
            return False, f"expected {expected}, got {actual} (diff: {abs(expected - actual)})"
        return True, ""

    if isinstance(expected, dict) and isinstance(actual, dict):
        for key in expected:
            if key not in actual:
                return False, f"missing key '{key}'"
            match, msg = values_match(expected[key], actual[key], tolerance)
            if not match:
                return False, f"{key}: {msg}"
        return True, ""

    if isinstance(expected, list) and isinstance(actual, list):
        if len(expected) != len(actual):
            return False, f"list length mismatch: expected {len(expected)}, got {len(actual)}"
        for i, (e, a) in enumerate(zip(expected, actual)):
            match, msg = values_match(e, a, tolerance)
            if not match:
                return False, f"[{i}]: {msg}"
        return True, ""

    if type(expected) != type(actual):
        return False, f"type mismatch: expected {type(expected).__name__}, got {type(actual).__name__}"

    if expected != actual:
        return False, f"expected {expected!r}, got {actual!r}"

    return True, ""


def validate_schema_structure(schema: Any) -> List[str]:
    """Check the schema document shape. Returns a list of errors."""
    errors = []
    if not isinstance(schema, dict):
        return ["Schema must be an object"]

    records = schema.get('records')
    if not isinstance(records, dict) or not records:
        errors.append("'records' must be a non-empty object")
        records = {}

    root = schema.get('root')
    if not root:
        errors.append("Missing required 'root'")
    elif root not in records:
        errors.append(f"'root' references unknown record '{root}'")

    for rec_name, rec_def in records.items():
        path = f"records.{rec_name}"
        if not isinstance(rec_def, dict) or not isinstance(rec_def.get('fields'), list):
            errors.append(f"{path}: must have a 'fields' array")
            continue
        seen = set()
        for i, fld in enumerate(rec_def['fields']):
            if not isinstance(fld, dict):
                errors.append(f"{path}.fields[{i}]: must be an object")
                continue
            name = fld.get('name')
            if not name or not isinstance(name, str) or not name.isidentifier():
                errors.append(f"{path}.fields[{i}]: 'name' must be a valid identifier")
            elif name in seen:
                errors.append(f"{path}.fields[{i}]: duplicate field name '{name}'")
            else:
                seen.add(name)
            ftype = fld.get('type')
            if not isinstance(ftype, str):
                errors.append(f"{path}.fields[{i}] ({name}): missing 'type'")
                continue
            match = _SEQUENCE_RE.fullmatch(ftype)
            base = match.group(2) if match else ftype
            if base not in TYPE_NAMES and (match or base not in records):
                errors.append(f"{path}.fields[{i}] ({name}): unknown type '{ftype}'")
            if 'tag' in fld and not isinstance(fld['tag'], str):
                errors.append(f"{path}.fields[{i}] ({name}): 'tag' must be a string")

    if 'config' in schema:
        try:
            DecoderConfig.from_dict(schema['config'])
        except ValueError as e:
            errors.append(f"config: {e}")

    if 'test_vectors' in schema:
        if not isinstance(schema['test_vectors'], list):
            errors.append("'test_vectors' must be an array")
        else:
            for i, tv in enumerate(schema['test_vectors']):
                if not isinstance(tv, dict):
                    errors.append(f"Test vector {i}: must be an object")
                    continue
                if 'name' not in tv:
                    errors.append(f"Test vector {i}: missing 'name'")
                if 'query' not in tv and 'values' not in tv:
                    errors.append(f"Test vector {i} ({tv.get('name', '?')}): missing 'query' or 'values'")
                if 'expected' not in tv and 'error' not in tv:
                    errors.append(f"Test vector {i} ({tv.get('name', '?')}): missing 'expected' or 'error'")
                if 'error' in tv and tv['error'] not in ERROR_KINDS:
                    errors.append(f"Test vector {i} ({tv.get('name', '?')}): unknown error kind '{tv['error']}'")

    return errors


def build_records(schema: Dict[str, Any], tag: str) -> Dict[str, type]:
    """
    Create a dataclass for every declared record.

    Every generated field has a default so records can be nested with
    default factories. Raises ValueError on circular record references.
    """
    records = schema['records']
    built: Dict[str, type] = {}
    building: List[str] = []

    def resolve(type_str: str) -> Any:
        match = _SEQUENCE_RE.fullmatch(type_str)
        if match:
            container, leaf = match.groups()
            if container == 'list':
                return List[TYPE_NAMES[leaf]]
            return Tuple[TYPE_NAMES[leaf], ...]
        if type_str in TYPE_NAMES:
            return TYPE_NAMES[type_str]
        return build(type_str)

    def build(rec_name: str) -> type:
        if rec_name in built:
            return built[rec_name]
        if rec_name in building:
            raise ValueError(f"Circular record reference: {' -> '.join(building + [rec_name])}")
        building.append(rec_name)

        fields = []
        for fld in records[rec_name]['fields']:
            annotation = resolve(fld['type'])
            metadata = {tag: fld['tag']} if 'tag' in fld else {}
            if dataclasses.is_dataclass(annotation):
                spec = field(default_factory=annotation, metadata=metadata)
            elif _SEQUENCE_RE.fullmatch(fld['type']):
                factory = list if fld['type'].startswith('list') else tuple
                items = tuple(fld.get('default') or ())
                spec = field(default_factory=lambda f=factory, v=items: f(v), metadata=metadata)
            else:
                default = fld.get('default', classify(annotation).zero)
                spec = field(default=default, metadata=metadata)
            fields.append((fld['name'], annotation, spec))

        building.pop()
        built[rec_name] = dataclasses.make_dataclass(rec_name, fields)
        return built[rec_name]

    for rec_name in records:
        build(rec_name)
    return built


def source_for_vector(tv: Dict[str, Any]) -> Dict[str, List[str]]:
    """Build the decode source of a test vector."""
    if 'values' in tv:
        values = tv['values'] or {}
        return {
            str(k): [str(x) for x in v] if isinstance(v, list) else [str(v)]
            for k, v in values.items()
        }
    return parse_qs(tv.get('query') or '', keep_blank_values=True)


def run_test_vector(decoder: Decoder, record_type: type, tv: Dict[str, Any]) -> VectorResult:
    """Run a single test vector and return result."""
    result = VectorResult(
        name=tv.get('name', 'unnamed'),
        passed=False,
        description=tv.get('description', ''),
        query=tv.get('query', ''),
        expected=tv.get('expected', {}),
    )

    try:
        source = source_for_vector(tv)
    except (AttributeError, TypeError) as e:
        result.errors.append(f"Invalid values: {e}")
        return result

    expected_error = tv.get('error')
    try:
        record = decoder.decode_new(source, record_type)
    except DecodeError as e:
        if expected_error is None:
            result.errors.append(f"Decode failed: {e}")
        elif e.kind.value != expected_error:
            result.errors.append(f"expected error '{expected_error}', got '{e.kind.value}': {e}")
        elif 'path' in tv and e.field_path != tv['path']:
            result.errors.append(f"expected error path '{tv['path']}', got '{e.field_path}'")
        result.actual = {'error': e.to_dict()}
        result.passed = len(result.errors) == 0
        return result

    result.actual = dataclasses.asdict(record)
    if expected_error is not None:
        result.errors.append(f"expected error '{expected_error}', decode succeeded")
        return result

    match, msg = values_match(result.expected, result.actual)
    if not match:
        result.errors.append(msg)

    result.passed = len(result.errors) == 0
    return result


def validate_schema(schema: Dict[str, Any]) -> ValidationResult:
    """Validate schema and run all test vectors."""
    result = ValidationResult(schema_valid=True)

    structure_errors = validate_schema_structure(schema)
    if structure_errors:
        result.schema_valid = False
        result.schema_errors = structure_errors
        return result

    config = DecoderConfig.from_dict(schema.get('config'))
    try:
        records = build_records(schema, config.tag)
    except (ValueError, TypeError) as e:
        result.schema_valid = False
        result.schema_errors.append(f"Failed to build records: {e}")
        return result

    decoder = Decoder(config)
    record_type = records[schema['root']]
    for tv in schema.get('test_vectors', []):
        result.test_results.append(run_test_vector(decoder, record_type, tv))

    return result


def _describe_actual(tr: VectorResult) -> str:
    error = tr.actual.get('error')
    if error:
        return f"{error['kind']} at {error['path'] or '<root>'} (key {error['key']!r})"
    return json.dumps(tr.actual)


def print_results(result: ValidationResult, verbose: bool = False):
    """Print one line per vector, with decode details for failures."""
    if not result.schema_valid:
        print("Schema: INVALID")
        for error in result.schema_errors:
            print(f"  - {error}")
        return

    print(f"Schema: VALID, {result.total_tests} test vector(s)")
    for tr in result.test_results:
        print(f"{'PASS' if tr.passed else 'FAIL'}  {tr.name}")
        if tr.passed and not verbose:
            continue
        print(f"      query:   {tr.query!r}")
        print(f"      decoded: {_describe_actual(tr)}")
        for error in tr.errors:
            print(f"      error:   {error}")

    if result.all_passed:
        print(f"PASSED: All {result.total_tests} tests passed")
    else:
        print(f"FAILED: {result.tests_failed} of {result.total_tests} tests failed")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Validate a form record schema and run its test vectors'
    )
    parser.add_argument('schema', help='Path to schema YAML file')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show detailed output for all tests and debug logging')
    parser.add_argument('--json', action='store_true',
                        help='Output results as JSON')
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(name)s: %(message)s')

    try:
        with open(args.schema) as f:
            schema = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"Error loading schema: {e}", file=sys.stderr)
        return 1

    result = validate_schema(schema)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Validating: {args.schema}")
        print_results(result, args.verbose)

    return 0 if result.all_passed else 1


if __name__ == '__main__':
    sys.exit(main())
