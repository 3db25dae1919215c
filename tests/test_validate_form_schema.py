"""
Tests for the schema validation harness.
"""

import dataclasses
import json
from typing import List, Tuple

import pytest
import yaml

import validate_form_schema as vfs
from form_types import uint16


def write_schema(tmp_path, schema):
    path = tmp_path / "schema.yaml"
    path.write_text(yaml.safe_dump(schema))
    return path


@pytest.fixture
def simple_schema():
    return {
        'name': 'login',
        'root': 'Login',
        'records': {
            'Login': {
                'fields': [
                    {'name': 'user', 'type': 'str'},
                    {'name': 'remember', 'type': 'bool', 'tag': 'optional'},
                    {'name': 'ports', 'type': 'list[uint16]', 'tag': 'port,optional'},
                ],
            },
        },
        'test_vectors': [
            {
                'name': 'ok',
                'query': 'user=ann&port=80&port=443',
                'expected': {'user': 'ann', 'remember': False, 'ports': [80, 443]},
            },
            {
                'name': 'missing user',
                'query': 'remember=true',
                'error': 'missing_value',
                'path': 'user',
            },
        ],
    }


class TestShippedSchema:

    def test_search_request_passes(self, schemas_dir):
        with open(schemas_dir / "search_request.yaml") as f:
            schema = yaml.safe_load(f)

        result = vfs.validate_schema(schema)

        assert result.schema_valid, result.schema_errors
        failures = [(t.name, t.errors) for t in result.test_results if not t.passed]
        assert failures == []
        assert result.total_tests == 7


class TestBuildRecords:

    def test_types_and_defaults(self, simple_schema):
        records = vfs.build_records(simple_schema, 'form')
        login = records['Login']()

        assert dataclasses.is_dataclass(login)
        assert (login.user, login.remember, login.ports) == ('', False, [])
        hints = {f.name: f.type for f in dataclasses.fields(login)}
        assert hints['ports'] == List[uint16]

    def test_nested_and_tuple(self):
        schema = {
            'records': {
                'Outer': {'fields': [{'name': 'inner', 'type': 'Inner', 'tag': 'in,notinlined'}]},
                'Inner': {'fields': [{'name': 'xs', 'type': 'tuple[int]', 'default': [1, 2]}]},
            },
        }
        records = vfs.build_records(schema, 'form')
        outer = records['Outer']()
        assert outer.inner == records['Inner']()
        assert outer.inner.xs == (1, 2)
        assert dataclasses.fields(records['Inner'])[0].type == Tuple[int, ...]

    def test_circular_reference(self):
        schema = {
            'records': {
                'A': {'fields': [{'name': 'b', 'type': 'B'}]},
                'B': {'fields': [{'name': 'a', 'type': 'A'}]},
            },
        }
        with pytest.raises(ValueError, match="Circular record reference"):
            vfs.build_records(schema, 'form')


class TestValidateSchema:

    def test_simple_schema_passes(self, simple_schema):
        result = vfs.validate_schema(simple_schema)
        assert result.all_passed
        assert result.tests_passed == 2

    def test_wrong_expectation_fails(self, simple_schema):
        simple_schema['test_vectors'][0]['expected']['ports'] = [80]
        result = vfs.validate_schema(simple_schema)
        assert not result.all_passed
        assert "list length mismatch" in result.test_results[0].errors[0]

    def test_wrong_error_kind_fails(self, simple_schema):
        simple_schema['test_vectors'][1]['error'] = 'parse_failure'
        result = vfs.validate_schema(simple_schema)
        assert not result.test_results[1].passed
        assert result.test_results[1].actual['error']['kind'] == 'missing_value'

    def test_unexpected_success_fails(self, simple_schema):
        simple_schema['test_vectors'][1]['query'] = 'user=bob'
        result = vfs.validate_schema(simple_schema)
        assert "decode succeeded" in result.test_results[1].errors[0]

    def test_values_mapping_vector(self, simple_schema):
        simple_schema['test_vectors'] = [{
            'name': 'values',
            'values': {'user': 'zed', 'port': [8080]},
            'expected': {'user': 'zed', 'ports': [8080]},
        }]
        assert vfs.validate_schema(simple_schema).all_passed

    def test_config_section(self, simple_schema):
        simple_schema['config'] = {'all_optional': True}
        simple_schema['test_vectors'] = [{'name': 'empty', 'query': '', 'expected': {'user': ''}}]
        assert vfs.validate_schema(simple_schema).all_passed

    @pytest.mark.parametrize("mutate,message", [
        (lambda s: s.pop('root'), "Missing required 'root'"),
        (lambda s: s.update(root='Nope'), "unknown record 'Nope'"),
        (lambda s: s['records']['Login']['fields'].append({'name': 'x', 'type': 'map'}),
         "unknown type 'map'"),
        (lambda s: s['records']['Login']['fields'].append({'name': 'user', 'type': 'str'}),
         "duplicate field name"),
        (lambda s: s['records']['Login']['fields'].append({'name': 'x', 'type': 'list[Login]'}),
         "unknown type 'list[Login]'"),
        (lambda s: s.update(config={'colour': True}), "Unknown decoder config key"),
        (lambda s: s.update(config={'options': 3}), "must be a list of option names"),
        (lambda s: s['test_vectors'].append({'name': 'x', 'query': ''}),
         "missing 'expected' or 'error'"),
        (lambda s: s['test_vectors'].append({'name': 'x', 'query': '', 'error': 'boom'}),
         "unknown error kind"),
    ])
    def test_structure_errors(self, simple_schema, mutate, message):
        mutate(simple_schema)
        result = vfs.validate_schema(simple_schema)
        assert not result.schema_valid
        assert any(message in e for e in result.schema_errors), result.schema_errors

    def test_not_a_mapping(self):
        result = vfs.validate_schema(['records'])
        assert result.schema_errors == ["Schema must be an object"]


class TestValuesMatch:

    def test_float_tolerance(self):
        assert vfs.values_match(1.0, 1.0004)[0]
        assert not vfs.values_match(1.0, 1.01)[0]

    def test_bool_is_not_int(self):
        assert not vfs.values_match(1, True)[0]

    def test_tuple_compares_as_list(self):
        assert vfs.values_match([1, 2], (1, 2))[0]

    def test_nested_dict_subset(self):
        assert vfs.values_match({'a': {'b': 1}}, {'a': {'b': 1, 'c': 2}, 'd': 3})[0]


class TestMain:

    def test_exit_zero_on_success(self, tmp_path, simple_schema, capsys):
        path = write_schema(tmp_path, simple_schema)
        assert vfs.main([str(path)]) == 0
        out = capsys.readouterr().out
        assert "PASSED: All 2 tests passed" in out

    def test_json_output(self, tmp_path, simple_schema, capsys):
        path = write_schema(tmp_path, simple_schema)
        assert vfs.main([str(path), '--json']) == 0
        report = json.loads(capsys.readouterr().out)
        assert report['all_passed'] is True
        assert report['test_results'][1]['actual']['error']['path'] == 'user'

    def test_exit_one_on_failure(self, tmp_path, simple_schema, capsys):
        simple_schema['test_vectors'][0]['expected']['user'] = 'bob'
        path = write_schema(tmp_path, simple_schema)
        assert vfs.main([str(path), '-v']) == 1
        assert "FAILED: 1 of 2 tests failed" in capsys.readouterr().out

    def test_verbose_shows_decoded_error(self, tmp_path, simple_schema, capsys):
        path = write_schema(tmp_path, simple_schema)
        assert vfs.main([str(path), '-v']) == 0
        out = capsys.readouterr().out
        assert "PASS  missing user" in out
        assert "decoded: missing_value at user (key 'user')" in out

    def test_missing_file(self, tmp_path, capsys):
        assert vfs.main([str(tmp_path / "absent.yaml")]) == 1
        assert "Error loading schema" in capsys.readouterr().err
