"""Tests for the symtrace command line (main.py)."""

import json

import pytest
from typer.testing import CliRunner

from symtrace.main import app

from conftest import write_sources


runner = CliRunner()


@pytest.fixture
def project(tmp_path):
    write_sources(tmp_path, {
        'src/lib.ts': 'export const used = 1;\nexport const unused = 2;',
        'src/app.ts': "import { used } from './lib';\nconsole.log(used);",
        'src/broken.ts': 'export const = ;',
    })
    return tmp_path / 'src'


def test_trace_json(project):
    result = runner.invoke(app, ['trace', str(project), '--json'])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)

    assert payload['summary']['totalDeclarations'] == 2
    assert payload['summary']['orphaned'] == 1
    assert payload['summary']['skippedFiles'] == 1
    by_name = {d['name']: d for d in payload['declarations'].values()}
    assert by_name['unused']['external'] == []
    consumer = by_name['used']['external'][0]
    assert payload['files'][consumer] == 'app.ts'
    assert any('broken.ts' in warning for warning in payload['warnings'])


def test_trace_human_output(project):
    result = runner.invoke(app, ['trace', str(project)])
    assert result.exit_code == 0, result.output
    assert 'Summary' in result.output
    assert 'unused' in result.output


def test_trace_missing_directory(tmp_path):
    result = runner.invoke(app, ['trace', str(tmp_path / 'nope')])
    assert result.exit_code != 0


def test_trace_file_json(project):
    result = runner.invoke(app, ['trace-file', str(project / 'lib.ts'), '--src', str(project), '--json'])
    assert result.exit_code == 0, result.output
    details = json.loads(result.output)
    by_name = {d['name']: d for d in details.values()}
    assert set(by_name) == {'used', 'unused'}
    assert by_name['used']['external_files'] == [str(project / 'app.ts')]


def test_trace_file_missing_file(project):
    result = runner.invoke(app, ['trace-file', str(project / 'ghost.ts'), '--src', str(project)])
    assert result.exit_code != 0


@pytest.mark.parametrize('level', ['symbol', 'file'])
def test_graph_writes_json(project, tmp_path, level):
    output = tmp_path / f'{level}.json'
    result = runner.invoke(app, ['graph', str(project), '--output', str(output), '--level', level])
    assert result.exit_code == 0, result.output
    data = json.loads(output.read_text(encoding='utf-8'))
    assert data['directed'] is True
    assert data['nodes']


def test_graph_invalid_level(project, tmp_path):
    result = runner.invoke(app, ['graph', str(project), '-o', str(tmp_path / 'g.json'), '--level', 'module'])
    assert result.exit_code != 0
