"""Tests for the NetworkX consumer graphs (graph_builder.py)."""

import json

import networkx as nx
import pytest

from symtrace.analyzer.graph_builder import build_file_graph, build_symbol_graph, export_graph_json


@pytest.fixture
def project(make_project):
    return make_project({
        'lib.ts': 'export const a = 1;\nexport const b = a + 1;',
        'app.ts': "import { a, b } from './lib';\nexport const c = a + b;\nconsole.log(a);",
    })


def test_symbol_graph_nodes_and_edges(project):
    graph = build_symbol_graph(project.indices, project.traced)
    assert isinstance(graph, nx.DiGraph)
    assert set(graph.nodes) == set(project.indices.project)

    a = project.declaration('a').id
    b = project.declaration('b').id
    c = project.declaration('c').id
    log_line = project.node('app.ts', 'console.log(a)').id

    assert graph.edges[a, b]['kind'] == 'internal'
    assert graph.edges[a, c]['kind'] == 'external'
    assert graph.edges[a, log_line]['kind'] == 'external'
    assert graph.edges[b, c]['kind'] == 'external'
    assert graph.out_degree(c) == 0


def test_symbol_graph_node_attributes(project):
    graph = build_symbol_graph(project.indices, project.traced)
    attrs = graph.nodes[project.declaration('b').id]
    assert attrs['file'] == 'lib.ts'
    assert attrs['names'] == ['b']
    assert attrs['line'] == 2
    assert attrs['category'] == 'export'


def test_file_graph_weights(project):
    graph = build_file_graph(project.indices, project.traced)
    assert set(graph.nodes) == {'lib.ts', 'app.ts'}
    # a -> {c, console.log}, b -> {c}
    assert graph.edges['app.ts', 'lib.ts']['weight'] == 3
    assert not graph.has_edge('lib.ts', 'app.ts')


def test_export_graph_json(project):
    graph = build_file_graph(project.indices, project.traced)
    data = export_graph_json(graph)
    assert {n['id'] for n in data['nodes']} == {'lib.ts', 'app.ts'}
    assert data['links'] == [{'source': 'app.ts', 'target': 'lib.ts', 'weight': 3}]
    json.dumps(data)
