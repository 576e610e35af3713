"""Dependency graphs of traced declarations using NetworkX."""
from typing import Dict
import networkx as nx

from .dependency_tracer import TracedDeclaration
from .indexer import Indices


def build_symbol_graph(indices: Indices, traced: Dict[str, TracedDeclaration]) -> nx.DiGraph:
    """Build a node-level graph.

    Creates a directed graph where edge (D, C) means "top-level node C uses
    declaration D". Every indexed node is present, consumer or not.

    Args:
        indices: Indices the declarations were traced over
        traced: Result of DependencyTracer.trace_all()

    Returns:
        NetworkX DiGraph; edges carry kind='internal' or kind='external'
    """
    graph = nx.DiGraph()

    for node_id, node in indices.project.items():
        graph.add_node(
            node_id,
            file=node.relative_path,
            category=node.category.value,
            node_type=node.node_type,
            names=list(node.declared_names),
            line=node.span.start_line,
        )

    for declaration_id, item in traced.items():
        for consumer_id in item.result.internal:
            graph.add_edge(declaration_id, consumer_id, kind='internal')
        for consumer_id in item.result.external:
            graph.add_edge(declaration_id, consumer_id, kind='external')

    return graph


def build_file_graph(indices: Indices, traced: Dict[str, TracedDeclaration]) -> nx.DiGraph:
    """Build a file-level graph from external consumer edges.

    Edge (A, B) means "file A uses declarations of file B"; ``weight`` counts
    the (declaration, consumer) pairs behind it.

    Args:
        indices: Indices the declarations were traced over
        traced: Result of DependencyTracer.trace_all()

    Returns:
        NetworkX DiGraph keyed by relative path
    """
    graph = nx.DiGraph()

    for node in indices.project.values():
        graph.add_node(node.relative_path, path=node.file_path)

    for item in traced.values():
        target = item.node.relative_path
        for consumer_id in item.result.external:
            consumer = indices.project[consumer_id]
            source = consumer.relative_path
            if graph.has_edge(source, target):
                graph[source][target]['weight'] += 1
            else:
                graph.add_edge(source, target, weight=1)

    return graph


def export_graph_json(graph: nx.DiGraph) -> dict:
    """Node-link JSON-serializable form of a graph."""
    return nx.node_link_data(graph, edges='links')
