"""Shared fixtures: traced projects built from fixture files or tmp_path sources."""

from pathlib import Path
from textwrap import dedent
from typing import Dict, Optional, Set

import pytest

from symtrace.analyzer.config_parser import AliasConfig
from symtrace.analyzer.dependency_tracer import DependencyTracer, TracedDeclaration
from symtrace.analyzer.indexer import ProjectIndexer, TopLevelNode
from symtrace.analyzer.inventory import discover_source_files
from symtrace.analyzer.scope_resolver import ScopeResolver
from symtrace.utils.logger import AnalysisLog


EDGE_CASES_DIR = Path(__file__).parent / 'fixtures' / 'edge_cases'


class TracedProject:
    """Index + trace a directory and offer lookups by name and source snippet."""

    def __init__(self, root: Path, alias_config: Optional[AliasConfig] = None):
        self.root = Path(root)
        self.log = AnalysisLog()
        self.indexer = ProjectIndexer(self.root, alias_config=alias_config, log=self.log)
        self.indices = self.indexer.index_all(discover_source_files(self.root), workers=1)
        self.scope_resolver = ScopeResolver()
        self.tracer = DependencyTracer(self.indices, self.indexer.resolver, self.scope_resolver)
        self.traced: Dict[str, TracedDeclaration] = self.tracer.trace_all(workers=1)

    def declaration(self, name: str, relative_path: Optional[str] = None) -> TracedDeclaration:
        for item in self.traced.values():
            if name in item.node.declared_names and (
                    relative_path is None or item.node.relative_path == relative_path):
                return item
        raise AssertionError(f"no declaration of {name!r} in {relative_path or 'project'}")

    def node(self, relative_path: str, snippet: str) -> TopLevelNode:
        for node in self.indices.project.values():
            if node.relative_path == relative_path and snippet in node.raw:
                return node
        raise AssertionError(f"no node containing {snippet!r} in {relative_path}")

    def internal(self, name: str, relative_path: Optional[str] = None) -> Set[str]:
        return set(self.declaration(name, relative_path).result.internal)

    def external(self, name: str, relative_path: Optional[str] = None) -> Set[str]:
        return set(self.declaration(name, relative_path).result.external)

    def external_files(self, name: str, relative_path: Optional[str] = None) -> Set[str]:
        return {self.indices.project[i].relative_path for i in self.external(name, relative_path)}


def write_sources(root: Path, files: Dict[str, str]):
    for relative_path, content in files.items():
        path = root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(content).lstrip('\n'), encoding='utf-8')


@pytest.fixture
def make_project(tmp_path):
    """Factory: write {relative_path: source} under tmp_path and trace it.

    Alias configuration is empty unless ``load_config`` is set, in which case
    tsconfig/jsconfig files written into the project are honoured.
    """
    def _make(files: Dict[str, str], load_config: bool = False) -> TracedProject:
        write_sources(tmp_path, files)
        return TracedProject(tmp_path, alias_config=None if load_config else AliasConfig())
    return _make


@pytest.fixture(scope='module')
def edge_cases() -> TracedProject:
    """The shared edge-case fixture project, traced once per module."""
    return TracedProject(EDGE_CASES_DIR, alias_config=AliasConfig())
