"""Cross-module consumer tracing for top-level declarations.

For every declaration, finds which other top-level nodes use it:

1. Internal usage: other nodes of the same file that reference a declared name.
2. External usage: nodes of other files that reference it through an import,
   following aliases (``import { a as b }``), namespace imports, CommonJS
   ``require()``, local re-exports (``import { a } ...; export { a }``) and
   re-export-from chains (``export { a } from``, ``export * from``) of any length.

Re-export graphs may be circular or converge on shared barrels. Each search
keeps its own set of expanded (file, name) pairs, so every pair is expanded
once per search and the search always terminates.

The indices are only read. Results are returned as new objects.
"""
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import os

from ..config import get_config
from .indexer import Indices, TopLevelNode
from .resolver import normalize_path
from .scope_resolver import ScopeResolver
from .syntax import ImportKind, ImportSpecifier


# (file, exported name) pairs excluded from a search
Visited = FrozenSet[Tuple[str, str]]

JSX_EXTENSIONS = {'.tsx', '.jsx'}
NON_JSX_EXTENSIONS = {'.ts', '.mts', '.cts'}

# Names that stand for "the module's default export" rather than a binding
PSEUDO_NAMES = {'default'}


@dataclass(frozen=True)
class DependencyResult:
    """Consumer ids, deduplicated, in discovery order."""
    internal: Tuple[str, ...] = ()
    external: Tuple[str, ...] = ()

    @property
    def is_orphaned(self) -> bool:
        return not self.internal and not self.external


@dataclass(frozen=True)
class TracedDeclaration:
    """A declaration node paired with its computed consumers."""
    node: TopLevelNode
    result: DependencyResult

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def name(self) -> str:
        return self.node.declared_names[0] if self.node.declared_names else 'unknown'


@dataclass(frozen=True)
class ExportBinding:
    """Which node makes ``exported`` visible from a file, and under what local name."""
    node_id: str
    local: str
    exported: str


@dataclass(frozen=True)
class TraceSummary:
    total_declarations: int
    with_internal: int
    with_external: int
    orphaned: int
    skipped_files: int = 0
    approximate_checks: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'totalDeclarations': self.total_declarations,
            'withInternalDependants': self.with_internal,
            'withExternalDependants': self.with_external,
            'orphaned': self.orphaned,
            'skippedFiles': self.skipped_files,
            'approximateChecks': self.approximate_checks,
        }


def _unique(ids: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(ids))


def jsx_hint(file_path: str) -> Optional[bool]:
    """JSX parsing hint from a file extension; None means detect from the text."""
    extension = os.path.splitext(file_path)[1].lower()
    if extension in JSX_EXTENSIONS:
        return True
    if extension in NON_JSX_EXTENSIONS:
        return False
    return None


def matching_specifiers(node: TopLevelNode, name: str) -> List[ImportSpecifier]:
    """Specifiers of an import node that can bind ``name`` of the source module.

    Namespace imports and whole-module requires match every name: any use of
    the namespace binding is counted as a possible use of each export.
    """
    matches = []
    for spec in node.imported:
        if spec.kind in (ImportKind.NAMESPACE, ImportKind.REQUIRE_DEFAULT):
            matches.append(spec)
        elif spec.kind == ImportKind.DEFAULT:
            if name == 'default':
                matches.append(spec)
        elif spec.imported == name:
            # named / require-named, including `{ default as X }`
            matches.append(spec)
    return matches


class DependencyTracer:
    """Computes DependencyResult for declarations over frozen Indices."""

    def __init__(self, indices: Indices, resolver, scope_resolver: Optional[ScopeResolver] = None):
        """Initialize tracer and build lookup tables.

        Args:
            indices: Indices from ProjectIndexer
            resolver: Object with resolve_module_path(specifier, from_dir)
            scope_resolver: Shared reference checker; a new one is created when None
        """
        self.indices = indices
        self.resolver = resolver
        self.scope_resolver = scope_resolver or ScopeResolver(get_config().parse_cache_size)

        self._file_nodes: Dict[str, List[str]] = defaultdict(list)
        self._file_exports: Dict[str, List[str]] = defaultdict(list)
        self._local_exports: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        self._bindings: Dict[Tuple[str, str], ExportBinding] = {}
        self._importers: Dict[str, List[str]] = defaultdict(list)
        self._reexporters: Dict[str, List[str]] = defaultdict(list)

        self._build_lookups()

    def _resolve(self, specifier: Optional[str], file_path: str) -> Optional[str]:
        if not specifier:
            return None
        resolved = self.resolver.resolve_module_path(specifier, os.path.dirname(file_path))
        return normalize_path(resolved) if resolved else None

    def _build_lookups(self):
        for node_id, node in self.indices.project.items():
            self._file_nodes[node.file_path].append(node_id)

        for node_id, node in self.indices.exports.items():
            self._file_exports[node.file_path].append(node_id)
            for exported in node.exported_names:
                self._bindings[(node.file_path, exported.exported)] = ExportBinding(
                    node_id, exported.local, exported.exported
                )
            if node.is_reexport:
                source = self._resolve(node.export_source, node.file_path)
                if source is not None:
                    self._reexporters[source].append(node_id)
            else:
                for exported in node.exported_names:
                    self._local_exports[(node.file_path, exported.local)].append(exported.exported)

        for node_id, node in self.indices.imports.items():
            source = self._resolve(node.import_source, node.file_path)
            if source is not None:
                self._importers[source].append(node_id)

    def export_binding(self, file_path: str, exported: str) -> Optional[ExportBinding]:
        """The export statement that makes ``exported`` visible from ``file_path``."""
        return self._bindings.get((normalize_path(file_path), exported))

    def is_name_exported(self, name: str, file_path: str) -> bool:
        """True if a local export statement of the file exports the local binding ``name``."""
        return bool(self._local_exports.get((file_path, name)))

    def exported_aliases(self, name: str, node: TopLevelNode) -> List[str]:
        """Names under which importers see the local binding ``name``.

        The node's own export mapping and separate ``export { }`` statements of
        the same file both count; with neither, the name itself is used.
        """
        aliases = [e.exported for e in node.exported_names if e.local == name]
        aliases.extend(self._local_exports.get((node.file_path, name), ()))
        return list(dict.fromkeys(aliases)) or [name]

    def _references(self, node: TopLevelNode, name: str) -> bool:
        return self.scope_resolver.is_name_referenced(node.raw, name, jsx_hint(node.file_path))

    def find_internal_usage(self, node: TopLevelNode, name: str) -> Tuple[str, ...]:
        """Other nodes of the declaring file that reference ``name``."""
        if name in PSEUDO_NAMES:
            return ()
        found = []
        for other_id in self._file_nodes.get(node.file_path, ()):
            if other_id == node.id:
                continue
            if self._references(self.indices.project[other_id], name):
                found.append(other_id)
        return tuple(found)

    def _expand(self, name: str, source_file: str) -> Tuple[List[str], List[Tuple[str, str]]]:
        """One step of the external search for export ``name`` of ``source_file``.

        Returns:
            (consumer ids found directly in importing files,
             (file, name) pairs that forward the export further)
        """
        project = self.indices.project
        consumers: List[str] = []
        forwarded: List[Tuple[str, str]] = []

        for import_id in self._importers.get(source_file, ()):
            import_node = project[import_id]
            consumer_file = import_node.file_path
            if consumer_file == source_file:
                continue

            for spec in matching_specifiers(import_node, name):
                for consumer_id in self._file_nodes.get(consumer_file, ()):
                    if consumer_id == import_id:
                        continue
                    if self._references(project[consumer_id], spec.local):
                        consumers.append(consumer_id)

                # The consumer may forward the binding: import { a } ...; export { a }
                for alias in self._local_exports.get((consumer_file, spec.local), ()):
                    forwarded.append((consumer_file, alias))

        for export_id in self._reexporters.get(source_file, ()):
            export_node = project[export_id]
            barrel = export_node.file_path
            if barrel == source_file:
                continue

            for exported in export_node.exported_names:
                if exported.local == name:
                    alias = exported.exported
                elif exported.local == '*':
                    if exported.exported != '*':
                        # export * as ns from './m'
                        alias = exported.exported
                    elif name == 'default':
                        # export * never forwards the default export
                        continue
                    elif self.export_binding(barrel, name) is not None:
                        # an explicit export of the same name wins over export *
                        continue
                    else:
                        alias = name
                else:
                    continue
                forwarded.append((barrel, alias))

        return consumers, forwarded

    def find_external_usage(self, name: str, source_file: str,
                            visited: Visited = frozenset()) -> Tuple[str, ...]:
        """Nodes in other files that use export ``name`` of ``source_file``.

        Every (file, name) pair reachable through imports and re-exports is
        expanded exactly once per call, so converging barrels and re-export
        cycles cost time linear in the number of pairs.

        Args:
            name: Exported name ('default' for the default export)
            source_file: Absolute, normalized path of the exporting file
            visited: (file, name) pairs that must not be expanded

        Returns:
            Consumer node ids, deduplicated, in discovery order
        """
        expanded = set(visited)
        found: Dict[str, None] = {}
        stack = [(source_file, name)]

        while stack:
            key = stack.pop()
            if key in expanded:
                continue
            expanded.add(key)
            consumers, forwarded = self._expand(key[1], key[0])
            found.update(dict.fromkeys(consumers))
            # Reverse so forwards are followed in discovery order
            stack.extend(reversed(forwarded))

        return tuple(found)

    def trace_declaration(self, node: TopLevelNode) -> DependencyResult:
        """Compute internal and external consumers of one declaration."""
        internal: List[str] = []
        external: List[str] = []

        for name in node.declared_names:
            internal.extend(self.find_internal_usage(node, name))

            if node.is_exported or self.is_name_exported(name, node.file_path):
                for alias in self.exported_aliases(name, node):
                    external.extend(self.find_external_usage(alias, node.file_path))

        project = self.indices.project
        return DependencyResult(
            internal=_unique(i for i in internal if i != node.id),
            external=_unique(
                i for i in external
                if i != node.id and project[i].file_path != node.file_path
            ),
        )

    def _trace(self, node: TopLevelNode) -> TracedDeclaration:
        return TracedDeclaration(node=node, result=self.trace_declaration(node))

    def trace_all(self, workers: Optional[int] = None) -> Dict[str, TracedDeclaration]:
        """Trace every declaration.

        Args:
            workers: Thread count, defaults to SYMTRACE_TRACE_WORKERS

        Returns:
            id -> TracedDeclaration, in declarations order
        """
        if workers is None:
            workers = get_config().trace_workers
        nodes = list(self.indices.declarations.values())

        if workers > 1 and len(nodes) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                traced = list(pool.map(self._trace, nodes))
        else:
            traced = [self._trace(node) for node in nodes]

        return {item.id: item for item in traced}

    def trace_file(self, file_path) -> List[TracedDeclaration]:
        """Trace only the declarations of one file."""
        target = normalize_path(file_path)
        return [
            self._trace(node)
            for node in self.indices.declarations.values()
            if node.file_path == target
        ]

    def summarize(self, traced: Dict[str, TracedDeclaration]) -> TraceSummary:
        with_internal = sum(1 for t in traced.values() if t.result.internal)
        with_external = sum(1 for t in traced.values() if t.result.external)
        orphaned = sum(1 for t in traced.values() if t.result.is_orphaned)
        return TraceSummary(
            total_declarations=len(traced),
            with_internal=with_internal,
            with_external=with_external,
            orphaned=orphaned,
            skipped_files=len(self.indices.skipped_files),
            approximate_checks=self.scope_resolver.approximate_checks,
        )

    def to_dict(self, traced: Dict[str, TracedDeclaration]) -> Dict[str, dict]:
        """Serializable view keyed by declaration id."""
        return {
            node_id: {
                'name': item.name,
                'names': list(item.node.declared_names),
                'file': item.node.relative_path,
                'node_type': item.node.node_type,
                'is_exported': item.node.is_exported,
                'internal': list(item.result.internal),
                'external': list(item.result.external),
            }
            for node_id, item in traced.items()
        }
