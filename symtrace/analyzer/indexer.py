"""Project-wide index of top-level statements.

Every top-level statement of every source file becomes one immutable
``TopLevelNode`` with a process-unique id. Nodes are grouped into four views:

- project       every node
- imports       ESM imports and require() bindings
- exports       export statements and CommonJS export assignments
- declarations  nodes that bind names at module scope (plus CommonJS export assignments)

A node can sit in several views (``export const x = 1`` is both an export and a
declaration). The views are read-only once built.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
from uuid import uuid4
import threading

from ..config import get_config
from ..utils.logger import AnalysisLog
from .config_parser import AliasConfig, load_alias_config
from .inventory import SourceFile
from .parser import LanguageParser
from .resolver import ModuleResolver, normalize_path
from .syntax import (
    CommonJSExport,
    DeclarationStatement,
    ExportedName,
    ExportStatement,
    ImportSpecifier,
    ImportStatement,
    NodeCategory,
    SourceSpan,
    Statement,
    extract_statements,
)


@dataclass(frozen=True)
class TopLevelNode:
    """One top-level statement of one file."""
    id: str
    file_path: str  # absolute, normalized
    relative_path: str
    category: NodeCategory
    node_type: str
    span: SourceSpan
    raw: str
    declared_names: Tuple[str, ...] = ()
    imported: Tuple[ImportSpecifier, ...] = ()
    exported_names: Tuple[ExportedName, ...] = ()
    import_source: Optional[str] = None
    export_source: Optional[str] = None
    is_exported: bool = False
    is_default_export: bool = False
    is_require_import: bool = False
    is_commonjs_export: bool = False

    @property
    def is_reexport(self) -> bool:
        """True for ``export ... from 'm'`` statements."""
        return self.is_exported and self.export_source is not None


@dataclass(frozen=True)
class Indices:
    """Read-only views over the indexed project."""
    project: Mapping[str, TopLevelNode]
    imports: Mapping[str, TopLevelNode]
    exports: Mapping[str, TopLevelNode]
    declarations: Mapping[str, TopLevelNode]
    skipped_files: Tuple[str, ...] = field(default=())

    def file_of(self, node_id: str) -> Optional[str]:
        """Absolute path of the file a node id belongs to, or None for unknown ids."""
        node = self.project.get(node_id)
        return node.file_path if node is not None else None

    def stats(self) -> Dict[str, int]:
        return {
            'total_nodes': len(self.project),
            'imports': len(self.imports),
            'exports': len(self.exports),
            'declarations': len(self.declarations),
            'files': len({node.file_path for node in self.project.values()}),
            'skipped_files': len(self.skipped_files),
        }


def _first_error_line(tree) -> int:
    """1-based line of the first ERROR or MISSING node."""
    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.type == 'ERROR' or node.is_missing:
            return node.start_point[0] + 1
        # Reverse so the leftmost child is visited first
        stack.extend(child for child in reversed(node.children) if child.has_error or child.is_missing)
    return tree.root_node.start_point[0] + 1


class ProjectIndexer:
    """Build the four indices for a set of source files."""

    def __init__(self, src_path, alias_config: Optional[AliasConfig] = None,
                 log: Optional[AnalysisLog] = None):
        """Initialize indexer.

        Args:
            src_path: Source root; anchors '@/' and '~/' specifiers and the config search
            alias_config: Path aliases; loaded from tsconfig/jsconfig when None
            log: Warning ledger for skipped files and config problems
        """
        self.src_path = normalize_path(src_path)
        self.log = log if log is not None else AnalysisLog()
        if alias_config is None:
            alias_config = load_alias_config(
                self.src_path, search_depth=get_config().config_search_depth, log=self.log
            )
        self.resolver = ModuleResolver(self.src_path, alias_config)

        self._project: Dict[str, TopLevelNode] = {}
        self._imports: Dict[str, TopLevelNode] = {}
        self._exports: Dict[str, TopLevelNode] = {}
        self._declarations: Dict[str, TopLevelNode] = {}
        self._skipped: List[str] = []
        # tree-sitter parsers are not shareable across threads
        self._local = threading.local()

    def index_all(self, files: List[SourceFile], workers: Optional[int] = None) -> Indices:
        """Index every supported file.

        Files are read and parsed independently (in a thread pool when
        ``workers`` > 1) and merged in input order, so the resulting order is
        the same whatever the worker count.

        Args:
            files: Files to index; unsupported extensions are ignored
            workers: Thread count, defaults to SYMTRACE_INDEX_WORKERS

        Returns:
            Indices over everything indexed so far
        """
        if workers is None:
            workers = get_config().index_workers

        code_files = [f for f in files if LanguageParser.language_for(f.absolute_path)]

        if workers > 1 and len(code_files) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(self._read_and_build, code_files))
        else:
            results = [self._read_and_build(f) for f in code_files]

        for source_file, (nodes, error) in zip(code_files, results):
            if error is not None:
                self._skip(source_file, error)
                continue
            for node in nodes:
                self._add(node)

        return self.indices()

    def index_source(self, source_file: SourceFile, text: str) -> List[TopLevelNode]:
        """Index one in-memory file.

        Args:
            source_file: File identity (path, extension)
            text: Full source text

        Returns:
            Nodes added, empty if the file was skipped
        """
        try:
            nodes = self._build_nodes(source_file, text.encode('utf-8'))
        except ValueError as e:
            self._skip(source_file, str(e))
            return []
        for node in nodes:
            self._add(node)
        return nodes

    def indices(self) -> Indices:
        """Read-only snapshot; later indexing does not change it."""
        return Indices(
            project=MappingProxyType(dict(self._project)),
            imports=MappingProxyType(dict(self._imports)),
            exports=MappingProxyType(dict(self._exports)),
            declarations=MappingProxyType(dict(self._declarations)),
            skipped_files=tuple(self._skipped),
        )

    def resolve_module_path(self, specifier: str, from_dir: str) -> Optional[str]:
        return self.resolver.resolve_module_path(specifier, from_dir)

    def stats(self) -> Dict[str, int]:
        return self.indices().stats()

    def _skip(self, source_file: SourceFile, reason: str):
        self._skipped.append(normalize_path(source_file.absolute_path))
        self.log.warn('parse', source_file.relative_path or source_file.absolute_path, reason)

    def _read_and_build(self, source_file: SourceFile) -> Tuple[List[TopLevelNode], Optional[str]]:
        """Worker body: never raises for per-file problems, reports them instead."""
        try:
            with open(source_file.absolute_path, 'rb') as f:
                source = f.read()
            # Validate encoding up front; tree-sitter would accept garbage
            source.decode('utf-8')
            return self._build_nodes(source_file, source), None
        except (OSError, UnicodeDecodeError, ValueError) as e:
            return [], f"{type(e).__name__}: {e}"

    def _parser_for(self, path: str) -> LanguageParser:
        language = LanguageParser.language_for(path)
        if language is None:
            raise ValueError(f"unsupported file type: {path}")
        parsers = getattr(self._local, 'parsers', None)
        if parsers is None:
            parsers = self._local.parsers = {}
        if language not in parsers:
            parsers[language] = LanguageParser(language)
        return parsers[language]

    def _build_nodes(self, source_file: SourceFile, source: bytes) -> List[TopLevelNode]:
        """Parse one file and describe its top-level statements.

        Raises:
            ValueError: If the file type is unsupported or the source has syntax errors
        """
        tree = self._parser_for(source_file.absolute_path).parse_source(source)
        if tree.root_node.has_error:
            raise ValueError(f"syntax error near line {_first_error_line(tree)}")

        return [self._to_node(source_file, statement) for statement in extract_statements(tree)]

    def _to_node(self, source_file: SourceFile, statement: Statement) -> TopLevelNode:
        common = dict(
            id=uuid4().hex,
            file_path=normalize_path(source_file.absolute_path),
            relative_path=source_file.relative_path,
            category=statement.category,
            node_type=statement.node_type,
            span=statement.span,
            raw=statement.raw,
        )

        if isinstance(statement, ImportStatement):
            return TopLevelNode(**common, imported=statement.specifiers,
                                import_source=statement.source)

        if isinstance(statement, ExportStatement):
            return TopLevelNode(
                **common,
                declared_names=statement.declared_names,
                exported_names=statement.exported_names,
                export_source=statement.export_source,
                is_exported=True,
                is_default_export=statement.is_default,
            )

        if isinstance(statement, DeclarationStatement):
            return TopLevelNode(
                **common,
                declared_names=statement.declared_names,
                imported=statement.require_specifiers,
                import_source=statement.require_source,
                is_require_import=statement.require_source is not None,
            )

        if isinstance(statement, CommonJSExport):
            return TopLevelNode(
                **common,
                declared_names=statement.declared_names,
                exported_names=statement.exported_names,
                is_exported=True,
                is_default_export=statement.is_default,
                is_commonjs_export=True,
            )

        return TopLevelNode(**common)

    def _add(self, node: TopLevelNode):
        self._project[node.id] = node

        if node.category == NodeCategory.IMPORT or node.is_require_import:
            self._imports[node.id] = node
        if node.is_exported:
            self._exports[node.id] = node
        if node.declared_names or node.is_commonjs_export:
            self._declarations[node.id] = node
