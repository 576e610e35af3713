"""Top-level statement extraction from JS/TS syntax trees.

Turns each top-level statement of a tree-sitter ``program`` into a small,
parser-independent descriptor. Every descriptor kind carries only the fields
that make sense for it:

- ImportStatement       import ... from 'm', import x = require('m')
- ExportStatement       export <decl>, export default ..., export { } [from], export * [as ns] from
- DeclarationStatement  var/let/const, function, class, type, interface, enum, namespace
                        (a `const x = require('m')` is one of these too)
- CommonJSExport        module.exports = ..., exports.K = ..., module.exports.K = ...
- OtherStatement        anything else (expression statements, control flow, ...)

The indexer is written against these descriptors, not against tree-sitter nodes.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple
from tree_sitter import Node, Tree


class NodeCategory(str, Enum):
    """Syntactic category of a top-level statement."""
    IMPORT = 'import'
    EXPORT = 'export'
    DECLARATION = 'declaration'
    OTHER = 'other'


class ImportKind(str, Enum):
    DEFAULT = 'default'
    NAMESPACE = 'namespace'
    NAMED = 'named'
    REQUIRE_DEFAULT = 'require-default'
    REQUIRE_NAMED = 'require-named'


@dataclass(frozen=True)
class ImportSpecifier:
    """One binding created by an import."""
    kind: ImportKind
    local: str  # name bound in the importing file
    imported: str  # name in the source module ('*' for namespace, 'default' for default)


@dataclass(frozen=True)
class ExportedName:
    """A (local, exported) pair; exported is 'default' for default exports, '*' for export *."""
    local: str
    exported: str


@dataclass(frozen=True)
class SourceSpan:
    start_byte: int
    end_byte: int
    start_line: int  # 1-based
    end_line: int


@dataclass(frozen=True)
class Statement:
    """Fields shared by every statement descriptor."""
    node_type: str
    span: SourceSpan
    raw: str

    category = NodeCategory.OTHER


@dataclass(frozen=True)
class ImportStatement(Statement):
    source: str = ''
    specifiers: Tuple[ImportSpecifier, ...] = ()

    category = NodeCategory.IMPORT


@dataclass(frozen=True)
class ExportStatement(Statement):
    declared_names: Tuple[str, ...] = ()
    exported_names: Tuple[ExportedName, ...] = ()
    export_source: Optional[str] = None
    is_default: bool = False
    wraps_declaration: bool = False

    category = NodeCategory.EXPORT


@dataclass(frozen=True)
class DeclarationStatement(Statement):
    declared_names: Tuple[str, ...] = ()
    require_source: Optional[str] = None
    require_specifiers: Tuple[ImportSpecifier, ...] = ()

    category = NodeCategory.DECLARATION


@dataclass(frozen=True)
class CommonJSExport(Statement):
    exported_names: Tuple[ExportedName, ...] = ()
    declared_names: Tuple[str, ...] = ()
    is_default: bool = False

    category = NodeCategory.EXPORT


@dataclass(frozen=True)
class OtherStatement(Statement):
    category = NodeCategory.OTHER


# Statement types that bind a single name through their `name` field
NAMED_DECLARATION_TYPES = {
    'function_declaration',
    'generator_function_declaration',
    'function_signature',
    'class_declaration',
    'abstract_class_declaration',
    'interface_declaration',
    'type_alias_declaration',
    'enum_declaration',
}

VARIABLE_DECLARATION_TYPES = {'lexical_declaration', 'variable_declaration'}

NAMESPACE_TYPES = {'internal_module', 'module'}

# Value expressions that define an anonymous (or self-named) default export
DEFAULT_VALUE_DEFINITIONS = {
    'function_expression',
    'function',
    'generator_function',
    'arrow_function',
    'class',
}

SKIPPED_TOP_LEVEL = {'comment', 'hash_bang_line', 'html_comment', 'empty_statement'}


def node_text(node: Node) -> str:
    return node.text.decode('utf-8', errors='replace')


def strip_quotes(text: str) -> str:
    return text.strip('"\'`')


def _span(node: Node) -> SourceSpan:
    return SourceSpan(
        start_byte=node.start_byte,
        end_byte=node.end_byte,
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
    )


def _module_name(node: Optional[Node]) -> Optional[str]:
    """Text of an import/export name, which may be an identifier, a string or `default`."""
    if node is None:
        return None
    return strip_quotes(node_text(node))


def pattern_names(pattern: Optional[Node]) -> List[str]:
    """Collect every name bound by a binding pattern, recursing into destructuring.

    Handles identifiers, object patterns (shorthand, key: value, rest, defaults),
    array patterns (holes, rest, defaults), nested arbitrarily, plus the TypeScript
    parameter wrappers (required_parameter / optional_parameter).
    """
    if pattern is None:
        return []

    kind = pattern.type
    if kind in ('identifier', 'shorthand_property_identifier_pattern'):
        return [node_text(pattern)]

    if kind == 'object_pattern':
        names = []
        for child in pattern.named_children:
            if child.type == 'shorthand_property_identifier_pattern':
                names.append(node_text(child))
            elif child.type == 'pair_pattern':
                names.extend(pattern_names(child.child_by_field_name('value')))
            elif child.type == 'object_assignment_pattern':
                names.extend(pattern_names(child.child_by_field_name('left')))
            elif child.type == 'rest_pattern':
                names.extend(pattern_names(_first_named(child)))
        return names

    if kind == 'array_pattern':
        names = []
        for child in pattern.named_children:
            names.extend(pattern_names(child))
        return names

    if kind == 'rest_pattern':
        return pattern_names(_first_named(pattern))

    if kind in ('assignment_pattern', 'object_assignment_pattern'):
        return pattern_names(pattern.child_by_field_name('left'))

    if kind in ('required_parameter', 'optional_parameter'):
        return pattern_names(pattern.child_by_field_name('pattern'))

    return []


def _first_named(node: Node) -> Optional[Node]:
    for child in node.named_children:
        if child.type != 'comment':
            return child
    return None


def declaration_names(node: Optional[Node]) -> List[str]:
    """Names bound at module scope by a declaration node."""
    if node is None:
        return []

    kind = node.type
    if kind in VARIABLE_DECLARATION_TYPES:
        names = []
        for declarator in node.named_children:
            if declarator.type == 'variable_declarator':
                names.extend(pattern_names(declarator.child_by_field_name('name')))
        return names

    if kind in NAMED_DECLARATION_TYPES:
        name_node = node.child_by_field_name('name')
        return [node_text(name_node)] if name_node is not None else []

    if kind in NAMESPACE_TYPES:
        name_node = node.child_by_field_name('name')
        if name_node is None:
            return []
        if name_node.type == 'identifier':
            return [node_text(name_node)]
        if name_node.type == 'nested_identifier':
            # namespace A.B.C {} binds A
            return [node_text(name_node).split('.')[0].strip()]
        # declare module 'foo' {} binds nothing
        return []

    if kind in ('ambient_declaration', 'expression_statement'):
        for child in node.named_children:
            names = declaration_names(child)
            if names:
                return names
        return []

    return []


def require_source(value: Optional[Node]) -> Optional[str]:
    """Module specifier of `require('m')` or `require('m').member`, else None."""
    if value is None:
        return None
    if value.type == 'member_expression':
        value = value.child_by_field_name('object')
        if value is None:
            return None
    if value.type != 'call_expression':
        return None

    function_node = value.child_by_field_name('function')
    args_node = value.child_by_field_name('arguments')
    if function_node is None or node_text(function_node) != 'require' or args_node is None:
        return None

    first_arg = _first_named(args_node)
    if first_arg is not None and first_arg.type == 'string':
        return strip_quotes(node_text(first_arg))
    return None


def _require_specifiers(name_node: Node) -> List[ImportSpecifier]:
    if name_node.type == 'identifier':
        # const x = require('./x')
        return [ImportSpecifier(ImportKind.REQUIRE_DEFAULT, node_text(name_node), 'default')]

    specifiers = []
    if name_node.type == 'object_pattern':
        # const { a, b: c } = require('./x')
        for prop in name_node.named_children:
            if prop.type == 'shorthand_property_identifier_pattern':
                name = node_text(prop)
                specifiers.append(ImportSpecifier(ImportKind.REQUIRE_NAMED, name, name))
            elif prop.type == 'pair_pattern':
                key = prop.child_by_field_name('key')
                value = prop.child_by_field_name('value')
                if key is None:
                    continue
                imported = strip_quotes(node_text(key))
                # const { a: { b } } = require(...) binds b, a part of export a
                for local in pattern_names(value):
                    specifiers.append(ImportSpecifier(ImportKind.REQUIRE_NAMED, local, imported))
            elif prop.type == 'object_assignment_pattern':
                left = prop.child_by_field_name('left')
                if left is not None and left.type == 'shorthand_property_identifier_pattern':
                    name = node_text(left)
                    specifiers.append(ImportSpecifier(ImportKind.REQUIRE_NAMED, name, name))
            elif prop.type == 'rest_pattern':
                # const { a, ...others } = require(...) keeps every other export
                for local in pattern_names(prop):
                    specifiers.append(ImportSpecifier(ImportKind.REQUIRE_DEFAULT, local, 'default'))
    return specifiers


def _describe_import(node: Node) -> ImportStatement:
    source_node = node.child_by_field_name('source')
    specifiers: List[ImportSpecifier] = []

    for child in node.named_children:
        if child.type == 'import_clause':
            # import x, { y as z } from 'm' / import * as ns from 'm'
            for clause_child in child.named_children:
                if clause_child.type == 'identifier':
                    specifiers.append(ImportSpecifier(ImportKind.DEFAULT, node_text(clause_child), 'default'))
                elif clause_child.type == 'namespace_import':
                    local = _first_named(clause_child)
                    if local is not None:
                        specifiers.append(ImportSpecifier(ImportKind.NAMESPACE, node_text(local), '*'))
                elif clause_child.type == 'named_imports':
                    for spec in clause_child.named_children:
                        if spec.type != 'import_specifier':
                            continue
                        imported = _module_name(spec.child_by_field_name('name'))
                        alias = _module_name(spec.child_by_field_name('alias'))
                        if imported is None:
                            continue
                        specifiers.append(ImportSpecifier(ImportKind.NAMED, alias or imported, imported))
        elif child.type == 'import_require_clause':
            # import x = require('m')
            local = _first_named(child)
            source_node = child.child_by_field_name('source') or source_node
            if local is not None and local.type == 'identifier':
                specifiers.append(ImportSpecifier(ImportKind.REQUIRE_DEFAULT, node_text(local), 'default'))

    return ImportStatement(
        node_type=node.type,
        span=_span(node),
        raw=node_text(node),
        source=strip_quotes(node_text(source_node)) if source_node is not None else '',
        specifiers=tuple(specifiers),
    )


def _describe_export(node: Node) -> ExportStatement:
    tokens = {child.type for child in node.children if not child.is_named}
    is_default = 'default' in tokens
    declaration = node.child_by_field_name('declaration')
    value = node.child_by_field_name('value')
    source_node = node.child_by_field_name('source')
    common = dict(node_type=node.type, span=_span(node), raw=node_text(node))

    if declaration is not None:
        # export const x = ... / export default function Foo() {}
        names = tuple(declaration_names(declaration))
        if is_default:
            local = names[0] if names else 'default'
            if not names:
                names = ('default',)
            exported = (ExportedName(local, 'default'),)
        else:
            exported = tuple(ExportedName(name, name) for name in names)
        return ExportStatement(
            **common,
            declared_names=names,
            exported_names=exported,
            is_default=is_default,
            wraps_declaration=True,
        )

    if is_default or '=' in tokens:
        # export default <expr>; / TS `export = <expr>;`
        if value is None:
            value = _first_named(node)
        if value is not None and value.type == 'identifier':
            return ExportStatement(
                **common,
                exported_names=(ExportedName(node_text(value), 'default'),),
                is_default=True,
            )
        declared = ('default',)
        local = 'default'
        if value is not None and value.type in DEFAULT_VALUE_DEFINITIONS:
            name_node = value.child_by_field_name('name')
            if name_node is not None:
                local = node_text(name_node)
                declared = (local,)
        return ExportStatement(
            **common,
            declared_names=declared,
            exported_names=(ExportedName(local, 'default'),),
            is_default=True,
            wraps_declaration=True,
        )

    export_source = strip_quotes(node_text(source_node)) if source_node is not None else None
    exported: List[ExportedName] = []
    for child in node.named_children:
        if child.type == 'export_clause':
            for spec in child.named_children:
                if spec.type != 'export_specifier':
                    continue
                local = _module_name(spec.child_by_field_name('name'))
                alias = _module_name(spec.child_by_field_name('alias'))
                if local is not None:
                    exported.append(ExportedName(local, alias or local))
        elif child.type == 'namespace_export':
            # export * as ns from 'm'
            alias = _first_named(child)
            if alias is not None:
                exported.append(ExportedName('*', _module_name(alias)))

    if '*' in tokens and not any(e.local == '*' for e in exported):
        # export * from 'm'
        exported.append(ExportedName('*', '*'))

    return ExportStatement(
        **common,
        exported_names=tuple(exported),
        export_source=export_source,
    )


def _is_module_exports(node: Optional[Node]) -> bool:
    if node is None or node.type != 'member_expression':
        return False
    obj = node.child_by_field_name('object')
    prop = node.child_by_field_name('property')
    return (obj is not None and prop is not None
            and obj.type == 'identifier' and node_text(obj) == 'module'
            and node_text(prop) == 'exports')


def _describe_commonjs(statement: Node, assignment: Node) -> Optional[CommonJSExport]:
    left = assignment.child_by_field_name('left')
    right = assignment.child_by_field_name('right')
    if left is None or right is None or left.type != 'member_expression':
        return None
    common = dict(node_type=statement.type, span=_span(statement), raw=node_text(statement))

    if _is_module_exports(left):
        if right.type == 'identifier':
            # module.exports = SomeClass
            return CommonJSExport(
                **common,
                exported_names=(ExportedName(node_text(right), 'default'),),
                is_default=True,
            )
        if right.type == 'object':
            # module.exports = { a, b: c, d() {} }
            exported: List[ExportedName] = []
            declared: List[str] = []
            for prop in right.named_children:
                if prop.type == 'shorthand_property_identifier':
                    name = node_text(prop)
                    exported.append(ExportedName(name, name))
                elif prop.type == 'pair':
                    key = prop.child_by_field_name('key')
                    value = prop.child_by_field_name('value')
                    if key is None or key.type not in ('property_identifier', 'string'):
                        continue
                    name = strip_quotes(node_text(key))
                    if value is not None and value.type == 'identifier':
                        exported.append(ExportedName(node_text(value), name))
                    else:
                        exported.append(ExportedName(name, name))
                        declared.append(name)
                elif prop.type == 'method_definition':
                    key = prop.child_by_field_name('name')
                    if key is not None:
                        name = node_text(key)
                        exported.append(ExportedName(name, name))
                        declared.append(name)
            return CommonJSExport(
                **common,
                exported_names=tuple(exported),
                declared_names=tuple(declared),
                is_default=True,
            )
        # module.exports = function () {} / = new Thing()
        return CommonJSExport(
            **common,
            exported_names=(ExportedName('default', 'default'),),
            declared_names=('default',),
            is_default=True,
        )

    target = left.child_by_field_name('object')
    prop = left.child_by_field_name('property')
    is_exports_object = (target is not None and target.type == 'identifier'
                         and node_text(target) == 'exports')
    if prop is None or not (is_exports_object or _is_module_exports(target)):
        return None

    # exports.K = X / module.exports.K = X
    exported_name = node_text(prop)
    if right.type == 'identifier':
        return CommonJSExport(**common, exported_names=(ExportedName(node_text(right), exported_name),))
    return CommonJSExport(
        **common,
        exported_names=(ExportedName(exported_name, exported_name),),
        declared_names=(exported_name,),
    )


def _describe_declaration(node: Node) -> Statement:
    names = tuple(declaration_names(node))
    common = dict(node_type=node.type, span=_span(node), raw=node_text(node))
    if not names:
        return OtherStatement(**common)

    source = None
    specifiers: List[ImportSpecifier] = []
    if node.type in VARIABLE_DECLARATION_TYPES:
        for declarator in node.named_children:
            if declarator.type != 'variable_declarator':
                continue
            declarator_source = require_source(declarator.child_by_field_name('value'))
            name_node = declarator.child_by_field_name('name')
            if declarator_source is None or name_node is None:
                continue
            if source is None:
                source = declarator_source
            elif declarator_source != source:
                # one import source per node; later requires stay plain declarations
                continue
            specifiers.extend(_require_specifiers(name_node))

    return DeclarationStatement(
        **common,
        declared_names=names,
        require_source=source,
        require_specifiers=tuple(specifiers),
    )


def describe_statement(node: Node) -> Statement:
    """Build the descriptor for one top-level statement node."""
    kind = node.type

    if kind == 'import_statement':
        return _describe_import(node)

    if kind == 'export_statement':
        return _describe_export(node)

    if kind == 'expression_statement':
        inner = _first_named(node)
        if inner is not None and inner.type == 'assignment_expression':
            commonjs = _describe_commonjs(node, inner)
            if commonjs is not None:
                return commonjs
        if inner is not None and inner.type in NAMESPACE_TYPES:
            return _describe_declaration(node)
        return OtherStatement(node_type=kind, span=_span(node), raw=node_text(node))

    if (kind in VARIABLE_DECLARATION_TYPES or kind in NAMED_DECLARATION_TYPES
            or kind in NAMESPACE_TYPES or kind == 'ambient_declaration'):
        return _describe_declaration(node)

    return OtherStatement(node_type=kind, span=_span(node), raw=node_text(node))


def extract_statements(tree: Tree) -> List[Statement]:
    """Describe every top-level statement of a parsed module, in source order.

    Args:
        tree: Parsed tree-sitter Tree of a whole module

    Returns:
        One descriptor per top-level statement (comments are not statements)
    """
    statements = []
    for child in tree.root_node.named_children:
        if child.type in SKIPPED_TOP_LEVEL:
            continue
        statements.append(describe_statement(child))
    return statements
