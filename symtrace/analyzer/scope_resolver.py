"""Scope-aware reference checks over code fragments.

Answers one question: does a code fragment refer to a module-level name, taking
nested re-declarations (shadowing) into account?

    function g(f) { return f(); }   -> does not use the module's `f` (parameter shadows it)
    function h() { return f(); }    -> uses it
    const s = "f()"; // f()         -> does not (strings and comments are not code)

The fragment is parsed with tree-sitter and walked with an explicit stack that
carries the set of names shadowed at that point. If the fragment cannot be
parsed cleanly, a regex check over the fragment with strings and comments
removed is used instead, and the result is reported as approximate.
"""
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterable, List, Optional
import re
import threading

from tree_sitter import Node, Tree

from .parser import LanguageParser
from .syntax import node_text, pattern_names


class ResolutionMode(str, Enum):
    SCOPE = 'scope'
    APPROXIMATE = 'approximate'


@dataclass(frozen=True)
class ReferenceCheck:
    referenced: bool
    mode: ResolutionMode


# Nodes whose text is a use of a binding
REFERENCE_TYPES = {
    'identifier',
    'type_identifier',
    'shorthand_property_identifier',
    'shorthand_property_identifier_pattern',
}

FUNCTION_TYPES = {
    'function_declaration',
    'generator_function_declaration',
    'function_expression',
    'function',
    'generator_function',
    'arrow_function',
    'method_definition',
}

CLASS_TYPES = {'class_declaration', 'abstract_class_declaration', 'class'}

LOOP_TYPES = {'for_statement', 'for_in_statement'}

# Fields that hold a binding site or an exported alias, never a use
NON_REFERENCE_FIELDS = {
    'interface_declaration': 'name',
    'type_alias_declaration': 'name',
    'enum_declaration': 'name',
    'function_signature': 'name',
    'internal_module': 'name',
    'module': 'name',
    'export_specifier': 'alias',
}

BLOCK_DECLARATION_TYPES = {
    'function_declaration',
    'generator_function_declaration',
    'class_declaration',
    'abstract_class_declaration',
}

JSX_HINT = re.compile(r'<[A-Z]|/>')

# Left-to-right so a '//' inside a string is never taken for a comment
_NOISE_PATTERN = re.compile(r"""
      //[^\n]*
    | /\*.*?\*/
    | `(?:[^`\\]|\\.)*`
    | '(?:[^'\n\\]|\\.)*'
    | "(?:[^"\n\\]|\\.)*"
    | (?<=[(,=:\[!&|?{};])\s*/(?![*/])(?:[^/\\\n\[]|\\.|\[(?:[^\]\\\n]|\\.)*\])+/[a-z]*
""", re.VERBOSE | re.DOTALL)


def _type_parameter_names(node: Node) -> List[str]:
    params = node.child_by_field_name('type_parameters')
    if params is None:
        return []
    names = []
    for param in params.named_children:
        if param.type == 'type_parameter':
            name = param.child_by_field_name('name')
            if name is not None:
                names.append(node_text(name))
    return names


def _parameter_names(node: Node) -> List[str]:
    single = node.child_by_field_name('parameter')
    if single is not None:
        # x => ...
        return pattern_names(single)
    params = node.child_by_field_name('parameters')
    if params is None:
        return []
    names = []
    for param in params.named_children:
        names.extend(pattern_names(param))
    return names


def _declarator_names(declaration: Node) -> List[str]:
    names = []
    for declarator in declaration.named_children:
        if declarator.type == 'variable_declarator':
            names.extend(pattern_names(declarator.child_by_field_name('name')))
    return names


def _block_bindings(block: Node) -> List[str]:
    """var/let/const and hoisted function/class names declared directly in a block."""
    names = []
    for statement in block.named_children:
        if statement.type in ('lexical_declaration', 'variable_declaration'):
            names.extend(_declarator_names(statement))
        elif statement.type in BLOCK_DECLARATION_TYPES:
            name = statement.child_by_field_name('name')
            if name is not None:
                names.append(node_text(name))
    return names


def scope_bindings(node: Node) -> List[str]:
    """Names a scope-creating node introduces for its own subtree."""
    kind = node.type

    if kind in FUNCTION_TYPES:
        names = _parameter_names(node) + _type_parameter_names(node)
        if kind != 'method_definition':
            own = node.child_by_field_name('name')
            if own is not None:
                names.append(node_text(own))
        return names

    if kind in CLASS_TYPES:
        names = _type_parameter_names(node)
        own = node.child_by_field_name('name')
        if own is not None:
            names.append(node_text(own))
        return names

    if kind in ('interface_declaration', 'type_alias_declaration'):
        return _type_parameter_names(node)

    if kind == 'statement_block':
        return _block_bindings(node)

    if kind == 'for_statement':
        init = node.child_by_field_name('initializer')
        if init is not None and init.type in ('lexical_declaration', 'variable_declaration'):
            return _declarator_names(init)
        return []

    if kind == 'for_in_statement':
        # for (const k of xs) / for (var k in o); a bare `for (k of xs)` binds nothing
        if node.child_by_field_name('kind') is None:
            return []
        return pattern_names(node.child_by_field_name('left'))

    if kind == 'catch_clause':
        return pattern_names(node.child_by_field_name('parameter'))

    return []


SCOPE_TYPES = FUNCTION_TYPES | CLASS_TYPES | LOOP_TYPES | {
    'statement_block', 'catch_clause', 'interface_declaration', 'type_alias_declaration',
}


def find_reference(root: Node, name: str) -> bool:
    """Walk a syntax tree and report whether ``name`` is used unshadowed.

    Args:
        root: Root node of a cleanly parsed fragment
        name: Module-level name to look for

    Returns:
        True at the first reference not covered by a nested binding
    """
    target = name.encode('utf-8')
    stack = [(root, frozenset())]

    while stack:
        node, shadowed = stack.pop()
        kind = node.type

        if kind in REFERENCE_TYPES:
            if node.text == target and name not in shadowed:
                return True
            continue

        if kind in SCOPE_TYPES:
            bindings = scope_bindings(node)
            if bindings:
                shadowed = shadowed | frozenset(bindings)

        if kind == 'variable_declarator':
            # The pattern binds; only its default values can be uses
            pattern = node.child_by_field_name('name')
            for child in reversed(node.named_children):
                if pattern is not None and child.id == pattern.id:
                    stack.append((child, shadowed | frozenset(pattern_names(pattern))))
                else:
                    stack.append((child, shadowed))
            continue

        if kind == 'import_statement' or (
                kind == 'export_statement' and node.child_by_field_name('source') is not None):
            # names here belong to another module
            continue

        field = NON_REFERENCE_FIELDS.get(kind)
        skipped = node.child_by_field_name(field) if field else None
        for child in reversed(node.named_children):
            if skipped is not None and child.id == skipped.id:
                continue
            stack.append((child, shadowed))

    return False


def _template_code(literal: str) -> str:
    """Keep the `${...}` substitutions of a template literal, blank the text around them."""
    parts = []
    depth = 0
    start = 0
    i = 1
    while i < len(literal) - 1:
        char = literal[i]
        if depth == 0:
            if char == '\\':
                i += 2
                continue
            if literal.startswith('${', i):
                depth = 1
                start = i + 2
                i += 2
                continue
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                parts.append(strip_noise(literal[start:i]))
        i += 1
    return ' ' + ' ; '.join(parts) + ' ' if parts else ' '


def _blank(match) -> str:
    text = match.group(0)
    if text.startswith('`'):
        return _template_code(text)
    return ' '


def strip_noise(fragment: str) -> str:
    """Blank out comments, string literals, regex literals and template text.

    Code inside template substitutions is kept: `a ${b} c` becomes ` b `.
    """
    return _NOISE_PATTERN.sub(_blank, fragment)


def approximate_reference(fragment: str, name: str) -> bool:
    """Word-boundary check used when a fragment does not parse.

    Object keys (``{ name: 1 }``) and member accesses (``obj.name``) are not
    counted; spreads (``...name``) are.
    """
    cleaned = strip_noise(fragment)
    escaped = re.escape(name)
    # Blank non-shorthand object keys, but keep `a ? name : b` and `name::`
    cleaned = re.sub(r'([{,]\s*)' + escaped + r'(\s*:)(?!:)', r'\1\2', cleaned)

    for found in re.finditer(r'(?<![\w$])' + escaped + r'(?![\w$])', cleaned):
        start = found.start()
        if start > 0 and cleaned[start - 1] == '.' and not cleaned[max(0, start - 3):start] == '...':
            continue
        return True
    return False


class ScopeResolver:
    """Shared, thread-safe reference checker with a bounded parse cache."""

    def __init__(self, cache_size: int = 4096):
        self._parsers = {
            'typescript': LanguageParser('typescript'),
            'tsx': LanguageParser('tsx'),
        }
        self._parse_lock = threading.Lock()
        self._count_lock = threading.Lock()
        self.approximate_checks = 0
        self._parse = lru_cache(maxsize=cache_size)(self._parse_uncached)

    def _parse_uncached(self, fragment: str, grammar: str) -> Optional[Tree]:
        with self._parse_lock:
            tree = self._parsers[grammar].parse_source(fragment)
        if tree.root_node.has_error:
            return None
        return tree

    def _grammars(self, fragment: str, jsx: Optional[bool]) -> Iterable[str]:
        if jsx is None:
            jsx = bool(JSX_HINT.search(fragment))
        # `<T>x` casts only parse without JSX, `<div>` only with it; try both
        return ('tsx', 'typescript') if jsx else ('typescript', 'tsx')

    def check(self, fragment: str, name: str, jsx: Optional[bool] = None) -> ReferenceCheck:
        """Decide whether ``fragment`` refers to the enclosing binding of ``name``.

        Args:
            fragment: Source text of one top-level statement
            name: Name declared at module scope
            jsx: Parse as JSX; None detects it from the text

        Returns:
            ReferenceCheck with the answer and how it was obtained
        """
        if name not in fragment:
            return ReferenceCheck(False, ResolutionMode.SCOPE)

        for grammar in self._grammars(fragment, jsx):
            tree = self._parse(fragment, grammar)
            if tree is not None:
                return ReferenceCheck(find_reference(tree.root_node, name), ResolutionMode.SCOPE)

        with self._count_lock:
            self.approximate_checks += 1
        return ReferenceCheck(approximate_reference(fragment, name), ResolutionMode.APPROXIMATE)

    def is_name_referenced(self, fragment: str, name: str, jsx: Optional[bool] = None) -> bool:
        return self.check(fragment, name, jsx).referenced
