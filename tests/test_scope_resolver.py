"""Tests for scope-aware reference checks (scope_resolver.py)."""

import threading

import pytest

from symtrace.analyzer.scope_resolver import (
    ResolutionMode,
    ScopeResolver,
    approximate_reference,
    strip_noise,
)


@pytest.fixture
def resolver():
    return ScopeResolver(cache_size=64)


class TestReferences:
    """Plain uses of a module-level name."""

    @pytest.mark.parametrize('fragment', [
        "function g() { return f(); }",
        "const x = f + 1;",
        "const o = { f };",
        "export { f };",
        "export default f;",
        "const r = obj[f];",
        "class A extends f {}",
        "const v = `${f}`;",
        "let t: f;",
        "function h(a: Array<f>) {}",
    ])
    def test_reference(self, resolver, fragment):
        result = resolver.check(fragment, 'f')
        assert result.referenced, f"{fragment!r} should reference f"
        assert result.mode == ResolutionMode.SCOPE

    def test_jsx_component(self, resolver):
        assert resolver.is_name_referenced("const App = () => <Button label='x' />;", 'Button', jsx=True)

    def test_jsx_detected_without_hint(self, resolver):
        assert resolver.is_name_referenced("const App = () => <Button />;", 'Button')

    def test_type_assertion_retries_other_grammar(self, resolver):
        result = resolver.check("const y = <Foo>value;", 'value')
        assert result.referenced
        assert result.mode == ResolutionMode.SCOPE


class TestNonReferences:
    """Occurrences that are not uses of the free name."""

    @pytest.mark.parametrize('fragment', [
        "const a = obj.f;",
        "const a = obj?.f();",
        "const o = { f: 1 };",
        "const s = 'f';",
        "const s = \"call f()\";",
        "// f\nconst a = 1;",
        "/* f */ const a = 1;",
        "const re = /f/g;",
        "class A { f() {} }",
        "class A { f = 1; }",
        "enum E { f }",
        "interface I { f: string }",
        "const fx = 1;",
        "export { g as f };",
        "import { f } from './m';",
        "export { f } from './m';",
    ])
    def test_not_referenced(self, resolver, fragment):
        assert not resolver.is_name_referenced(fragment, 'f'), f"{fragment!r} should not reference f"

    def test_jsx_attribute_name(self, resolver):
        assert not resolver.is_name_referenced("const el = <div title='t' onClick={go} />;", 'title', jsx=True)

    def test_absent_name_short_circuits(self, resolver):
        result = resolver.check("this is not even code (", 'missing')
        assert not result.referenced
        assert result.mode == ResolutionMode.SCOPE
        assert resolver.approximate_checks == 0


class TestShadowing:
    """Nested bindings hide the module-level name in their own subtree only."""

    @pytest.mark.parametrize('fragment', [
        "function g(f) { return f(); }",
        "function g({ a: { f } }) { return f; }",
        "function g([, f = 1]) { return f; }",
        "function g(...f) { return f; }",
        "function g(f: number = 2) { return f; }",
        "const g = f => f;",
        "const g = (f) => f + 1;",
        "function g() { const f = 1; return f; }",
        "function g() { return f(); function f() {} }",
        "function g() { class f {} return new f(); }",
        "const g = function f() { return f; };",
        "const g = class f { m() { return f; } };",
        "for (const f of items) { use(f); }",
        "for (let f = 0; f < 3; f++) { use(f); }",
        "for (var f in obj) { use(f); }",
        "try { run(); } catch (f) { log(f); }",
        "try { run(); } catch ({ f }) { log(f); }",
        "function g<f>(x: f): f { return x; }",
        "class Box<f> { value: f; }",
        "const { f } = obj;",
        "const [a, f] = pair;",
    ])
    def test_shadowed(self, resolver, fragment):
        result = resolver.check(fragment, 'f')
        assert not result.referenced, f"{fragment!r} only uses a local f"
        assert result.mode == ResolutionMode.SCOPE

    @pytest.mark.parametrize('fragment', [
        "function g() { { const f = 1; } return f(); }",
        "function g(a) { return f(a); } function h(f) {}",
        "for (f of items) { use(f); }",
        "const g = (x = f) => x;",
        "const { a = f } = obj;",
        "function g() { if (x) { let f = 1; } else { f(); } }",
        "try { f(); } catch (e) {}",
    ])
    def test_sibling_scope_still_references(self, resolver, fragment):
        assert resolver.is_name_referenced(fragment, 'f'), f"{fragment!r} uses the module-level f"

    def test_shadowing_example(self, resolver):
        local = 'function f(){ const shadowed = "y"; console.log(shadowed); }'
        outer = 'function g(){ console.log(shadowed); }'
        assert not resolver.is_name_referenced(local, 'shadowed')
        assert resolver.is_name_referenced(outer, 'shadowed')


class TestApproximateFallback:
    """Fragments that do not parse use the labelled regex path."""

    def test_mode_and_counter(self, resolver):
        result = resolver.check("function broken( { return target + 1", 'target')
        assert result.referenced
        assert result.mode == ResolutionMode.APPROXIMATE
        assert resolver.approximate_checks == 1

    def test_fallback_ignores_strings_and_comments(self, resolver):
        result = resolver.check("if ( { 'target' // target\n /* target */", 'target')
        assert result.mode == ResolutionMode.APPROXIMATE
        assert not result.referenced

    def test_fallback_ignores_object_keys_and_members(self):
        assert not approximate_reference("x = { target: 1, other: obj.target } (", 'target')
        assert approximate_reference("x = { ...target } (", 'target')
        assert approximate_reference("x = cond ? target : 0 (", 'target')

    def test_fallback_word_boundaries(self):
        assert not approximate_reference("targets + $target + target_x (", 'target')
        assert approximate_reference("über(target) (", 'target')

    def test_fallback_sees_template_substitutions(self, resolver):
        result = resolver.check("const v = `a ${target + 1} b` (", 'target')
        assert result.mode == ResolutionMode.APPROXIMATE
        assert result.referenced
        assert approximate_reference("x = `${ { k: target }.k }` (", 'target')
        assert not approximate_reference("x = `target ${other} target` (", 'target')
        assert not approximate_reference("x = `${ 'target' }` (", 'target')

    def test_strip_noise_template_text(self):
        cleaned = strip_noise("const s = `hidden ${shown} \\${escaped} ${a ? {b} : c}`;")
        assert 'hidden' not in cleaned
        assert 'escaped' not in cleaned
        assert 'shown' in cleaned
        assert 'a ? {b} : c' in cleaned

    def test_strip_noise_keeps_division(self):
        assert 'b' in strip_noise("const r = a / b / c;")
        assert 'secret' not in strip_noise("const r = x.match(/secret/);")


class TestCache:
    """Parsed fragments are cached and the resolver is shareable across threads."""

    def test_parse_cache_hit(self, resolver):
        resolver.check("const a = f();", 'f')
        resolver.check("const a = f();", 'f')
        assert resolver._parse.cache_info().hits >= 1

    def test_concurrent_checks(self, resolver):
        fragments = [f"function g{i}(x) {{ return f(x) + {i}; }}" for i in range(50)]
        results = []

        def worker():
            results.extend(resolver.is_name_referenced(fragment, 'f') for fragment in fragments)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 200
        assert all(results)
