"""Tests for module specifier resolution (resolver.py)."""

import os

import pytest

from symtrace.analyzer.config_parser import AliasConfig, AliasRule
from symtrace.analyzer.resolver import ModuleResolver

from conftest import write_sources


@pytest.fixture
def project(tmp_path):
    write_sources(tmp_path, {
        'src/app.ts': '',
        'src/util.ts': '',
        'src/widgets/index.tsx': '',
        'src/legacy.js': '',
        'src/data.json': '',
        'src/lib/math.ts': '',
        'src/config/index.js': '',
        'src/esm/helper.ts': '',
    })
    return tmp_path


def path(root, *parts):
    return str(root.joinpath(*parts))


class TestRelative:
    """Relative and absolute specifiers."""

    def test_extension_probing(self, project):
        resolver = ModuleResolver(project / 'src')
        assert resolver.resolve_module_path('./util', path(project, 'src')) == path(project, 'src', 'util.ts')
        assert resolver.resolve_module_path('./legacy', path(project, 'src')) == path(project, 'src', 'legacy.js')

    def test_exact_file_wins(self, project):
        resolver = ModuleResolver(project / 'src')
        assert resolver.resolve_module_path('./data.json', path(project, 'src')) == path(project, 'src', 'data.json')

    def test_directory_index(self, project):
        resolver = ModuleResolver(project / 'src')
        assert resolver.resolve_module_path('./widgets', path(project, 'src')) == path(project, 'src', 'widgets', 'index.tsx')

    def test_parent_directory(self, project):
        resolver = ModuleResolver(project / 'src')
        assert resolver.resolve_module_path('../util', path(project, 'src', 'lib')) == path(project, 'src', 'util.ts')

    def test_compiled_extension_maps_to_source(self, project):
        resolver = ModuleResolver(project / 'src')
        assert resolver.resolve_module_path('./helper.js', path(project, 'src', 'esm')) == path(project, 'src', 'esm', 'helper.ts')

    def test_missing_returns_computed_path(self, project):
        resolver = ModuleResolver(project / 'src')
        assert resolver.resolve_module_path('./nope', path(project, 'src')) == path(project, 'src', 'nope')

    def test_absolute_specifier(self, project):
        resolver = ModuleResolver(project / 'src')
        absolute = path(project, 'src', 'util')
        assert resolver.resolve_module_path(absolute, path(project, 'src', 'lib')) == absolute + '.ts'


class TestBareSpecifiers:
    """Packages, baseUrl and source-root shorthands."""

    def test_external_package(self, project):
        resolver = ModuleResolver(project / 'src')
        assert resolver.resolve_module_path('react', path(project, 'src')) is None
        assert resolver.resolve_module_path('', path(project, 'src')) is None

    def test_base_url(self, project):
        resolver = ModuleResolver(project / 'src', AliasConfig(base_url=path(project, 'src')))
        assert resolver.resolve_module_path('lib/math', path(project, 'src', 'widgets')) == path(project, 'src', 'lib', 'math.ts')
        assert resolver.resolve_module_path('react', path(project, 'src')) is None

    @pytest.mark.parametrize('prefix', ['@/', '~/'])
    def test_src_root_prefix(self, project, prefix):
        resolver = ModuleResolver(project / 'src')
        assert resolver.resolve_module_path(prefix + 'lib/math', path(project, 'src', 'widgets')) == path(project, 'src', 'lib', 'math.ts')


class TestAliases:
    """tsconfig paths rules."""

    def test_wildcard_rule(self, project):
        rules = (AliasRule('@lib/*', path(project, 'src', 'lib', '*')),)
        resolver = ModuleResolver(project / 'src', AliasConfig(rules=rules))
        assert resolver.resolve_module_path('@lib/math', path(project, 'src')) == path(project, 'src', 'lib', 'math.ts')

    def test_exact_rule(self, project):
        rules = (AliasRule('#config', path(project, 'src', 'config')),)
        resolver = ModuleResolver(project / 'src', AliasConfig(rules=rules))
        assert resolver.resolve_module_path('#config', path(project, 'src')) == path(project, 'src', 'config', 'index.js')

    def test_first_matching_rule_wins(self, project):
        rules = (
            AliasRule('@/*', path(project, 'src', 'lib', '*')),
            AliasRule('@/*', path(project, 'src', '*')),
        )
        resolver = ModuleResolver(project / 'src', AliasConfig(rules=rules))
        assert resolver.resolve_module_path('@/math', path(project, 'src')) == path(project, 'src', 'lib', 'math.ts')

    def test_alias_rule_to_missing_file(self, project):
        rules = (AliasRule('@gen/*', path(project, 'generated', '*')),)
        resolver = ModuleResolver(project / 'src', AliasConfig(rules=rules))
        assert resolver.resolve_module_path('@gen/api', path(project, 'src')) == path(project, 'generated', 'api')


class TestMemoization:
    def test_results_are_cached(self, project):
        resolver = ModuleResolver(project / 'src')
        first = resolver.resolve_module_path('./util', path(project, 'src'))
        os.remove(path(project, 'src', 'util.ts'))
        assert resolver.resolve_module_path('./util', path(project, 'src')) == first
        assert resolver.resolve_module_path.cache_info().hits == 1
