from pathlib import Path
from functools import lru_cache
from typing import Optional
import os

from .config_parser import AliasConfig


# Order matters: the first existing regular file wins
PROBE_SUFFIXES = (
    '', '.ts', '.tsx', '.js', '.jsx', '.mjs', '.cjs',
    '/index.ts', '/index.tsx', '/index.js', '/index.jsx',
)

# ESM-style TypeScript imports name the compiled file: './util.js' -> util.ts
COMPILED_EXTENSION_SOURCES = {
    '.js': ('.ts', '.tsx'),
    '.jsx': ('.tsx',),
    '.mjs': ('.mts',),
    '.cjs': ('.cts',),
}

SRC_ROOT_PREFIXES = ('@/', '~/')


def normalize_path(path: str | Path) -> str:
    """Absolute, normalized string form used as the file key everywhere."""
    return os.path.normpath(os.path.abspath(str(path)))


class ModuleResolver:
    """
    Module specifier resolution for JS/TS imports.
    Resolves import strings to absolute file paths on disk, following
    tsconfig/jsconfig aliases, src-root shorthands and baseUrl.
    """

    def __init__(self, src_path: str | Path, alias_config: Optional[AliasConfig] = None):
        self.src_path = normalize_path(src_path)
        self.alias_config = alias_config or AliasConfig()
        # Per-instance memo keyed by (specifier, from_dir)
        self.resolve_module_path = lru_cache(maxsize=None)(self._resolve_module_path)

    def _resolve_module_path(self, specifier: str, from_dir: str) -> Optional[str]:
        """
        Determines the absolute file path of an imported module.

        Args:
            specifier: The string used in the import (e.g. './utils', '@app/api', 'react').
            from_dir: Directory of the importing file.

        Returns:
            Absolute path of the existing module file; the computed path when a
            relative/aliased specifier points at nothing on disk; None for
            external packages.
        """
        if not specifier:
            return None

        # 1. Path aliases, in configuration order
        for rule in self.alias_config.rules:
            rewritten = rule.match(specifier)
            if rewritten is not None:
                candidate = normalize_path(rewritten)
                return self._existing_file(candidate) or candidate

        # 2. Source-root shorthands
        for prefix in SRC_ROOT_PREFIXES:
            if specifier.startswith(prefix):
                candidate = normalize_path(os.path.join(self.src_path, specifier[len(prefix):]))
                return self._existing_file(candidate) or candidate

        # 3. Relative or absolute paths
        if specifier.startswith('.') or specifier.startswith('/') or os.path.isabs(specifier):
            candidate = normalize_path(os.path.join(from_dir, specifier))
            return self._existing_file(candidate) or candidate

        # 4. Bare specifiers relative to baseUrl
        if self.alias_config.base_url:
            candidate = normalize_path(os.path.join(self.alias_config.base_url, specifier))
            return self._existing_file(candidate)

        # External package
        return None

    def _existing_file(self, path: str) -> Optional[str]:
        """
        Probes for file existence using JS resolution rules:
        1. Exact match
        2. Extensions (.ts, .tsx, .js, .jsx, .mjs, .cjs)
        3. Directory index files
        4. TypeScript source behind a compiled-extension specifier
        """
        for suffix in PROBE_SUFFIXES:
            candidate = path + suffix.replace('/', os.sep)
            if os.path.isfile(candidate):
                return candidate

        stem, ext = os.path.splitext(path)
        for source_ext in COMPILED_EXTENSION_SOURCES.get(ext.lower(), ()):
            candidate = stem + source_ext
            if os.path.isfile(candidate):
                return candidate

        return None
