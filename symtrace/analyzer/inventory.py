"""Source file discovery for a JS/TS project tree."""
from dataclasses import dataclass
from pathlib import Path
from typing import List
import os

from .parser import LanguageParser
from .resolver import normalize_path


# Vendored code, build artifacts and tool caches are never analyzed
EXCLUDED_DIRS = {
    'node_modules', 'bower_components', 'jspm_packages',
    'dist', 'build', 'out', 'coverage',
    '.next', '.nuxt', '.svelte-kit', '.turbo', '.cache',
    'vendor', 'third_party',
    '.git', '.hg', '.svn',
    'venv', '.venv', '__pycache__',
    '__mocks__',
}

TEST_DIRS = {'__tests__'}
TEST_MARKERS = ('.test.', '.spec.')


@dataclass(frozen=True)
class SourceFile:
    """A module handed to the indexer."""
    absolute_path: str
    relative_path: str
    extension: str

    @classmethod
    def from_path(cls, path: str | Path, root: str | Path) -> 'SourceFile':
        absolute = normalize_path(path)
        return cls(
            absolute_path=absolute,
            relative_path=os.path.relpath(absolute, normalize_path(root)).replace(os.sep, '/'),
            extension=os.path.splitext(absolute)[1].lower(),
        )


def is_test_file(relative_path: str) -> bool:
    parts = relative_path.split('/')
    if any(part in TEST_DIRS for part in parts[:-1]):
        return True
    return any(marker in parts[-1] for marker in TEST_MARKERS)


def discover_source_files(root: str | Path, include_tests: bool = True) -> List[SourceFile]:
    """Discover all analyzable source files under root.

    Args:
        root: Directory to scan
        include_tests: Keep *.test.*, *.spec.* and __tests__ files

    Returns:
        SourceFile records sorted by relative path
    """
    root_path = Path(root)
    files = []

    for dirpath, dirnames, filenames in os.walk(root_path):
        # Prune in place so os.walk never descends into excluded trees
        dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
        for filename in filenames:
            if LanguageParser.language_for(filename) is None:
                continue
            source = SourceFile.from_path(Path(dirpath) / filename, root_path)
            if not include_tests and is_test_file(source.relative_path):
                continue
            files.append(source)

    files.sort(key=lambda f: f.relative_path)
    return files
