"""tsconfig.json / jsconfig.json path-alias loader.

Reads ``compilerOptions.baseUrl`` and ``compilerOptions.paths`` so the module
resolver can rewrite aliased specifiers such as ``@components/Button`` into
absolute file paths.

Supported Patterns:
- compilerOptions.paths: { "@utils/*": ["src/utils/*"], "#config": ["config/index.ts"] }
- compilerOptions.baseUrl: "." (bare specifiers are also looked up under it)
- extends: "./tsconfig.base.json" (relative chains, child options win)
- JSON with comments and trailing commas, as tsc accepts
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import json
import os
import re


CONFIG_FILE_NAMES = ('tsconfig.json', 'jsconfig.json')

MAX_EXTENDS_DEPTH = 5

# Strings are matched first so comment markers inside them survive
_COMMENT_PATTERN = re.compile(r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMA_PATTERN = re.compile(r'"(?:\\.|[^"\\])*"|,(?=\s*[}\]])', re.DOTALL)


@dataclass(frozen=True)
class AliasRule:
    """A single ``paths`` entry: pattern may contain one ``*`` wildcard."""
    pattern: str
    target: str  # absolute path, may contain one '*'

    def match(self, specifier: str) -> Optional[str]:
        """Rewrite ``specifier`` through this rule, or None if it does not match.

        Args:
            specifier: Module specifier as written in the import

        Returns:
            Absolute rewritten path, or None
        """
        if '*' not in self.pattern:
            return self.target if specifier == self.pattern else None

        prefix, suffix = self.pattern.split('*', 1)
        regex = re.compile('^' + re.escape(prefix) + '(.*)' + re.escape(suffix) + '$')
        found = regex.match(specifier)
        if not found:
            return None
        return self.target.replace('*', found.group(1), 1)


@dataclass(frozen=True)
class AliasConfig:
    """Alias rules in configuration order plus the resolved baseUrl."""
    rules: Tuple[AliasRule, ...] = ()
    base_url: Optional[str] = None
    config_path: Optional[str] = None


def strip_json_comments(content: str) -> str:
    """Remove // and /* */ comments and trailing commas outside of strings."""
    content = _COMMENT_PATTERN.sub(
        lambda m: m.group(0) if m.group(0).startswith('"') else '', content
    )
    return _TRAILING_COMMA_PATTERN.sub(
        lambda m: m.group(0) if m.group(0).startswith('"') else '', content
    )


def find_config_file(src_path: str | Path, search_depth: int = 3) -> Optional[Path]:
    """Find the nearest tsconfig.json (preferred) or jsconfig.json.

    Args:
        src_path: Directory the search starts in
        search_depth: Number of directories to look in, src_path included

    Returns:
        Path of the config file, or None
    """
    search_dir = Path(src_path).resolve()
    for _ in range(search_depth):
        for name in CONFIG_FILE_NAMES:
            candidate = search_dir / name
            if candidate.is_file():
                return candidate
        if search_dir.parent == search_dir:
            break
        search_dir = search_dir.parent
    return None


def _read_jsonc(path: Path) -> dict:
    """Read a JSON-with-comments file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the content is not a JSON object
    """
    content = path.read_text(encoding='utf-8')
    data = json.loads(strip_json_comments(content))
    if not isinstance(data, dict):
        raise ValueError("top-level value is not an object")
    return data


def _effective_options(config_path: Path, log=None) -> Tuple[Dict, Dict[str, Path]]:
    """Merge compilerOptions along the extends chain.

    Returns:
        (compilerOptions, origin) where origin maps 'baseUrl'/'paths' to the
        directory of the config file that defined them
    """
    chain: List[Tuple[Path, dict]] = []
    current: Optional[Path] = config_path
    seen = set()

    while current is not None and len(chain) <= MAX_EXTENDS_DEPTH and current not in seen:
        seen.add(current)
        data = _read_jsonc(current)
        chain.append((current, data))

        extends = data.get('extends')
        current = None
        if isinstance(extends, str) and extends.startswith('.'):
            parent = (chain[-1][0].parent / extends).resolve()
            if not parent.is_file() and parent.suffix != '.json':
                parent = parent.with_name(parent.name + '.json')
            if parent.is_file():
                current = parent
            elif log is not None:
                log.warn('config', str(chain[-1][0]), f"extended config not found: {extends}")

    options: Dict = {}
    origin: Dict[str, Path] = {}
    # Base configs first so the extending config overrides them
    for path, data in reversed(chain):
        compiler_options = data.get('compilerOptions') or {}
        if not isinstance(compiler_options, dict):
            continue
        for key in ('baseUrl', 'paths'):
            if key in compiler_options:
                origin[key] = path.parent
        options.update(compiler_options)
    return options, origin


def load_alias_config(src_path: str | Path, search_depth: int = 3, log=None) -> AliasConfig:
    """Load alias rules for a source tree.

    A missing config yields an empty AliasConfig. An unreadable or invalid config
    is recorded in ``log`` (category 'config') and also yields an empty one.

    Args:
        src_path: Source root the search starts in
        search_depth: Directories searched, src_path included
        log: Optional AnalysisLog for warnings

    Returns:
        AliasConfig
    """
    config_path = find_config_file(src_path, search_depth)
    if config_path is None:
        return AliasConfig()

    try:
        options, origin = _effective_options(config_path, log)
    except (OSError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        if log is not None:
            log.warn('config', str(config_path), f"ignored invalid config: {e}")
        return AliasConfig(config_path=str(config_path))

    base_url = None
    raw_base_url = options.get('baseUrl')
    if isinstance(raw_base_url, str):
        base_dir = origin.get('baseUrl', config_path.parent)
        base_url = os.path.normpath(str(base_dir / raw_base_url))

    rules: List[AliasRule] = []
    paths = options.get('paths') or {}
    if isinstance(paths, dict):
        paths_base = base_url or str(origin.get('paths', config_path.parent))
        for pattern, targets in paths.items():
            # Only the first target is used, like the resolver it feeds
            if isinstance(targets, str):
                targets = [targets]
            if not isinstance(targets, list) or not targets or not isinstance(targets[0], str):
                continue
            target = os.path.normpath(os.path.join(paths_base, targets[0]))
            rules.append(AliasRule(pattern=pattern, target=target))

    return AliasConfig(rules=tuple(rules), base_url=base_url, config_path=str(config_path))
