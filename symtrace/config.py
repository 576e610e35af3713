"""Configuration management for symtrace.

Loads environment variables and provides centralized config access.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

__version__ = "0.3.0"


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self):
        """Initialize config by loading .env file."""
        # Load .env from project root
        project_root = Path(__file__).parent.parent
        env_path = project_root / ".env"
        load_dotenv(env_path)

        # Validate numeric settings eagerly so a bad value fails fast
        self._validate_numeric()

    def _validate_numeric(self):
        """Validate that numeric environment variables parse.

        Raises:
            ValueError: If a numeric variable is not a positive integer
        """
        for prop in ('index_workers', 'trace_workers', 'config_search_depth', 'parse_cache_size'):
            getattr(self, prop)

    @staticmethod
    def _get_int(name: str, default: int) -> int:
        raw = os.getenv(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{name} must be an integer, got {raw!r}")
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")
        return value

    @staticmethod
    def _get_bool(name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        return raw.strip().lower() in {'1', 'true', 'yes', 'on'}

    @property
    def verbose(self) -> bool:
        """Echo analysis warnings to the console as they are recorded.

        Returns:
            True if SYMTRACE_VERBOSE is set to a truthy value
        """
        return self._get_bool("SYMTRACE_VERBOSE", False)

    @property
    def index_workers(self) -> int:
        """Number of threads used to index files.

        Returns:
            Worker count (default 1, i.e. sequential)
        """
        return self._get_int("SYMTRACE_INDEX_WORKERS", 1)

    @property
    def trace_workers(self) -> int:
        """Number of threads used to trace declarations.

        Returns:
            Worker count (default 1, i.e. sequential)
        """
        return self._get_int("SYMTRACE_TRACE_WORKERS", 1)

    @property
    def config_search_depth(self) -> int:
        """How many directories (starting at the source root) to search for tsconfig/jsconfig.

        Returns:
            Directory count
        """
        return self._get_int("SYMTRACE_CONFIG_SEARCH_DEPTH", 3)

    @property
    def parse_cache_size(self) -> int:
        """Maximum number of parsed fragments kept by the scope resolver.

        Returns:
            Cache size
        """
        return self._get_int("SYMTRACE_PARSE_CACHE_SIZE", 4096)

    @property
    def include_tests(self) -> bool:
        """Whether the file loader keeps *.test.*, *.spec.* and __tests__ files.

        Returns:
            True unless SYMTRACE_INCLUDE_TESTS is falsy
        """
        return self._get_bool("SYMTRACE_INCLUDE_TESTS", True)


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
