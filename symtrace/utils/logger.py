"""Terminal-safe warning log for analysis runs.

Detects terminal encoding and provides ASCII alternatives for the few Unicode
glyphs symtrace prints, and keeps an in-memory ledger of non-fatal analysis
warnings (skipped files, unreadable configs) so callers can inspect them after
a run instead of having them printed mid-analysis.
"""
import sys
import locale
from dataclasses import dataclass
from typing import List, Optional

from rich.markup import escape


# Unicode to ASCII icon mapping for Windows compatibility (rich markup, brackets escaped)
ICON_MAP = {
    '✓': r'\[OK]',
    '✗': r'\[FAIL]',
    '⚠': r'\[WARN]',
    '→': '->',
    '←': '<-',
    '│': '|',
    '─': '-',
    '└': '+',
    '├': '+',
    '…': '...',
    '•': '*',
}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding capability.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if hasattr(sys.stdout, 'encoding') and sys.stdout.encoding:
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (LookupError, ValueError):
        return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 Unicode characters."""
    return detect_terminal_encoding() in ('utf-8', 'utf8', 'utf_8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode icons with ASCII equivalents if terminal doesn't support UTF-8.

    Args:
        text: Text potentially containing Unicode icons

    Returns:
        str: Sanitized text safe for current terminal
    """
    if is_utf8_capable():
        return text

    sanitized = text
    for unicode_char, ascii_replacement in ICON_MAP.items():
        sanitized = sanitized.replace(unicode_char, ascii_replacement)
    return sanitized


@dataclass(frozen=True)
class LogEntry:
    """A single non-fatal analysis warning."""
    category: str  # 'parse' or 'config'
    path: str
    message: str

    def format(self) -> str:
        return f"⚠ [{self.category}] {self.path}: {self.message}"


class AnalysisLog:
    """Collects warnings raised while indexing and tracing.

    Nothing here raises: per-file problems are recorded and the run continues.
    When a console is attached and ``verbose`` is set, each entry is echoed as
    soon as it is recorded.
    """

    def __init__(self, console=None, verbose: bool = False):
        self.console = console
        self.verbose = verbose
        self.entries: List[LogEntry] = []

    def warn(self, category: str, path: str, message: str) -> LogEntry:
        entry = LogEntry(category=category, path=str(path), message=message)
        self.entries.append(entry)
        if self.verbose and self.console is not None:
            self.console.print(f"[yellow]{escape(entry.format())}[/yellow]", highlight=False)
        return entry

    def count(self, category: Optional[str] = None) -> int:
        if category is None:
            return len(self.entries)
        return sum(1 for entry in self.entries if entry.category == category)

    def paths(self, category: Optional[str] = None) -> List[str]:
        return [e.path for e in self.entries if category is None or e.category == category]
