"""Base analyzer interface for language plugins."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Set

from autodoc.models import Declaration, SourceFile
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)


class BaseLanguageAnalyzer(ABC):
    """Base class for language-specific declaration extractors."""

    def __init__(self):
        """Initialize the analyzer."""
        self.supported_extensions: Set[str] = set()

    def can_analyze(self, file_path: Path) -> bool:
        """Check if this analyzer can handle the given file.

        Args:
            file_path: Path to the file

        Returns:
            True if this analyzer supports the file type
        """
        return file_path.suffix in self.supported_extensions

    @abstractmethod
    def extract(self, source: SourceFile) -> List[Declaration]:
        """Extract documentable declarations in document order.

        Args:
            source: Loaded source file

        Returns:
            Declarations with non-overlapping header ranges

        Raises:
            ParseError: If the file is not syntactically valid
        """

    def extract_context(
        self,
        source: SourceFile,
        declaration: Declaration,
        context_lines: int = 20,
        max_chars: int = 4000,
    ) -> str:
        """Extract a bounded window of code around a declaration.

        The declaration itself comes first in the budget; leading lines are
        added only while the character budget allows.

        Args:
            source: Source file the declaration belongs to
            declaration: Declaration of interest
            context_lines: Number of lines before the declaration to include
            max_chars: Upper bound on the returned text

        Returns:
            Code context string
        """
        lines = source.text.splitlines()
        start = declaration.full.start_line - 1
        end = min(len(lines), declaration.full.end_line)

        body = "\n".join(lines[start:end])
        if len(body) >= max_chars:
            return body[:max_chars]

        budget = max_chars - len(body)
        leading: List[str] = []
        for line in reversed(lines[max(0, start - context_lines):start]):
            if len(line) + 1 > budget:
                break
            leading.insert(0, line)
            budget -= len(line) + 1

        return "\n".join(leading + [body])


class AnalyzerRegistry:
    """Registry for language analyzers."""

    def __init__(self):
        """Initialize the registry."""
        self._analyzers: List[BaseLanguageAnalyzer] = []

    def register(self, analyzer: BaseLanguageAnalyzer) -> None:
        """Register a language analyzer.

        Args:
            analyzer: Analyzer instance to register
        """
        self._analyzers.append(analyzer)
        logger.debug(f"Registered analyzer: {analyzer.__class__.__name__}")

    def get_analyzer(self, file_path: Path) -> Optional[BaseLanguageAnalyzer]:
        """Get appropriate analyzer for a file.

        Args:
            file_path: Path to the file

        Returns:
            Analyzer instance or None if no analyzer found
        """
        for analyzer in self._analyzers:
            if analyzer.can_analyze(file_path):
                return analyzer

        return None

    @property
    def extensions(self) -> Set[str]:
        """All suffixes handled by registered analyzers."""
        suffixes: Set[str] = set()
        for analyzer in self._analyzers:
            suffixes |= analyzer.supported_extensions
        return suffixes


def default_registry() -> AnalyzerRegistry:
    """Registry with the built-in analyzers."""
    from autodoc.explorer.typescript_analyzer import TypeScriptAnalyzer

    registry = AnalyzerRegistry()
    registry.register(TypeScriptAnalyzer())
    return registry
