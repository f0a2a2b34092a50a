"""
autodoc

Keeps JSDoc documentation in step with a TypeScript/JavaScript code base.
It walks the source tree, extracts documentable declarations, decides which
ones are undocumented or stale, asks Claude for documentation and splices
the result back into the original files without disturbing anything else.

Runs either over the whole tree or scoped to the lines a pull request
touched, and publishes the result as a dry-run report, in-place writes or a
pull request.
"""

__version__ = "0.3.0"

from autodoc.analyzer.coverage import CoverageAnalyzer
from autodoc.explorer.base_analyzer import AnalyzerRegistry, BaseLanguageAnalyzer
from autodoc.generator.patch_writer import PatchWriter
from autodoc.integrations.claude_client import AnthropicBackend, DocGenerationClient
from autodoc.pipeline import DocumentationPipeline

__all__ = [
    "CoverageAnalyzer",
    "AnalyzerRegistry",
    "BaseLanguageAnalyzer",
    "PatchWriter",
    "AnthropicBackend",
    "DocGenerationClient",
    "DocumentationPipeline",
]
