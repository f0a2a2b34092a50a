"""Documentation coverage and staleness analysis."""

from fnmatch import fnmatch
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Optional

from autodoc.models import (
    AnalysisMode,
    ChangeSet,
    CoverageVerdict,
    Declaration,
    DeclarationKind,
    Verdict,
)
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)


class CoverageAnalyzer:
    """Decides, per declaration, whether documentation must be (re)generated.

    Verdicts depend only on the declarations and the change set, so running
    the analyzer twice over the same input yields the same result.
    """

    def __init__(
        self,
        mode: AnalysisMode = AnalysisMode.FULL_SCAN,
        change_set: Optional[ChangeSet] = None,
        excluded_file_patterns: Iterable[str] = ("*.d.ts",),
    ):
        """Initialize coverage analyzer.

        Args:
            mode: Full scan or incremental (pull request) analysis
            change_set: Changed line ranges; required in incremental mode
            excluded_file_patterns: Glob patterns of files whose declarations
                are never documented (matched against the basename)
        """
        if mode == AnalysisMode.INCREMENTAL and change_set is None:
            raise ValueError("Incremental analysis requires a change set")

        self.mode = mode
        self.change_set = change_set
        self.excluded_file_patterns = list(excluded_file_patterns)

    def analyze(self, declarations: List[Declaration]) -> List[CoverageVerdict]:
        """Assign a verdict to every declaration, preserving input order.

        Args:
            declarations: Declarations of one or more files

        Returns:
            One verdict per declaration
        """
        verdicts = [self._judge(declaration) for declaration in declarations]
        logger.debug(
            f"Coverage ({self.mode.value}): "
            + ", ".join(f"{k}={v}" for k, v in self.summarize(verdicts)["by_verdict"].items())
        )
        return verdicts

    def is_excluded_file(self, relative_path: str) -> bool:
        name = PurePosixPath(relative_path).name
        return any(fnmatch(name, pattern) for pattern in self.excluded_file_patterns)

    def is_touched(self, declaration: Declaration) -> bool:
        """Whether any changed line falls inside the declaration's header or body."""
        if self.change_set is None:
            return False
        return any(
            declaration.full.intersects_lines(change.start, change.end)
            for change in self.change_set.ranges_for(declaration.file_path)
        )

    def _judge(self, declaration: Declaration) -> CoverageVerdict:
        if self.is_excluded_file(declaration.file_path):
            return _verdict(declaration, Verdict.SKIP, "file excluded from documentation")

        if self.mode == AnalysisMode.FULL_SCAN:
            if declaration.is_documented:
                return _verdict(declaration, Verdict.SKIP, "already documented")
            return _verdict(declaration, Verdict.GENERATE, "no documentation comment")

        if not self.change_set.contains(declaration.file_path):
            return _verdict(declaration, Verdict.SKIP, "file not part of the change set")

        if not self.is_touched(declaration):
            return _verdict(declaration, Verdict.SKIP, "not touched by the change set")

        if declaration.is_documented:
            return _verdict(declaration, Verdict.REGENERATE, "documented declaration changed")
        return _verdict(declaration, Verdict.GENERATE, "changed declaration has no documentation")

    @staticmethod
    def summarize(verdicts: List[CoverageVerdict]) -> Dict[str, Any]:
        """Count verdicts overall and per declaration kind.

        Args:
            verdicts: Verdicts to summarize

        Returns:
            Dictionary with verdict statistics and documented ratio
        """
        total = len(verdicts)
        documented = sum(1 for v in verdicts if v.declaration.is_documented)
        return {
            "total": total,
            "documented": documented,
            "coverage": (documented / total) if total else 1.0,
            "by_verdict": {
                verdict.value: sum(1 for v in verdicts if v.verdict == verdict)
                for verdict in Verdict
            },
            "by_kind": {
                kind.value: sum(1 for v in verdicts if v.declaration.kind == kind)
                for kind in DeclarationKind
            },
        }


def _verdict(declaration: Declaration, verdict: Verdict, reason: str) -> CoverageVerdict:
    return CoverageVerdict(declaration=declaration, verdict=verdict, reason=reason)
