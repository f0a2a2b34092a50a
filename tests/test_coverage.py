"""Tests for the coverage analyzer."""

import pytest

from autodoc.analyzer.coverage import CoverageAnalyzer
from autodoc.models import (
    AnalysisMode,
    ChangeSet,
    ChangeStatus,
    DeclarationKind,
    FileChange,
    LineRange,
    Verdict,
)


def _change_set(path, *ranges):
    return ChangeSet(files={
        path: FileChange(
            path=path,
            status=ChangeStatus.MODIFIED,
            ranges=[LineRange(start=start, end=end) for start, end in ranges],
        )
    })


def test_full_scan_verdicts(make_declaration):
    """Test that full scan generates for undocumented declarations only."""
    add = make_declaration("add", 1, 3)
    sub = make_declaration("sub", 7, 9, documented=True)

    verdicts = CoverageAnalyzer().analyze([add, sub])

    assert [v.verdict for v in verdicts] == [Verdict.GENERATE, Verdict.SKIP]
    assert verdicts[1].reason == "already documented"


def test_verdicts_preserve_input_order(make_declaration):
    """Test that output order follows input order."""
    declarations = [make_declaration(name, i * 10 + 1, i * 10 + 5) for i, name in enumerate("cab")]

    verdicts = CoverageAnalyzer().analyze(declarations)

    assert [v.declaration.name for v in verdicts] == ["c", "a", "b"]


def test_incremental_scoping(make_declaration):
    """Test that only the declaration covering the changed lines is touched."""
    first = make_declaration("first", 1, 5)
    second = make_declaration("second", 9, 20)
    analyzer = CoverageAnalyzer(AnalysisMode.INCREMENTAL, _change_set("src/app.ts", (10, 12)))

    verdicts = analyzer.analyze([first, second])

    assert [v.verdict for v in verdicts] == [Verdict.SKIP, Verdict.GENERATE]


def test_incremental_header_change_regenerates(make_declaration):
    """Test that a changed documented declaration is regenerated."""
    add = make_declaration("add", 1, 3)
    sub = make_declaration("sub", 7, 9, documented=True)
    analyzer = CoverageAnalyzer(AnalysisMode.INCREMENTAL, _change_set("src/app.ts", (7, 7)))

    verdicts = analyzer.analyze([add, sub])

    assert verdicts[0].verdict == Verdict.SKIP
    assert verdicts[1].verdict == Verdict.REGENERATE


def test_body_only_change_counts_as_touched(make_declaration):
    """Test that edits inside a body touch the declaration."""
    declaration = make_declaration("compute", 10, 30, documented=True)
    analyzer = CoverageAnalyzer(AnalysisMode.INCREMENTAL, _change_set("src/app.ts", (25, 25)))

    assert analyzer.is_touched(declaration)
    assert analyzer.analyze([declaration])[0].verdict == Verdict.REGENERATE


def test_range_spanning_several_declarations(make_declaration):
    """Test that one change range can touch several declarations."""
    declarations = [
        make_declaration("a", 1, 4),
        make_declaration("b", 5, 8, documented=True),
        make_declaration("c", 10, 12),
    ]
    analyzer = CoverageAnalyzer(AnalysisMode.INCREMENTAL, _change_set("src/app.ts", (3, 6)))

    verdicts = analyzer.analyze(declarations)

    assert [v.verdict for v in verdicts] == [Verdict.GENERATE, Verdict.REGENERATE, Verdict.SKIP]


def test_file_outside_change_set_is_skipped(make_declaration):
    """Test that declarations in unchanged files are skipped."""
    declaration = make_declaration("other", 1, 5, file_path="src/other.ts")
    analyzer = CoverageAnalyzer(AnalysisMode.INCREMENTAL, _change_set("src/app.ts", (1, 100)))

    verdict = analyzer.analyze([declaration])[0]

    assert verdict.verdict == Verdict.SKIP
    assert verdict.reason == "file not part of the change set"


def test_type_definition_files_always_skipped(make_declaration):
    """Test that excluded file patterns override both modes."""
    declaration = make_declaration("Api", 1, 5, file_path="types/api.d.ts")

    assert CoverageAnalyzer().analyze([declaration])[0].verdict == Verdict.SKIP

    analyzer = CoverageAnalyzer(AnalysisMode.INCREMENTAL, _change_set("types/api.d.ts", (1, 5)))
    assert analyzer.analyze([declaration])[0].verdict == Verdict.SKIP


def test_custom_exclusion_patterns(make_declaration):
    """Test glob patterns matched against the basename."""
    analyzer = CoverageAnalyzer(excluded_file_patterns=["*.test.ts"])

    assert analyzer.is_excluded_file("src/math.test.ts")
    assert not analyzer.is_excluded_file("src/math.ts")
    assert not analyzer.is_excluded_file("src/api.d.ts")


def test_verdicts_are_deterministic(make_declaration):
    """Test that analyzing twice gives identical verdicts."""
    declarations = [make_declaration("a", 1, 4), make_declaration("b", 5, 8, documented=True)]
    analyzer = CoverageAnalyzer(AnalysisMode.INCREMENTAL, _change_set("src/app.ts", (2, 6)))

    assert analyzer.analyze(declarations) == analyzer.analyze(declarations)


def test_incremental_requires_change_set():
    """Test that incremental mode without a change set is rejected."""
    with pytest.raises(ValueError):
        CoverageAnalyzer(AnalysisMode.INCREMENTAL)


def test_summarize(make_declaration):
    """Test verdict statistics."""
    verdicts = CoverageAnalyzer().analyze([
        make_declaration("a", 1, 4),
        make_declaration("b", 5, 8, documented=True),
        make_declaration("C", 10, 20, documented=True, kind=DeclarationKind.CLASS),
    ])

    stats = CoverageAnalyzer.summarize(verdicts)

    assert stats["total"] == 3
    assert stats["documented"] == 2
    assert stats["by_verdict"] == {"skip": 2, "generate": 1, "regenerate": 0}
    assert stats["by_kind"]["class"] == 1
    assert stats["by_kind"]["function"] == 2
    assert CoverageAnalyzer.summarize([])["coverage"] == 1.0
