"""Tests for the patch writer."""

from pathlib import Path

import pytest

from autodoc.analyzer.coverage import CoverageAnalyzer
from autodoc.errors import PatchConflictError
from autodoc.explorer.typescript_analyzer import TypeScriptAnalyzer
from autodoc.generator.patch_writer import PatchWriter, apply_edits, format_doc_comment
from autodoc.models import SourceFile, TextEdit, Verdict


SCENARIO = (
    "function add(a, b) {\n"
    "  return a + b;\n"
    "}\n"
    "\n"
    "/** Subtracts b from a. */\n"
    "\n"
    "function sub(a, b) {\n"
    "  return a - b;\n"
    "}\n"
)


def _source(text: str, name: str = "src/math.ts") -> SourceFile:
    return SourceFile(path=Path("/repo") / name, relative_path=name, text=text)


def _full_scan(source: SourceFile):
    return CoverageAnalyzer().analyze(TypeScriptAnalyzer().extract(source))


@pytest.fixture
def writer():
    return PatchWriter()


def test_format_single_line():
    """Test that one-line text becomes a compact block."""
    assert format_doc_comment("Adds two numbers.") == "/** Adds two numbers. */"


def test_format_multi_line_with_indent():
    """Test continuation line prefixes and blank lines."""
    text = "Greets someone.\n\n@param name who to greet"

    assert format_doc_comment(text, "  ") == (
        "/**\n"
        "   * Greets someone.\n"
        "   *\n"
        "   * @param name who to greet\n"
        "   */"
    )


def test_generate_inserts_above_declaration(writer):
    """Test the add/sub scenario: insert for add, leave sub untouched."""
    source = _source(SCENARIO)
    verdicts = _full_scan(source)
    assert [v.verdict for v in verdicts] == [Verdict.GENERATE, Verdict.SKIP]

    patch = writer.build_patch(source, [(verdicts[0], "Adds two numbers.")])
    patched = writer.apply(source, patch)

    assert patched.text == "/** Adds two numbers. */\n" + SCENARIO
    # original lines 5-9 are byte-identical, shifted by one
    assert patched.text.splitlines()[5:10] == SCENARIO.splitlines()[4:9]


def test_regenerate_replaces_only_doc_range(writer):
    """Test that regeneration swaps exactly the old comment bytes."""
    source = _source(SCENARIO)
    sub_verdict = _full_scan(source)[1]
    regenerate = sub_verdict.model_copy(update={"verdict": Verdict.REGENERATE})

    patched = writer.apply(source, writer.build_patch(source, [(regenerate, "Returns a minus b.")]))

    assert patched.text == SCENARIO.replace("/** Subtracts b from a. */", "/** Returns a minus b. */")


def test_nested_declaration_uses_its_indentation(writer):
    """Test multi-line comments on indented members."""
    text = (
        "export class Greeter {\n"
        "  greet(name: string): string {\n"
        "    return `Hi ${name}`;\n"
        "  }\n"
        "}\n"
    )
    source = _source(text)
    verdicts = _full_scan(source)

    items = [(verdicts[0], "A greeter."), (verdicts[1], "Greets.\n@param name Who.")]
    patched = writer.apply(source, writer.build_patch(source, items))

    assert patched.text == (
        "/** A greeter. */\n"
        "export class Greeter {\n"
        "  /**\n"
        "   * Greets.\n"
        "   * @param name Who.\n"
        "   */\n"
        "  greet(name: string): string {\n"
        "    return `Hi ${name}`;\n"
        "  }\n"
        "}\n"
    )


def test_crlf_line_endings_preserved(writer):
    """Test that inserted comments follow the file's line breaks."""
    text = "export function a() {\r\n  return 1;\r\n}\r\n"
    source = _source(text)
    verdicts = _full_scan(source)

    patched = writer.apply(source, writer.build_patch(source, [(verdicts[0], "One.\nTwo.")]))

    assert patched.text == "/**\r\n * One.\r\n * Two.\r\n */\r\n" + text
    assert "\n" not in patched.text.replace("\r\n", "")


def test_bytes_outside_edits_unchanged(writer):
    """Test that unusual whitespace and unicode survive untouched."""
    text = "// héllo\t  \n\n\nexport function a() {}   \n\n\t\nexport function b() {}"
    source = _source(text)
    verdicts = _full_scan(source)

    patched = writer.apply(source, writer.build_patch(source, [(v, "Doc.") for v in verdicts]))

    assert patched.text.replace("/** Doc. */\n", "") == text


def test_patched_file_is_fully_documented(writer):
    """Test idempotence: a second scan finds nothing to do."""
    source = _source(SCENARIO)
    verdicts = _full_scan(source)
    items = [(v, "Generated.") for v in verdicts if v.verdict == Verdict.GENERATE]

    patched = writer.apply(source, writer.build_patch(source, items))

    assert all(v.verdict == Verdict.SKIP for v in _full_scan(patched))


def test_empty_patch_returns_same_source(writer):
    """Test that no edits means no rewrite."""
    source = _source(SCENARIO)

    assert writer.apply(source, writer.build_patch(source, [])) is source


def test_skip_verdicts_produce_no_edits(writer):
    """Test that skipped declarations are ignored."""
    source = _source(SCENARIO)
    sub_verdict = _full_scan(source)[1]

    assert writer.build_patch(source, [(sub_verdict, "ignored")]).edits == []


def test_apply_edits_backward_splice():
    """Test multiple edits computed against the original offsets."""
    original = b"0123456789"
    edits = [
        TextEdit(start=8, end=10, replacement="XY"),
        TextEdit(start=0, end=0, replacement="<"),
        TextEdit(start=3, end=5, replacement=""),
    ]

    assert apply_edits(original, edits) == b"<012567XY"


def test_apply_edits_same_offset_keeps_order():
    """Test that zero-width inserts at one offset keep their order."""
    edits = [
        TextEdit(start=2, end=2, replacement="a"),
        TextEdit(start=2, end=2, replacement="b"),
    ]

    assert apply_edits(b"xxyy", edits) == b"xxabyy"


def test_overlapping_edits_rejected():
    """Test that overlapping edits raise before any output is built."""
    edits = [
        TextEdit(start=0, end=5, replacement="a", label="first"),
        TextEdit(start=3, end=6, replacement="b", label="second"),
    ]

    with pytest.raises(PatchConflictError):
        apply_edits(b"0123456789", edits)


def test_out_of_bounds_edit_rejected():
    """Test that an edit past the end of the file raises."""
    with pytest.raises(PatchConflictError):
        apply_edits(b"abc", [TextEdit(start=2, end=9, replacement="x")])


def test_diff_is_unified(writer):
    """Test diff headers and added lines."""
    source = _source(SCENARIO)
    patched = source.with_text("/** Adds two numbers. */\n" + SCENARIO)

    diff = writer.diff(source, patched)

    assert diff.startswith("--- a/src/math.ts\n+++ b/src/math.ts\n")
    assert "+/** Adds two numbers. */\n" in diff


def test_declaration_sharing_a_line_gets_comment_at_header(writer):
    """Test that code before the header on the same line stays above the comment."""
    text = "const x = 1; export function f() {}\nexport class A { m() {} }\n"
    source = _source(text)
    verdicts = _full_scan(source)
    assert [v.declaration.qualified_name for v in verdicts] == ["f", "A", "A.m"]

    patched = writer.apply(source, writer.build_patch(source, [(v, "Doc.") for v in verdicts]))

    assert patched.text == (
        "const x = 1; /** Doc. */\n"
        "export function f() {}\n"
        "/** Doc. */\n"
        "export class A { /** Doc. */\n"
        "m() {} }\n"
    )
    docs = {d.qualified_name: d.doc.text for d in TypeScriptAnalyzer().extract(patched)}
    assert docs == {"f": "Doc.", "A": "Doc.", "A.m": "Doc."}
