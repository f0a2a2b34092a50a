"""Tests for the TypeScript/JavaScript declaration extractor."""

from pathlib import Path

import pytest

from autodoc.errors import ParseError
from autodoc.explorer.base_analyzer import default_registry
from autodoc.explorer.typescript_analyzer import TypeScriptAnalyzer
from autodoc.models import DeclarationKind, SourceFile


MODULE_TS = """import { log } from './log';

/**
 * Adds two numbers.
 * @param a first operand
 */
export function add(a: number, b: number): number {
  return a + b;
}

export const double = (x: number): number => x * 2;

export const MAX = 10, MIN = 0;

const internal = 5;

interface Shape {
  area(): number;
}

export type Id = string;

export class Calculator {
  /** Multiplies. */
  multiply(x: number, y: number): number {
    return x * y;
  }

  private secret(): void {}

  @log
  divide(x: number, y: number): number {
    return x / y;
  }
}
"""


def _source(text: str, name: str = "src/module.ts") -> SourceFile:
    return SourceFile(path=Path("/repo") / name, relative_path=name, text=text)


@pytest.fixture
def analyzer():
    return TypeScriptAnalyzer()


@pytest.fixture
def declarations(analyzer):
    return analyzer.extract(_source(MODULE_TS))


def _by_name(declarations):
    return {d.qualified_name: d for d in declarations}


def test_declarations_in_document_order(declarations):
    """Test that declarations come out in source order."""
    assert [d.qualified_name for d in declarations] == [
        "add",
        "double",
        "MAX, MIN",
        "Shape",
        "Id",
        "Calculator",
        "Calculator.multiply",
        "Calculator.secret",
        "Calculator.divide",
    ]


def test_declaration_kinds(declarations):
    """Test kind assignment for each declaration form."""
    kinds = {d.qualified_name: d.kind for d in declarations}

    assert kinds["add"] == DeclarationKind.FUNCTION
    assert kinds["double"] == DeclarationKind.FUNCTION
    assert kinds["MAX, MIN"] == DeclarationKind.CONST
    assert kinds["Shape"] == DeclarationKind.INTERFACE
    assert kinds["Id"] == DeclarationKind.TYPE_ALIAS
    assert kinds["Calculator"] == DeclarationKind.CLASS
    assert kinds["Calculator.multiply"] == DeclarationKind.METHOD


def test_headers_do_not_overlap(declarations):
    """Test that header ranges are disjoint and ascending."""
    for previous, current in zip(declarations, declarations[1:]):
        assert previous.header.end_byte <= current.header.start_byte


def test_documented_function(declarations):
    """Test that a preceding JSDoc block is attached with its range."""
    add = _by_name(declarations)["add"]

    assert add.is_documented
    assert add.doc.text == "Adds two numbers.\n@param a first operand"
    assert add.doc.range.start_line == 3
    assert add.doc.range.end_line == 6
    assert add.header.start_line == 7
    assert add.full.end_line == 9
    assert add.exported


def test_signature_and_parameters(declarations):
    """Test signature text and parameter extraction."""
    add = _by_name(declarations)["add"]

    assert add.signature == "export function add(a: number, b: number): number"
    assert [(p.name, p.type) for p in add.parameters] == [("a", "number"), ("b", "number")]
    assert add.return_type == "number"


def test_arrow_function_constant(declarations):
    """Test that a const bound to an arrow function is a function."""
    double = _by_name(declarations)["double"]

    assert not double.is_documented
    assert double.signature.startswith("export const double = (x: number): number =>")
    assert [p.name for p in double.parameters] == ["x"]


def test_unexported_constants_are_ignored(declarations):
    """Test that plain local constants are not documentable."""
    assert "internal" not in _by_name(declarations)


def test_export_flags(declarations):
    """Test export flags for top-level and member declarations."""
    by_name = _by_name(declarations)

    assert not by_name["Shape"].exported
    assert by_name["Id"].exported
    assert by_name["Calculator.multiply"].exported
    assert not by_name["Calculator.secret"].exported


def test_method_doc_and_decorator(declarations):
    """Test documented methods and decorator-aware header ranges."""
    by_name = _by_name(declarations)

    assert by_name["Calculator.multiply"].doc.text == "Multiplies."
    assert not by_name["Calculator.divide"].is_documented
    # header starts at the decorator line
    divide_line = MODULE_TS.splitlines().index("  @log") + 1
    assert by_name["Calculator.divide"].header.start_line == divide_line


def test_non_jsdoc_comments_are_not_documentation(analyzer):
    """Test that block, empty and line comments do not count as docs."""
    text = (
        "/* plain block */\n"
        "export function a() {}\n"
        "/**/\n"
        "export function b() {}\n"
        "/** Detached. */\n"
        "// separator\n"
        "export function c() {}\n"
    )

    declarations = analyzer.extract(_source(text))

    assert [d.is_documented for d in declarations] == [False, False, False]


def test_doc_separated_by_blank_line(analyzer):
    """Test that whitespace between doc and declaration is allowed."""
    text = "/** Subtracts. */\n\nfunction sub(a, b) {\n  return a - b;\n}\n"

    sub = analyzer.extract(_source(text))[0]

    assert sub.doc.text == "Subtracts."
    assert sub.doc.range.start_line == 1
    assert sub.header.start_line == 3


def test_javascript_file(analyzer):
    """Test extraction from plain JavaScript without type annotations."""
    text = "function greet(name) {\n  return `Hi ${name}`;\n}\n"

    declarations = analyzer.extract(_source(text, "lib/greet.js"))

    assert len(declarations) == 1
    greet = declarations[0]
    assert greet.kind == DeclarationKind.FUNCTION
    assert greet.parameters[0].name == "name"
    assert greet.parameters[0].type is None
    assert greet.file_path == "lib/greet.js"


def test_tsx_file(analyzer):
    """Test extraction from a TSX component."""
    text = "export const View = (props: { label: string }) => <span>{props.label}</span>;\n"

    declarations = analyzer.extract(_source(text, "ui/View.tsx"))

    assert [d.name for d in declarations] == ["View"]


def test_default_exported_function_values(analyzer):
    """Test that anonymous default-exported arrows and generators are functions."""
    arrow = analyzer.extract(_source("export default (a: number): number => {\n  return a * 2;\n};\n"))
    generator = analyzer.extract(_source("export default function* () {\n  yield 1;\n}\n", "lib/gen.js"))

    for declarations in (arrow, generator):
        [declaration] = declarations
        assert declaration.kind == DeclarationKind.FUNCTION
        assert declaration.name == "default"
        assert declaration.exported
        assert declaration.header.start_line == 1
    assert arrow[0].parameters[0].name == "a"
    assert arrow[0].return_type == "number"


def test_multibyte_text_before_declaration(analyzer):
    """Test byte ranges when the file contains non-ASCII text."""
    text = "const greeting = 'héllo wörld';\nexport function f() {}\n"

    f = analyzer.extract(_source(text))[0]

    assert text.encode("utf-8")[f.header.start_byte:f.header.end_byte] == b"export function f()"


def test_parse_failure_raises(analyzer):
    """Test that malformed syntax raises ParseError with a location."""
    with pytest.raises(ParseError) as exc_info:
        analyzer.extract(_source("export function ok() {}\nexport function broken( {\n"))

    assert exc_info.value.path == "src/module.ts"


def test_extract_context_bounds(analyzer):
    """Test that context keeps the declaration and respects the budget."""
    leading = "".join(f"const v{i} = {i};\n" for i in range(30))
    source = _source(leading + "export function target() {\n  return 1;\n}\n")
    target = analyzer.extract(source)[-1]

    context = analyzer.extract_context(source, target, context_lines=5, max_chars=4000)
    assert context.endswith("export function target() {\n  return 1;\n}")
    assert context.count("\n") == 5 + 2

    tight = analyzer.extract_context(source, target, context_lines=20, max_chars=60)
    assert len(tight) <= 60
    assert "export function target()" in tight


def test_default_registry_handles_script_suffixes():
    """Test that the default registry knows TS and JS suffixes."""
    registry = default_registry()

    assert registry.get_analyzer(Path("a.ts")) is not None
    assert registry.get_analyzer(Path("a.jsx")) is not None
    assert registry.get_analyzer(Path("a.py")) is None
    assert {".ts", ".tsx", ".js"} <= registry.extensions
