"""TypeScript/JavaScript declaration extractor using tree-sitter."""

import re
from bisect import bisect_right
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from autodoc.errors import ParseError
from autodoc.explorer.base_analyzer import BaseLanguageAnalyzer
from autodoc.models import (
    Declaration,
    DeclarationKind,
    DocComment,
    Parameter,
    SourceFile,
    SourceRange,
)
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)

TYPESCRIPT = Language(tree_sitter_typescript.language_typescript())
TSX = Language(tree_sitter_typescript.language_tsx())
JAVASCRIPT = Language(tree_sitter_javascript.language())

_GRAMMARS: Dict[str, Language] = {
    '.ts': TYPESCRIPT,
    '.mts': TYPESCRIPT,
    '.cts': TYPESCRIPT,
    '.tsx': TSX,
    '.js': JAVASCRIPT,
    '.jsx': JAVASCRIPT,
    '.mjs': JAVASCRIPT,
    '.cjs': JAVASCRIPT,
}

# Statement node types and the kind they map to
_STATEMENT_KINDS: Dict[str, DeclarationKind] = {
    'function_declaration': DeclarationKind.FUNCTION,
    'generator_function_declaration': DeclarationKind.FUNCTION,
    'function_expression': DeclarationKind.FUNCTION,
    'function': DeclarationKind.FUNCTION,
    'arrow_function': DeclarationKind.FUNCTION,
    'generator_function': DeclarationKind.FUNCTION,
    'class_declaration': DeclarationKind.CLASS,
    'abstract_class_declaration': DeclarationKind.CLASS,
    'class': DeclarationKind.CLASS,
    'interface_declaration': DeclarationKind.INTERFACE,
    'type_alias_declaration': DeclarationKind.TYPE_ALIAS,
}

_MEMBER_TYPES = {'method_definition', 'abstract_method_signature'}

_FUNCTION_VALUES = {
    'arrow_function',
    'function_expression',
    'function',
    'generator_function',
}

_JSDOC_LINE = re.compile(r'^\s*\*?\s?')


class _LineIndex:
    """Maps byte offsets to 1-based line numbers."""

    def __init__(self, data: bytes):
        self.starts = [0]
        pos = data.find(b'\n')
        while pos != -1:
            self.starts.append(pos + 1)
            pos = data.find(b'\n', pos + 1)

    def line_of(self, offset: int) -> int:
        return bisect_right(self.starts, offset)


class TypeScriptAnalyzer(BaseLanguageAnalyzer):
    """Extracts documentable declarations from TS/JS sources."""

    def __init__(self):
        """Initialize TypeScript analyzer."""
        super().__init__()
        self.supported_extensions = set(_GRAMMARS)
        self._parsers: Dict[str, Parser] = {}

    def _parser_for(self, path: Path) -> Parser:
        suffix = path.suffix
        if suffix not in self._parsers:
            self._parsers[suffix] = Parser(_GRAMMARS[suffix])
        return self._parsers[suffix]

    def extract(self, source: SourceFile) -> List[Declaration]:
        """Parse a file and extract its documentable declarations.

        Args:
            source: Loaded source file

        Returns:
            Declarations in document order

        Raises:
            ParseError: If the syntax tree contains errors
        """
        data = source.data
        tree = self._parser_for(source.path).parse(data)
        root = tree.root_node

        if root.has_error:
            raise ParseError(source.relative_path, _first_error_line(root))

        walker = _DeclarationWalker(source.relative_path, data)
        for child in root.named_children:
            walker.visit_statement(child)

        logger.debug(f"Extracted {len(walker.declarations)} declarations from {source.relative_path}")
        return walker.declarations


class _DeclarationWalker:
    """Collects declarations from top-level statements and class bodies."""

    def __init__(self, relative_path: str, data: bytes):
        self.relative_path = relative_path
        self.data = data
        self.lines = _LineIndex(data)
        self.declarations: List[Declaration] = []

    def text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self.data[node.start_byte:node.end_byte].decode('utf-8')

    def visit_statement(self, statement: Node) -> None:
        anchor = statement
        node = statement
        exported = False

        if statement.type == 'export_statement':
            node = statement.child_by_field_name('declaration') or statement.child_by_field_name('value')
            if node is None:
                return  # re-exports such as `export { a } from './a'`
            exported = True

        if node.type in ('lexical_declaration', 'variable_declaration'):
            self._visit_variable(anchor, node, exported)
            return

        kind = _STATEMENT_KINDS.get(node.type)
        if kind is None:
            return

        name = self.text(node.child_by_field_name('name')) or 'default'
        body = node.child_by_field_name('body')
        self._add(kind, name, name, anchor, node, body, exported)

        if kind == DeclarationKind.CLASS and body is not None:
            self._visit_class_body(name, body, exported)

    def _visit_variable(self, anchor: Node, node: Node, exported: bool) -> None:
        declarators = [c for c in node.named_children if c.type == 'variable_declarator']
        if not declarators:
            return

        is_const = self.text(node).lstrip().startswith('const')
        value = declarators[0].child_by_field_name('value')

        if len(declarators) == 1 and value is not None and value.type in _FUNCTION_VALUES:
            name = self.text(declarators[0].child_by_field_name('name'))
            self._add(
                DeclarationKind.FUNCTION, name, name, anchor, value,
                value.child_by_field_name('body'), exported,
            )
        elif exported and is_const:
            name = ", ".join(self.text(d.child_by_field_name('name')) for d in declarators)
            self._add(DeclarationKind.CONST, name, name, anchor, node, None, exported)

    def _visit_class_body(self, class_name: str, body: Node, class_exported: bool) -> None:
        for member in body.named_children:
            if member.type not in _MEMBER_TYPES:
                continue

            name = self.text(member.child_by_field_name('name'))
            is_private = name.startswith('#') or any(
                c.type == 'accessibility_modifier' and self.text(c) == 'private'
                for c in member.children
            )
            self._add(
                DeclarationKind.METHOD,
                name,
                f"{class_name}.{name}",
                _leading_decorator(member),
                member,
                member.child_by_field_name('body'),
                class_exported and not is_private,
            )

    def _add(
        self,
        kind: DeclarationKind,
        name: str,
        qualified_name: str,
        anchor: Node,
        node: Node,
        body: Optional[Node],
        exported: bool,
    ) -> None:
        start = anchor.start_byte
        statement_end = max(anchor.end_byte, node.end_byte)
        header_end = body.start_byte if body is not None else statement_end

        header_text = self.data[start:header_end].decode('utf-8')
        signature = " ".join(header_text.split())

        parameters, return_type = self._signature_parts(node)

        self.declarations.append(Declaration(
            kind=kind,
            name=name,
            qualified_name=qualified_name,
            file_path=self.relative_path,
            signature=signature,
            header=self._range(start, start + len(header_text.rstrip().encode('utf-8'))),
            full=self._range(start, statement_end),
            doc=self._doc_comment(anchor),
            exported=exported,
            parameters=parameters,
            return_type=return_type,
        ))

    def _range(self, start: int, end: int) -> SourceRange:
        last = max(start, end - 1)
        return SourceRange(
            start_byte=start,
            end_byte=end,
            start_line=self.lines.line_of(start),
            end_line=self.lines.line_of(last),
        )

    def _doc_comment(self, anchor: Node) -> Optional[DocComment]:
        """Find a JSDoc block separated from anchor by whitespace only."""
        prev = anchor.prev_named_sibling
        if prev is None or prev.type != 'comment':
            return None

        raw = self.text(prev)
        if not raw.startswith('/**') or raw == '/**/':
            return None

        gap = self.data[prev.end_byte:anchor.start_byte]
        if gap.strip():
            return None

        return DocComment(range=self._range(prev.start_byte, prev.end_byte), text=_clean_jsdoc(raw))

    def _signature_parts(self, node: Node) -> Tuple[List[Parameter], Optional[str]]:
        parameters: List[Parameter] = []

        params = node.child_by_field_name('parameters')
        if params is not None:
            for param in params.named_children:
                if param.type == 'comment':
                    continue
                pattern = param.child_by_field_name('pattern') or param.child_by_field_name('left')
                type_node = param.child_by_field_name('type')
                parameters.append(Parameter(
                    name=self.text(pattern or param),
                    type=_strip_annotation(self.text(type_node)) if type_node else None,
                ))
        else:
            single = node.child_by_field_name('parameter')  # `x => ...`
            if single is not None:
                parameters.append(Parameter(name=self.text(single)))

        return_node = node.child_by_field_name('return_type')
        return_type = _strip_annotation(self.text(return_node)) if return_node else None
        return parameters, return_type


def _leading_decorator(member: Node) -> Node:
    """Decorators on class members are preceding siblings in the class body."""
    anchor = member
    while anchor.prev_named_sibling is not None and anchor.prev_named_sibling.type == 'decorator':
        anchor = anchor.prev_named_sibling
    return anchor


def _strip_annotation(text: str) -> str:
    return text.lstrip(':').strip()


def _clean_jsdoc(raw: str) -> str:
    body = raw[3:-2] if raw.endswith('*/') else raw[3:]
    lines = [_JSDOC_LINE.sub('', line).rstrip() for line in body.splitlines()]
    return "\n".join(lines).strip()


def _first_error_line(node: Node) -> Optional[int]:
    if node.type == 'ERROR' or node.is_missing:
        return node.start_point[0] + 1
    for child in node.children:
        if child.has_error or child.is_missing:
            line = _first_error_line(child)
            if line is not None:
                return line
    return None
