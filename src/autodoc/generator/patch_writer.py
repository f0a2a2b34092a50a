"""Verbatim-preserving insertion of JSDoc comments into source text."""

import difflib
from typing import Iterable, List, Tuple

from autodoc.errors import PatchConflictError
from autodoc.models import CoverageVerdict, Patch, SourceFile, TextEdit, Verdict
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)


def format_doc_comment(text: str, indent: str = "", newline: str = "\n") -> str:
    """Render documentation text as a JSDoc block.

    The first line carries no indentation (it is written at the insertion
    column); continuation lines are prefixed with ``indent``.

    Args:
        text: Documentation text without comment delimiters
        indent: Indentation of the documented declaration
        newline: Line break used by the surrounding file

    Returns:
        Comment text such as ``/** Adds two numbers. */``
    """
    lines = [line.rstrip() for line in text.strip().splitlines()]

    if len(lines) == 1:
        return f"/** {lines[0]} */"

    formatted = ["/**"]
    formatted.extend(f"{indent} * {line}" if line else f"{indent} *" for line in lines)
    formatted.append(f"{indent} */")
    return newline.join(formatted)


def apply_edits(original: bytes, edits: List[TextEdit]) -> bytes:
    """Apply edits computed against ``original`` in a single pass.

    Edits are validated first, then the output is assembled from slices of
    the original, walking from the end of the file back to the start.
    Insertions at the same offset keep their given order.

    Args:
        original: Original file bytes
        edits: Edits with byte offsets into ``original``

    Returns:
        New file bytes

    Raises:
        PatchConflictError: If an edit is out of bounds or edits overlap
    """
    ordered = sorted(edits, key=lambda e: (e.start, e.end))

    previous = None
    for edit in ordered:
        if edit.start < 0 or edit.end < edit.start or edit.end > len(original):
            raise PatchConflictError(
                f"Edit {edit.label or ''} [{edit.start}, {edit.end}) outside file of {len(original)} bytes"
            )
        if previous is not None and edit.start < previous.end:
            raise PatchConflictError(
                f"Edits {previous.label} [{previous.start}, {previous.end}) and "
                f"{edit.label} [{edit.start}, {edit.end}) overlap"
            )
        previous = edit

    pieces: List[bytes] = []
    cursor = len(original)
    for edit in reversed(ordered):
        pieces.append(original[edit.end:cursor])
        pieces.append(edit.replacement.encode("utf-8"))
        cursor = edit.start
    pieces.append(original[:cursor])

    return b"".join(reversed(pieces))


class PatchWriter:
    """Turns generated documentation into per-file patches."""

    def build_patch(
        self,
        source: SourceFile,
        items: Iterable[Tuple[CoverageVerdict, str]],
    ) -> Patch:
        """Build the edit list for one file.

        Args:
            source: Original source file
            items: (verdict, generated text) pairs for this file

        Returns:
            Patch against the original text
        """
        data = source.data
        edits: List[TextEdit] = []

        for verdict, text in items:
            declaration = verdict.declaration

            if verdict.verdict == Verdict.GENERATE:
                start = declaration.header.start_byte
                line_start = _line_start(data, start)
                prefix = data[line_start:start]
                indent = _leading_whitespace(prefix)
                newline = _line_break(data, start)
                comment = format_doc_comment(text, indent, newline)
                if prefix.strip():
                    # Other code shares the line: break it so the comment sits right before the header
                    edit = TextEdit(
                        start=start,
                        end=start,
                        replacement=f"{comment}{newline}{indent}",
                        label=declaration.qualified_name,
                    )
                else:
                    edit = TextEdit(
                        start=line_start,
                        end=line_start,
                        replacement=f"{indent}{comment}{newline}",
                        label=declaration.qualified_name,
                    )
                edits.append(edit)
            elif verdict.verdict == Verdict.REGENERATE:
                doc_range = declaration.doc.range
                line_start = _line_start(data, doc_range.start_byte)
                indent = _leading_whitespace(data[line_start:doc_range.start_byte])
                newline = _line_break(data, doc_range.start_byte)
                edits.append(TextEdit(
                    start=doc_range.start_byte,
                    end=doc_range.end_byte,
                    replacement=format_doc_comment(text, indent, newline),
                    label=declaration.qualified_name,
                ))
            elif verdict.verdict == Verdict.SKIP:
                continue
            else:
                raise ValueError(f"Unhandled verdict: {verdict.verdict}")

        return Patch(relative_path=source.relative_path, edits=edits)

    def apply(self, source: SourceFile, patch: Patch) -> SourceFile:
        """Apply a patch and return the new source file value.

        Args:
            source: Original source file
            patch: Patch built against ``source``

        Returns:
            ``source`` itself when the patch is empty, otherwise a new SourceFile

        Raises:
            PatchConflictError: If the patch edits overlap or are out of bounds
        """
        if not patch.edits:
            return source

        new_data = apply_edits(source.data, patch.edits)
        logger.debug(f"Applied {len(patch.edits)} edits to {source.relative_path}")
        return source.with_text(new_data.decode("utf-8"))

    @staticmethod
    def diff(old: SourceFile, new: SourceFile) -> str:
        """Unified diff between two versions of a file.

        Args:
            old: Original file
            new: Patched file

        Returns:
            Diff string
        """
        diff = difflib.unified_diff(
            old.text.splitlines(keepends=True),
            new.text.splitlines(keepends=True),
            fromfile=f"a/{old.relative_path}",
            tofile=f"b/{new.relative_path}",
        )
        return "".join(diff)


def _line_start(data: bytes, offset: int) -> int:
    return data.rfind(b"\n", 0, offset) + 1


def _leading_whitespace(prefix: bytes) -> str:
    text = prefix.decode("utf-8")
    return text[:len(text) - len(text.lstrip(" \t"))]


def _line_break(data: bytes, offset: int) -> str:
    end = data.find(b"\n", offset)
    if end > 0 and data[end - 1:end] == b"\r":
        return "\r\n"
    if end == -1 and b"\r\n" in data:
        return "\r\n"
    return "\n"
