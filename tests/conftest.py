"""Shared fixtures for autodoc tests."""

import re
from pathlib import Path
from typing import Callable, Dict

import pytest

from autodoc.models import (
    CoverageVerdict,
    Declaration,
    DeclarationKind,
    DocComment,
    GenerationConfig,
    GenerationRequest,
    SourceRange,
    Verdict,
)

_NAME_LINE = re.compile(r"^- Name: (.+)$", re.MULTILINE)


class StubBackend:
    """Deterministic generation backend.

    Answers are looked up by qualified name. An answer may be a string, an
    exception instance to raise, or a callable taking the 1-based call number
    for that name and returning either.
    """

    def __init__(self, answers: Dict[str, object] = None, default: str = "Documented by stub."):
        self.answers = answers or {}
        self.default = default
        self.prompts = []
        self.calls: Dict[str, int] = {}

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        name = _NAME_LINE.search(prompt).group(1)
        self.calls[name] = self.calls.get(name, 0) + 1

        answer = self.answers.get(name, self.default)
        if callable(answer):
            answer = answer(self.calls[name])
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def stub_backend():
    return StubBackend()


@pytest.fixture
def fast_generation_config():
    """Generation config without backoff delays."""
    return GenerationConfig(
        api_key="test-key",
        max_attempts=3,
        backoff_initial=0,
        backoff_max=0,
        max_concurrency=4,
    )


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write a dict of relative path -> text under tmp_path, byte for byte."""
    def _make(files: Dict[str, str]) -> Path:
        for relative_path, content in files.items():
            path = tmp_path / relative_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content.encode("utf-8"))
        return tmp_path
    return _make


@pytest.fixture
def make_declaration():
    """Build a declaration spanning the given 1-based lines."""
    def _make(
        name: str,
        start_line: int,
        end_line: int,
        documented: bool = False,
        file_path: str = "src/app.ts",
        kind: DeclarationKind = DeclarationKind.FUNCTION,
    ) -> Declaration:
        header = SourceRange(
            start_byte=start_line * 100,
            end_byte=start_line * 100 + 20,
            start_line=start_line,
            end_line=start_line,
        )
        full = SourceRange(
            start_byte=start_line * 100,
            end_byte=end_line * 100 + 20,
            start_line=start_line,
            end_line=end_line,
        )
        doc = None
        if documented:
            doc = DocComment(
                range=SourceRange(
                    start_byte=start_line * 100 - 60,
                    end_byte=start_line * 100 - 30,
                    start_line=max(start_line - 1, 1),
                    end_line=max(start_line - 1, 1),
                ),
                text=f"Existing documentation for {name}.",
            )
        return Declaration(
            kind=kind,
            name=name,
            qualified_name=name,
            file_path=file_path,
            signature=f"function {name}()",
            header=header,
            full=full,
            doc=doc,
            exported=True,
        )
    return _make


@pytest.fixture
def make_request(make_declaration):
    """Build a generation request for a fresh declaration."""
    def _make(name: str, verdict: Verdict = Verdict.GENERATE, documented: bool = False) -> GenerationRequest:
        declaration = make_declaration(name, 3, 5, documented=documented)
        return GenerationRequest(
            verdict=CoverageVerdict(declaration=declaration, verdict=verdict, reason="test"),
            context=f"function {name}() {{}}",
        )
    return _make
