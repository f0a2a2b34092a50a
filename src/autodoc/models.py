"""Core data models for autodoc."""

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class DeclarationKind(str, Enum):
    """Kind of documentable declaration."""
    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"
    INTERFACE = "interface"
    TYPE_ALIAS = "type"
    CONST = "const"


class Verdict(str, Enum):
    """Coverage decision for a single declaration."""
    SKIP = "skip"
    GENERATE = "generate"
    REGENERATE = "regenerate"


class AnalysisMode(str, Enum):
    """Scope of the coverage analysis."""
    FULL_SCAN = "full-scan"
    INCREMENTAL = "incremental"


class ChangeStatus(str, Enum):
    """Status of a file in a pull request."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


class FileOutcome(str, Enum):
    """Per-file result of a pipeline run."""
    UNCHANGED = "unchanged"
    PATCHED = "patched"
    FAILED = "failed"


class GenerationErrorKind(str, Enum):
    """Why a generation request gave up."""
    RETRIES_EXHAUSTED = "retries_exhausted"
    INVALID_OUTPUT = "invalid_output"
    BACKEND_ERROR = "backend_error"
    CANCELLED = "cancelled"


class OutputMode(str, Enum):
    """Where the results of a run go."""
    DRY_RUN = "dry-run"
    DISK = "disk"
    PULL_REQUEST = "pull-request"


class SourceRange(BaseModel):
    """Byte range plus 1-based inclusive line span."""
    model_config = ConfigDict(frozen=True)

    start_byte: int
    end_byte: int
    start_line: int
    end_line: int

    def intersects_lines(self, start: int, end: int) -> bool:
        return self.start_line <= end and start <= self.end_line


class SourceFile(BaseModel):
    """A loaded source file. Never mutated; patching yields a new value."""
    model_config = ConfigDict(frozen=True)

    path: Path
    relative_path: str
    text: str

    @property
    def data(self) -> bytes:
        return self.text.encode("utf-8")

    def with_text(self, text: str) -> "SourceFile":
        return SourceFile(path=self.path, relative_path=self.relative_path, text=text)


class DocComment(BaseModel):
    """An existing documentation comment attached to a declaration."""
    model_config = ConfigDict(frozen=True)

    range: SourceRange
    text: str


class Parameter(BaseModel):
    """A declared parameter."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: Optional[str] = None


class Declaration(BaseModel):
    """A documentable declaration extracted from one source file."""
    model_config = ConfigDict(frozen=True)

    kind: DeclarationKind
    name: str
    qualified_name: str
    file_path: str  # relative path of the owning SourceFile
    signature: str
    header: SourceRange
    full: SourceRange  # header plus body
    doc: Optional[DocComment] = None
    exported: bool = False
    parameters: List[Parameter] = Field(default_factory=list)
    return_type: Optional[str] = None

    @property
    def is_documented(self) -> bool:
        return self.doc is not None


class LineRange(BaseModel):
    """Changed lines on the new side of a diff (1-based, inclusive)."""
    model_config = ConfigDict(frozen=True)

    start: int
    end: int


class FileChange(BaseModel):
    """One file of a pull request."""
    path: str
    status: ChangeStatus
    ranges: List[LineRange] = Field(default_factory=list)
    previous_path: Optional[str] = None


class ChangeSet(BaseModel):
    """Changed line ranges per file, keyed by repository-relative path."""
    files: Dict[str, FileChange] = Field(default_factory=dict)

    def contains(self, path: str) -> bool:
        return path in self.files

    def ranges_for(self, path: str) -> List[LineRange]:
        change = self.files.get(path)
        return list(change.ranges) if change else []


class CoverageVerdict(BaseModel):
    """Decision for one declaration and the reason behind it."""
    model_config = ConfigDict(frozen=True)

    declaration: Declaration
    verdict: Verdict
    reason: str


class GenerationRequest(BaseModel):
    """Input for one generation call."""
    model_config = ConfigDict(frozen=True)

    verdict: CoverageVerdict
    context: str

    @property
    def declaration(self) -> Declaration:
        return self.verdict.declaration


class GenerationSuccess(BaseModel):
    """Generated documentation text for a declaration."""
    declaration: Declaration
    text: str
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True


class GenerationFailure(BaseModel):
    """A declaration the client gave up on."""
    declaration: Declaration
    error_kind: GenerationErrorKind
    attempts: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return False


GenerationResult = Union[GenerationSuccess, GenerationFailure]


class TextEdit(BaseModel):
    """Replace original bytes [start, end) with replacement."""
    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    replacement: str
    label: str = ""


class Patch(BaseModel):
    """All edits for one source file, computed against its original text."""
    relative_path: str
    edits: List[TextEdit] = Field(default_factory=list)


class FileResult(BaseModel):
    """What happened to one file during a run."""
    relative_path: str
    outcome: FileOutcome
    reason: Optional[str] = None
    new_text: Optional[str] = None
    diff: Optional[str] = None
    documented: List[str] = Field(default_factory=list)
    failed_declarations: Dict[str, str] = Field(default_factory=dict)


class PipelineRun(BaseModel):
    """Aggregated report of one pipeline run."""
    mode: AnalysisMode
    output: OutputMode
    files: List[FileResult] = Field(default_factory=list)
    verdicts: List[CoverageVerdict] = Field(default_factory=list)
    extra_files: Dict[str, str] = Field(default_factory=dict)
    pull_request_number: Optional[int] = None
    publish_errors: List[str] = Field(default_factory=list)

    def _count(self, verdict: Verdict) -> int:
        return sum(1 for v in self.verdicts if v.verdict == verdict)

    @property
    def generated(self) -> int:
        return self._count(Verdict.GENERATE)

    @property
    def regenerated(self) -> int:
        return self._count(Verdict.REGENERATE)

    @property
    def skipped(self) -> int:
        return self._count(Verdict.SKIP)

    @property
    def patched_files(self) -> List[FileResult]:
        return [f for f in self.files if f.outcome == FileOutcome.PATCHED]

    @property
    def failed_files(self) -> List[FileResult]:
        return [f for f in self.files if f.outcome == FileOutcome.FAILED]

    @property
    def failed_declarations(self) -> Dict[str, str]:
        failures: Dict[str, str] = {}
        for result in self.files:
            for name, reason in result.failed_declarations.items():
                failures[f"{result.relative_path}:{name}"] = reason
        return failures

    def summary(self) -> Dict[str, int]:
        return {
            "generated": self.generated,
            "regenerated": self.regenerated,
            "skipped": self.skipped,
            "patched_files": len(self.patched_files),
            "failed_files": len(self.failed_files),
            "failed_declarations": len(self.failed_declarations),
        }


class RepositoryConfig(BaseModel):
    """GitHub repository coordinates."""
    owner: str
    name: str
    token: Optional[str] = None
    api_url: str = "https://api.github.com"


class GenerationConfig(BaseModel):
    """Configuration for documentation generation."""
    api_key: Optional[str] = None
    model: str = "claude-3-5-sonnet-20241022"
    temperature: float = 0.2
    max_tokens: int = 1024
    max_concurrency: int = Field(default=5, ge=1)
    max_attempts: int = Field(default=4, ge=1)
    backoff_initial: float = Field(default=1.0, ge=0)
    backoff_max: float = Field(default=30.0, ge=0)
    context_lines: int = Field(default=20, ge=0)
    context_chars: int = Field(default=4000, ge=200)
    timeout_seconds: Optional[float] = None


class AutodocConfig(BaseModel):
    """Configuration value passed into the pipeline."""
    root_path: Path
    root_directory: str = "."  # relative to the repository root
    excluded_directories: List[str] = Field(default_factory=lambda: [
        "node_modules",
        "dist",
        "build",
        ".git",
        "coverage",
    ])
    excluded_files: List[str] = Field(default_factory=list)
    excluded_file_patterns: List[str] = Field(default_factory=lambda: ["*.d.ts"])
    generate_code_comments: bool = True
    generate_summary_doc: bool = False
    summary_path: str = "docs/AUTODOC_SUMMARY.md"
    pull_number: Optional[int] = None
    output: OutputMode = OutputMode.DRY_RUN
    branch: str = "main"
    reviewers: List[str] = Field(default_factory=list)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    repository: Optional[RepositoryConfig] = None

    @property
    def mode(self) -> AnalysisMode:
        if self.pull_number is not None:
            return AnalysisMode.INCREMENTAL
        return AnalysisMode.FULL_SCAN

    @property
    def scan_root(self) -> Path:
        return (self.root_path / self.root_directory).resolve()
