"""Pipeline orchestration: traverse, extract, analyze, generate, patch, publish."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from autodoc.analyzer.coverage import CoverageAnalyzer
from autodoc.errors import (
    AutodocError,
    ConfigurationError,
    ParseError,
    PatchConflictError,
    SourceReadError,
)
from autodoc.explorer.base_analyzer import AnalyzerRegistry, BaseLanguageAnalyzer, default_registry
from autodoc.explorer.traversal import iter_source_files
from autodoc.generator.patch_writer import PatchWriter
from autodoc.generator.report import render_summary_document
from autodoc.generator.sinks import OutputSink
from autodoc.integrations.claude_client import DocGenerationClient
from autodoc.models import (
    AnalysisMode,
    AutodocConfig,
    ChangeSet,
    CoverageVerdict,
    Declaration,
    FileOutcome,
    FileResult,
    GenerationErrorKind,
    GenerationFailure,
    GenerationRequest,
    GenerationResult,
    OutputMode,
    PipelineRun,
    SourceFile,
    Verdict,
)
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)


class ChangeSource(Protocol):
    """Provides the changed line ranges of a pull request."""

    def get_pull_request_changes(self, pull_number: int) -> ChangeSet:
        ...


@dataclass
class _FileWork:
    """Per-file state owned by exactly one stage at a time."""
    source: SourceFile
    analyzer: BaseLanguageAnalyzer
    verdicts: List[CoverageVerdict]
    results: List[Tuple[CoverageVerdict, GenerationResult]] = field(default_factory=list)


class DocumentationPipeline:
    """Runs one documentation pass over a source tree.

    Failures scoped to a file or a declaration are recorded in the returned
    PipelineRun; only fatal errors (missing root, missing credentials) raise.
    """

    def __init__(
        self,
        config: AutodocConfig,
        client: Optional[DocGenerationClient] = None,
        change_source: Optional[ChangeSource] = None,
        sink: Optional[OutputSink] = None,
        registry: Optional[AnalyzerRegistry] = None,
    ):
        """Initialize pipeline.

        Args:
            config: Run configuration
            client: Generation client (required when generating comments)
            change_source: Pull request change source (required in incremental mode)
            sink: Output sink (required unless running dry)
            registry: Language analyzers (defaults to the built-in set)

        Raises:
            ConfigurationError: If a required collaborator is missing
        """
        if config.generate_code_comments and client is None:
            raise ConfigurationError("Generating code comments requires a generation client")
        if config.mode == AnalysisMode.INCREMENTAL and change_source is None:
            raise ConfigurationError("Pull request mode requires a change source")
        if config.output != OutputMode.DRY_RUN and sink is None:
            raise ConfigurationError(f"Output mode '{config.output.value}' requires a sink")

        self.config = config
        self.client = client
        self.change_source = change_source
        self.sink = sink
        self.registry = registry or default_registry()
        self.writer = PatchWriter()

    def run(
        self,
        pull_number: Optional[int] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> PipelineRun:
        """Synchronous wrapper for run_async."""
        return asyncio.run(self.run_async(pull_number, progress_callback))

    async def run_async(
        self,
        pull_number: Optional[int] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> PipelineRun:
        """Run the pipeline.

        Args:
            pull_number: Pull request to scope the run to (overrides the config)
            progress_callback: Called with (completed, total) generation requests

        Returns:
            Aggregated report of the run

        Raises:
            RootDirectoryError: If the scan root is missing or unreadable
            ConfigurationError: If pull request mode has no change source
        """
        config = self.config
        if pull_number is not None:
            config = config.model_copy(update={"pull_number": pull_number})
        mode = config.mode
        run = PipelineRun(mode=mode, output=config.output)

        change_set = None
        if mode == AnalysisMode.INCREMENTAL:
            if self.change_source is None:
                raise ConfigurationError("Pull request mode requires a change source")
            change_set = self.change_source.get_pull_request_changes(config.pull_number)

        coverage = CoverageAnalyzer(mode, change_set, config.excluded_file_patterns)
        logger.info(f"Scanning {config.scan_root} ({mode.value})")

        work = self._analyze_files(coverage, change_set, run)

        if config.generate_code_comments:
            await self._generate(work, progress_callback)
            for item in work:
                run.files.append(self._patch_file(item))
        else:
            for item in work:
                run.files.append(FileResult(relative_path=item.source.relative_path, outcome=FileOutcome.UNCHANGED))

        if config.generate_summary_doc:
            run.extra_files[config.summary_path] = render_summary_document(self._documented(work, run))

        if config.output != OutputMode.DRY_RUN:
            self._publish(run)

        summary = run.summary()
        logger.info(
            f"Run complete: {summary['generated']} generated, {summary['regenerated']} regenerated, "
            f"{summary['skipped']} skipped, {summary['patched_files']} files patched, "
            f"{summary['failed_files']} files failed"
        )
        return run

    def _root(self) -> Path:
        return self.config.root_path.resolve()

    def _analyze_files(
        self,
        coverage: CoverageAnalyzer,
        change_set: Optional[ChangeSet],
        run: PipelineRun,
    ) -> List[_FileWork]:
        """Load, parse and judge every candidate file, one at a time."""
        work: List[_FileWork] = []
        root = self._root()

        files = iter_source_files(
            self.config.scan_root,
            self.config.excluded_directories,
            self.config.excluded_files,
            self.registry.extensions,
        )

        for path in files:
            relative_path = path.relative_to(root).as_posix()
            in_scope = change_set is None or change_set.contains(relative_path)

            analyzer = self.registry.get_analyzer(path)
            if analyzer is None:
                continue

            try:
                source = _load(path, relative_path)
                declarations = analyzer.extract(source)
            except SourceReadError as e:
                if in_scope:
                    logger.warning(str(e))
                    run.files.append(_failed(relative_path, f"unreadable: {e.__cause__}"))
                else:
                    logger.debug(str(e))
                continue
            except ParseError as e:
                if in_scope:
                    logger.warning(f"Failed to analyze {relative_path}: {e}")
                    run.files.append(_failed(relative_path, str(e)))
                else:
                    logger.debug(f"Ignoring {relative_path} outside the change set: {e}")
                continue

            verdicts = coverage.analyze(declarations)
            run.verdicts.extend(verdicts)
            if not in_scope:
                # Outside the change set: verdicts only
                continue
            work.append(_FileWork(source=source, analyzer=analyzer, verdicts=verdicts))

        logger.info(f"Analyzed {len(work)} files, {len(run.verdicts)} declarations")
        return work

    async def _generate(
        self,
        work: List[_FileWork],
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> None:
        """Dispatch generation for all files through the client's worker pool."""
        gen = self.config.generation
        requests: List[GenerationRequest] = []
        owners: List[_FileWork] = []

        for item in work:
            for verdict in item.verdicts:
                if verdict.verdict == Verdict.SKIP:
                    continue
                context = item.analyzer.extract_context(
                    item.source, verdict.declaration, gen.context_lines, gen.context_chars
                )
                requests.append(GenerationRequest(verdict=verdict, context=context))
                owners.append(item)

        logger.info(f"Requesting documentation for {len(requests)} declarations")
        results = await self.client.generate_all(requests, gen.timeout_seconds, progress_callback)

        for request, owner, result in zip(requests, owners, results):
            owner.results.append((request.verdict, result))

    def _patch_file(self, item: _FileWork) -> FileResult:
        """Build and apply one file's patch; all or nothing."""
        source = item.source
        relative_path = source.relative_path

        if any(not r.ok and r.error_kind == GenerationErrorKind.CANCELLED for _, r in item.results):
            return FileResult(
                relative_path=relative_path,
                outcome=FileOutcome.UNCHANGED,
                reason="run aborted before generation finished",
            )

        successes = [(verdict, result.text) for verdict, result in item.results if result.ok]
        labels = _labels(item)
        failures = {
            labels[result.declaration.header.start_byte]: _failure_reason(result)
            for _, result in item.results
            if not result.ok
        }

        patch = self.writer.build_patch(source, successes)
        try:
            patched = self.writer.apply(source, patch)
        except PatchConflictError as e:
            logger.error(f"Refusing to patch {relative_path}: {e}")
            return FileResult(
                relative_path=relative_path,
                outcome=FileOutcome.FAILED,
                reason=f"patch conflict: {e}",
                failed_declarations=failures,
            )

        if patched.text == source.text:
            return FileResult(
                relative_path=relative_path,
                outcome=FileOutcome.UNCHANGED,
                failed_declarations=failures,
            )

        return FileResult(
            relative_path=relative_path,
            outcome=FileOutcome.PATCHED,
            new_text=patched.text,
            diff=self.writer.diff(source, patched),
            documented=[verdict.declaration.qualified_name for verdict, _ in successes],
            failed_declarations=failures,
        )

    def _documented(
        self,
        work: List[_FileWork],
        run: PipelineRun,
    ) -> Dict[str, List[Tuple[Declaration, str]]]:
        """Documentation text per declaration as it stands after this run."""
        patched = {r.relative_path for r in run.patched_files}
        entries: Dict[str, List[Tuple[Declaration, str]]] = {}

        for item in work:
            generated = {}
            if item.source.relative_path in patched:
                generated = {
                    verdict.declaration.header.start_byte: result.text
                    for verdict, result in item.results
                    if result.ok
                }

            rows = []
            for verdict in item.verdicts:
                declaration = verdict.declaration
                text = generated.get(declaration.header.start_byte)
                if text is None and declaration.doc is not None:
                    text = declaration.doc.text
                if text is not None:
                    rows.append((declaration, text))
            if rows:
                entries[item.source.relative_path] = rows

        return entries

    def _publish(self, run: PipelineRun) -> None:
        """Hand every patched file to the sink, one whole file at a time.

        Sink errors never escape: file writes fail the file, anything else is
        recorded in ``run.publish_errors``.
        """
        pending = run.patched_files
        if not pending and not run.extra_files:
            logger.info("Nothing to publish")
            return

        try:
            self.sink.begin(run)
        except (AutodocError, OSError) as e:
            logger.error(f"Failed to start publishing: {e}")
            run.publish_errors.append(f"begin failed: {e}")
            for result in pending:
                result.outcome = FileOutcome.FAILED
                result.reason = f"publish failed: {e}"
            return

        for result in pending:
            try:
                self.sink.write_file(result.relative_path, result.new_text)
            except (AutodocError, OSError) as e:
                logger.error(f"Failed to write {result.relative_path}: {e}")
                result.outcome = FileOutcome.FAILED
                result.reason = f"write failed: {e}"

        for path, text in run.extra_files.items():
            try:
                self.sink.write_file(path, text)
            except (AutodocError, OSError) as e:
                logger.error(f"Failed to write {path}: {e}")
                run.publish_errors.append(f"{path}: write failed: {e}")

        try:
            self.sink.finish(run)
        except (AutodocError, OSError) as e:
            logger.error(f"Failed to finish publishing: {e}")
            run.publish_errors.append(f"finish failed: {e}")


def _load(path: Path, relative_path: str) -> SourceFile:
    try:
        text = path.read_bytes().decode('utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise SourceReadError(f"Cannot read {relative_path}: {e}") from e
    return SourceFile(path=path, relative_path=relative_path, text=text)


def _labels(item: _FileWork) -> Dict[int, str]:
    """Report label per declaration; repeated names (accessor pairs) get their line."""
    names = [v.declaration.qualified_name for v in item.verdicts]
    labels: Dict[int, str] = {}
    for verdict in item.verdicts:
        declaration = verdict.declaration
        label = declaration.qualified_name
        if names.count(label) > 1:
            label = f"{label}@{declaration.header.start_line}"
        labels[declaration.header.start_byte] = label
    return labels


def _failed(relative_path: str, reason: str) -> FileResult:
    return FileResult(relative_path=relative_path, outcome=FileOutcome.FAILED, reason=reason)


def _failure_reason(failure: GenerationFailure) -> str:
    if failure.message:
        return f"{failure.error_kind.value}: {failure.message}"
    return failure.error_kind.value
