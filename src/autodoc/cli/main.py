"""Command-line interface for autodoc."""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from autodoc import __version__
from autodoc.analyzer.coverage import CoverageAnalyzer
from autodoc.errors import AutodocError, ConfigurationError
from autodoc.generator.report import export_report
from autodoc.generator.sinks import DiskSink, OutputSink, PullRequestSink
from autodoc.integrations.claude_client import AnthropicBackend, DocGenerationClient
from autodoc.integrations.github_client import GitHubClient
from autodoc.models import AutodocConfig, FileOutcome, OutputMode, PipelineRun, Verdict
from autodoc.pipeline import DocumentationPipeline
from autodoc.utils.config_manager import ConfigManager
from autodoc.utils.logger import (
    console,
    create_progress,
    print_error,
    print_info,
    print_success,
    print_warning,
    set_verbose,
    setup_logger,
)

logger = setup_logger(__name__)


@click.group()
@click.version_option(version=__version__)
def main():
    """
    autodoc - keeps JSDoc comments in step with the code.

    Finds undocumented or stale declarations in a TypeScript/JavaScript
    tree and writes generated documentation back into the source.
    """
    pass


def _load_config(
    path: Path,
    config_file: Optional[str],
    overrides: dict,
    generation_overrides: Optional[dict] = None,
) -> AutodocConfig:
    manager = ConfigManager(Path(config_file) if config_file else None)
    if manager.config_path:
        logger.debug(f"Loaded config from {manager.config_path}")
    return manager.get_config(path, overrides, generation_overrides)


def _exclusions(exclude_dir: Tuple[str, ...], exclude_file: Tuple[str, ...]) -> dict:
    overrides = {}
    if exclude_dir:
        overrides["excluded_directories"] = list(exclude_dir)
    if exclude_file:
        overrides["excluded_files"] = list(exclude_file)
    return overrides


def _github_client(config: AutodocConfig) -> GitHubClient:
    if config.repository is None:
        raise ConfigurationError("GITHUB_REPOSITORY is not set (expected 'owner/name')")
    return GitHubClient(config.repository)


def _build_sink(config: AutodocConfig, github: Optional[GitHubClient]) -> Optional[OutputSink]:
    if config.output == OutputMode.DISK:
        return DiskSink(config.root_path)
    if config.output == OutputMode.PULL_REQUEST:
        return PullRequestSink(github, config.branch, config.reviewers)
    return None


@main.command()
@click.argument('path', type=click.Path(exists=True, file_okay=False, path_type=Path), default='.')
@click.option('--pull-number', type=int, help='Only document declarations touched by this pull request')
@click.option('--output', '-o', type=click.Choice([m.value for m in OutputMode]), help='Where results go (default: dry-run)')
@click.option('--exclude-dir', multiple=True, help='Directory name to skip (repeatable)')
@click.option('--exclude-file', multiple=True, help='File name to skip (repeatable)')
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False), help='Config file path')
@click.option('--concurrency', type=int, help='Maximum concurrent generation requests')
@click.option('--timeout', type=float, help='Abort generation after this many seconds')
@click.option('--no-comments', is_flag=True, help='Do not generate code comments')
@click.option('--summary', is_flag=True, help='Write the API summary document')
@click.option('--report', type=click.Path(dir_okay=False, path_type=Path), help='Export a markdown report')
@click.option('--verbose', '-v', is_flag=True, help='Verbose logging')
def run(
    path: Path,
    pull_number: Optional[int],
    output: Optional[str],
    exclude_dir: Tuple[str, ...],
    exclude_file: Tuple[str, ...],
    config_file: Optional[str],
    concurrency: Optional[int],
    timeout: Optional[float],
    no_comments: bool,
    summary: bool,
    report: Optional[Path],
    verbose: bool,
):
    """Document declarations under PATH (the repository root)."""
    set_verbose(verbose)

    overrides = _exclusions(exclude_dir, exclude_file)
    overrides.update({
        "pull_number": pull_number,
        "output": output,
        "generate_code_comments": False if no_comments else None,
        "generate_summary_doc": True if summary else None,
    })
    generation_overrides = {}
    if concurrency is not None:
        generation_overrides["max_concurrency"] = concurrency
    if timeout is not None:
        generation_overrides["timeout_seconds"] = timeout

    github = None
    try:
        config = _load_config(path, config_file, overrides, generation_overrides)

        console.print(Panel.fit(
            f"[bold cyan]autodoc {__version__}[/bold cyan]\n"
            f"{config.scan_root} ({config.mode.value}, {config.output.value})",
            border_style="cyan"
        ))

        client = None
        if config.generate_code_comments:
            client = DocGenerationClient(AnthropicBackend(config.generation), config.generation)

        if config.pull_number is not None or config.output == OutputMode.PULL_REQUEST:
            github = _github_client(config)

        pipeline = DocumentationPipeline(
            config,
            client=client,
            change_source=github,
            sink=_build_sink(config, github),
        )

        with create_progress() as progress:
            task = progress.add_task("[green]Generating documentation...", total=None)

            def on_progress(completed: int, total: int) -> None:
                progress.update(task, completed=completed, total=total)

            result = pipeline.run(progress_callback=on_progress)

    except AutodocError as e:
        print_error(str(e))
        sys.exit(1)
    finally:
        if github is not None:
            github.close()

    _display_run(result)

    if result.output == OutputMode.DRY_RUN:
        _display_diffs(result)

    if report:
        export_report(result, report)
        print_success(f"Report exported to {report}")


@main.command()
@click.argument('path', type=click.Path(exists=True, file_okay=False, path_type=Path), default='.')
@click.option('--exclude-dir', multiple=True, help='Directory name to skip (repeatable)')
@click.option('--exclude-file', multiple=True, help='File name to skip (repeatable)')
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False), help='Config file path')
@click.option('--verbose', '-v', is_flag=True, help='Verbose logging')
def scan(
    path: Path,
    exclude_dir: Tuple[str, ...],
    exclude_file: Tuple[str, ...],
    config_file: Optional[str],
    verbose: bool,
):
    """Report documentation coverage under PATH without generating anything."""
    set_verbose(verbose)

    overrides = _exclusions(exclude_dir, exclude_file)
    overrides.update({
        "generate_code_comments": False,
        "generate_summary_doc": False,
        "output": OutputMode.DRY_RUN,
    })

    try:
        config = _load_config(path, config_file, overrides)
        config = config.model_copy(update={"pull_number": None})
        result = DocumentationPipeline(config).run()
    except AutodocError as e:
        print_error(str(e))
        sys.exit(1)

    stats = CoverageAnalyzer.summarize(result.verdicts)

    table = Table(title="Documentation Coverage")
    table.add_column("Kind", style="cyan")
    table.add_column("Declarations", justify="right")
    for kind, count in stats["by_kind"].items():
        if count:
            table.add_row(kind, str(count))
    table.add_section()
    table.add_row("[bold]Total[/bold]", str(stats["total"]))
    table.add_row("Documented", str(stats["documented"]))
    table.add_row("Coverage", f"{stats['coverage']:.0%}")
    console.print(table)

    undocumented = [v.declaration for v in result.verdicts if v.verdict != Verdict.SKIP]
    if undocumented:
        print_warning(f"{len(undocumented)} declarations need documentation")
        for declaration in undocumented[:20]:
            console.print(f"  {declaration.file_path}:{declaration.header.start_line} {declaration.qualified_name}")
        if len(undocumented) > 20:
            console.print(f"  ... and {len(undocumented) - 20} more")
    else:
        print_success("All declarations are documented")

    _display_failed_files(result)


@main.command('init-config')
@click.argument('path', type=click.Path(dir_okay=False, path_type=Path), default='.autodoc.yaml')
def init_config(path: Path):
    """Create a default configuration file at PATH."""
    if path.exists():
        if not click.confirm(f"{path} already exists. Overwrite?"):
            return

    ConfigManager.create_default_config(path)
    print_success(f"Created configuration file at {path}")


def _display_run(result: PipelineRun) -> None:
    """Display a summary table for a finished run."""
    summary = result.summary()

    table = Table(title="Run Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Mode", result.mode.value)
    table.add_row("Output", result.output.value)
    table.add_row("Generated", str(summary["generated"]))
    table.add_row("Regenerated", str(summary["regenerated"]))
    table.add_row("Skipped", str(summary["skipped"]))
    table.add_row("Files patched", str(summary["patched_files"]))
    table.add_row("Files failed", str(summary["failed_files"]))
    if result.pull_request_number is not None:
        table.add_row("Pull request", f"#{result.pull_request_number}")
    console.print(table)

    _display_failed_files(result)

    for error in result.publish_errors:
        print_error(f"Publishing: {error}")

    failed = result.failed_declarations
    if failed:
        print_warning(f"{len(failed)} declarations could not be documented")
        for name, reason in failed.items():
            console.print(f"  {name}: {reason}")

    aborted = [r for r in result.files if r.outcome == FileOutcome.UNCHANGED and r.reason]
    for file_result in aborted:
        print_info(f"{file_result.relative_path} left unchanged: {file_result.reason}")


def _display_failed_files(result: PipelineRun) -> None:
    for file_result in result.failed_files:
        print_error(f"{file_result.relative_path}: {file_result.reason}")


def _display_diffs(result: PipelineRun) -> None:
    """Show the patches a dry run would have written."""
    patched = result.patched_files
    if not patched and not result.extra_files:
        print_info("No changes")
        return

    for file_result in patched:
        console.print(f"\n[bold]{file_result.relative_path}[/bold]")
        console.print(Syntax(file_result.diff, "diff", theme="monokai"))

    for path in sorted(result.extra_files):
        print_info(f"Would write {path}")


if __name__ == '__main__':
    main()
