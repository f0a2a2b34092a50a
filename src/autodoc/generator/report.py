"""Markdown rendering for run reports, PR bodies and the summary document."""

from pathlib import Path
from typing import Dict, List, Tuple

from autodoc.models import Declaration, FileOutcome, PipelineRun
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)


def render_summary_document(entries: Dict[str, List[Tuple[Declaration, str]]]) -> str:
    """Overview of every documented declaration, grouped by file.

    Args:
        entries: Relative path -> (declaration, documentation text) in document order

    Returns:
        Markdown text
    """
    total = sum(len(items) for items in entries.values())
    lines = [
        "# API Summary",
        "",
        f"{total} documented declarations across {len(entries)} files.",
        "",
    ]

    for path in sorted(entries):
        lines.append(f"## `{path}`")
        lines.append("")
        lines.append("| Declaration | Kind | Exported | Description |")
        lines.append("| --- | --- | --- | --- |")
        for declaration, text in entries[path]:
            first_line = text.strip().splitlines()[0] if text.strip() else ""
            first_line = first_line.replace("|", "\\|")
            exported = "yes" if declaration.exported else "no"
            lines.append(
                f"| `{declaration.qualified_name}` | {declaration.kind.value} | {exported} | {first_line} |"
            )
        lines.append("")

    return "\n".join(lines)


def render_pull_request_body(run: PipelineRun) -> str:
    """Pull request description listing the documented declarations."""
    summary = run.summary()
    lines = [
        "This pull request adds JSDoc documentation generated by autodoc.",
        "",
        f"- Generated: {summary['generated']}",
        f"- Regenerated: {summary['regenerated']}",
        f"- Files changed: {summary['patched_files']}",
        "",
        "### Modified files",
        "",
    ]
    for result in run.patched_files:
        lines.append(f"- `{result.relative_path}`")
        for name in result.documented:
            lines.append(f"  - `{name}`")

    for path in sorted(run.extra_files):
        lines.append(f"- `{path}`")

    if run.failed_declarations:
        lines.extend(["", "### Not documented", ""])
        for name, reason in run.failed_declarations.items():
            lines.append(f"- `{name}`: {reason}")

    return "\n".join(lines)


def export_report(run: PipelineRun, output_path: Path) -> None:
    """Export a run report to a markdown file for review.

    Args:
        run: Completed pipeline run
        output_path: Path to export file
    """
    logger.info(f"Exporting report to {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    summary = run.summary()

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write("# Documentation Report\n\n")
        f.write(f"**Mode:** {run.mode.value}\n")
        f.write(f"**Output:** {run.output.value}\n\n")
        for key, value in summary.items():
            f.write(f"- {key.replace('_', ' ')}: {value}\n")
        f.write("\n")

        if run.publish_errors:
            f.write("## Publishing errors\n\n")
            for error in run.publish_errors:
                f.write(f"- {error}\n")
            f.write("\n")

        for result in run.files:
            if result.outcome == FileOutcome.UNCHANGED and not result.failed_declarations:
                continue

            f.write(f"## {result.relative_path}\n\n")
            f.write(f"**Outcome:** {result.outcome.value}\n")
            if result.reason:
                f.write(f"**Reason:** {result.reason}\n")
            f.write("\n")

            for name, reason in result.failed_declarations.items():
                f.write(f"- `{name}` failed: {reason}\n")
            if result.failed_declarations:
                f.write("\n")

            if result.diff:
                f.write("```diff\n")
                f.write(result.diff)
                if not result.diff.endswith("\n"):
                    f.write("\n")
                f.write("```\n\n")

    logger.info("Export complete")
