"""Destinations for patched files: local disk or a GitHub pull request."""

import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from autodoc.generator.report import render_pull_request_body
from autodoc.integrations.github_client import GitHubClient
from autodoc.models import PipelineRun
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)

PR_TITLE = "JSDoc documentation added"
PR_LABELS = ["documentation", "automated-pr"]


def commit_message(relative_path: str) -> str:
    return f"docs: add JSDoc documentation to {relative_path}"


class OutputSink(ABC):
    """Receives the full new text of each modified file."""

    def begin(self, run: PipelineRun) -> None:
        """Called once before the first file is written."""

    @abstractmethod
    def write_file(self, relative_path: str, text: str) -> None:
        """Persist one file. Either the whole text lands or nothing does."""

    def finish(self, run: PipelineRun) -> None:
        """Called once after all files are written."""


class DiskSink(OutputSink):
    """Writes files in place under the repository root."""

    def __init__(self, root_path: Path):
        self.root_path = Path(root_path)

    def write_file(self, relative_path: str, text: str) -> None:
        target = self.root_path / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)

        # Write beside the target, then swap, so a file is never half written
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(text.encode('utf-8'))
            if target.exists():
                os.chmod(tmp_name, target.stat().st_mode)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(f"Wrote {relative_path}")


class PullRequestSink(OutputSink):
    """Commits files to a fresh branch and opens a pull request."""

    def __init__(
        self,
        client: GitHubClient,
        base_branch: str,
        reviewers: Optional[List[str]] = None,
        labels: Optional[List[str]] = None,
        branch_name: Optional[str] = None,
    ):
        """Initialize pull request sink.

        Args:
            client: GitHub client for the target repository
            base_branch: Branch the pull request targets
            reviewers: GitHub usernames to request review from
            labels: Labels for the pull request
            branch_name: Branch to commit to (default ``autodocs-<timestamp>``)
        """
        self.client = client
        self.base_branch = base_branch
        self.reviewers = reviewers or []
        self.labels = PR_LABELS if labels is None else labels
        self.branch_name = branch_name or f"autodocs-{datetime.now(timezone.utc):%Y%m%d%H%M%S}"
        self._written: List[str] = []

    def begin(self, run: PipelineRun) -> None:
        self.client.create_branch(self.branch_name, self.base_branch)

    def write_file(self, relative_path: str, text: str) -> None:
        self.client.commit_file(self.branch_name, relative_path, text, commit_message(relative_path))
        self._written.append(relative_path)

    def finish(self, run: PipelineRun) -> None:
        if not self._written:
            logger.info("No files committed, skipping pull request")
            return

        run.pull_request_number = self.client.create_pull_request(
            title=PR_TITLE,
            body=render_pull_request_body(run),
            head=self.branch_name,
            base=self.base_branch,
            labels=self.labels,
            reviewers=self.reviewers,
        )
