"""GitHub REST integration: pull request changes, commits and PR creation."""

import base64
import os
import re
import sys
from typing import Any, Dict, Iterable, List, Optional

import httpx

from autodoc.errors import ConfigurationError, GitHubError
from autodoc.models import ChangeSet, ChangeStatus, FileChange, LineRange, RepositoryConfig
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)

_HUNK_HEADER = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")

_STATUS_MAP = {
    "added": ChangeStatus.ADDED,
    "modified": ChangeStatus.MODIFIED,
    "removed": ChangeStatus.REMOVED,
    "renamed": ChangeStatus.RENAMED,
}

WHOLE_FILE = LineRange(start=1, end=sys.maxsize)

PAGE_SIZE = 100


def parse_patch_ranges(patch: str) -> List[LineRange]:
    """Changed line ranges on the new side of a unified diff.

    Added lines count as changed. A removal marks the new-side line at the
    point of deletion, so edits that only delete code still touch the
    surrounding declaration.

    Args:
        patch: Unified diff hunks as returned by the pull request files API

    Returns:
        Sorted, merged line ranges
    """
    changed: List[int] = []
    new_line = 0
    in_hunk = False

    for line in patch.splitlines():
        header = _HUNK_HEADER.match(line)
        if header:
            new_line = int(header.group(1))
            in_hunk = True
            continue
        if not in_hunk or line.startswith("\\"):
            continue

        if line.startswith("+"):
            changed.append(new_line)
            new_line += 1
        elif line.startswith("-"):
            changed.append(max(new_line, 1))
        else:
            new_line += 1

    return merge_lines(changed)


def merge_lines(lines: Iterable[int]) -> List[LineRange]:
    """Collapse line numbers into contiguous ranges."""
    ranges: List[LineRange] = []
    for line in sorted(set(lines)):
        if ranges and line == ranges[-1].end + 1:
            ranges[-1] = LineRange(start=ranges[-1].start, end=line)
        else:
            ranges.append(LineRange(start=line, end=line))
    return ranges


class GitHubClient:
    """Thin client over the GitHub REST API for one repository."""

    def __init__(self, repository: RepositoryConfig, http_client: Optional[httpx.Client] = None):
        """Initialize GitHub client.

        Args:
            repository: Repository coordinates and optional token
            http_client: Optional preconfigured httpx client

        Raises:
            ConfigurationError: If no access token is available
        """
        self.repository = repository
        token = repository.token or os.getenv("GITHUB_ACCESS_TOKEN")
        if not token:
            raise ConfigurationError("GITHUB_ACCESS_TOKEN is not set")

        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self._http = http_client or httpx.Client(base_url=repository.api_url, timeout=30.0)

    def close(self) -> None:
        self._http.close()

    def _repo(self, path: str) -> str:
        return f"/repos/{self.repository.owner}/{self.repository.name}{path}"

    def _request(self, method: str, url: str, allowed: Iterable[int] = (), **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise GitHubError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400 and response.status_code not in allowed:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise GitHubError(f"{method} {url} failed ({response.status_code}): {message}", response.status_code)
        return response

    # ------------------------------------------------------------------
    # Change source

    def get_pull_request_changes(self, pull_number: int) -> ChangeSet:
        """Changed files and line ranges of a pull request.

        Removed files are dropped. Renamed files without a diff contribute
        no changed lines.

        Args:
            pull_number: Pull request number

        Returns:
            Change set keyed by repository-relative path
        """
        files: Dict[str, FileChange] = {}
        page = 1

        while True:
            response = self._request(
                "GET",
                self._repo(f"/pulls/{pull_number}/files"),
                params={"per_page": PAGE_SIZE, "page": page},
            )
            batch = response.json()

            for item in batch:
                status = _STATUS_MAP.get(item.get("status"), ChangeStatus.MODIFIED)
                if status == ChangeStatus.REMOVED:
                    continue

                patch = item.get("patch")
                if patch is not None:
                    ranges = parse_patch_ranges(patch)
                elif status in (ChangeStatus.ADDED, ChangeStatus.MODIFIED):
                    ranges = [WHOLE_FILE]  # diff too large for the API
                else:
                    ranges = []

                files[item["filename"]] = FileChange(
                    path=item["filename"],
                    status=status,
                    ranges=ranges,
                    previous_path=item.get("previous_filename"),
                )

            if len(batch) < PAGE_SIZE:
                break
            page += 1

        logger.info(f"Pull request #{pull_number} changes {len(files)} files")
        return ChangeSet(files=files)

    # ------------------------------------------------------------------
    # Commit / PR sink

    def create_branch(self, branch_name: str, base_branch: str) -> None:
        """Create ``branch_name`` from the head of ``base_branch``.

        An existing branch of the same name is reused.
        """
        ref = self._request("GET", self._repo(f"/git/ref/heads/{base_branch}")).json()
        response = self._request(
            "POST",
            self._repo("/git/refs"),
            allowed=(422,),
            json={"ref": f"refs/heads/{branch_name}", "sha": ref["object"]["sha"]},
        )
        if response.status_code == 422:
            logger.info(f"Branch {branch_name} already exists, reusing it")
        else:
            logger.info(f"Created branch {branch_name} from {base_branch}")

    def commit_file(self, branch_name: str, file_path: str, content: str, message: str) -> None:
        """Create or update one file on a branch."""
        posix_path = file_path.replace("\\", "/")
        existing = self._request(
            "GET",
            self._repo(f"/contents/{posix_path}"),
            allowed=(404,),
            params={"ref": branch_name},
        )

        payload: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch_name,
        }
        if existing.status_code == 404:
            logger.debug(f"{posix_path} does not exist on {branch_name}, creating it")
        else:
            payload["sha"] = existing.json()["sha"]

        self._request("PUT", self._repo(f"/contents/{posix_path}"), json=payload)
        logger.debug(f"Committed {posix_path} to {branch_name}")

    def create_pull_request(
        self,
        title: str,
        body: str,
        head: str,
        base: str,
        labels: Optional[List[str]] = None,
        reviewers: Optional[List[str]] = None,
    ) -> int:
        """Open a pull request unless one is already open for ``head``.

        Returns:
            Number of the new or existing pull request
        """
        existing = self._request(
            "GET",
            self._repo("/pulls"),
            params={"head": f"{self.repository.owner}:{head}", "state": "open"},
        ).json()
        if existing:
            number = existing[0]["number"]
            logger.info(f"Pull request already exists for branch {head}: #{number}")
            return number

        pr = self._request(
            "POST",
            self._repo("/pulls"),
            json={"title": title, "body": body, "head": head, "base": base},
        ).json()
        number = pr["number"]
        logger.info(f"Created pull request #{number}")

        if labels:
            self._request("POST", self._repo(f"/issues/{number}/labels"), json={"labels": labels})

        if reviewers:
            author = self._request("GET", "/user").json().get("login")
            requested = [r.strip() for r in reviewers if r.strip() and r.strip() != author]
            if requested:
                self._request(
                    "POST",
                    self._repo(f"/pulls/{number}/requested_reviewers"),
                    json={"reviewers": requested},
                )
                logger.info(f"Requested review from: {', '.join(requested)}")

        return number
