"""Directory traversal with exclusion rules."""

import os
from pathlib import Path
from typing import Iterable, Iterator, Optional, Set

from autodoc.errors import RootDirectoryError
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)

SOURCE_EXTENSIONS: Set[str] = {'.ts', '.tsx', '.mts', '.cts', '.js', '.jsx', '.mjs', '.cjs'}


def iter_source_files(
    root: Path,
    excluded_directories: Iterable[str] = (),
    excluded_files: Iterable[str] = (),
    extensions: Optional[Set[str]] = None,
) -> Iterator[Path]:
    """Lazily yield source files under root.

    Excluded directory names are matched exactly against each path segment,
    so an excluded directory prunes its whole subtree. Excluded file names are
    matched exactly against the basename. Symlinked directories are not
    followed.

    Args:
        root: Directory to walk
        excluded_directories: Directory names to prune
        excluded_files: File names to skip
        extensions: Recognised source suffixes (defaults to SOURCE_EXTENSIONS)

    Yields:
        Absolute file paths, sorted within each directory

    Raises:
        RootDirectoryError: If root is missing or unreadable
    """
    root = Path(root).resolve()
    if not root.is_dir():
        raise RootDirectoryError(f"Root directory does not exist: {root}")
    try:
        os.listdir(root)
    except OSError as e:
        raise RootDirectoryError(f"Cannot read root directory {root}: {e}") from e

    skip_dirs = set(excluded_directories)
    skip_files = set(excluded_files)
    suffixes = SOURCE_EXTENSIONS if extensions is None else extensions

    def _on_error(error: OSError) -> None:
        logger.warning(f"Skipping unreadable directory {error.filename}: {error.strerror}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error, followlinks=False):
        # Prune in place so excluded subtrees are never visited
        dirnames[:] = sorted(d for d in dirnames if d not in skip_dirs)

        for filename in sorted(filenames):
            if filename in skip_files:
                continue
            path = Path(dirpath) / filename
            if path.suffix not in suffixes:
                continue
            yield path
