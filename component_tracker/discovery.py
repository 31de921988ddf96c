"""Candidate source file discovery for repository scans.

Walks a repository root and returns the files that look like component
sources according to ``ScanOptions``: gitignore-style include and exclude
globs (evaluated with pathspec), an extension allow-list, a directory
depth limit and a per-file size cutoff.
"""

import json
import os
import threading
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pathspec

from .config import ScanOptions
from .errors import RootPathError, ScanCancelledError
from .tracker_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.SCANNER)


class CancelToken:
    """Thread-safe cancellation flag shared by a scan and its caller."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, repository_id: str | None = None) -> None:
        """Raise ScanCancelledError once cancellation was requested."""
        if self._event.is_set():
            raise ScanCancelledError(repository_id)


@dataclass
class DiscoveredFile:
    """A candidate component source file read from a repository."""

    path: str  # Relative POSIX path from the repository root
    name: str  # Base name without extension
    content: str
    extension: str
    size: int
    last_modified: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "name": self.name,
            "content": self.content,
            "extension": self.extension,
            "size": self.size,
            "lastModified": self.last_modified.isoformat(),
        }


def _build_spec(patterns: list[str]) -> pathspec.PathSpec | None:
    """Compile gitignore-style patterns, or None when there are none."""
    lines = [p.strip() for p in patterns if p and p.strip()]
    if not lines:
        return None
    return pathspec.PathSpec.from_lines(pathspec.patterns.GitWildMatchPattern, lines)


class FileDiscoverer:
    """Finds candidate component files below a repository root.

    A file is returned only if it matches an include pattern, matches no
    exclude pattern, has an allowed extension, sits at most ``max_depth``
    directories below the root and is no larger than ``max_file_bytes``.
    Hidden files and directories (leading dot) are never candidates.
    Hidden, excluded and too-deep directories are pruned during the walk, so
    they are never listed. Symlinks are not followed.
    """

    def __init__(self, options: ScanOptions | None = None):
        """Initialize the discoverer.

        Args:
            options: Scan filters. Defaults to ``ScanOptions()``.
        """
        self.options = options or ScanOptions()
        self._include = _build_spec(self.options.include_patterns)
        self._exclude = _build_spec(self.options.exclude_patterns)
        self._extensions = set(self.options.allowed_extensions)

    def discover(
        self,
        root: Path | str,
        cancel_token: CancelToken | None = None,
        repository_id: str | None = None,
    ) -> list[DiscoveredFile]:
        """Discover candidate files below a root directory.

        Args:
            root: Repository root directory.
            cancel_token: Optional token checked between files.
            repository_id: Repository being scanned, for log and error context.

        Returns:
            Discovered files in walk order (order is not guaranteed).

        Raises:
            RootPathError: If the root does not exist or is not a directory.
            ScanCancelledError: If the token is cancelled mid-walk.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise RootPathError(str(root_path))
        if not root_path.is_dir():
            raise RootPathError(str(root_path), reason="is not a directory")

        start = time.time()
        results: list[DiscoveredFile] = []

        for dirpath, dirnames, filenames in os.walk(root_path, followlinks=False):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(repository_id)

            rel_dir = Path(dirpath).relative_to(root_path).as_posix()
            dir_parts = [] if rel_dir == "." else rel_dir.split("/")

            # Prune in place so os.walk never descends
            dirnames[:] = [
                d for d in dirnames if self._should_descend(dir_parts + [d], dirpath)
            ]

            for filename in filenames:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled(repository_id)
                rel_path = "/".join(dir_parts + [filename])
                discovered = self._load_candidate(Path(dirpath) / filename, rel_path)
                if discovered is not None:
                    results.append(discovered)

        duration_ms = (time.time() - start) * 1000
        logger.debug(
            f"Discovered {len(results)} candidate files in {root_path}",
            extra={
                "repository_id": repository_id,
                "component_count": len(results),
                "duration_ms": round(duration_ms, 1),
            },
        )
        return results

    def _should_descend(self, parts: list[str], parent: str) -> bool:
        """Check whether a subdirectory can contain acceptable files."""
        if parts[-1].startswith("."):
            return False
        if len(parts) > self.options.max_depth:
            return False
        if os.path.islink(os.path.join(parent, parts[-1])):
            return False
        if self._exclude is not None and self._exclude.match_file(
            "/".join(parts) + "/"
        ):
            return False
        return True

    def matches(self, rel_path: str) -> bool:
        """Apply the hidden, pattern, extension and depth filters to a relative path."""
        if any(part.startswith(".") for part in rel_path.split("/")):
            return False
        depth = rel_path.count("/")
        if depth > self.options.max_depth:
            return False
        extension = os.path.splitext(rel_path)[1]
        if extension.lower() not in self._extensions:
            return False
        if self._include is None or not self._include.match_file(rel_path):
            return False
        if self._exclude is not None and self._exclude.match_file(rel_path):
            return False
        return True

    def _load_candidate(self, abs_path: Path, rel_path: str) -> DiscoveredFile | None:
        """Stat and read one file, or None when it is filtered or unreadable."""
        if not self.matches(rel_path):
            return None

        try:
            if abs_path.is_symlink():
                return None
            stat = abs_path.stat()
            if not abs_path.is_file():
                return None
            if stat.st_size > self.options.max_file_bytes:
                logger.debug(f"Skipping oversized file {rel_path} ({stat.st_size} bytes)")
                return None
            content = abs_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping unreadable file {rel_path}: {e}")
            return None

        extension = os.path.splitext(rel_path)[1]
        return DiscoveredFile(
            path=rel_path,
            name=Path(rel_path).stem,
            content=content,
            extension=extension,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, UTC),
        )


def probe_repository_info(root: Path | str) -> dict[str, Any]:
    """Best-effort repository name and description from ``package.json``.

    Falls back to the last path segment when the manifest is missing,
    unreadable or has no name.

    Args:
        root: Repository root directory.

    Returns:
        Dict with ``name`` and ``description`` (may be None).
    """
    root_path = Path(root).expanduser().resolve()
    fallback = {"name": root_path.name, "description": None}

    manifest = root_path / "package.json"
    try:
        with open(manifest, encoding="utf-8") as f:
            package = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"No usable package.json in {root_path}: {e}")
        return fallback

    if not isinstance(package, dict):
        return fallback

    description = package.get("description")
    return {
        "name": package.get("name") or root_path.name,
        "description": description if isinstance(description, str) else None,
    }
