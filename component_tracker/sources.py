"""Read and write component source files confined to a repository root."""

from pathlib import Path

from .errors import PathTraversalError, RootPathError
from .tracker_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.SERVER)


def resolve_within_root(root: Path | str, relative_path: str) -> Path:
    """Resolve a relative path, requiring it to land strictly inside the root.

    Args:
        root: Repository root directory.
        relative_path: Path relative to the root.

    Returns:
        The absolute resolved path.

    Raises:
        PathTraversalError: If the path is empty, absolute, the root itself,
            or resolves outside the root (including through symlinks).
    """
    if not relative_path or Path(relative_path).is_absolute():
        raise PathTraversalError(str(relative_path))

    root_path = Path(root).expanduser().resolve()
    target = (root_path / relative_path).resolve()

    if target == root_path or not target.is_relative_to(root_path):
        raise PathTraversalError(relative_path)
    return target


def _require_root(root: Path | str) -> None:
    root_path = Path(root).expanduser()
    if not root_path.is_dir():
        raise RootPathError(str(root_path))


def read_source(root: Path | str, relative_path: str) -> str:
    """Return the text of a file inside a repository.

    Raises:
        RootPathError: If the root is not a directory.
        PathTraversalError: If the path escapes the root.
        FileNotFoundError: If the file does not exist.
    """
    _require_root(root)
    target = resolve_within_root(root, relative_path)
    return target.read_text(encoding="utf-8")


def write_source(root: Path | str, relative_path: str, content: str) -> None:
    """Overwrite a file inside a repository in place.

    Raises:
        RootPathError: If the root is not a directory.
        PathTraversalError: If the path escapes the root.
    """
    _require_root(root)
    target = resolve_within_root(root, relative_path)
    target.write_text(content, encoding="utf-8")
    logger.info(f"Wrote {len(content)} characters to {relative_path}")
