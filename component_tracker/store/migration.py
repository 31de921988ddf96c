"""Versioned upgrade of persisted tracker state.

The persisted blob carries a ``version`` number. Blobs written before
versioning existed are version 1. ``migrate_state`` applies each upgrade
step in order, exactly once, until the blob reaches ``STATE_VERSION``.
Every step is idempotent, so migrating an already-current blob is a no-op.
"""

import copy
from collections.abc import Callable
from typing import Any

from ..identifiers import derive_repository_id, ensure_namespaced, local_part
from ..tracker_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.STORE)

STATE_VERSION = 2


def empty_state() -> dict[str, Any]:
    """A blob with no repositories at the current version."""
    return {"version": STATE_VERSION, "repositories": [], "componentLibraries": []}


def derive_source_path(local_id: str, component_name: str) -> str | None:
    """Recover the relative source path from an extractor-style local id.

    Local ids are ``{path}-{Name}``. When the name suffix is absent the
    path is taken up to the last dash.
    """
    suffix = f"-{component_name}"
    if component_name and local_id.endswith(suffix):
        return local_id[: -len(suffix)] or None
    last_dash = local_id.rfind("-")
    if last_dash > 0:
        return local_id[:last_dash]
    return None


def _entries(value: Any) -> list[tuple[str, dict[str, Any]]]:
    """Read a ``[[id, record], ...]`` list, dropping malformed entries."""
    entries = []
    for item in value or []:
        if (
            isinstance(item, (list, tuple))
            and len(item) == 2
            and isinstance(item[0], str)
            and isinstance(item[1], dict)
        ):
            entries.append((item[0], item[1]))
        else:
            logger.warning(f"Dropping malformed state entry: {item!r}")
    return entries


def _migrate_component(
    component: dict[str, Any], repo_id: str, is_local: bool
) -> dict[str, Any]:
    component_id = ensure_namespaced(component["id"], repo_id)
    migrated = dict(component)
    migrated["id"] = component_id
    migrated["repositoryId"] = (
        component.get("repositoryId") or derive_repository_id(component_id) or repo_id
    )
    if is_local and not component.get("sourcePath"):
        source_path = derive_source_path(
            local_part(component_id, repo_id), component.get("name") or ""
        )
        if source_path:
            migrated["sourcePath"] = source_path

    variants = []
    for variant in component.get("variants") or []:
        if not isinstance(variant, dict) or not isinstance(variant.get("id"), str):
            continue
        variants.append({**variant, "id": ensure_namespaced(variant["id"], repo_id)})
    migrated["variants"] = variants
    return migrated


def migrate_v1_to_v2(state: dict[str, Any]) -> dict[str, Any]:
    """Repair namespacing and denormalized fields of unversioned state.

    - Drops libraries whose repository no longer exists.
    - Prefixes component and variant ids with ``repositoryId:``.
    - Back-fills ``repositoryId`` and, for local repositories, ``sourcePath``.
    - Refreshes each library's repository snapshot.
    """
    repositories = _entries(state.get("repositories"))
    repo_map = dict(repositories)

    libraries = []
    for repo_id, library in _entries(state.get("componentLibraries")):
        repository = repo_map.get(repo_id)
        if repository is None:
            logger.info(f"Dropping orphaned component library for {repo_id}")
            continue

        is_local = repository.get("type", "local") == "local"
        components = []
        for component in library.get("components") or []:
            if not isinstance(component, dict) or not isinstance(component.get("id"), str):
                continue
            components.append(_migrate_component(component, repo_id, is_local))

        libraries.append(
            [repo_id, {**library, "repository": repository, "components": components}]
        )

    return {
        **state,
        "version": 2,
        "repositories": [[repo_id, repo] for repo_id, repo in repositories],
        "componentLibraries": libraries,
    }


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    1: migrate_v1_to_v2,
}


def state_version(state: dict[str, Any]) -> int:
    version = state.get("version", 1)
    return version if isinstance(version, int) and version >= 1 else 1


def migrate_state(state: Any) -> dict[str, Any]:
    """Upgrade a persisted blob to ``STATE_VERSION``.

    Args:
        state: Decoded blob, or None when nothing was stored.

    Returns:
        A new blob at the current version; the input is not modified.
    """
    if state is None:
        return empty_state()
    if not isinstance(state, dict):
        logger.warning("Ignoring persisted state that is not a JSON object")
        return empty_state()

    migrated = copy.deepcopy(state)
    version = state_version(migrated)
    if version > STATE_VERSION:
        logger.warning(
            f"Persisted state version {version} is newer than supported {STATE_VERSION}"
        )
        return migrated

    while version < STATE_VERSION:
        logger.info(f"Migrating persisted state from version {version} to {version + 1}")
        migrated = MIGRATIONS[version](migrated)
        version += 1

    return migrated
