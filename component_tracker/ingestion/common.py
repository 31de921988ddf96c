"""Shared helpers for the foreign-source ingestion adapters."""

from collections.abc import Iterable

import httpx

from ..errors import IngestionError
from ..extraction.rules import merge_tags, path_tags

# (keyword found in a design name, tag it implies)
STATE_KEYWORD_TAGS: tuple[tuple[str, str], ...] = (
    ("primary", "primary"),
    ("secondary", "secondary"),
    ("disabled", "disabled"),
    ("active", "active"),
    ("hover", "hover"),
    ("mobile", "mobile"),
    ("desktop", "desktop"),
    ("dark", "dark-mode"),
    ("light", "light-mode"),
)


def state_tags(name: str) -> list[str]:
    """Tags implied by state or theme keywords inside a design name."""
    lowered = name.lower()
    return [tag for keyword, tag in STATE_KEYWORD_TAGS if keyword in lowered]


def name_tags(names: Iterable[str]) -> list[str]:
    """Vocabulary and state tags for a group of hierarchical names."""
    groups = []
    for name in names:
        groups.append(path_tags(name.replace(" ", "")))
        groups.append(state_tags(name))
    return merge_tags(*groups)


def make_client(
    timeout: float, client: httpx.Client | None = None, **kwargs
) -> httpx.Client:
    """Return the injected client, or a new one with the given timeout."""
    if client is not None:
        return client
    return httpx.Client(timeout=timeout, follow_redirects=True, **kwargs)


def request_error(source: str, error: httpx.HTTPError) -> IngestionError:
    """Translate a transport failure into an IngestionError."""
    if isinstance(error, httpx.TimeoutException):
        return IngestionError(
            f"Request to {source} timed out",
            source=source,
            suggestion="Check the network connection or raise http_timeout",
        )
    return IngestionError(f"Request to {source} failed: {error}", source=source)
