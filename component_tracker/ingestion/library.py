"""Remote component library ingestion.

Fetches a published library manifest (JSON, or an HTML page that may be
a Storybook instance) and converts its entries into components grouped
by name.
"""

import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import httpx

from ..errors import (
    IngestionError,
    InvalidSourceUrlError,
    MissingCredentialsError,
    UnsupportedPayloadError,
)
from ..extraction.rules import infer_category, merge_tags
from ..models import DEFAULT_CATEGORY, Component, ComponentVariant, utc_now
from ..tracker_logging import LogCategory, get_category_logger
from .common import make_client, name_tags, request_error

logger = get_category_logger(LogCategory.INGESTION)

DEFAULT_LIBRARY_NAME = "Component Library"
STORYBOOK_LIBRARY_NAME = "Storybook Component Library"
STORYBOOK_INDEX_PATHS = ("/stories.json", "/index.json")

TITLE_PATTERN = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)


@dataclass
class LibraryMetadata:
    """Library manifest as returned by ``LibraryClient.fetch``."""

    name: str
    description: str | None = None
    version: str | None = None
    components: list[dict[str, Any]] = field(default_factory=list)


def validate_url(url: str) -> str:
    """Check the URL is absolute http(s).

    Raises:
        InvalidSourceUrlError: For anything else.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidSourceUrlError(str(url), "an http(s) URL") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidSourceUrlError(str(url), "an http(s) URL")
    return str(parsed)


def parse_json_library(data: Any, url: str) -> LibraryMetadata:
    """Interpret a JSON manifest: ``{components: [...]}``, a bare list, or metadata only."""
    if isinstance(data, list):
        return LibraryMetadata(
            name=DEFAULT_LIBRARY_NAME,
            description=f"Component library from {url}",
            components=[c for c in data if isinstance(c, dict)],
        )
    if not isinstance(data, dict):
        raise UnsupportedPayloadError(
            "Component library JSON must be an object or a list", source=url
        )

    components = data.get("components")
    return LibraryMetadata(
        name=data.get("name") or DEFAULT_LIBRARY_NAME,
        description=data.get("description"),
        version=data.get("version"),
        components=[c for c in components if isinstance(c, dict)]
        if isinstance(components, list)
        else [],
    )


def parse_storybook_index(data: Any) -> list[dict[str, Any]]:
    """Read story entries from ``stories.json`` (v6) or ``index.json`` (v7+).

    Each story becomes an entry named after the last segment of its title,
    with the story name as its variant.
    """
    if not isinstance(data, dict):
        return []
    stories = data.get("stories") or data.get("entries") or {}
    if not isinstance(stories, dict):
        return []

    entries = []
    for story in stories.values():
        if not isinstance(story, dict) or story.get("type") == "docs":
            continue
        title = str(story.get("title") or story.get("kind") or "")
        entries.append(
            {
                "id": story.get("id"),
                "name": title.rsplit("/", 1)[-1].strip() or story.get("name"),
                "title": title,
                "kind": story.get("kind") or title,
                "variant": story.get("name"),
            }
        )
    return entries


class LibraryClient:
    """Fetches component library manifests over HTTP."""

    def __init__(self, timeout: float = 30.0, client: httpx.Client | None = None):
        self._owns_client = client is None
        self._client = make_client(timeout, client)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "LibraryClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch(self, url: str, auth_token: str | None = None) -> LibraryMetadata:
        """Fetch and interpret a library manifest.

        Args:
            url: Manifest or documentation site URL.
            auth_token: Optional token, sent as a Bearer Authorization header.

        Returns:
            Parsed LibraryMetadata.

        Raises:
            InvalidSourceUrlError: If the URL is not absolute http(s).
            MissingCredentialsError: On 401 or 403.
            UnsupportedPayloadError: If the content type is neither JSON nor HTML.
            IngestionError: On other HTTP or transport failures.
        """
        url = validate_url(url)
        headers = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = (
                auth_token if auth_token.startswith("Bearer ") else f"Bearer {auth_token}"
            )

        try:
            response = self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise request_error(url, e) from e

        if response.status_code in (401, 403):
            raise MissingCredentialsError(
                "Authentication required. This component library requires a valid "
                "authentication token",
                source=url,
            )
        if not response.is_success:
            raise IngestionError(
                f"Failed to fetch component library: {response.status_code} "
                f"{response.reason_phrase}",
                source=url,
            )

        content_type = response.headers.get("content-type", "")
        if "text/html" in content_type:
            return self._parse_html(response.text, url, headers)
        if "application/json" in content_type:
            try:
                data = response.json()
            except ValueError as e:
                raise UnsupportedPayloadError(
                    "Component library returned invalid JSON", source=url
                ) from e
            return parse_json_library(data, url)

        raise UnsupportedPayloadError(
            "Unsupported content type. Expected JSON or HTML", source=url
        )

    def _parse_html(self, html: str, url: str, headers: dict[str, str]) -> LibraryMetadata:
        if "storybook" in html.lower() or "__STORYBOOK_" in html:
            return self._fetch_storybook(url, headers)

        match = TITLE_PATTERN.search(html)
        return LibraryMetadata(
            name=match.group(1).strip() if match else DEFAULT_LIBRARY_NAME,
            description="HTML-based component library (manual parsing required)",
        )

    def _fetch_storybook(self, url: str, headers: dict[str, str]) -> LibraryMetadata:
        for path in STORYBOOK_INDEX_PATHS:
            index_url = urljoin(url, path)
            try:
                response = self._client.get(index_url, headers=headers)
                if not response.is_success:
                    continue
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Failed to fetch Storybook index {index_url}: {e}")
                continue
            return LibraryMetadata(
                name=STORYBOOK_LIBRARY_NAME,
                description="Storybook-based component documentation",
                components=parse_storybook_index(data),
            )

        return LibraryMetadata(
            name=STORYBOOK_LIBRARY_NAME,
            description="Storybook detected but unable to fetch components",
        )


def _string(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


class LibraryAdapter:
    """Converts library metadata into un-namespaced components."""

    @staticmethod
    def entry_name(entry: dict[str, Any]) -> str:
        return str(
            _string(entry.get("name"))
            or _string(entry.get("title"))
            or entry.get("id")
            or "Unknown"
        )

    @staticmethod
    def entry_category(name: str, entry: dict[str, Any]) -> str:
        category = infer_category(name)
        if category == DEFAULT_CATEGORY:
            kind = _string(entry.get("kind")) or _string(entry.get("type")) or ""
            category = infer_category(kind)
        return category

    def convert(self, metadata: LibraryMetadata) -> list[Component]:
        """Group manifest entries by name into components with variants."""
        now = utc_now()
        components: dict[str, Component] = {}

        for entry in metadata.components:
            name = self.entry_name(entry)
            props = entry.get("props") or entry.get("parameters") or {}
            component = components.get(name)
            index = len(component.variants) if component else 0
            variant = ComponentVariant(
                id=str(entry.get("id") or f"{name}-{index}"),
                name=_string(entry.get("variant")) or "Default",
                description=_string(entry.get("description")),
                props=props if isinstance(props, dict) else {},
                last_updated=now,
            )

            explicit_tags = [t for t in entry.get("tags") or [] if isinstance(t, str)]
            entry_tags = merge_tags(
                name_tags([name, _string(entry.get("kind")) or ""]), explicit_tags
            )

            if component is None:
                components[name] = Component(
                    id=name,
                    name=name,
                    description=_string(entry.get("description")) or "Component from library",
                    category=self.entry_category(name, entry),
                    tags=entry_tags,
                    documentation=_string(entry.get("documentation"))
                    or _string(entry.get("notes")),
                    variants=[variant],
                    last_updated=now,
                )
            else:
                component.variants.append(variant)
                component.tags = merge_tags(component.tags, entry_tags)

        logger.info(f"Converted {len(components)} library components from {metadata.name}")
        return list(components.values())
