"""Figma ingestion: fetch a design file and convert its components.

Component nodes named ``Base/Variant`` are grouped into one component
``Base`` with one variant per node. Ids are Figma node ids (which contain
colons, e.g. ``12:34``); the repository store namespaces them.
"""

import json
import re
from typing import Any

import httpx

from ..errors import IngestionError, MissingCredentialsError, UnsupportedPayloadError
from ..extraction.rules import infer_category
from ..models import Component, ComponentVariant, parse_timestamp, utc_now
from ..tracker_logging import LogCategory, get_category_logger
from .common import make_client, name_tags, request_error

logger = get_category_logger(LogCategory.INGESTION)

DEFAULT_FIGMA_API_URL = "https://api.figma.com/v1"

FILE_KEY_PATTERN = re.compile(r"figma\.com/(?:file|design)/([a-zA-Z0-9]+)")

COMPONENT_NODE_TYPES = frozenset({"COMPONENT", "COMPONENT_SET"})

BINARY_EXPORT_MESSAGE = (
    "Native .fig files use a proprietary binary format that cannot be parsed. "
    "Use the Figma URL with an API token, or export the file as JSON"
)


def extract_file_key(url: str) -> str | None:
    """Extract the file key from a ``figma.com/file`` or ``/design`` URL."""
    match = FILE_KEY_PATTERN.search(url or "")
    return match.group(1) if match else None


def parse_local_export(content: str | bytes) -> dict[str, Any]:
    """Parse a Figma JSON export.

    Args:
        content: Raw file content.

    Returns:
        The decoded Figma file document.

    Raises:
        UnsupportedPayloadError: For binary ``.fig`` content, invalid JSON,
            or a document without a ``document`` node.
    """
    if isinstance(content, bytes):
        if b"\x00" in content:
            raise UnsupportedPayloadError(BINARY_EXPORT_MESSAGE, source="local export")
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnsupportedPayloadError(BINARY_EXPORT_MESSAGE, source="local export") from e

    if "\x00" in content or not content.strip().startswith("{"):
        raise UnsupportedPayloadError(BINARY_EXPORT_MESSAGE, source="local export")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise UnsupportedPayloadError(
            "Failed to parse file; it is not a valid Figma JSON export",
            source="local export",
        ) from e

    if not isinstance(data, dict) or not isinstance(data.get("document"), dict):
        raise UnsupportedPayloadError(
            "Invalid Figma file format: missing document", source="local export"
        )
    return data


class FigmaClient:
    """Minimal Figma REST client."""

    def __init__(
        self,
        token: str | None,
        base_url: str = DEFAULT_FIGMA_API_URL,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            token: Personal access token sent as ``X-Figma-Token``.
            base_url: API root.
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = make_client(timeout, client)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "FigmaClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        return {"X-Figma-Token": self.token or ""}

    def fetch_file(self, file_key: str) -> dict[str, Any]:
        """Fetch a Figma file document.

        Raises:
            MissingCredentialsError: If no token is set or access is denied.
            IngestionError: On other HTTP or transport failures.
            UnsupportedPayloadError: If the response is not a Figma document.
        """
        if not self.token:
            raise MissingCredentialsError(
                "Figma API token not set", source="figma"
            )

        url = f"{self.base_url}/files/{file_key}"
        try:
            response = self._client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise request_error(url, e) from e

        if response.status_code == 403:
            raise MissingCredentialsError(
                "Invalid Figma API token or no access to this file", source=url
            )
        if not response.is_success:
            raise IngestionError(
                f"Failed to fetch Figma file: {response.status_code} {response.reason_phrase}",
                source=url,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UnsupportedPayloadError("Figma API returned invalid JSON", source=url) from e
        if not isinstance(data, dict) or not isinstance(data.get("document"), dict):
            raise UnsupportedPayloadError(
                "Invalid Figma file format: missing document", source=url
            )
        return data

    def fetch_component_images(self, file_key: str, node_ids: list[str]) -> dict[str, str]:
        """Fetch rendered PNG URLs for component nodes.

        Best-effort: any failure is logged and yields an empty mapping.
        """
        if not self.token or not node_ids:
            return {}

        url = f"{self.base_url}/images/{file_key}"
        params = {"ids": ",".join(node_ids), "format": "png", "scale": "2"}
        try:
            response = self._client.get(url, headers=self._headers(), params=params)
            response.raise_for_status()
            images = response.json().get("images") or {}
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to fetch component images: {e}")
            return {}

        return {str(k): v for k, v in images.items() if isinstance(v, str)}


class FigmaAdapter:
    """Converts a Figma file document into un-namespaced components."""

    @staticmethod
    def find_component_nodes(root: dict[str, Any]) -> list[dict[str, Any]]:
        """Collect COMPONENT and COMPONENT_SET nodes in document order."""
        found = []
        stack = [root]
        while stack:
            node = stack.pop()
            if not isinstance(node, dict):
                continue
            if node.get("type") in COMPONENT_NODE_TYPES:
                found.append(node)
            children = node.get("children") or []
            stack.extend(reversed(children))
        return found

    def convert(
        self, figma_file: dict[str, Any], images: dict[str, str] | None = None
    ) -> list[Component]:
        """Convert a Figma document into components.

        Args:
            figma_file: Decoded file with a ``document`` node.
            images: Optional node id to rendered image URL mapping.

        Returns:
            One component per base name, variants in document order.
        """
        images = images or {}
        last_modified = parse_timestamp(figma_file.get("lastModified")) or utc_now()

        components: dict[str, Component] = {}
        names: dict[str, list[str]] = {}

        for node in self.find_component_nodes(figma_file.get("document") or {}):
            node_id = node.get("id")
            full_name = str(node.get("name") or "").strip()
            if not node_id or not full_name:
                continue

            base_name, sep, rest = full_name.partition("/")
            base_name = base_name.strip() or full_name
            description = node.get("description") or None

            variant = ComponentVariant(
                id=str(node_id),
                name=(rest.strip() or "Default") if sep else "Default",
                description=description,
                props=node.get("componentPropertyDefinitions") or {},
                screenshot=images.get(str(node_id)),
                last_updated=last_modified,
            )

            component = components.get(base_name)
            if component is None:
                components[base_name] = Component(
                    id=str(node_id),
                    name=base_name,
                    description=description or f"Figma component: {base_name}",
                    category=infer_category(base_name),
                    documentation=description,
                    variants=[variant],
                    last_updated=last_modified,
                )
                names[base_name] = [full_name]
            else:
                component.variants.append(variant)
                names[base_name].append(full_name)

        for base_name, component in components.items():
            component.tags = name_tags(names[base_name])

        logger.info(f"Converted {len(components)} Figma components")
        return list(components.values())
