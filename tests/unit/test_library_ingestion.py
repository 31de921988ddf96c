"""Unit tests for remote component library ingestion."""

import httpx
import pytest

from component_tracker.errors import (
    IngestionError,
    InvalidSourceUrlError,
    MissingCredentialsError,
    UnsupportedPayloadError,
)
from component_tracker.ingestion import LibraryAdapter, LibraryClient, LibraryMetadata
from component_tracker.ingestion.library import (
    parse_json_library,
    parse_storybook_index,
    validate_url,
)

MANIFEST = {
    "name": "Acme UI",
    "version": "2.1.0",
    "description": "Published components",
    "components": [
        {
            "id": "btn-primary",
            "name": "Button",
            "variant": "Primary",
            "description": "Clickable button",
            "props": {"size": {"type": "string"}},
            "tags": ["core"],
        },
        {"id": "btn-ghost", "name": "Button", "variant": "Ghost", "tags": ["ghost"]},
        {"name": "Tooltip", "kind": "Overlays/Toast"},
        "not-an-entry",
    ],
}

STORYBOOK_INDEX = {
    "v": 4,
    "entries": {
        "inputs-button--primary": {
            "id": "inputs-button--primary",
            "title": "Inputs/Button",
            "name": "Primary",
            "type": "story",
        },
        "inputs-button--docs": {
            "id": "inputs-button--docs",
            "title": "Inputs/Button",
            "name": "Docs",
            "type": "docs",
        },
        "surfaces-card--elevated": {
            "id": "surfaces-card--elevated",
            "title": "Surfaces/Card",
            "name": "Elevated",
            "type": "story",
        },
    },
}


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestValidateUrl:
    """Tests for validate_url."""

    def test_accepts_https(self):
        """Test absolute https URLs pass."""
        assert validate_url("https://ui.example.com/manifest.json").startswith("https://")

    @pytest.mark.parametrize("url", ["ftp://ui.example.com/x", "/relative/path", "not a url"])
    def test_rejects_other(self, url):
        """Test non-http and relative URLs are rejected."""
        with pytest.raises(InvalidSourceUrlError):
            validate_url(url)


class TestParsers:
    """Tests for manifest parsers."""

    def test_object_manifest(self):
        """Test name, version and dict entries are read."""
        metadata = parse_json_library(MANIFEST, "https://x")
        assert metadata.name == "Acme UI"
        assert metadata.version == "2.1.0"
        assert len(metadata.components) == 3

    def test_list_manifest(self):
        """Test a bare list is treated as the component list."""
        metadata = parse_json_library([{"name": "Chip"}], "https://x/lib.json")
        assert metadata.name == "Component Library"
        assert metadata.description == "Component library from https://x/lib.json"
        assert metadata.components == [{"name": "Chip"}]

    def test_metadata_only(self):
        """Test a manifest without components yields no entries."""
        assert parse_json_library({"name": "Empty"}, "https://x").components == []

    def test_scalar_rejected(self):
        """Test JSON scalars are unsupported."""
        with pytest.raises(UnsupportedPayloadError):
            parse_json_library(42, "https://x")

    def test_storybook_index(self):
        """Test stories become entries named by the last title segment."""
        entries = parse_storybook_index(STORYBOOK_INDEX)
        assert [(e["name"], e["variant"]) for e in entries] == [
            ("Button", "Primary"),
            ("Card", "Elevated"),
        ]

    def test_storybook_v6_stories(self):
        """Test the older stories.json shape."""
        data = {"stories": {"a": {"id": "a", "kind": "Navigation/Menu", "name": "Open"}}}
        (entry,) = parse_storybook_index(data)
        assert entry["name"] == "Menu"
        assert entry["kind"] == "Navigation/Menu"


class TestLibraryClient:
    """Tests for LibraryClient against a mock transport."""

    def test_json_manifest_with_token(self):
        """Test the bearer token is sent and JSON is parsed."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=MANIFEST)

        with LibraryClient(client=mock_client(handler)) as client:
            metadata = client.fetch("https://ui.example.com/manifest.json", "abc")

        assert seen["auth"] == "Bearer abc"
        assert metadata.name == "Acme UI"

    def test_token_with_prefix_not_doubled(self):
        """Test a token already prefixed with Bearer is sent as-is."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        LibraryClient(client=mock_client(handler)).fetch("https://x.example.com", "Bearer t")
        assert seen["auth"] == "Bearer t"

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_required(self, status):
        """Test unauthorized responses need credentials."""
        client = LibraryClient(client=mock_client(lambda r: httpx.Response(status)))
        with pytest.raises(MissingCredentialsError, match="Authentication required"):
            client.fetch("https://ui.example.com/manifest.json")

    def test_http_error(self):
        """Test other failures carry the status."""
        client = LibraryClient(client=mock_client(lambda r: httpx.Response(500)))
        with pytest.raises(IngestionError, match="500"):
            client.fetch("https://ui.example.com/manifest.json")

    def test_unsupported_content_type(self):
        """Test non JSON, non HTML payloads are rejected."""
        client = LibraryClient(
            client=mock_client(
                lambda r: httpx.Response(200, text="x", headers={"content-type": "text/plain"})
            )
        )
        with pytest.raises(UnsupportedPayloadError, match="Expected JSON or HTML"):
            client.fetch("https://ui.example.com/manifest.txt")

    def test_plain_html_uses_title(self):
        """Test a non-Storybook page yields metadata from its title."""
        html = "<html><head><title> Acme Docs </title></head><body></body></html>"
        client = LibraryClient(client=mock_client(lambda r: httpx.Response(200, html=html)))
        metadata = client.fetch("https://docs.example.com")
        assert metadata.name == "Acme Docs"
        assert metadata.components == []

    def test_storybook_index_json(self):
        """Test a Storybook page falls through to index.json."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/stories.json":
                return httpx.Response(404)
            if request.url.path == "/index.json":
                return httpx.Response(200, json=STORYBOOK_INDEX)
            return httpx.Response(
                200, html="<html><script>window.__STORYBOOK_ADDONS = {}</script></html>"
            )

        metadata = LibraryClient(client=mock_client(handler)).fetch(
            "https://storybook.example.com/"
        )
        assert metadata.name == "Storybook Component Library"
        assert [e["name"] for e in metadata.components] == ["Button", "Card"]

    def test_storybook_unavailable_index(self):
        """Test Storybook without a readable index yields no entries."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith(".json"):
                return httpx.Response(404)
            return httpx.Response(200, html="<title>Storybook</title>")

        metadata = LibraryClient(client=mock_client(handler)).fetch("https://sb.example.com/")
        assert metadata.components == []
        assert metadata.description == "Storybook detected but unable to fetch components"


class TestLibraryAdapter:
    """Tests for LibraryAdapter.convert."""

    def test_groups_entries_by_name(self):
        """Test entries with the same name become variants."""
        metadata = parse_json_library(MANIFEST, "https://x")
        components = {c.name: c for c in LibraryAdapter().convert(metadata)}
        assert list(components) == ["Button", "Tooltip"]

        button = components["Button"]
        assert button.id == "Button"
        assert [v.id for v in button.variants] == ["btn-primary", "btn-ghost"]
        assert [v.name for v in button.variants] == ["Primary", "Ghost"]
        assert button.variants[0].props == {"size": {"type": "string"}}
        assert button.description == "Clickable button"
        assert button.category == "Inputs"
        assert button.tags == ["button", "core", "ghost"]

    def test_category_from_kind(self):
        """Test the entry kind is used when the name has no keyword."""
        metadata = parse_json_library(MANIFEST, "https://x")
        tooltip = next(c for c in LibraryAdapter().convert(metadata) if c.name == "Tooltip")
        assert tooltip.category == "Feedback"
        assert tooltip.description == "Component from library"
        assert tooltip.variants[0].id == "Tooltip-0"
        assert tooltip.variants[0].name == "Default"

    def test_unnamed_entries(self):
        """Test entries without name fall back to title, then id."""
        metadata = LibraryMetadata(name="x", components=[{"title": "Tabs"}, {"id": 7}, {}])
        names = [c.name for c in LibraryAdapter().convert(metadata)]
        assert names == ["Tabs", "7", "Unknown"]

    def test_storybook_entries(self):
        """Test Storybook entries convert with story variants."""
        metadata = LibraryMetadata(
            name="sb", components=parse_storybook_index(STORYBOOK_INDEX)
        )
        components = {c.name: c for c in LibraryAdapter().convert(metadata)}
        assert components["Button"].variants[0].id == "inputs-button--primary"
        assert components["Card"].category == "Surfaces"
