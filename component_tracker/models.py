"""Data models for tracked repositories and their components.

All records serialize to the camelCase dictionaries used by the
persisted state blob and the HTTP API.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

DEFAULT_CATEGORY = "Other"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def format_timestamp(value: datetime | None) -> str | None:
    """Serialize a timestamp to ISO 8601."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp, returning None when absent or malformed."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class RepositoryKind(Enum):
    """Where a repository's components come from."""

    LOCAL = "local"  # Filesystem tree scanned and extracted
    REMOTE = "remote"  # Published component library manifest
    FIGMA = "figma"  # Figma design file


@dataclass
class Repository:
    """A tracked source of components."""

    id: str
    name: str
    path: str
    kind: RepositoryKind = RepositoryKind.LOCAL
    description: str | None = None
    url: str | None = None
    branch: str | None = None
    figma_file_key: str | None = None
    last_scanned: datetime | None = None
    component_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "type": self.kind.value,
            "componentCount": self.component_count,
        }
        if self.description is not None:
            result["description"] = self.description
        if self.url is not None:
            result["url"] = self.url
        if self.branch is not None:
            result["branch"] = self.branch
        if self.figma_file_key is not None:
            result["figmaFileKey"] = self.figma_file_key
        if self.last_scanned is not None:
            result["lastScanned"] = format_timestamp(self.last_scanned)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Repository":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name") or "Unknown Repository",
            path=data.get("path", ""),
            kind=RepositoryKind(data.get("type", "local")),
            description=data.get("description"),
            url=data.get("url"),
            branch=data.get("branch"),
            figma_file_key=data.get("figmaFileKey"),
            last_scanned=parse_timestamp(data.get("lastScanned")),
            component_count=int(data.get("componentCount") or 0),
        )


@dataclass
class ComponentVariant:
    """One named configuration (prop set) of a component."""

    id: str
    name: str
    props: dict[str, Any] = field(default_factory=dict)
    description: str | None = None
    screenshot: str | None = None
    last_updated: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "props": self.props,
            "lastUpdated": format_timestamp(self.last_updated),
        }
        if self.description is not None:
            result["description"] = self.description
        if self.screenshot is not None:
            result["screenshot"] = self.screenshot
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComponentVariant":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name") or "Default",
            props=data.get("props") or {},
            description=data.get("description"),
            screenshot=data.get("screenshot"),
            last_updated=parse_timestamp(data.get("lastUpdated")) or utc_now(),
        )


@dataclass
class Component:
    """A normalized UI building block found in or imported into a repository.

    ``id`` is ``repositoryId:localId`` once the component has been stored;
    extractors and adapters produce the bare local id.
    """

    id: str
    name: str
    variants: list[ComponentVariant] = field(default_factory=list)
    repository_id: str | None = None
    description: str | None = None
    source_path: str | None = None
    category: str = DEFAULT_CATEGORY
    tags: list[str] = field(default_factory=list)
    documentation: str | None = None
    last_updated: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "variants": [v.to_dict() for v in self.variants],
            "category": self.category,
            "tags": list(self.tags),
            "lastUpdated": format_timestamp(self.last_updated),
        }
        if self.repository_id is not None:
            result["repositoryId"] = self.repository_id
        if self.description is not None:
            result["description"] = self.description
        if self.source_path is not None:
            result["sourcePath"] = self.source_path
        if self.documentation is not None:
            result["documentation"] = self.documentation
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Component":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            variants=[ComponentVariant.from_dict(v) for v in data.get("variants") or []],
            repository_id=data.get("repositoryId"),
            description=data.get("description"),
            source_path=data.get("sourcePath"),
            category=data.get("category") or DEFAULT_CATEGORY,
            tags=list(data.get("tags") or []),
            documentation=data.get("documentation"),
            last_updated=parse_timestamp(data.get("lastUpdated")) or utc_now(),
        )


@dataclass
class Theme:
    """Theme placeholder carried by every library."""

    colors: dict[str, str] = field(default_factory=dict)
    typography: dict[str, Any] = field(default_factory=dict)
    spacing: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "colors": self.colors,
            "typography": self.typography,
            "spacing": self.spacing,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Theme":
        """Create from dictionary."""
        return cls(
            colors=data.get("colors") or {},
            typography=data.get("typography") or {},
            spacing=list(data.get("spacing") or []),
        )


@dataclass
class ComponentLibrary:
    """The current component set of one repository."""

    id: str
    name: str
    repository: Repository
    components: list[Component] = field(default_factory=list)
    description: str | None = None
    theme: Theme = field(default_factory=Theme)
    last_updated: datetime = field(default_factory=utc_now)

    @classmethod
    def for_repository(
        cls, repository: Repository, components: list[Component]
    ) -> "ComponentLibrary":
        """Build a fresh library for a repository snapshot."""
        return cls(
            id=f"{repository.id}-library",
            name=f"{repository.name} Components",
            description=f"Component library for {repository.name}",
            repository=repository,
            components=components,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "repository": self.repository.to_dict(),
            "components": [c.to_dict() for c in self.components],
            "theme": self.theme.to_dict(),
            "lastUpdated": format_timestamp(self.last_updated),
        }
        if self.description is not None:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComponentLibrary":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            repository=Repository.from_dict(data["repository"]),
            components=[Component.from_dict(c) for c in data.get("components") or []],
            description=data.get("description"),
            theme=Theme.from_dict(data.get("theme") or {}),
            last_updated=parse_timestamp(data.get("lastUpdated")) or utc_now(),
        )


@dataclass
class RepositoryPresence:
    """Whether one repository implements a component name."""

    repository_id: str
    repository_name: str
    exists: bool
    component: Component | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "repositoryId": self.repository_id,
            "repositoryName": self.repository_name,
            "exists": self.exists,
        }
        if self.component is not None:
            result["component"] = self.component.to_dict()
        return result


@dataclass
class ComponentComparison:
    """Cross-repository consistency of one component name.

    Derived on demand from the store; never persisted.
    """

    component_name: str
    repositories: list[RepositoryPresence] = field(default_factory=list)
    consistency_score: int = 100
    differences: list[str] = field(default_factory=list)

    @property
    def implementations(self) -> list[Component]:
        """Components that exist for this name, in repository order."""
        return [p.component for p in self.repositories if p.component is not None]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "componentName": self.component_name,
            "repositories": [p.to_dict() for p in self.repositories],
            "consistencyScore": self.consistency_score,
            "differences": list(self.differences),
        }
