"""
Shared fixtures for the component tracker test suite.

Provides test fixtures for:
- Temporary component repositories on disk
- In-memory repository stores
- Component factories for scoring tests
- A tracker wired to an in-memory store
"""

import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from component_tracker.config import TrackerConfig
from component_tracker.discovery import DiscoveredFile
from component_tracker.models import Component, ComponentVariant
from component_tracker.store import MemoryBackend, RepositoryStore
from component_tracker.tracker import ComponentTracker

BUTTON_SOURCE = """import React, { useState } from 'react';

/**
 * Primary action button.
 */
interface ButtonProps {
  label: string;
  variant?: 'primary' | 'secondary';
  onClick?: () => void;
}

export const Button = ({ label, onClick }: ButtonProps) => {
  const [pressed, setPressed] = useState(false);
  return <button onClick={onClick}>{label}</button>;
};
"""

CARD_SOURCE = """import React from 'react';

export type CardProps = {
  title: string;
  elevated?: boolean;
};

export function Card({ title }: CardProps) {
  return <div className="card">{title}</div>;
}
"""

ALERT_SOURCE = """export default function Alert() {
  return <div role="alert" />;
}
"""

HELPER_SOURCE = """export const formatLabel = (value: string) => value.trim();
"""


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Write a mapping of relative path to content below root."""
    for rel_path, content in files.items():
        target = root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return root


# ---------------------------------------------------------------------------
# Repositories on disk
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_repo(tmp_path: Path) -> Path:
    """Create a small component repository with a package.json."""
    root = tmp_path / "design-system"
    write_files(
        root,
        {
            "package.json": json.dumps(
                {"name": "@acme/design-system", "description": "Acme UI kit"}
            ),
            "src/components/Button/Button.tsx": BUTTON_SOURCE,
            "src/components/Card/Card.tsx": CARD_SOURCE,
            "src/components/Alert.jsx": ALERT_SOURCE,
            "src/components/utils/format.ts": HELPER_SOURCE,
            "src/components/Button/Button.test.tsx": "export function ButtonTest() {}",
            "src/components/Button/Button.stories.tsx": "export const Primary = () => {}",
            "src/components/Button/README.md": "# Button",
            "node_modules/lib/components/Vendor.tsx": "export function Vendor() {}",
            "src/pages/Home.tsx": "export function Home() {}",
        },
    )
    return root


@pytest.fixture()
def second_repo(tmp_path: Path) -> Path:
    """Create a second repository that shares the Button component name."""
    root = tmp_path / "marketing-site"
    write_files(
        root,
        {
            "components/Button.tsx": (
                "export function Button() { return <button onClick={go} />; }\n"
            ),
            "components/Navbar.tsx": "export function Navbar() { return <nav />; }\n",
        },
    )
    return root


# ---------------------------------------------------------------------------
# Store and tracker
# ---------------------------------------------------------------------------


@pytest.fixture()
def memory_store() -> RepositoryStore:
    """Create an empty store backed by memory."""
    return RepositoryStore(MemoryBackend())


@pytest.fixture()
def tracker_config(tmp_path: Path) -> TrackerConfig:
    """Configuration pointing at a temporary state directory."""
    return TrackerConfig(state_dir=tmp_path / "state", max_workers=2)


@pytest.fixture()
def tracker(tracker_config: TrackerConfig, memory_store: RepositoryStore) -> ComponentTracker:
    """Tracker using the in-memory store."""
    return ComponentTracker(tracker_config, store=memory_store)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_component() -> Callable[..., Component]:
    """Factory for components with a given number of variants."""

    def _make(
        name: str = "Card",
        category: str = "Surfaces",
        tags: list[str] | None = None,
        variant_count: int = 1,
        description: str | None = None,
        component_id: str | None = None,
    ) -> Component:
        local_id = component_id or f"components/{name}.tsx-{name}"
        return Component(
            id=local_id,
            name=name,
            category=category,
            tags=list(tags or []),
            description=description,
            variants=[
                ComponentVariant(id=f"{local_id}-v{i}", name=f"V{i}")
                for i in range(variant_count)
            ],
        )

    return _make


@pytest.fixture()
def make_file() -> Callable[..., DiscoveredFile]:
    """Factory for discovered files without touching the filesystem."""

    def _make(path: str, content: str) -> DiscoveredFile:
        name = Path(path).stem
        return DiscoveredFile(
            path=path,
            name=name,
            content=content,
            extension=Path(path).suffix,
            size=len(content.encode()),
            last_modified=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        )

    return _make
