"""Component Tracker: find UI components across repositories and score their consistency.

Main components:
- discovery: candidate source file discovery
- extraction: lexical component extraction
- store: persisted repositories and component libraries
- comparison: cross-repository consistency scoring
- ingestion: Figma and published-library adapters
- tracker: the application object tying them together
"""

from .config import ScanOptions, TrackerConfig, load_config
from .models import (
    Component,
    ComponentComparison,
    ComponentLibrary,
    ComponentVariant,
    Repository,
    RepositoryKind,
)
from .tracker import ComponentTracker, ScanResult

__version__ = "1.0.0"

__all__ = [
    "ComponentTracker",
    "ScanResult",
    "ScanOptions",
    "TrackerConfig",
    "load_config",
    "Component",
    "ComponentComparison",
    "ComponentLibrary",
    "ComponentVariant",
    "Repository",
    "RepositoryKind",
]
