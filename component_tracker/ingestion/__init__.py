"""Adapters that import components from Figma files and published libraries."""

from .figma import FigmaAdapter, FigmaClient, extract_file_key, parse_local_export
from .library import LibraryAdapter, LibraryClient, LibraryMetadata

__all__ = [
    "FigmaAdapter",
    "FigmaClient",
    "extract_file_key",
    "parse_local_export",
    "LibraryAdapter",
    "LibraryClient",
    "LibraryMetadata",
]
