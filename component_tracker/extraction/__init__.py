"""Lexical component extraction from source files."""

from .extractor import ComponentExtractor
from .rules import (
    CATEGORIES,
    DEFAULT_DETECTION_RULES,
    DetectionRule,
    detect_component_names,
    infer_category,
    is_component_name,
)

__all__ = [
    "ComponentExtractor",
    "DetectionRule",
    "DEFAULT_DETECTION_RULES",
    "CATEGORIES",
    "detect_component_names",
    "infer_category",
    "is_component_name",
]
