"""Component extractor for discovered source files.

Turns one ``DiscoveredFile`` into at most one normalized ``Component``
using the lexical detection rules. Extraction never executes or
type-checks the source.
"""

import re
from collections.abc import Sequence
from typing import Any

from ..discovery import DiscoveredFile
from ..models import Component, ComponentVariant
from ..tracker_logging import LogCategory, get_category_logger
from .rules import (
    DEFAULT_DETECTION_RULES,
    DetectionRule,
    content_tags,
    detect_component_names,
    infer_category,
    merge_tags,
    path_tags,
)

logger = get_category_logger(LogCategory.EXTRACTOR)

DEFAULT_VARIANT_NAME = "Default"

JSDOC_PATTERN = re.compile(r"/\*\*\s*\n\s*\*\s*([^\n]+)")
PROP_LINE_PATTERN = re.compile(r"^\s*(\w+)\??\s*:\s*([^;]+)")


class ComponentExtractor:
    """Extracts a single component record from one source file.

    The primary component is the detected name equal to the file's base
    name, otherwise the first detected name. Files with no candidate
    names yield None.
    """

    def __init__(self, rules: Sequence[DetectionRule] = DEFAULT_DETECTION_RULES):
        """Initialize the extractor.

        Args:
            rules: Ordered detection rules. Candidates are collected in
                rule order, which decides the fallback primary name.
        """
        self.rules = tuple(rules)

    def extract(self, file: DiscoveredFile) -> Component | None:
        """Extract the primary component defined in a file.

        Args:
            file: Discovered file with content and metadata.

        Returns:
            An un-namespaced Component, or None if the file defines none
            or could not be parsed.
        """
        try:
            return self._extract(file)
        except Exception as e:
            logger.debug(
                f"Failed to extract component from {file.path}: {e}",
                extra={"file_path": file.path},
            )
            return None

    def _extract(self, file: DiscoveredFile) -> Component | None:
        names = detect_component_names(file.content, self.rules)
        if not names:
            return None

        name = file.name if file.name in names else names[0]
        local_id = f"{file.path}-{name}"

        variant = ComponentVariant(
            id=f"{local_id}-default",
            name=DEFAULT_VARIANT_NAME,
            description="Default variant",
            props=self.extract_props(file.content, name),
            last_updated=file.last_modified,
        )

        return Component(
            id=local_id,
            name=name,
            description=self.extract_description(file.content),
            source_path=file.path,
            category=infer_category(file.path),
            tags=merge_tags(content_tags(file.content), path_tags(file.path)),
            variants=[variant],
            last_updated=file.last_modified,
        )

    @staticmethod
    def extract_description(content: str) -> str | None:
        """First line of the first JSDoc block, if any."""
        match = JSDOC_PATTERN.search(content)
        if not match:
            return None
        return match.group(1).strip() or None

    @staticmethod
    def extract_props(content: str, component_name: str) -> dict[str, Any]:
        """Parse the ``{Name}Props`` interface or type alias into a shallow map.

        Each ``name?: type`` line becomes ``{name: {"type", "optional"}}``.
        Lines that do not look like a property are ignored.
        """
        block = re.search(
            rf"(?:interface\s+{re.escape(component_name)}Props(?:\s+extends\s+[^{{]+)?"
            rf"|type\s+{re.escape(component_name)}Props\s*=)\s*\{{([^}}]+)\}}",
            content,
        )
        if not block:
            return {}

        props: dict[str, Any] = {}
        for line in block.group(1).split("\n"):
            match = PROP_LINE_PATTERN.match(line)
            if not match:
                continue
            prop_name, prop_type = match.groups()
            props[prop_name] = {
                "type": prop_type.strip().rstrip(","),
                "optional": f"{prop_name}?" in line,
            }
        return props
