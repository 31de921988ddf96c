"""Lexical rules for recognizing and classifying components.

Detection is an ordered list of ``DetectionRule`` objects, each a single
regular expression whose first group captures a candidate component name.
Rules are independent: any of them can be tested, removed or replaced
without touching the others.

The category and tag tables here are shared by the source extractor and
the ingestion adapters so every repository kind uses one vocabulary.
"""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from ..models import DEFAULT_CATEGORY


@dataclass(frozen=True)
class DetectionRule:
    """One lexical idiom that declares a component."""

    name: str
    pattern: re.Pattern

    @classmethod
    def compile(cls, name: str, regex: str) -> "DetectionRule":
        return cls(name=name, pattern=re.compile(regex))

    def find(self, content: str) -> Iterator[str]:
        """Yield every identifier captured by this rule, in source order."""
        for match in self.pattern.finditer(content):
            yield match.group(1)


DEFAULT_DETECTION_RULES: tuple[DetectionRule, ...] = (
    # export function Button / export default const Button
    DetectionRule.compile(
        "exported-declaration", r"export\s+(?:default\s+)?(?:function|const)\s+(\w+)"
    ),
    # export class Button
    DetectionRule.compile("exported-class", r"export\s+(?:default\s+)?class\s+(\w+)"),
    # const Button = React.forwardRef( / const Button = memo( / const Button = (
    DetectionRule.compile(
        "wrapped-const", r"const\s+(\w+)\s*=\s*(?:React\.)?(?:forwardRef|memo)?\s*\("
    ),
    # function Button(
    DetectionRule.compile("function-declaration", r"function\s+(\w+)\s*\("),
)

# Framework and utility identifiers that look like components but are not
NON_COMPONENT_NAMES = frozenset(
    {"React", "Component", "Fragment", "useState", "useEffect", "Props", "State"}
)


def is_component_name(name: str) -> bool:
    """Check whether an identifier looks like a component name."""
    return len(name) > 1 and name[0].isupper() and name not in NON_COMPONENT_NAMES


def detect_component_names(
    content: str, rules: Iterable[DetectionRule] = DEFAULT_DETECTION_RULES
) -> list[str]:
    """Collect distinct candidate names in rule order, then source order."""
    names: list[str] = []
    seen: set[str] = set()
    for rule in rules:
        for name in rule.find(content):
            if name not in seen and is_component_name(name):
                seen.add(name)
                names.append(name)
    return names


# First match wins; the order is part of the scoring contract.
CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Inputs", ("button", "input", "form")),
    ("Surfaces", ("card", "paper", "surface")),
    ("Feedback", ("alert", "notification", "toast")),
    ("Navigation", ("nav", "menu", "breadcrumb")),
    ("Layout", ("layout", "grid", "container")),
    ("Typography", ("text", "typography", "heading")),
)

CATEGORIES = tuple(category for category, _ in CATEGORY_RULES) + (DEFAULT_CATEGORY,)

PATH_TAG_VOCABULARY = frozenset(
    {"button", "input", "form", "card", "alert", "modal", "dialog"}
)

# (tag, substrings any of which marks the content)
CONTENT_TAG_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("interactive", ("useState", "useEffect")),
    ("form", ("form", "Form")),
    ("action", ("onClick", "onSubmit")),
)


def infer_category(path: str) -> str:
    """Infer a category from keywords that start a path segment.

    Args:
        path: Slash-separated path or hierarchical name such as
            ``components/Button/Button.tsx`` or ``Button/Primary``.

    Returns:
        The first matching category, else ``Other``.
    """
    haystack = "/" + path.lower().lstrip("/")
    for category, keywords in CATEGORY_RULES:
        if any(f"/{keyword}" in haystack for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def content_tags(content: str) -> list[str]:
    """Tags implied by identifiers used in the source text."""
    return [
        tag
        for tag, needles in CONTENT_TAG_RULES
        if any(needle in content for needle in needles)
    ]


def path_tags(path: str) -> list[str]:
    """Path segments that belong to the tag vocabulary, in path order."""
    return [
        segment
        for segment in path.lower().split("/")
        if segment in PATH_TAG_VOCABULARY
    ]


def merge_tags(*groups: Iterable[str]) -> list[str]:
    """Union tag groups, keeping first-seen order."""
    merged: list[str] = []
    for group in groups:
        for tag in group:
            if tag and tag not in merged:
                merged.append(tag)
    return merged
