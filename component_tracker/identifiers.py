"""Namespaced identifiers for components and variants.

A component or variant id is the pair ``(repository_id, local_id)``
serialized as ``repository_id:local_id``. Repository ids never contain
a colon, so the repository is always the text before the first colon and
the local part may contain colons of its own (Figma node ids do).
"""

from dataclasses import dataclass

SEPARATOR = ":"


@dataclass(frozen=True)
class ComponentId:
    """Composite identifier scoped to one repository."""

    repository_id: str
    local_id: str

    def __post_init__(self) -> None:
        if not self.repository_id:
            raise ValueError("repository_id must not be empty")
        if SEPARATOR in self.repository_id:
            raise ValueError(
                f"repository_id must not contain '{SEPARATOR}': {self.repository_id!r}"
            )

    def serialize(self) -> str:
        """Return the canonical ``repository_id:local_id`` form."""
        return f"{self.repository_id}{SEPARATOR}{self.local_id}"

    def __str__(self) -> str:
        return self.serialize()

    @classmethod
    def parse(cls, value: str) -> "ComponentId":
        """Parse a serialized id.

        Raises:
            ValueError: If the value has no repository namespace.
        """
        repository_id, sep, local_id = value.partition(SEPARATOR)
        if not sep or not repository_id:
            raise ValueError(f"Identifier is not namespaced: {value!r}")
        return cls(repository_id=repository_id, local_id=local_id)


def namespace(repository_id: str, local_id: str) -> str:
    """Build the serialized id for a local id inside a repository."""
    return ComponentId(repository_id, local_id).serialize()


def derive_repository_id(value: str) -> str | None:
    """Return the repository namespace of a serialized id, if any."""
    repository_id, sep, _ = value.partition(SEPARATOR)
    if not sep or not repository_id:
        return None
    return repository_id


def is_namespaced(value: str, repository_id: str) -> bool:
    """Check whether an id already carries the given repository namespace."""
    return value.startswith(f"{repository_id}{SEPARATOR}")


def ensure_namespaced(value: str, repository_id: str) -> str:
    """Prefix an id with its repository namespace unless it already has it."""
    if is_namespaced(value, repository_id):
        return value
    return namespace(repository_id, value)


def local_part(value: str, repository_id: str) -> str:
    """Strip the repository namespace from an id when it carries one."""
    if is_namespaced(value, repository_id):
        return value[len(repository_id) + len(SEPARATOR) :]
    return value
