"""Repository store: the single shared mutable state of the tracker.

Holds the registered repositories and one component library per
repository, persists them as one blob through a ``StateBackend`` after
every mutation, and hands out per-repository locks so concurrent scans of
different repositories never contend.
"""

import secrets
import string
import time
from dataclasses import replace
from threading import Lock, RLock

from ..errors import RepositoryNotFoundError, StorageError
from ..identifiers import ensure_namespaced
from ..models import Component, ComponentLibrary, ComponentVariant, Repository, utc_now
from ..tracker_logging import LogCategory, get_category_logger
from .migration import STATE_VERSION, migrate_state, state_version
from .persistence import MemoryBackend, StateBackend

logger = get_category_logger(LogCategory.STORE)

STORAGE_KEY = "component-tracker-repositories"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_repository_id() -> str:
    """Create a fresh ``repo_<epoch-ms>_<9 chars>`` id (never contains a colon)."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"repo_{int(time.time() * 1000)}_{suffix}"


def namespace_component(component: Component, repository_id: str) -> Component:
    """Return a copy of a component with its ids scoped to a repository."""
    variants = [
        replace(variant, id=ensure_namespaced(variant.id, repository_id))
        for variant in component.variants
    ]
    return replace(
        component,
        id=ensure_namespaced(component.id, repository_id),
        repository_id=repository_id,
        variants=variants,
        tags=list(component.tags),
    )


def _unique_variant(variant: ComponentVariant, seen: set[str]) -> ComponentVariant:
    """Suffix a variant id until it is unused, recording it in seen."""
    variant_id = variant.id
    counter = 2
    while variant_id in seen:
        variant_id = f"{variant.id}-{counter}"
        counter += 1
    seen.add(variant_id)
    if variant_id == variant.id:
        return variant
    logger.debug(f"Renaming duplicate variant id {variant.id} to {variant_id}")
    return replace(variant, id=variant_id)


class RepositoryStore:
    """Registered repositories and their component libraries.

    Libraries are replaced wholesale: readers always observe either the
    previous list or the new one. All methods are thread-safe.
    """

    def __init__(self, backend: StateBackend | None = None, storage_key: str = STORAGE_KEY):
        """Initialize an empty store.

        Args:
            backend: Persistence backend. Defaults to an in-memory backend.
            storage_key: Key of the state blob inside the backend.
        """
        self.backend = backend or MemoryBackend()
        self.storage_key = storage_key
        self._state_lock = RLock()
        self._repositories: dict[str, Repository] = {}
        self._libraries: dict[str, ComponentLibrary] = {}
        self._repo_locks: dict[str, Lock] = {}
        self._repo_locks_guard = Lock()

    # Persistence

    def load(self) -> None:
        """Load and migrate persisted state, replacing the in-memory maps.

        A corrupt or unreadable blob is logged and treated as empty state.
        """
        try:
            raw = self.backend.read(self.storage_key)
        except StorageError as e:
            logger.warning(f"Ignoring unreadable persisted state: {e}")
            raw = None

        state = migrate_state(raw)

        repositories: dict[str, Repository] = {}
        for repo_id, data in state.get("repositories", []):
            try:
                repositories[repo_id] = Repository.from_dict({**data, "id": repo_id})
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable repository {repo_id}: {e}")

        libraries: dict[str, ComponentLibrary] = {}
        for repo_id, data in state.get("componentLibraries", []):
            if repo_id not in repositories:
                continue
            try:
                library = ComponentLibrary.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable component library {repo_id}: {e}")
                continue
            library.repository = repositories[repo_id]
            libraries[repo_id] = library

        with self._state_lock:
            self._repositories = repositories
            self._libraries = libraries

        logger.info(
            f"Loaded {len(repositories)} repositories and {len(libraries)} libraries"
        )

        if isinstance(raw, dict) and state_version(raw) < STATE_VERSION:
            self.save()

    def to_state(self) -> dict:
        """Serialize the store to the persisted blob shape."""
        with self._state_lock:
            return {
                "version": STATE_VERSION,
                "repositories": [
                    [repo_id, repo.to_dict()] for repo_id, repo in self._repositories.items()
                ],
                "componentLibraries": [
                    [repo_id, library.to_dict()]
                    for repo_id, library in self._libraries.items()
                ],
            }

    def save(self) -> None:
        """Persist the whole state.

        Raises:
            StorageError: If the backend cannot write the blob.
        """
        self.backend.write(self.storage_key, self.to_state())

    # Locks

    def lock_for(self, repository_id: str) -> Lock:
        """Lock serializing scans and library writes of one repository."""
        with self._repo_locks_guard:
            lock = self._repo_locks.get(repository_id)
            if lock is None:
                lock = Lock()
                self._repo_locks[repository_id] = lock
            return lock

    # Mutations

    def register(self, repository: Repository) -> Repository:
        """Add a repository, assigning a fresh id when it has none.

        Args:
            repository: Repository to register.

        Returns:
            The registered repository.

        Raises:
            ValueError: If the id is already registered or contains a colon.
            StorageError: If persisting fails; the repository is not kept.
        """
        if not repository.id:
            repository = replace(repository, id=generate_repository_id())
        if ":" in repository.id:
            raise ValueError(f"Repository id must not contain ':': {repository.id}")

        with self._state_lock:
            if repository.id in self._repositories:
                raise ValueError(f"Repository already registered: {repository.id}")
            self._repositories[repository.id] = repository
            try:
                self.save()
            except StorageError:
                del self._repositories[repository.id]
                raise

        logger.info(
            f"Registered repository {repository.name}",
            extra={"repository_id": repository.id},
        )
        return repository

    def remove(self, repository_id: str) -> bool:
        """Delete a repository together with its library.

        Returns:
            True if the repository existed.
        """
        with self._state_lock:
            repository = self._repositories.pop(repository_id, None)
            if repository is None:
                return False
            library = self._libraries.pop(repository_id, None)
            try:
                self.save()
            except StorageError:
                self._repositories[repository_id] = repository
                if library is not None:
                    self._libraries[repository_id] = library
                raise

        with self._repo_locks_guard:
            self._repo_locks.pop(repository_id, None)

        logger.info(
            f"Removed repository {repository.name}",
            extra={"repository_id": repository_id},
        )
        return True

    def replace_library(
        self, repository_id: str, components: list[Component]
    ) -> ComponentLibrary:
        """Swap in a new component set for a repository.

        Every component and variant is namespaced with the repository id.
        Components whose namespaced id repeats an earlier one are dropped.
        Variant ids that repeat an earlier one get a numeric suffix.

        Args:
            repository_id: Repository whose library is replaced.
            components: Un-namespaced or namespaced components.

        Returns:
            The new library.

        Raises:
            RepositoryNotFoundError: If the repository is not registered.
            StorageError: If persisting fails; the previous library is kept.
        """
        namespaced: list[Component] = []
        seen: set[str] = set()
        seen_variants: set[str] = set()
        for component in components:
            scoped = namespace_component(component, repository_id)
            if scoped.id in seen:
                logger.debug(f"Dropping duplicate component id {scoped.id}")
                continue
            seen.add(scoped.id)
            scoped.variants = [
                _unique_variant(variant, seen_variants) for variant in scoped.variants
            ]
            namespaced.append(scoped)

        with self._state_lock:
            previous_repo = self._repositories.get(repository_id)
            if previous_repo is None:
                raise RepositoryNotFoundError(repository_id)

            repository = replace(
                previous_repo,
                last_scanned=utc_now(),
                component_count=len(namespaced),
            )
            library = ComponentLibrary.for_repository(repository, namespaced)
            previous_library = self._libraries.get(repository_id)

            self._repositories[repository_id] = repository
            self._libraries[repository_id] = library
            try:
                self.save()
            except StorageError:
                self._repositories[repository_id] = previous_repo
                if previous_library is None:
                    self._libraries.pop(repository_id, None)
                else:
                    self._libraries[repository_id] = previous_library
                raise

        logger.info(
            f"Stored {len(namespaced)} components for {repository.name}",
            extra={"repository_id": repository_id, "component_count": len(namespaced)},
        )
        return library

    # Reads

    def get_repository(self, repository_id: str) -> Repository | None:
        with self._state_lock:
            return self._repositories.get(repository_id)

    def require_repository(self, repository_id: str) -> Repository:
        """Like ``get_repository`` but raises RepositoryNotFoundError."""
        repository = self.get_repository(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(repository_id)
        return repository

    def list_repositories(self) -> list[Repository]:
        with self._state_lock:
            return list(self._repositories.values())

    def get_library(self, repository_id: str) -> ComponentLibrary | None:
        with self._state_lock:
            return self._libraries.get(repository_id)

    def list_libraries(self) -> list[ComponentLibrary]:
        with self._state_lock:
            return list(self._libraries.values())

    def all_components(self) -> list[Component]:
        """Every stored component, in repository then library order."""
        components: list[Component] = []
        for library in self.list_libraries():
            components.extend(library.components)
        return components
