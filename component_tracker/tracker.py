"""Top-level application object.

``ComponentTracker`` owns the repository store and wires discovery,
extraction, ingestion and the consistency engine around it. The CLI and
any embedding application go through this class.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from .bundle import BundleClient, BundleResult
from .comparison import ConsistencyEngine
from .config import ScanOptions, TrackerConfig
from .discovery import CancelToken, DiscoveredFile, FileDiscoverer, probe_repository_info
from .errors import (
    InvalidSourceUrlError,
    RootPathError,
    ScanCancelledError,
    ScanError,
    StorageError,
    TrackerError,
)
from .extraction import ComponentExtractor
from .ingestion import (
    FigmaAdapter,
    FigmaClient,
    LibraryAdapter,
    LibraryClient,
    extract_file_key,
    parse_local_export,
)
from .models import (
    Component,
    ComponentComparison,
    ComponentLibrary,
    Repository,
    RepositoryKind,
)
from .sources import read_source, write_source
from .store import JSONFileBackend, RepositoryStore
from .tracker_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.SCANNER)


@dataclass
class ScanResult:
    """Outcome of scanning one repository."""

    repository_id: str
    success: bool
    component_count: int = 0
    duration_ms: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "repositoryId": self.repository_id,
            "success": self.success,
            "componentCount": self.component_count,
            "durationMs": round(self.duration_ms, 1),
            "error": self.error,
        }


class ComponentTracker:
    """Tracks components across repositories and compares them."""

    def __init__(
        self,
        config: TrackerConfig | None = None,
        store: RepositoryStore | None = None,
        extractor: ComponentExtractor | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the tracker.

        Args:
            config: Application configuration. Defaults to ``TrackerConfig()``.
            store: Repository store. Defaults to a JSON-file store under
                ``config.state_dir``, loaded immediately.
            extractor: Component extractor for local scans.
            http_client: Optional httpx client shared by the remote adapters.
        """
        self.config = config or TrackerConfig()
        if store is None:
            store = RepositoryStore(JSONFileBackend(self.config.state_dir))
            store.load()
        self.store = store
        self.extractor = extractor or ComponentExtractor()
        self.engine = ConsistencyEngine(self.store)
        self._http_client = http_client

    # Registration

    def add_repository(
        self,
        path: Path | str,
        name: str | None = None,
        description: str | None = None,
    ) -> Repository:
        """Register a local repository.

        Name and description default to the root's ``package.json``.

        Raises:
            RootPathError: If the path is not an existing directory.
        """
        root = Path(path).expanduser().resolve()
        if not root.exists():
            raise RootPathError(str(root))
        if not root.is_dir():
            raise RootPathError(str(root), reason="is not a directory")

        info = probe_repository_info(root)
        repository = Repository(
            id="",
            name=name or info["name"],
            path=str(root),
            kind=RepositoryKind.LOCAL,
            description=description or info["description"],
        )
        return self.store.register(repository)

    def add_figma_repository(
        self,
        url: str,
        name: str | None = None,
        token: str | None = None,
    ) -> Repository:
        """Import a Figma file through the REST API and register it.

        Nothing is registered when the import fails.

        Raises:
            InvalidSourceUrlError: If the URL has no Figma file key.
            MissingCredentialsError: If no token is available or access is denied.
            IngestionError: On other fetch failures.
        """
        file_key = extract_file_key(url)
        if not file_key:
            raise InvalidSourceUrlError(
                url, "a figma.com/file/<key> or figma.com/design/<key> URL"
            )

        figma_file, components = self._fetch_figma(file_key, token)
        repository = Repository(
            id="",
            name=name or figma_file.get("name") or "Figma File",
            path=url,
            kind=RepositoryKind.FIGMA,
            description=f"Figma design file {file_key}",
            url=url,
            figma_file_key=file_key,
        )
        return self._register_with_components(repository, components)

    def import_figma_export(
        self, content: str | bytes, name: str | None = None, source: str = "local export"
    ) -> Repository:
        """Register a repository from a Figma JSON export.

        Raises:
            UnsupportedPayloadError: For binary ``.fig`` files or invalid JSON.
        """
        figma_file = parse_local_export(content)
        components = FigmaAdapter().convert(figma_file)
        repository = Repository(
            id="",
            name=name or figma_file.get("name") or "Figma File",
            path=source,
            kind=RepositoryKind.FIGMA,
            description="Imported from a Figma JSON export",
        )
        return self._register_with_components(repository, components)

    def add_library_repository(
        self,
        url: str,
        auth_token: str | None = None,
        name: str | None = None,
    ) -> Repository:
        """Import a published component library and register it.

        Nothing is registered when the import fails.

        Raises:
            InvalidSourceUrlError: If the URL is not absolute http(s).
            MissingCredentialsError: If the library rejects the credentials.
            UnsupportedPayloadError: If the payload is neither JSON nor HTML.
        """
        metadata, components = self._fetch_library(url, auth_token)
        repository = Repository(
            id="",
            name=name or metadata.name,
            path=url,
            kind=RepositoryKind.REMOTE,
            description=metadata.description,
            url=url,
        )
        return self._register_with_components(repository, components)

    def _register_with_components(
        self, repository: Repository, components: list[Component]
    ) -> Repository:
        repository = self.store.register(repository)
        try:
            self.store.replace_library(repository.id, components)
        except StorageError:
            self.store.remove(repository.id)
            raise
        return self.store.require_repository(repository.id)

    def _fetch_figma(
        self, file_key: str, token: str | None
    ) -> tuple[dict[str, Any], list[Component]]:
        with FigmaClient(
            token or self.config.figma_api_token,
            base_url=self.config.figma_api_url,
            timeout=self.config.http_timeout,
            client=self._http_client,
        ) as client:
            figma_file = client.fetch_file(file_key)
            adapter = FigmaAdapter()
            node_ids = [
                str(node["id"])
                for node in adapter.find_component_nodes(figma_file["document"])
                if node.get("id")
            ]
            images = client.fetch_component_images(file_key, node_ids)
        return figma_file, adapter.convert(figma_file, images)

    def _fetch_library(self, url: str, auth_token: str | None):
        with LibraryClient(
            timeout=self.config.http_timeout, client=self._http_client
        ) as client:
            metadata = client.fetch(url, auth_token)
        return metadata, LibraryAdapter().convert(metadata)

    # Scanning

    def scan_repository(
        self,
        repository_id: str,
        options: ScanOptions | None = None,
        cancel_token: CancelToken | None = None,
    ) -> ComponentLibrary:
        """Rescan one repository and replace its library.

        Local repositories are discovered and extracted; Figma and remote
        repositories are fetched again from their source URL. The library
        is written only after every file is processed, so a failed or
        cancelled scan leaves the previous library in place.

        Args:
            repository_id: Repository to scan.
            options: Scan filters; defaults to ``config.scan``.
            cancel_token: Optional cancellation token.

        Returns:
            The new component library.

        Raises:
            RepositoryNotFoundError: If the repository is not registered.
            RootPathError: If a local root is missing.
            ScanCancelledError: If cancelled before the swap.
            ScanError: If the repository cannot be rescanned.
        """
        repository = self.store.require_repository(repository_id)
        start = time.time()

        with self.store.lock_for(repository_id):
            if repository.kind is RepositoryKind.LOCAL:
                components = self._scan_local(repository, options, cancel_token)
            elif repository.kind is RepositoryKind.FIGMA and repository.figma_file_key:
                _, components = self._fetch_figma(repository.figma_file_key, None)
            elif repository.kind is RepositoryKind.REMOTE and repository.url:
                _, components = self._fetch_library(repository.url, None)
            else:
                raise ScanError(
                    f"Repository {repository.name} has no source to rescan",
                    repository_id=repository_id,
                    suggestion="Re-import the Figma export instead",
                )

            if cancel_token is not None:
                cancel_token.raise_if_cancelled(repository_id)
            library = self.store.replace_library(repository_id, components)

        duration_ms = (time.time() - start) * 1000
        logger.info(
            f"Scanned {repository.name}: {len(library.components)} components "
            f"in {duration_ms:.0f}ms",
            extra={
                "repository_id": repository_id,
                "component_count": len(library.components),
                "duration_ms": round(duration_ms, 1),
            },
        )
        return library

    def _scan_local(
        self,
        repository: Repository,
        options: ScanOptions | None,
        cancel_token: CancelToken | None,
    ) -> list[Component]:
        discoverer = FileDiscoverer(options or self.config.scan)
        files = discoverer.discover(repository.path, cancel_token, repository.id)
        return self.extract_components(files, cancel_token, repository.id)

    def extract_components(
        self,
        files: list[DiscoveredFile],
        cancel_token: CancelToken | None = None,
        repository_id: str | None = None,
    ) -> list[Component]:
        """Run the extractor over files on a thread pool.

        Returns:
            Extracted components ordered by id.

        Raises:
            ScanCancelledError: If the token is cancelled before all files finish.
        """
        components: list[Component] = []
        if not files:
            return components

        executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
        try:
            futures = [executor.submit(self.extractor.extract, f) for f in files]
            for future in as_completed(futures):
                if cancel_token is not None and cancel_token.cancelled:
                    raise ScanCancelledError(repository_id)
                component = future.result()
                if component is not None:
                    components.append(component)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        components.sort(key=lambda c: c.id)
        return components

    def scan_repositories(
        self,
        repository_ids: list[str] | None = None,
        options: ScanOptions | None = None,
        cancel_token: CancelToken | None = None,
    ) -> list[ScanResult]:
        """Scan several repositories concurrently.

        A failure in one repository is reported in its result and does not
        affect the others.

        Args:
            repository_ids: Repositories to scan; defaults to all.
            options: Scan filters for local repositories.
            cancel_token: Optional token shared by every scan.

        Returns:
            One ScanResult per repository, in request order.
        """
        if repository_ids is None:
            repository_ids = [r.id for r in self.store.list_repositories()]
        if not repository_ids:
            return []

        def run(repository_id: str) -> ScanResult:
            start = time.time()
            try:
                library = self.scan_repository(repository_id, options, cancel_token)
            except TrackerError as e:
                logger.warning(
                    f"Scan of {repository_id} failed: {e.message}",
                    extra={"repository_id": repository_id},
                )
                return ScanResult(
                    repository_id=repository_id,
                    success=False,
                    duration_ms=(time.time() - start) * 1000,
                    error=e.message,
                )
            return ScanResult(
                repository_id=repository_id,
                success=True,
                component_count=len(library.components),
                duration_ms=(time.time() - start) * 1000,
            )

        workers = min(self.config.max_workers, len(repository_ids))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(run, repository_ids))

    # Other operations

    def remove_repository(self, repository_id: str) -> bool:
        """Remove a repository and its library. Returns False if unknown."""
        with self.store.lock_for(repository_id):
            return self.store.remove(repository_id)

    def compare(self) -> list[ComponentComparison]:
        """Compare same-named components across all repositories."""
        return self.engine.compare()

    def list_repositories(self) -> list[Repository]:
        return self.store.list_repositories()

    def get_library(self, repository_id: str) -> ComponentLibrary | None:
        return self.store.get_library(repository_id)

    def read_component_source(self, repository_id: str, relative_path: str) -> str:
        """Read a source file of a local repository."""
        repository = self._require_local(repository_id)
        return read_source(repository.path, relative_path)

    def write_component_source(
        self, repository_id: str, relative_path: str, content: str
    ) -> None:
        """Overwrite a source file of a local repository."""
        repository = self._require_local(repository_id)
        write_source(repository.path, relative_path, content)

    def preview_bundle(self, repository_id: str, entry_file: str) -> BundleResult:
        """Ask the bundle service for a preview script of one entry file."""
        repository = self._require_local(repository_id)
        with BundleClient(
            self.config.bundle_service_url,
            timeout=self.config.http_timeout,
            client=self._http_client,
        ) as client:
            return client.fetch_bundle(repository.path, entry_file)

    def _require_local(self, repository_id: str) -> Repository:
        repository = self.store.require_repository(repository_id)
        if repository.kind is not RepositoryKind.LOCAL:
            raise ScanError(
                f"Repository {repository.name} has no local sources",
                repository_id=repository_id,
            )
        return repository
