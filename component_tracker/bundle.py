"""Client for the external bundle service used by live previews.

The service compiles an entry file into a browser-ready script. Its
internals are opaque: the response is either JavaScript (the script) or
a JSON ``{"error": ...}`` payload.
"""

from dataclasses import dataclass
from pathlib import Path

import httpx

from .sources import resolve_within_root
from .tracker_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.INGESTION)


@dataclass
class BundleResult:
    """Outcome of a bundle request: exactly one of script or error is set."""

    script: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.script is not None


class BundleClient:
    """Requests compiled preview bundles from the bundle service."""

    def __init__(
        self,
        base_url: str = "http://localhost:5055",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BundleClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch_bundle(self, repo_root: Path | str, entry_file: str) -> BundleResult:
        """Bundle one entry file of a repository.

        Args:
            repo_root: Repository root directory.
            entry_file: Entry path relative to the root.

        Returns:
            BundleResult with the script, or with the service or transport error.

        Raises:
            PathTraversalError: If the entry resolves outside the root.
        """
        resolve_within_root(repo_root, entry_file)
        root = str(Path(repo_root).expanduser().resolve())

        try:
            response = self._client.get(
                f"{self.base_url}/api/bundle",
                params={"repoPath": root, "file": entry_file},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Bundle request for {entry_file} failed: {e}")
            return BundleResult(error=f"Bundle service unavailable: {e}")

        content_type = response.headers.get("content-type", "")
        if response.is_success and "javascript" in content_type:
            return BundleResult(script=response.text)

        error = None
        if "application/json" in content_type:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict) and payload.get("error"):
                error = str(payload["error"])

        if error is None:
            error = (
                f"Bundle service returned {response.status_code}"
                if not response.is_success
                else f"Unexpected bundle content type: {content_type or 'unknown'}"
            )
        logger.debug(f"Bundle for {entry_file} failed: {error}")
        return BundleResult(error=error)
