"""GitHub source client for plugin manifests and files.

Plugins are GitHub repositories with a ``plugin.bifrost`` manifest at the
root and the contributed files under ``files/``. Everything is read from
raw.githubusercontent.com over HTTPS.
"""

from __future__ import annotations

import json
import logging
import ssl
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from bifrost.config.parser import PLUGIN_MANIFEST_FILE, ConfigError, parse_plugin_manifest
from bifrost.config.schemas import PluginManifest

logger = logging.getLogger(__name__)

RAW_BASE_URL = "https://raw.githubusercontent.com"
DEFAULT_TIMEOUT = 30  # seconds


class FetchError(Exception):
    """Error fetching content from a plugin source."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


def http_get(
    url: str,
    headers: dict[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    context: ssl.SSLContext | None = None,
) -> bytes:
    """Make a GET request.

    Args:
        url: URL to request
        headers: Optional HTTP headers
        timeout: Request timeout in seconds
        context: SSL context (a default one is created if omitted)

    Returns:
        Response body as bytes

    Raises:
        FetchError: If the request fails
    """
    logger.debug("Fetching %s", url)
    if context is None:
        context = ssl.create_default_context()
    try:
        request = Request(url, method="GET")
        for key, value in (headers or {}).items():
            request.add_header(key, value)

        with urlopen(request, timeout=timeout, context=context) as response:
            result: bytes = response.read()
            logger.debug("Received %d bytes from %s", len(result), url)
            return result
    except HTTPError as e:
        logger.error("HTTP error %d: %s for %s", e.code, e.reason, url)
        raise FetchError(
            f"HTTP {e.code}: {e.reason} for {url}",
            url=url,
            status_code=e.code,
        ) from e
    except URLError as e:
        logger.error("Failed to connect to %s: %s", url, e.reason)
        raise FetchError(f"Failed to connect to {url}: {e.reason}", url=url) from e
    except TimeoutError as e:
        logger.error("Request timed out for %s", url)
        raise FetchError(f"Request timed out for {url}", url=url) from e


def decode_text(content: bytes, url: str) -> str:
    """Decode fetched bytes as UTF-8."""
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FetchError(f"Content at {url} is not valid UTF-8", url=url) from e


class GitHubSource:
    """Fetches plugin content from a GitHub repository.

    URL formats:
    - {base}/{owner}/{repo}/{branch}/plugin.bifrost
    - {base}/{owner}/{repo}/{branch}/files/{name}
    """

    def __init__(
        self,
        repo: str,
        branch: str = "main",
        base_url: str = RAW_BASE_URL,
        timeout: int | None = None,
        headers: dict[str, str] | None = None,
    ):
        """Initialize the source.

        Args:
            repo: Source coordinate (owner/repo)
            branch: Branch to read from
            base_url: Raw content host
            timeout: Request timeout in seconds (default: 30)
            headers: Optional HTTP headers (for authentication, etc.)
        """
        self.repo = repo.strip("/")
        self.branch = branch
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout or DEFAULT_TIMEOUT
        self._headers = headers or {}
        self._ssl_context = ssl.create_default_context()

    @property
    def root_url(self) -> str:
        """Base URL for this repository's raw content."""
        return f"{self._base_url}/{self.repo}/{self.branch}"

    def url_for(self, path: str) -> str:
        """Get the raw URL of a path inside the repository."""
        return f"{self.root_url}/{quote(path.lstrip('/'))}"

    def fetch_text(self, path: str) -> str:
        """Fetch a repository path as UTF-8 text.

        Raises:
            FetchError: If the request fails
        """
        url = self.url_for(path)
        content = http_get(url, self._headers, self._timeout, self._ssl_context)
        return decode_text(content, url)

    def fetch_file(self, name: str) -> str:
        """Fetch a file contributed by the plugin (from files/)."""
        try:
            return self.fetch_text(f"files/{name}")
        except FetchError as e:
            raise FetchError(
                f"Failed to fetch file {name}: {e}", url=e.url, status_code=e.status_code
            ) from e

    def fetch_manifest(self) -> PluginManifest:
        """Fetch and validate the plugin manifest.

        Raises:
            FetchError: If the manifest cannot be fetched or is invalid
        """
        try:
            text = self.fetch_text(PLUGIN_MANIFEST_FILE)
        except FetchError as e:
            raise FetchError(
                f"Failed to fetch plugin configuration: {e}", url=e.url, status_code=e.status_code
            ) from e

        url = self.url_for(PLUGIN_MANIFEST_FILE)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise FetchError(f"Invalid JSON in plugin configuration at {url}: {e}", url=url) from e

        try:
            return parse_plugin_manifest(data, url)
        except ConfigError as e:
            raise FetchError(str(e), url=url) from e

    def __repr__(self) -> str:
        return f"GitHubSource(repo={self.repo!r}, branch={self.branch!r})"
