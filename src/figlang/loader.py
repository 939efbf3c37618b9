"""
Fetching of included documents.

Locations without a scheme (or with the ``file`` scheme) are read from the
filesystem, relative to the directory of the including document. ``http``
and ``https`` locations are fetched with a GET request; relative locations
inside a remote document resolve against its URL. Any other scheme is an
error.
"""

import logging
import os
from typing import Optional
from urllib.parse import urljoin, urlparse, unquote

import httpx

from .errors import error_include


logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("http", "https")


def _is_remote(location: str) -> bool:
    return urlparse(location).scheme in REMOTE_SCHEMES


class Loader:
    """
    Resolves and reads include locations.

    Usage:
        loader = Loader(timeout=5.0)
        text = loader.fetch("base.fig", base_dir="/etc/app")

    An ``httpx.Client`` may be injected, e.g. one built on
    ``httpx.MockTransport`` in tests. Without one, a client is created per
    remote fetch.
    """

    def __init__(self, client: Optional[httpx.Client] = None, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout

    def resolve(self, location: str, base_dir: Optional[str] = None) -> str:
        """Absolute form of ``location`` as seen from ``base_dir``."""
        parsed = urlparse(location)
        if parsed.scheme in REMOTE_SCHEMES:
            return location
        if parsed.scheme == "file":
            return os.path.normpath(unquote(parsed.path))
        if parsed.scheme and len(parsed.scheme) > 1:
            raise error_include(location, f"unsupported scheme '{parsed.scheme}'")
        if base_dir and _is_remote(base_dir):
            return urljoin(base_dir, location)
        if os.path.isabs(location) or not base_dir:
            return os.path.normpath(location)
        return os.path.normpath(os.path.join(base_dir, location))

    def base_of(self, resolved: str) -> str:
        """The directory (or URL base) relative includes of ``resolved`` start from."""
        if _is_remote(resolved):
            return urljoin(resolved, ".")
        return os.path.dirname(resolved)

    def fetch(self, location: str, base_dir: Optional[str] = None) -> str:
        """
        Read the content of ``location``.

        Raises:
            IncludeResolutionError: If the location cannot be read
        """
        resolved = self.resolve(location, base_dir)
        if _is_remote(resolved):
            return self._fetch_remote(resolved)
        return self._fetch_file(resolved)

    def _fetch_file(self, path: str) -> str:
        logger.debug("Reading include %s", path)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            raise error_include(path, exc.strerror or str(exc)) from exc
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise error_include(path, "not valid UTF-8") from exc

    def _fetch_remote(self, url: str) -> str:
        logger.debug("Fetching include %s", url)
        try:
            if self.client is not None:
                response = self.client.get(url)
            else:
                options = {"follow_redirects": True}
                if self.timeout is not None:
                    options["timeout"] = self.timeout
                with httpx.Client(**options) as client:
                    response = client.get(url)
        except httpx.HTTPError as exc:
            raise error_include(url, str(exc)) from exc
        if response.status_code >= 400:
            raise error_include(url, f"HTTP {response.status_code}")
        return response.text
