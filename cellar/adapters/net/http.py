"""
URL transport — downloads source archives with ``urllib.request``.

Handles ``https://``, ``http://`` and ``file://`` URLs. Every failure
becomes a ``NetworkError``; HTTP client errors that retrying cannot
fix (404, 403, ...) are flagged ``retryable=False``.
"""

from __future__ import annotations

import logging
import socket
import urllib.error
import urllib.request
from typing import BinaryIO

from cellar import __version__
from cellar.adapters.base import SourceTransport
from cellar.core.errors import NetworkError

logger = logging.getLogger(__name__)

_CHUNK = 65536

# Client errors that may succeed on a later attempt
_RETRYABLE_4XX = {408, 425, 429}


class UrlTransport(SourceTransport):
    """Stream a URL's body into a file object."""

    def __init__(self, user_agent: str | None = None):
        self._user_agent = user_agent or f"cellar/{__version__}"

    @property
    def name(self) -> str:
        return "http"

    def download(self, url: str, sink: BinaryIO, timeout: float) -> int:
        req = urllib.request.Request(url, headers={"User-Agent": self._user_agent})
        written = 0
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                for chunk in iter(lambda: resp.read(_CHUNK), b""):
                    sink.write(chunk)
                    written += len(chunk)
        except urllib.error.HTTPError as e:
            retryable = e.code >= 500 or e.code in _RETRYABLE_4XX
            raise NetworkError(
                f"HTTP {e.code} fetching {url}: {e.reason}",
                url=url,
                retryable=retryable,
            ) from e
        except urllib.error.URLError as e:
            raise NetworkError(f"Cannot fetch {url}: {e.reason}", url=url) from e
        except (TimeoutError, socket.timeout) as e:
            raise NetworkError(f"Timed out after {timeout}s fetching {url}", url=url) from e
        except (ConnectionError, OSError) as e:
            raise NetworkError(f"Transfer of {url} failed: {e}", url=url) from e

        logger.debug("Downloaded %d bytes from %s", written, url)
        return written
