"""
Catalog acquisition over HTTP.

Downloads the service catalog and decodes it as JSON. Validation of the
decoded payload is left to RecordStore; this module only reports transport
problems, each classified by an AcquisitionCause. Nothing is retried.
"""

import json
import logging
import time
from typing import Any, Optional
from urllib.parse import quote

import requests

from ctk.constants import CATALOG_QUERY_WITH_CATEGORIES, DEFAULT_REQUEST_TIMEOUT
from ctk.errors import AcquisitionCause, AcquisitionError

logger = logging.getLogger(__name__)


def catalog_url(base: str, include_categories: bool = True) -> str:
    """
    Build the catalog endpoint URL.

    Args:
        base: Catalog endpoint
        include_categories: Ask the portal for the category vocabulary too

    Returns:
        URL to request
    """
    if not include_categories:
        return base
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{CATALOG_QUERY_WITH_CATEGORIES}"


class CatalogFetcher:
    """Fetch a JSON catalog from a URL."""

    def __init__(
        self,
        timeout: int = DEFAULT_REQUEST_TIMEOUT,
        user_agent: Optional[str] = None,
        proxy_url: Optional[str] = None,
        verify_ssl: bool = True,
    ):
        """
        Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds
            user_agent: Custom user agent string
            proxy_url: Optional relay template containing "{url}", for
                endpoints that are only reachable through a raw proxy
            verify_ssl: Verify TLS certificates
        """
        if proxy_url and "{url}" not in proxy_url:
            raise ValueError("proxy_url must contain a '{url}' placeholder")

        self.timeout = timeout
        self.proxy_url = proxy_url
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or "CTK/0.1"
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        })

    def request_url(self, url: str) -> str:
        """URL actually requested, after applying the proxy template."""
        if self.proxy_url:
            return self.proxy_url.replace("{url}", quote(url, safe=""))
        return url

    def fetch_text(self, url: str) -> str:
        """
        GET `url` and return the response body.

        Raises:
            AcquisitionError: CONNECTIVITY, TIMEOUT or HTTP_STATUS
        """
        target = self.request_url(url)
        logger.info(f"Fetching catalog from {target}")

        try:
            start_time = time.time()
            response = self.session.get(target, timeout=self.timeout, verify=self.verify_ssl)
            response_time = (time.time() - start_time) * 1000
        except requests.exceptions.Timeout as e:
            raise AcquisitionError(
                f"Request timed out after {self.timeout}s", AcquisitionCause.TIMEOUT
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise AcquisitionError(
                f"Could not connect to {target}: {e}", AcquisitionCause.CONNECTIVITY
            ) from e
        except requests.exceptions.RequestException as e:
            raise AcquisitionError(f"Request failed: {e}", AcquisitionCause.CONNECTIVITY) from e

        logger.debug(f"HTTP {response.status_code} in {response_time:.0f}ms")

        if not 200 <= response.status_code < 300:
            raise AcquisitionError(
                f"HTTP error: {response.status_code} - {response.reason}",
                AcquisitionCause.HTTP_STATUS,
                status_code=response.status_code,
            )

        if not response.encoding:
            response.encoding = "utf-8"
        return response.text

    def fetch(self, url: str) -> Any:
        """
        GET `url` and decode the body as JSON.

        Returns:
            The decoded payload

        Raises:
            AcquisitionError: On transport failure or a body that is not
                complete JSON (MALFORMED)
        """
        text = self.fetch_text(url).strip()

        if not text.endswith("}") and not text.endswith("]"):
            raise AcquisitionError("Incomplete JSON data received", AcquisitionCause.MALFORMED)

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise AcquisitionError(f"Response is not valid JSON: {e}", AcquisitionCause.MALFORMED) from e

        logger.info(f"Fetched {len(text)} characters from {url}")
        return payload

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
