"""Minimal client for the OVM back-office API."""
from typing import Optional
from urllib.parse import urljoin

import requests

from ovm_sync import settings
from ovm_sync.errors import ApiError
from ovm_sync.logging_conf import logger
from ovm_sync.uploads import UploadRequest


class ApiClient:
    """Sends queued uploads to the remote API.

    Every call is a single attempt. Retrying is the sync engine's business
    and happens on the next trigger, not inside the client.
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.API_BASE_URL or "").rstrip("/") + "/"
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        token = token if token is not None else settings.API_TOKEN
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def send(self, upload: UploadRequest) -> requests.Response:
        """
        Issue one request and return the response.

        Args:
            upload: Request descriptor built from a queue item

        Returns:
            The 2xx response

        Raises:
            ApiError: the server answered with a non-2xx status
            requests.RequestException: timeout or network failure
        """
        url = self.resolve(upload.url)
        response = self.session.request(
            method=upload.method,
            url=url,
            json=upload.json,
            data=upload.data,
            files=upload.files,
            headers=upload.headers or None,
            timeout=self.timeout,
        )

        if not 200 <= response.status_code < 300:
            logger.warning(f"{upload.method} {url} -> {response.status_code}")
            raise ApiError(response.status_code, response.reason or "", url)

        logger.debug(f"{upload.method} {url} -> {response.status_code}")
        return response

    def resolve(self, url: str) -> str:
        """Resolve a relative API path against the base URL."""
        if url.startswith(("http://", "https://")):
            return url
        return urljoin(self.base_url, url.lstrip("/"))

    def close(self):
        self.session.close()
