"""REST client for the no-code backend.

Thin JSON wrapper over a requests.Session. Authorization comes from an
explicit AuthSession passed in by the caller (or a static API key when no
one is signed in). Every failure, HTTP or network, surfaces as
BackendError so callers have a single exception to handle.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import requests

if TYPE_CHECKING:
    from src.backend.session import AuthSession

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class BackendError(Exception):
    """Raised when a backend request fails or cannot be sent."""

    def __init__(self, message: str, status: int | None = None,
                 path: str | None = None, body: str = ""):
        self.status = status
        self.path = path
        self.body = body
        super().__init__(message)


class BackendConfigError(BackendError):
    """Raised when the backend base URL is not configured."""


class BackendClient:
    """JSON-over-HTTP client.

    Args:
        base_url: Backend API root, e.g. https://x.example.io/api:abc.
        api_key: Optional static bearer token used when no session is set.
        session: Signed-in AuthSession; its token takes precedence.
        timeout: Per-request timeout in seconds.
        http: Injected requests.Session (tests pass a mock).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        session: AuthSession | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        http: requests.Session | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or None
        self.session = session
        self.timeout = timeout
        self._http = http

    @property
    def http(self) -> requests.Session:
        """Lazy-initialize the HTTP session."""
        if self._http is None:
            self._http = requests.Session()
        return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.session.token if self.session is not None else None
        token = token or self.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        body: dict | list | None = None,
        params: dict | None = None,
    ):
        """Send one request and return the decoded JSON, or None.

        Responses without a JSON content type return None.

        Raises:
            BackendConfigError: If no base URL is configured.
            BackendError: On non-2xx status or network failure.
        """
        if not self.base_url:
            raise BackendConfigError(
                "Missing backend base URL. Set FINANCE_API_BASE_URL."
            )

        url = f"{self.base_url}{path}"
        try:
            resp = self.http.request(
                method,
                url,
                json=body,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BackendError(
                f"Backend request failed on {path}: {e}", path=path,
            ) from e

        if not resp.ok:
            text = resp.text or ""
            message = (
                f"Backend request failed ({resp.status_code} {resp.reason})"
                f" on {path}"
            )
            if text:
                message += f": {text}"
            raise BackendError(message, status=resp.status_code, path=path, body=text)

        content_type = resp.headers.get("content-type", "")
        if "application/json" not in content_type:
            return None
        return resp.json()

    def get(self, path: str, params: dict | None = None):
        return self.request("GET", path, params=params)

    def post(self, path: str, body: dict | list | None = None):
        return self.request("POST", path, body=body)

    def put(self, path: str, body: dict | None = None):
        return self.request("PUT", path, body=body)

    def patch(self, path: str, body: dict | None = None):
        return self.request("PATCH", path, body=body)
