# spentiva/client/http.py
import logging
from typing import Any, Dict, Optional

import requests

from spentiva.client.storage import ClientStorage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class ApiClient:
    """
    Thin requests wrapper for the Spentiva API.

    Adds the stored bearer token to every call and returns
    ``{"data": body, "status": http_status}``. Non-2xx responses raise
    ``requests.HTTPError``; a 401 also clears the stored token so the next
    call goes out unauthenticated.
    """

    def __init__(
        self,
        base_url: str,
        storage: Optional[ClientStorage] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.storage = storage
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.timeout = timeout

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        token = self.storage.get_auth_token() if self.storage else None
        return {"Authorization": f"Bearer {token}"} if token else {}

    def request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        headers = self._headers()
        headers.update(kwargs.pop("headers", None) or {})
        resp = self.session.request(method, self._url(endpoint), headers=headers, timeout=self.timeout, **kwargs)

        if resp.status_code == 401 and self.storage:
            logger.info("Received 401 from %s, clearing stored token", endpoint)
            self.storage.remove_auth_token()
        resp.raise_for_status()

        try:
            body = resp.json()
        except ValueError:
            body = resp.text or None
        return {"data": body, "status": resp.status_code}

    def get_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request("GET", endpoint, params=params)

    def post_request(self, endpoint: str, data: Any = None) -> Dict[str, Any]:
        return self.request("POST", endpoint, json=data)

    def put_request(self, endpoint: str, data: Any = None) -> Dict[str, Any]:
        return self.request("PUT", endpoint, json=data)

    def patch_request(self, endpoint: str, data: Any = None) -> Dict[str, Any]:
        return self.request("PATCH", endpoint, json=data)

    def delete_request(self, endpoint: str, data: Any = None) -> Dict[str, Any]:
        return self.request("DELETE", endpoint, json=data)
