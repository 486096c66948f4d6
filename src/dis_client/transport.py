"""
HTTP transport for the DIS REST API.

Wraps a shared ``httpx.Client``; every request carries the project id header
(and the security token when configured). Request signing is pluggable through
``httpx.Auth`` and not implemented here.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx
from loguru import logger

from .config import DISConfig
from .errors import TransportFailure, map_http_error
from .metrics import REQUEST_LATENCY_MS

HTTP_X_PROJECT_ID = "X-Project-Id"
HTTP_X_SECURITY_TOKEN = "X-Security-Token"


class RestTransport:
    def __init__(
        self,
        config: DISConfig,
        *,
        http_client: Optional[httpx.Client] = None,
        auth: Optional[httpx.Auth] = None,
    ):
        self._cfg = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=config.timeout_s)
        self._auth = auth

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json; charset=utf-8",
            "Accept": "application/json",
            HTTP_X_PROJECT_ID: self._cfg.project_id or "",
        }
        if self._cfg.security_token:
            headers[HTTP_X_SECURITY_TOKEN] = self._cfg.security_token
        return headers

    def request(
        self,
        method: str,
        endpoint: str,
        path: str,
        *,
        operation: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Send one request and return the decoded JSON body ({} when empty).

        Raises:
            TransportFailure: network error or HTTP status >= 400
        """
        url = endpoint.rstrip("/") + path
        t0 = time.perf_counter()
        try:
            resp = self._http.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
                auth=self._auth if self._auth is not None else httpx.USE_CLIENT_DEFAULT,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            err = map_http_error(e)
            logger.debug(f"{operation} {method} {url} failed: {err}")
            raise err from e
        finally:
            REQUEST_LATENCY_MS.labels(operation=operation).observe(
                (time.perf_counter() - t0) * 1000.0
            )

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise TransportFailure(f"invalid JSON in {operation} response: {e}") from e
