"""Connector base class and transport error taxonomy."""
from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

import requests

from utils.config import load_settings
from utils.errors import WorkbenchError
from utils.logging import get_logger


class ConnectorError(WorkbenchError):
    """Generic upstream communication error."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class TransientTransportError(ConnectorError):
    """Timeout, connection reset/refused or DNS failure. Safe to retry."""


class RemoteError(ConnectorError):
    """Upstream answered with a non-success HTTP status."""

    def __init__(self, message: str, *, status: int, body: Any = None) -> None:
        super().__init__(message, status=status)
        self.body = body


def is_transient(exc: BaseException) -> bool:
    """Return True for transport failures likely to succeed on retry."""
    if isinstance(exc, requests.exceptions.SSLError):
        return False
    return isinstance(exc, (requests.exceptions.Timeout, requests.exceptions.ConnectionError))


def _decode_body(response: Any) -> Any:
    try:
        return response.json()
    except ValueError:
        return getattr(response, "text", None) or None


class BaseConnector:
    """Base connector encapsulating shared behaviour across adapters."""

    def __init__(
        self,
        *,
        service_name: str,
        base_url: str = "",
        settings: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.service_name = service_name
        self.base_url = base_url.rstrip("/")
        self.settings = settings or load_settings()
        self.logger = get_logger(f"connectors.{service_name}")
        self.session = session or requests.Session()
        self.timeout = float(self.settings.get(service_name, {}).get("timeout_sec", 10))

    # ------------------------------------------------------------------
    # HTTP helper
    # ------------------------------------------------------------------
    def _http_request(
        self,
        method: str,
        endpoint: str,
        *,
        data: bytes | None = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Perform a single request and return the decoded JSON body.

        Non-2xx responses raise ``RemoteError`` with the decoded body attached.
        A success response without a JSON object yields an empty dict.
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        start = time.perf_counter()
        try:
            response = self.session.request(
                method,
                url,
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            error_cls = TransientTransportError if is_transient(exc) else ConnectorError
            raise error_cls(f"{self.service_name} request failed: {exc}") from exc

        status = getattr(response, "status_code", 500)
        latency_ms = (time.perf_counter() - start) * 1000
        self.logger.debug(
            "connector=%s method=%s status=%s latency_ms=%.2f",
            self.service_name,
            method,
            status,
            latency_ms,
        )
        body = _decode_body(response)
        if not 200 <= status < 300:
            raise RemoteError(
                f"{self.service_name} returned HTTP {status}",
                status=status,
                body=body,
            )
        return body if isinstance(body, dict) else {}


def describe_body(body: Any) -> str:
    """Compact text form of a remote error body for log lines."""
    if isinstance(body, (dict, list)):
        return json.dumps(body, default=str)[:500]
    return str(body)[:500]
