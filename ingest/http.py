"""
Single-shot JSON request helpers shared by the GitLab and Jira clients.
Non-2xx responses raise ApiError; nothing is retried.
"""

from typing import Any, Dict, Optional

import requests

STATUS_MESSAGES = {
    400: "malformed request",
    401: "authentication failed, check the configured credentials",
    403: "permission denied",
    404: "resource not found or not accessible",
    409: "conflict",
    422: "malformed request",
    429: "rate limited, try again later",
}


class ApiError(Exception):
    """A remote call returned a non-success status."""

    def __init__(self, service: str, status: int, message: str = ""):
        self.service = service
        self.status = status
        self.message = message
        super().__init__(self.describe())

    @property
    def kind(self) -> str:
        return STATUS_MESSAGES.get(self.status, "unexpected response")

    def describe(self) -> str:
        detail = f": {self.message}" if self.message else ""
        return f"{self.service} HTTP {self.status} ({self.kind}){detail}"


def _error_message(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (getattr(resp, "text", "") or "")[:200]
    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"])
        if body.get("errorMessages"):
            return ", ".join(str(m) for m in body["errorMessages"])
        if body.get("error"):
            return str(body["error"])
    return str(body)[:200]


def _handle(resp, service: str) -> Any:
    status = resp.status_code
    if 200 <= status < 300:
        if not resp.content:
            return None
        return resp.json()
    raise ApiError(service, status, _error_message(resp))


def get_json(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    session: Optional[requests.Session] = None,
    service: str = "api",
    timeout: Optional[float] = None,
) -> Any:
    """GET url and return the decoded JSON body."""
    getter = session.get if session is not None else requests.get
    resp = getter(url, headers={"Accept": "application/json", **(headers or {})}, params=params or {}, timeout=timeout)
    return _handle(resp, service)


def post_json(
    url: str,
    payload: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
    session: Optional[requests.Session] = None,
    service: str = "api",
    timeout: Optional[float] = None,
) -> Any:
    """POST a JSON payload and return the decoded JSON body."""
    poster = session.post if session is not None else requests.post
    resp = poster(url, json=payload, headers={"Accept": "application/json", **(headers or {})}, timeout=timeout)
    return _handle(resp, service)
