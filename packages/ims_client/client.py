"""Minimal HTTP client for the IMS OData service."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

import requests

LOGGER = logging.getLogger("procureflow.ims")
DEFAULT_TIMEOUT = 30.0
DEFAULT_PREFER = "return=representation"


class ImsClientError(RuntimeError):
    """Raised when the client is misconfigured or the transport fails."""


class ImsHttpError(ImsClientError):
    """Raised when the backend answers with a non-success status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"IMS request failed with status {status_code}")
        self.status_code = status_code
        self.body = body


class ImsPayloadError(ImsClientError):
    """Raised when a backend response body is not the expected JSON."""

    def __init__(self, text: str) -> None:
        super().__init__("IMS response body is not valid JSON")
        self.text = text


@dataclass
class ImsClientConfig:
    """Configuration for connecting to the IMS OData endpoint."""

    base_url: str
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "ImsClientConfig":
        """Create a configuration by reading environment variables."""
        base_url = os.getenv("IMS_BASE_URL")
        if not base_url:
            raise ImsClientError("Missing required environment variables: IMS_BASE_URL")
        raw_timeout = os.getenv("IMS_TIMEOUT_SECONDS")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError:
            timeout = DEFAULT_TIMEOUT
        return cls(base_url=base_url, timeout=timeout)


@dataclass
class ImsResponse:
    """Transport-neutral view of a backend response."""

    status_code: int
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def location(self) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == "location":
                return value
        return None

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except ValueError as exc:
            raise ImsPayloadError(self.text) from exc


class ImsGateway(Protocol):
    """The subset of ``ImsClient`` the domain services depend on."""

    def fetch(
        self, entity: str, *, token: str, params: Optional[Mapping[str, str]] = None
    ) -> Dict[str, Any]: ...

    def fetch_values(
        self, entity: str, *, token: str, params: Optional[Mapping[str, str]] = None
    ) -> List[Dict[str, Any]]: ...

    def send(
        self,
        method: str,
        entity: str,
        *,
        token: Optional[str],
        payload: Mapping[str, Any],
        prefer: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ImsResponse: ...


class ImsClient:
    """Small helper around the IMS OData REST API.

    Every call forwards the caller's bearer token unchanged; the client holds
    no credentials of its own.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        config = ImsClientConfig(base_url=base_url) if base_url else ImsClientConfig.from_env()
        self.base_url = config.base_url.rstrip("/") + "/"
        self.timeout = timeout if timeout is not None else config.timeout
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    def entity_url(self, entity: str) -> str:
        return f"{self.base_url}{entity}"

    # Public API -----------------------------------------------------------------
    def fetch(
        self,
        entity: str,
        *,
        token: str,
        params: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        """GET an entity set and return the decoded JSON document."""

        response = self.request("GET", entity, token=token, params=params)
        if not response.ok:
            LOGGER.error("IMS GET %s failed with status %s", entity, response.status_code)
            raise ImsHttpError(response.status_code, response.text)
        payload = response.json()
        if not isinstance(payload, dict):
            raise ImsPayloadError(response.text)
        return payload

    def fetch_values(
        self,
        entity: str,
        *,
        token: str,
        params: Optional[Mapping[str, str]] = None,
    ) -> list[Dict[str, Any]]:
        """Return the ``value`` array of an entity set query."""

        payload = self.fetch(entity, token=token, params=params)
        values = payload.get("value") or []
        if not isinstance(values, list):
            raise ImsPayloadError(json.dumps(payload))
        return [entry for entry in values if isinstance(entry, dict)]

    def send(
        self,
        method: str,
        entity: str,
        *,
        token: Optional[str],
        payload: Mapping[str, Any],
        prefer: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ImsResponse:
        """Forward a write request; the caller interprets the response status."""

        extra: Dict[str, str] = {"Content-Type": "application/json"}
        if prefer:
            extra["Prefer"] = prefer
        if headers:
            extra.update(headers)
        return self.request(method, entity, token=token, headers=extra, data=json.dumps(payload))

    def request(
        self,
        method: str,
        entity: str,
        *,
        token: Optional[str],
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        data: Optional[str] = None,
    ) -> ImsResponse:
        request_headers: Dict[str, str] = dict(headers or {})
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        url = self.entity_url(entity)
        LOGGER.debug("IMS %s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                params=dict(params) if params else None,
                headers=request_headers,
                data=data,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ImsClientError(f"Request to IMS failed: {exc}") from exc
        return ImsResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )


__all__ = [
    "DEFAULT_PREFER",
    "ImsClient",
    "ImsClientConfig",
    "ImsClientError",
    "ImsGateway",
    "ImsHttpError",
    "ImsPayloadError",
    "ImsResponse",
]
