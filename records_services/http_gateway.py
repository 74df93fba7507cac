"""
records_services.http_gateway -- HTTP transport to the academic-metrics API.

Responsibility:
    Implements ``ApprovalDataSource`` and ``EnvironmentProvider`` over the
    academic-metrics REST API with ``httpx``:

        GET  /approvals/pending?role=...            -> {"items": [...], "total": n}
        GET  /approvals/processed?role=...&status=  -> {"items": [...], "total": n}
        PUT  /academic-metrics/{metricsId}          -> {"updatedMetrics": {...}}
        GET  /env                                   -> {"mode": ..., "readOnly": ...}

Architecture position:
    Services -- the only module that performs network I/O.

Invariants enforced:
    - Every request carries the bearer token when one is available.
    - HTTP 401 invokes the ``on_unauthorized`` callback exactly once per
      response before raising ``SessionExpiredError``.
    - No retries; timeouts are configured on the client.
    - A failed environment read keeps the last known mode and read-only
      flag and reports status ``failed``.

Failure modes:
    - SessionExpiredError    -- HTTP 401.
    - ApprovalRejectedError  -- non-2xx carrying a JSON ``message``.
    - ApprovalTransportError -- network failure or an unstructured error.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import httpx

from records_kernel.domain.approval import (
    ApprovalPage,
    EnvironmentState,
    ProcessedStatus,
)
from records_kernel.domain.officers import OfficerRegistry
from records_kernel.domain.wire import record_from_wire
from records_kernel.exceptions import (
    ApprovalRejectedError,
    ApprovalTransportError,
    SessionExpiredError,
)
from records_kernel.logging_config import get_logger

logger = get_logger("services.http_gateway")

TokenProvider = Callable[[], "str | None"]


def _server_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, Mapping):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


class _ApiClient:
    """Shared request plumbing: auth header, 401 handling, error mapping."""

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        on_unauthorized: Callable[[], None] | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _headers(self) -> dict[str, str]:
        token = self._token_provider() if self._token_provider else None
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        subject: str = "",
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = self._client.request(
                method, url, params=params, json=json, headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "api_request_failed",
                extra={"operation": operation, "error": str(exc)},
            )
            raise ApprovalTransportError(operation, str(exc)) from exc

        if response.status_code == 401:
            logger.warning("api_session_expired", extra={"operation": operation})
            if self._on_unauthorized is not None:
                self._on_unauthorized()
            raise SessionExpiredError(subject, 401, _server_message(response))

        if response.is_error:
            message = _server_message(response)
            if message is None:
                raise ApprovalTransportError(
                    operation, f"HTTP {response.status_code}",
                )
            raise ApprovalRejectedError(subject, response.status_code, message)

        try:
            return response.json()
        except ValueError as exc:
            raise ApprovalTransportError(operation, "response was not JSON") from exc


class HttpApprovalDataSource:
    """``ApprovalDataSource`` backed by the academic-metrics REST API."""

    def __init__(
        self,
        registry: OfficerRegistry,
        base_url: str,
        token_provider: TokenProvider | None = None,
        on_unauthorized: Callable[[], None] | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._registry = registry
        self._api = _ApiClient(
            base_url,
            token_provider=token_provider,
            on_unauthorized=on_unauthorized,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._api.close()

    def fetch_pending(self, role: str, limit: int | None = None) -> ApprovalPage:
        params: dict[str, Any] = {"role": role}
        if limit is not None:
            params["limit"] = limit
        payload = self._api.request(
            "GET", "/approvals/pending", operation="fetch_pending", params=params,
        )
        return self._page(payload)

    def fetch_processed(
        self,
        role: str,
        status: ProcessedStatus,
        limit: int | None = None,
    ) -> ApprovalPage:
        params: dict[str, Any] = {"role": role, "status": ProcessedStatus(status).value}
        if limit is not None:
            params["limit"] = limit
        payload = self._api.request(
            "GET", "/approvals/processed", operation="fetch_processed", params=params,
        )
        return self._page(payload)

    def update_approval(
        self,
        metrics_id: str,
        fields: Mapping[str, Any],
    ) -> dict[str, Any]:
        payload = self._api.request(
            "PUT",
            f"/academic-metrics/{metrics_id}",
            operation="update_approval",
            subject=metrics_id,
            json=dict(fields),
        )
        if isinstance(payload, Mapping) and isinstance(payload.get("updatedMetrics"), Mapping):
            return dict(payload["updatedMetrics"])
        return dict(payload or {})

    def _page(self, payload: Any) -> ApprovalPage:
        if isinstance(payload, list):
            items = payload
            total = len(payload)
        else:
            payload = payload or {}
            items = payload.get("items") or []
            total = payload.get("total", len(items))
        return ApprovalPage(
            items=tuple(record_from_wire(doc, self._registry) for doc in items),
            total=int(total),
        )


class HttpEnvironmentProvider:
    """``EnvironmentProvider`` that reads ``GET /env``."""

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._api = _ApiClient(
            base_url, token_provider=token_provider, timeout=timeout, transport=transport,
        )
        self._state = EnvironmentState()

    def close(self) -> None:
        self._api.close()

    def current(self) -> EnvironmentState:
        return self._state

    def refresh(self) -> EnvironmentState:
        """Read the environment endpoint; on failure keep the last known state."""
        try:
            payload = self._api.request("GET", "/env", operation="fetch_environment")
        except (ApprovalRejectedError, ApprovalTransportError) as exc:
            self._state = EnvironmentState(
                mode=self._state.mode,
                read_only=self._state.read_only,
                status="failed",
                error=str(exc),
            )
            return self._state

        payload = payload or {}
        self._state = EnvironmentState(
            mode=str(payload.get("mode") or "UNKNOWN"),
            read_only=bool(payload.get("readOnly")),
            status="succeeded",
        )
        logger.info(
            "environment_refreshed",
            extra={"mode": self._state.mode, "read_only": self._state.read_only},
        )
        return self._state
