from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import httpx
import structlog

from visa_workflow.infrastructure.observability.correlation import CORRELATION_ID_HEADER, ensure_correlation_id

logger = structlog.get_logger(__name__)


@dataclass
class VisaApiError(Exception):
    status: int
    code: str
    message: str
    details: Any
    request_id: str

    def __str__(self) -> str:
        return f"[{self.status}] {self.code}: {self.message} (request_id={self.request_id})"


def _build_auth_headers(
    api_key: Optional[str],
    default_headers: Optional[Dict[str, str]],
) -> Dict[str, str]:
    headers = dict(default_headers or {})
    if api_key and "Authorization" not in headers:
        headers["Authorization"] = f"Bearer {api_key}"
    headers.setdefault(CORRELATION_ID_HEADER, ensure_correlation_id())
    return headers


def _raise_from_http_error(status_code: int, response_text: str, response_headers: Mapping[str, str], payload: Any) -> None:
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, str):
        error = {"message": error}
    if not isinstance(error, dict):
        message = payload.get("message") if isinstance(payload, dict) else None
        error = {
            "code": "UNPARSEABLE_ERROR",
            "message": message or response_text,
            "details": None,
        }

    raise VisaApiError(
        status=status_code,
        code=str(error.get("code") or "HTTP_ERROR"),
        message=str(error.get("message") or "Request failed"),
        details=error.get("details"),
        request_id=str(error.get("request_id") or response_headers.get(CORRELATION_ID_HEADER) or "unknown"),
    )


class AsyncVisaApiClient:
    """
    Thin async client for the CRM backend's university and visa-process endpoints.
    Paths are relative to base_url (which already carries the /api/ prefix).
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 30.0,
        default_headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.default_headers = default_headers or {}
        self._managed_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def __aenter__(self) -> "AsyncVisaApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._managed_client:
            await self.client.aclose()

    async def list_universities(self, api_key: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._request("GET", "universities", api_key=api_key)

    async def get_visa_process(self, university_id: str, student_id: str, api_key: Optional[str] = None) -> Any:
        return await self._request(
            "GET",
            f"auth/getVisaProcessByuniversityidsss/{university_id}/{student_id}",
            api_key=api_key,
        )

    async def create_visa_process(
        self,
        data: Dict[str, str],
        files: Optional[Dict[str, Any]] = None,
        api_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request("POST", "createVisaProcess", data=data, files=files, api_key=api_key)

    async def update_visa_process(
        self,
        record_id: str,
        data: Dict[str, str],
        files: Optional[Dict[str, Any]] = None,
        api_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request("PUT", f"createVisaProcess/{record_id}", data=data, files=files, api_key=api_key)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        api_key: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = _build_auth_headers(api_key or self.api_key, self.default_headers)
        response = await self.client.request(
            method=method,
            url=url,
            headers=headers,
            params=params,
            data=data,
            files=files or None,
            timeout=self.timeout_seconds,
        )
        logger.debug("visa_api_response", method=method, path=path, status=response.status_code)

        if response.is_success:
            if not response.content:
                return {}
            return response.json()

        try:
            payload = response.json()
        except ValueError:
            payload = None
        _raise_from_http_error(response.status_code, response.text, response.headers, payload)
