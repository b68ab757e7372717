"""Inspector API 클라이언트 - 텔레메트리 조회 (인증된 HTTP fetch)"""

import logging
from typing import Any, Protocol

import httpx

from apm_diag.core.config import Settings, settings

logger = logging.getLogger(__name__)


class InspectorConfigError(RuntimeError):
    """API 키 / 앱 ID 누락"""


class InspectorAPIError(RuntimeError):
    """Inspector API 호출 실패 (HTTP 상태 오류, 네트워크 오류)"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TelemetryFetcher(Protocol):
    """리포트 도구가 사용하는 fetch 인터페이스 (path → 디코딩된 JSON)"""

    async def get(self, path: str, params: dict | None = None) -> Any: ...

    async def post(self, path: str, payload: dict) -> Any: ...


class InspectorClient:
    def __init__(self, config: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _validate(self) -> tuple[str, str]:
        if not self.config.inspector_api_key:
            raise InspectorConfigError("API key not found (INSPECTOR_API_KEY)")
        if not self.config.inspector_app_id:
            raise InspectorConfigError("Inspector application ID not found (INSPECTOR_APP_ID)")
        return self.config.inspector_api_key, self.config.inspector_app_id

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            key, app_id = self._validate()
            self._client = httpx.AsyncClient(
                base_url=f"{self.config.inspector_base_url.rstrip('/')}/{app_id}/",
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "Authorization": f"Bearer {key}",
                },
                timeout=self.config.http_timeout,
                transport=self._transport,
            )
        return self._client

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, payload: dict) -> Any:
        return await self._request("POST", path, json=payload)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path.lstrip("/"), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Inspector API %s %s failed: %s", method, path, e.response.status_code)
            raise InspectorAPIError(
                f"Inspector API returned {e.response.status_code} for {method} {path}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error("Inspector API %s %s unreachable: %s", method, path, e)
            raise InspectorAPIError(f"Inspector API request failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise InspectorAPIError(f"Invalid JSON from {method} {path}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# 싱글톤 (FastAPI lifespan 종료 시 close)
inspector_client = InspectorClient()
