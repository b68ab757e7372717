from datetime import UTC, datetime
from typing import Any

import pytest
from fastapi.testclient import TestClient

from apm_diag.models.telemetry import AppFile, Application, EnrichedError, Segment, Transaction
from apm_diag.services.tools import ToolService

NOW = datetime(2024, 8, 19, 17, 0, 0, tzinfo=UTC)


class FakeFetcher:
    """테스트용 fetcher - path별 고정 응답 + 호출 기록"""

    def __init__(self, get: dict[str, Any] | None = None, post: dict[str, Any] | None = None):
        self.get_responses = get or {}
        self.post_responses = post or {}
        self.calls: list[tuple[str, str, Any]] = []

    async def get(self, path: str, params: dict | None = None) -> Any:
        self.calls.append(("GET", path, params))
        return self.get_responses.get(path)

    async def post(self, path: str, payload: dict) -> Any:
        self.calls.append(("POST", path, payload))
        return self.post_responses.get(path)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def app_info() -> Application:
    return Application(name="Test app", language="php", platform="Laravel")


@pytest.fixture
def app_payload() -> dict:
    """Inspector 앱 정보 응답 (실제 구조)"""
    return {"full_name": "Test app", "platform": {"language": "php", "name": "Laravel"}}


@pytest.fixture
def sample_errors() -> list[EnrichedError]:
    return [
        EnrichedError(
            message="Client error: `POST https://api.openai.com/v1/chat/completions` resulted in a `400 Bad Request` response",
            class_name="GuzzleHttp\\Exception\\ClientException",
            file="/vendor/guzzlehttp/guzzle/src/Exception/RequestException.php",
            line=111,
            group_hash="xyz789",
            created_at="2024-08-18 08:00:00",
            last_seen_at="2024-08-19 16:30:00",  # 30분 전
            nth="25",
            app_file=AppFile(
                file="/app/AI/ChatService.php",
                line=67,
                code="65 | $response = $this->client->post('chat/completions', [\n66 |     'json' => $payload\n67 | ]);",
            ),
        ),
        EnrichedError(
            message="Connection timeout",
            class_name="GuzzleHttp\\Exception\\ConnectException",
            file="/vendor/guzzlehttp/guzzle/src/Handler/CurlHandler.php",
            line=234,
            group_hash="def456",
            created_at="2024-08-18 12:00:00",
            last_seen_at="2024-08-18 14:00:00",
            nth="5",
        ),
        EnrichedError(
            message="SQLSTATE[42S02]: Base table or view not found",
            class_name="PDOException",
            file="/app/Database/Connection.php",
            line=156,
            group_hash="ghi789",
            created_at="2024-08-19 09:00:00",
            last_seen_at="2024-08-19 09:15:00",
            nth="2",
        ),
    ]


@pytest.fixture
def error_payloads() -> list[dict]:
    """`errors` 엔드포인트 응답 (실제 구조)"""
    return [
        {
            "message": "Attempt to read property \"name\" on null",
            "class": "ErrorException",
            "file": "/vendor/laravel/framework/src/Foundation/Bootstrap/HandleExceptions.php",
            "line": 255,
            "group_hash": "aaa111",
            "stack": [
                {
                    "in_app": False,
                    "file": "/vendor/laravel/framework/src/Foundation/Bootstrap/HandleExceptions.php",
                    "line": 255,
                    "code": [],
                },
                {
                    "in_app": True,
                    "file": "/app/Http/Controllers/UserController.php",
                    "line": 42,
                    "code": [
                        {"line": 41, "code": "$user = User::find($id);"},
                        {"line": 42, "code": "return $user->name;"},
                    ],
                },
                {
                    "in_app": True,
                    "file": "/app/Http/Kernel.php",
                    "line": 10,
                    "code": [],
                },
            ],
        },
        {
            "message": "Connection refused",
            "class": "RedisException",
            "file": "/vendor/predis/Connection.php",
            "line": 12,
            "group_hash": "bbb222",
            "stack": [],
        },
    ]


@pytest.fixture
def group_payloads() -> list[dict]:
    """`error-groups` 엔드포인트 응답 (bbb222 그룹 없음)"""
    return [
        {
            "hash": "aaa111",
            "created_at": "2024-08-19 10:00:00",
            "last_seen_at": "2024-08-19 16:58:00",
            "nth": "12",
        },
    ]


def make_transaction(**overrides) -> Transaction:
    data = {
        "hash": "tx-1",
        "name": "GET /api/users",
        "type": "request",
        "result": "success",
        "duration": 120.0,
        "memory_peak": 10.0,
        "timestamp": "2024-08-19 12:00:00",
        "host": {"hostname": "web-01"},
    }
    data.update(overrides)
    return Transaction.model_validate(data)


def make_segment(type: str, label: str, duration: float, start: float = 0.0, **extra) -> Segment:
    return Segment.model_validate({"type": type, "label": label, "duration": duration, "start": start, **extra})


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def tool_service(fetcher) -> ToolService:
    return ToolService(fetcher, clock=lambda: NOW)


@pytest.fixture
def client(fetcher):
    """FastAPI TestClient (ToolService → FakeFetcher로 교체)"""
    from apm_diag.api.tools import get_tool_service
    from apm_diag.main import app

    app.dependency_overrides[get_tool_service] = lambda: ToolService(fetcher, clock=lambda: NOW)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
