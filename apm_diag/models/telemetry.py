import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


def to_int(value: Any) -> int:
    """숫자/문자열 카운트 → int (빈 값, 파싱 불가 → 0)"""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    try:
        return max(int(float(str(value).strip())), 0)
    except (ValueError, OverflowError):
        return 0


def to_float(value: Any) -> float:
    """숫자/문자열 duration, memory → float (빈 값, 파싱 불가 → 0.0)"""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(str(value).strip())
    except ValueError:
        return 0.0
    return max(number, 0.0) if math.isfinite(number) else 0.0


def to_line(value: Any) -> int | None:
    """소스 줄 번호 → int (빈 값, 파싱 불가 → None)"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return int(number) if math.isfinite(number) else None


def to_mapping(value: Any) -> dict | BaseModel | None:
    """PHP 빈 배열 `[]` 등 dict가 아닌 값 → None"""
    return value if isinstance(value, (dict, BaseModel)) else None


class TelemetryModel(BaseModel):
    """백엔드 JSON 파싱용 공통 설정 (모르는 필드 무시, alias/필드명 둘 다 허용)"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Application(TelemetryModel):
    name: str
    language: str
    platform: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_payload(cls, payload: dict) -> "Application":
        platform = to_mapping(payload.get("platform")) or {}
        return cls(
            name=payload.get("full_name") or payload.get("name") or "Unknown",
            language=platform.get("language") or "unknown",
            platform=platform.get("name") or "unknown",
        )

    def description(self) -> str:
        return f"*{self.name}* is a {self.language} application built with {self.platform}."


# ── Stack trace ──────────────────────────────────────────────────


class CodeLine(TelemetryModel):
    line: int | None = None
    code: str = ""

    @field_validator("code", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("line", mode="before")
    @classmethod
    def _coerce_line(cls, v: Any) -> int | None:
        return to_line(v)


class StackFrame(TelemetryModel):
    in_app: bool = False  # 애플리케이션 코드 여부 (vendor/라이브러리 제외)
    file: str | None = None
    line: int | None = None
    code: list[CodeLine] = []

    @field_validator("in_app", mode="before")
    @classmethod
    def _coerce_in_app(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("code", mode="before")
    @classmethod
    def _coerce_code(cls, v: Any) -> list:
        return v if isinstance(v, list) else []

    @field_validator("line", mode="before")
    @classmethod
    def _coerce_line(cls, v: Any) -> int | None:
        return to_line(v)


class AppFile(BaseModel):
    """첫 번째 in_app 프레임 (에러를 일으킨 애플리케이션 소스 위치)"""

    file: str | None = None
    line: int | None = None
    code: str | None = None  # "{line} | {source}" 줄들을 개행으로 연결

    @field_validator("line", mode="before")
    @classmethod
    def _coerce_line(cls, v: Any) -> int | None:
        return to_line(v)

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"


# ── Errors ───────────────────────────────────────────────────────


class ErrorOccurrence(TelemetryModel):
    """`errors` 엔드포인트 항목"""

    message: str = ""
    class_name: str = Field("", alias="class")
    file: str = ""
    line: int | None = None
    group_hash: str = ""
    stack: list[StackFrame] = []

    @field_validator("message", "class_name", "file", "group_hash", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("stack", mode="before")
    @classmethod
    def _coerce_stack(cls, v: Any) -> list:
        return v if isinstance(v, list) else []

    @field_validator("line", mode="before")
    @classmethod
    def _coerce_line(cls, v: Any) -> int | None:
        return to_line(v)


class ErrorGroup(TelemetryModel):
    """`error-groups` 엔드포인트 항목"""

    hash: str
    created_at: str = ""
    last_seen_at: str = ""
    nth: int = 0

    @field_validator("created_at", "last_seen_at", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("nth", mode="before")
    @classmethod
    def _coerce_nth(cls, v: Any) -> int:
        return to_int(v)


class EnrichedError(TelemetryModel):
    """ErrorOccurrence + ErrorGroup 병합 결과 (리포트 렌더링 단위)"""

    message: str = ""
    class_name: str = Field("", alias="class")
    file: str = ""
    line: int | None = None
    group_hash: str
    created_at: str = ""
    last_seen_at: str = ""
    nth: int = 0
    app_file: AppFile | None = None

    @field_validator("nth", mode="before")
    @classmethod
    def _coerce_nth(cls, v: Any) -> int:
        return to_int(v)

    @field_validator("created_at", "last_seen_at", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("line", mode="before")
    @classmethod
    def _coerce_line(cls, v: Any) -> int | None:
        return to_line(v)


class FixProposal(TelemetryModel):
    platform: str | None = None
    language: str | None = None
    proposal: str | None = None


_ERROR_DETAIL_DEFAULTS = {
    "message": "Unknown error",
    "class_name": "Unknown",
    "hash": "N/A",
}


class ErrorDetail(TelemetryModel):
    """단일 에러 그룹 상세 (`error-groups/{hash}`)"""

    message: str = "Unknown error"
    class_name: str = Field("Unknown", alias="class")
    hash: str = "N/A"
    nth: int = 1
    file: str | None = None
    line: int | None = None
    created_at: str | None = None
    last_seen_at: str | None = None
    stack: list[StackFrame] = []
    fix: FixProposal | None = None
    app_file: AppFile | None = None

    @field_validator("message", "class_name", "hash", mode="before")
    @classmethod
    def _blank_to_default(cls, v: Any, info: ValidationInfo) -> str:
        if v is None or v == "":
            return _ERROR_DETAIL_DEFAULTS[info.field_name]
        return str(v)

    @field_validator("nth", mode="before")
    @classmethod
    def _coerce_nth(cls, v: Any) -> int:
        return to_int(v) or 1

    @field_validator("fix", "app_file", mode="before")
    @classmethod
    def _coerce_mapping(cls, v: Any) -> Any:
        return to_mapping(v)

    @field_validator("stack", mode="before")
    @classmethod
    def _coerce_stack(cls, v: Any) -> list:
        return v if isinstance(v, list) else []

    @field_validator("line", mode="before")
    @classmethod
    def _coerce_line(cls, v: Any) -> int | None:
        return to_line(v)


# ── Transactions ─────────────────────────────────────────────────


class Host(TelemetryModel):
    hostname: str | None = None


class HttpUrl(TelemetryModel):
    full: str | None = None
    path: str | None = None


class HttpRequest(TelemetryModel):
    method: str | None = None


class HttpInfo(TelemetryModel):
    url: HttpUrl | None = None
    request: HttpRequest | None = None

    @field_validator("url", "request", mode="before")
    @classmethod
    def _coerce_mapping(cls, v: Any) -> Any:
        return to_mapping(v)


class Transaction(TelemetryModel):
    hash: str = ""
    name: str = ""
    type: str = ""  # request, job, command, ...
    result: str = ""  # success / failed / error / exception / HTTP status
    duration_ms: float = Field(0.0, alias="duration")
    memory_peak_mb: float = Field(0.0, alias="memory_peak")
    timestamp: str = ""
    host: Host | None = None
    http: HttpInfo | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("hash", "name", "type", "result", "timestamp", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("duration_ms", "memory_peak_mb", mode="before")
    @classmethod
    def _coerce_number(cls, v: Any) -> float:
        return to_float(v)

    # PHP는 빈 객체를 `[]`로 직렬화
    @field_validator("host", "http", mode="before")
    @classmethod
    def _coerce_mapping(cls, v: Any) -> Any:
        return to_mapping(v)

    @property
    def hostname(self) -> str:
        return (self.host.hostname if self.host else None) or "N/A"

    @property
    def url(self) -> str | None:
        if self.http and self.http.url:
            return self.http.url.full
        return None

    @property
    def path(self) -> str | None:
        if self.http and self.http.url:
            return self.http.url.path
        return None

    @property
    def method(self) -> str | None:
        if self.http and self.http.request:
            return self.http.request.method
        return None


class Segment(TelemetryModel):
    """트랜잭션 타임라인의 작업 단위 (DB 쿼리, 캐시, 예외 등)"""

    type: str = ""  # mysql, redis, exception, ...
    label: str = ""
    duration_ms: float = Field(0.0, alias="duration")
    start_ms: float = Field(0.0, alias="start")  # 트랜잭션 시작 기준 offset
    context: dict | None = None
    app_file: AppFile | None = None

    @field_validator("type", "label", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("duration_ms", "start_ms", mode="before")
    @classmethod
    def _coerce_number(cls, v: Any) -> float:
        return to_float(v)

    @field_validator("context", "app_file", mode="before")
    @classmethod
    def _coerce_mapping(cls, v: Any) -> Any:
        return to_mapping(v)
