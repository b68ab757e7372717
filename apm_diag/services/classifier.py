"""분류기 - 고정 임계값 기반 순수 함수

모든 분류는 위에서부터 평가하고 처음 일치한 버킷을 반환한다.
"""

import re
from datetime import UTC, datetime
from typing import Any

from apm_diag.models.report import (
    ErrorPattern,
    ErrorPatternMatch,
    ErrorSeverity,
    FrequencyLevel,
    OccurrencePattern,
    Recency,
    SlowSeverity,
    TransactionCategory,
)
from apm_diag.models.telemetry import Transaction, to_float, to_int

SLOW_THRESHOLD_MS = 1000
MEMORY_THRESHOLD_MB = 50
PROBLEMATIC_HTTP_CODES = frozenset({400, 401, 403, 404, 422, 429, 500, 502, 503, 504})
FAILED_RESULTS = frozenset({"failed", "error", "exception"})

RAPID_SUCCESSION_SECONDS = 3600
INTERMITTENT_SECONDS = 48 * 3600

_PROPERTY_RE = re.compile(r'property "([^"]+)"')
_METHOD_RE = re.compile(r"Call to a member function (\w+)\(")
_NULL_METHOD_RE = re.compile(r"Call to a member function .+ on null")
_ARRAY_KEY_RE = re.compile(r'Undefined array key "?([^"\s]+)"?')
_INDEX_RE = re.compile(r"Undefined index:\s*(\S+)")


def parse_timestamp(value: Any) -> datetime | None:
    """백엔드 타임스탬프 → aware datetime (timezone 없으면 UTC, 파싱 실패 → None)"""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _aware(now: datetime) -> datetime:
    return now if now.tzinfo else now.replace(tzinfo=UTC)


# ── Errors ───────────────────────────────────────────────────────


def frequency_level(nth: Any) -> FrequencyLevel:
    occurrences = to_int(nth)
    if occurrences >= 50:
        return FrequencyLevel.CRITICAL
    if occurrences >= 10:
        return FrequencyLevel.HIGH
    if occurrences >= 5:
        return FrequencyLevel.MEDIUM
    return FrequencyLevel.LOW


def recency(last_seen_at: str | None, now: datetime) -> Recency:
    last_seen = parse_timestamp(last_seen_at)
    if last_seen is None:
        return Recency.STABLE

    diff = (_aware(now) - last_seen).total_seconds()
    if diff < 300:
        return Recency.ACTIVE
    if diff < 3600:
        return Recency.RECENT_HOUR
    if diff < 21600:
        return Recency.RECENT_SIX_HOURS
    return Recency.STABLE


def is_active(last_seen_at: str | None, now: datetime) -> bool:
    """최근 1시간 내 발생 여부 (executive summary의 ACTIVE 집계)"""
    return recency(last_seen_at, now) in (Recency.ACTIVE, Recency.RECENT_HOUR)


def error_severity(message: str, nth: Any) -> ErrorSeverity:
    if "Fatal" in (message or ""):
        return ErrorSeverity.CRITICAL_FATAL
    occurrences = to_int(nth)
    if occurrences >= 10:
        return ErrorSeverity.CRITICAL_FREQUENT
    if occurrences >= 5:
        return ErrorSeverity.HIGH
    return ErrorSeverity.MEDIUM


def error_pattern(message: str) -> ErrorPatternMatch:
    """에러 메시지 키워드 매칭 (대소문자 구분) + 대상 이름 추출"""
    message = message or ""

    if "Attempt to read property" in message:
        match = _PROPERTY_RE.search(message)
        return ErrorPatternMatch(
            pattern=ErrorPattern.NULL_PROPERTY_ACCESS,
            subject=match.group(1) if match else None,
        )

    if _NULL_METHOD_RE.search(message):
        match = _METHOD_RE.search(message)
        return ErrorPatternMatch(
            pattern=ErrorPattern.NULL_METHOD_CALL,
            subject=f"{match.group(1)}()" if match else None,
        )

    if "Undefined array key" in message or "Undefined index" in message:
        match = _ARRAY_KEY_RE.search(message) or _INDEX_RE.search(message)
        return ErrorPatternMatch(
            pattern=ErrorPattern.UNDEFINED_ARRAY_ACCESS,
            subject=match.group(1).strip("'\"") if match else None,
        )

    return ErrorPatternMatch(pattern=ErrorPattern.UNCATEGORIZED)


def occurrence_pattern(
    created_at: str | None, last_seen_at: str | None, nth: Any
) -> OccurrencePattern:
    occurrences = to_int(nth)
    first = parse_timestamp(created_at)
    last = parse_timestamp(last_seen_at)

    if first is not None and last is not None:
        span = (last - first).total_seconds()
        if span <= RAPID_SUCCESSION_SECONDS and occurrences > 1:
            return OccurrencePattern.RAPID_SUCCESSION
        if span > INTERMITTENT_SECONDS:
            return OccurrencePattern.INTERMITTENT

    if occurrences > 1:
        return OccurrencePattern.RECURRING
    return OccurrencePattern.SINGLE


# ── Transactions ─────────────────────────────────────────────────


def is_critical(transaction: Transaction) -> bool:
    result = transaction.result.strip()
    if result in FAILED_RESULTS:
        return True
    try:
        return int(result) in PROBLEMATIC_HTTP_CODES
    except ValueError:
        return False


def is_slow(transaction: Transaction) -> bool:
    return transaction.duration_ms > SLOW_THRESHOLD_MS


def is_memory_intensive(transaction: Transaction) -> bool:
    return transaction.memory_peak_mb > MEMORY_THRESHOLD_MB


def transaction_category(transaction: Transaction) -> TransactionCategory:
    # SLOW가 MEMORY보다 우선 (둘 다 해당하면 SLOW)
    if is_critical(transaction):
        return TransactionCategory.CRITICAL
    if is_slow(transaction):
        return TransactionCategory.SLOW
    if is_memory_intensive(transaction):
        return TransactionCategory.MEMORY
    return TransactionCategory.OTHER


def slow_severity(duration_ms: Any) -> SlowSeverity:
    duration = to_float(duration_ms)
    if duration > 10000:
        return SlowSeverity.CRITICAL
    if duration > 5000:
        return SlowSeverity.HIGH
    if duration > 2000:
        return SlowSeverity.MEDIUM
    return SlowSeverity.LOW
