"""집계 - 에러/그룹 병합, 클래스별 분류, 정렬, 타임라인 집계"""

from collections.abc import Iterable

from apm_diag.models.report import CategorizedTransactions, TypeAggregate
from apm_diag.models.telemetry import (
    AppFile,
    EnrichedError,
    ErrorGroup,
    ErrorOccurrence,
    Segment,
    StackFrame,
    Transaction,
)
from apm_diag.services.classifier import parse_timestamp, transaction_category

SLOW_SEGMENT_THRESHOLD_MS = 100.0
CRITICAL_ERRORS_LIMIT = 3
SLOWEST_QUERIES_LIMIT = 3


def resolve_app_file(frames: Iterable[StackFrame]) -> AppFile | None:
    """스택 순서대로 탐색해 첫 번째 in_app 프레임을 AppFile로 변환"""
    for frame in frames:
        if frame.in_app:
            code = "\n".join(f"{c.line} | {c.code}" for c in frame.code)
            return AppFile(file=frame.file, line=frame.line, code=code or None)
    return None


def index_by_hash(errors: Iterable[ErrorOccurrence]) -> dict[str, ErrorOccurrence]:
    """group_hash 기준 인덱싱 (중복 hash는 나중 항목이 덮어씀)"""
    return {error.group_hash: error for error in errors}


def merge_errors(
    errors: Iterable[ErrorOccurrence], groups: Iterable[ErrorGroup]
) -> list[EnrichedError]:
    """에러 목록 + 에러 그룹 병합 → EnrichedError 목록

    그룹이 없으면 created_at/last_seen_at은 "", nth는 0.
    """
    by_hash = index_by_hash(errors)
    groups_by_hash = {group.hash: group for group in groups}

    merged: list[EnrichedError] = []
    for group_hash, error in by_hash.items():
        group = groups_by_hash.get(group_hash)
        merged.append(
            EnrichedError(
                message=error.message,
                class_name=error.class_name,
                file=error.file,
                line=error.line,
                group_hash=group_hash,
                created_at=group.created_at if group else "",
                last_seen_at=group.last_seen_at if group else "",
                nth=group.nth if group else 0,
                app_file=resolve_app_file(error.stack),
            )
        )
    return merged


def group_by_class(errors: Iterable[EnrichedError]) -> dict[str, list[EnrichedError]]:
    """에러 클래스별 그룹 (첫 등장 순서, 그룹 내 입력 순서 유지)"""
    by_class: dict[str, list[EnrichedError]] = {}
    for error in errors:
        by_class.setdefault(error.class_name, []).append(error)
    return by_class


def total_occurrences(errors: Iterable[EnrichedError]) -> int:
    return sum(error.nth for error in errors)


def _last_seen_key(error: EnrichedError) -> float:
    last_seen = parse_timestamp(error.last_seen_at)
    return last_seen.timestamp() if last_seen else float("-inf")


def rank_critical_errors(
    errors: Iterable[EnrichedError], limit: int = CRITICAL_ERRORS_LIMIT
) -> list[EnrichedError]:
    """nth 내림차순, 동률이면 last_seen_at 최신순 → 상위 limit개 (원본 목록은 그대로)"""
    ranked = sorted(errors, key=lambda e: (e.nth, _last_seen_key(e)), reverse=True)
    return ranked[:limit]


# ── Timeline ─────────────────────────────────────────────────────


def resolve_segment_app_files(segments: Iterable[Segment]) -> list[Segment]:
    """exception 세그먼트에 context.Error.stack 기준 app_file 설정"""
    resolved: list[Segment] = []
    for segment in segments:
        if segment.type == "exception" and segment.app_file is None:
            error = (segment.context or {}).get("Error") or {}
            stack = error.get("stack") if isinstance(error, dict) else None
            frames = [StackFrame.model_validate(f) for f in stack or [] if isinstance(f, dict)]
            segment = segment.model_copy(update={"app_file": resolve_app_file(frames)})
        resolved.append(segment)
    return resolved


def exception_segments(segments: Iterable[Segment]) -> list[Segment]:
    return [s for s in segments if s.type == "exception"]


def slow_segments(
    segments: Iterable[Segment], threshold_ms: float = SLOW_SEGMENT_THRESHOLD_MS
) -> list[Segment]:
    return [s for s in segments if s.duration_ms > threshold_ms]


def slowest(segments: Iterable[Segment], limit: int = SLOWEST_QUERIES_LIMIT) -> list[Segment]:
    return sorted(segments, key=lambda s: s.duration_ms, reverse=True)[:limit]


def aggregate_by_type(segments: Iterable[Segment]) -> list[TypeAggregate]:
    """세그먼트 타입별 count/총 시간 → 총 시간 내림차순"""
    groups: dict[str, TypeAggregate] = {}
    for segment in segments:
        aggregate = groups.setdefault(
            segment.type, TypeAggregate(type=segment.type, count=0, total_time_ms=0.0)
        )
        aggregate.count += 1
        aggregate.total_time_ms += segment.duration_ms

    return sorted(groups.values(), key=lambda a: a.total_time_ms, reverse=True)


# ── Transactions ─────────────────────────────────────────────────


def categorize_transactions(transactions: Iterable[Transaction]) -> CategorizedTransactions:
    """단일 패스로 4개 카테고리 분할 (카테고리 내 입력 순서 유지)"""
    categorized = CategorizedTransactions()
    for transaction in transactions:
        categorized.get(transaction_category(transaction)).append(transaction)
    return categorized


def time_range(transactions: Iterable[Transaction]) -> str:
    """가장 이른/늦은 timestamp ("a to b", 같으면 하나, 없으면 안내 문구)"""
    timestamps = [t.timestamp for t in transactions if t.timestamp]
    if not timestamps:
        return "No data available"

    earliest = min(timestamps, key=_timestamp_key)
    latest = max(timestamps, key=_timestamp_key)
    if earliest == latest:
        return earliest
    return f"{earliest} to {latest}"


def _timestamp_key(value: str) -> tuple[float, str]:
    parsed = parse_timestamp(value)
    return (parsed.timestamp() if parsed else float("-inf"), value)

