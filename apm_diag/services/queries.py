"""쿼리 정규화 + N+1 패턴 탐지"""

import re
from collections.abc import Iterable

from apm_diag.models.report import NPlusOneCandidate
from apm_diag.models.telemetry import Segment

DATABASE_TYPES = frozenset({"mysql", "postgres", "sqlite", "mongodb"})

# 동일 쿼리 모양이 이 횟수를 "초과"해야 N+1 후보
N_PLUS_ONE_THRESHOLD = 3

_PLACEHOLDER_RE = re.compile(r"\?|\$\d+")
_WHITESPACE_RE = re.compile(r"\s+")
_IN_CLAUSE_RE = re.compile(r"\bin\s*\((?:[^()]|\([^()]*\))*\)")  # 한 단계 중첩 괄호까지


def normalize_query(query: str) -> str:
    """파라미터 값만 다른 쿼리들이 같은 문자열이 되도록 정규화"""
    normalized = _PLACEHOLDER_RE.sub("?", query or "")
    normalized = _WHITESPACE_RE.sub(" ", normalized).strip().lower()
    return _IN_CLAUSE_RE.sub("in (?)", normalized)


def is_database_segment(segment: Segment) -> bool:
    return segment.type in DATABASE_TYPES


def database_segments(segments: Iterable[Segment]) -> list[Segment]:
    return [s for s in segments if is_database_segment(s)]


def detect_n_plus_one(
    segments: Iterable[Segment], threshold: int = N_PLUS_ONE_THRESHOLD
) -> list[NPlusOneCandidate]:
    """DB 세그먼트를 정규화된 쿼리 모양별로 묶어 threshold 초과 그룹 반환 (첫 등장 순서)"""
    groups: dict[str, NPlusOneCandidate] = {}

    for segment in database_segments(segments):
        shape = normalize_query(segment.label)
        candidate = groups.get(shape)
        if candidate is None:
            groups[shape] = NPlusOneCandidate(
                pattern=segment.label, count=1, total_time_ms=segment.duration_ms
            )
        else:
            candidate.count += 1
            candidate.total_time_ms += segment.duration_ms

    return [c for c in groups.values() if c.count > threshold]
