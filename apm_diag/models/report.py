from enum import Enum

from pydantic import BaseModel

from apm_diag.models.telemetry import Transaction


class FrequencyLevel(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Recency(str, Enum):
    ACTIVE = "ACTIVE (< 5 min)"
    RECENT_HOUR = "RECENT (< 1 hour)"
    RECENT_SIX_HOURS = "RECENT (< 6 hours)"
    STABLE = "STABLE (> 6 hours)"


class TransactionCategory(str, Enum):
    """우선순위 순서 = 정의 순서 (CRITICAL → SLOW → MEMORY → OTHER)"""

    CRITICAL = "critical"
    SLOW = "slow"
    MEMORY = "memory"
    OTHER = "other"


class SlowSeverity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ErrorSeverity(str, Enum):
    """단일 에러 리포트용 심각도"""

    CRITICAL_FATAL = "CRITICAL (Fatal)"
    CRITICAL_FREQUENT = "CRITICAL (High frequency)"
    HIGH = "HIGH (Multiple occurrences)"
    MEDIUM = "MEDIUM"


class ErrorPattern(str, Enum):
    NULL_PROPERTY_ACCESS = "NULL PROPERTY ACCESS"
    NULL_METHOD_CALL = "NULL METHOD CALL"
    UNDEFINED_ARRAY_ACCESS = "UNDEFINED ARRAY ACCESS"
    UNCATEGORIZED = "UNCATEGORIZED"


class OccurrencePattern(str, Enum):
    RAPID_SUCCESSION = "Rapid succession"
    INTERMITTENT = "Intermittent over time"
    RECURRING = "Recurring"
    SINGLE = "Single occurrence"


class ErrorPatternMatch(BaseModel):
    """에러 메시지 패턴 분류 결과 (subject: 추출된 property/method/key, 실패 시 None)"""

    pattern: ErrorPattern
    subject: str | None = None


class NPlusOneCandidate(BaseModel):
    pattern: str  # 대표 쿼리 원문 (정규화 전)
    count: int
    total_time_ms: float


class TypeAggregate(BaseModel):
    type: str
    count: int
    total_time_ms: float

    @property
    def average_ms(self) -> float:
        return self.total_time_ms / self.count if self.count else 0.0


class CategorizedTransactions(BaseModel):
    critical: list[Transaction] = []
    slow: list[Transaction] = []
    memory: list[Transaction] = []
    other: list[Transaction] = []

    def get(self, category: TransactionCategory) -> list[Transaction]:
        return getattr(self, category.value)

    def counts(self) -> dict[TransactionCategory, int]:
        return {category: len(self.get(category)) for category in TransactionCategory}
