from abc import ABC, abstractmethod
from pathlib import PurePosixPath

ELLIPSIS = "..."

# 코드 블록 언어 태그 (확장자 기준)
_FENCE_LANGUAGES = {
    ".php": "php",
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".rb": "ruby",
    ".java": "java",
    ".go": "go",
}


class Report(ABC):
    """리포트 추상 클래스 - 입력 레코드 → 텍스트 (I/O 없음)"""

    @abstractmethod
    def generate(self) -> str:
        pass

    def __str__(self) -> str:
        return self.generate()


def fmt_number(value: float) -> str:
    """소수점 2자리 + 천 단위 구분자 (1234.5 → "1,234.50")"""
    return f"{value:,.2f}"


def fmt_percent(part: float, total: float) -> str:
    """total 대비 비율, 소수점 1자리 (total이 0이면 0.0)"""
    percentage = (part / total) * 100 if total > 0 else 0.0
    return f"{percentage:,.1f}"


def truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    cut = text[:length]
    # 잘린 escape sequence ("\") 제거
    stripped = cut.rstrip("\\")
    if (len(cut) - len(stripped)) % 2:
        cut = cut[:-1]
    return cut + ELLIPSIS


def fence_language(file: str | None) -> str:
    if not file:
        return ""
    return _FENCE_LANGUAGES.get(PurePosixPath(file).suffix.lower(), "")


def heading(title: str, width: int) -> str:
    """평문 섹션 제목 + "=" 밑줄"""
    return f"{title}\n{'=' * width}"
