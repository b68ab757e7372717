from apm_diag.models.report import ErrorPattern
from apm_diag.models.telemetry import ErrorDetail
from apm_diag.services import classifier
from apm_diag.services.reports.base import Report, fence_language, heading

# 패턴별 (설명, 조사 우선순위, 추출 필드 라벨)
_PATTERN_HINTS: dict[ErrorPattern, tuple[str, str, str]] = {
    ErrorPattern.NULL_PROPERTY_ACCESS: (
        "Attempting to access a property on a null object",
        "Check for null values before property access (missing relation, failed lookup, empty result)",
        "Problematic Property",
    ),
    ErrorPattern.NULL_METHOD_CALL: (
        "Attempting to call a method on a null object",
        "Verify object instantiation and dependency resolution before the call",
        "Problematic Method",
    ),
    ErrorPattern.UNDEFINED_ARRAY_ACCESS: (
        "Accessing an array key that does not exist",
        "Validate array keys before access or provide a default value",
        "Missing Array Key",
    ),
}


class ErrorReport(Report):
    """단일 에러 그룹 상세 분석 리포트"""

    def __init__(self, error: ErrorDetail):
        self.error = error

    def generate(self) -> str:
        sections = [
            self._summary(),
            self._context(),
            self._code_analysis(),
            self._fix(),
            self._insights(),
        ]
        return "\n\n".join(s for s in sections if s) + "\n"

    def _summary(self) -> str:
        e = self.error
        lines = [
            heading("ERROR SUMMARY", 30),
            f"Type: {e.class_name}",
            f"Message: {e.message}",
            f"Error Hash: {e.hash}",
            f"Occurrence Count: {e.nth} time(s)",
            f"Severity: {classifier.error_severity(e.message, e.nth).value}",
        ]
        if e.created_at:
            lines.append(f"First Seen: {e.created_at}")
        if e.last_seen_at:
            lines.append(f"Last Seen: {e.last_seen_at}")
        return "\n".join(lines)

    def _context(self) -> str:
        e = self.error
        if not e.file and not e.app_file:
            return ""

        lines = [heading("ERROR CONTEXT", 30)]
        if e.file:
            lines += [
                "Stack Trace Origin:",
                f"  File: {e.file}",
                f"  Line: {e.line if e.line is not None else 'N/A'}",
            ]

        if e.app_file:
            lines += [
                "",
                "APPLICATION SOURCE (where the error originates in your code):",
                f"  File: {e.app_file.file}",
                f"  Line: {e.app_file.line}",
            ]
            if e.app_file.code:
                lines += [f"```{fence_language(e.app_file.file)}", e.app_file.code, "```"]

        return "\n".join(lines)

    def _code_analysis(self) -> str:
        app_file = self.error.app_file
        if not app_file or not app_file.code:
            return ""

        match = classifier.error_pattern(self.error.message)
        lines = [
            heading("CODE ANALYSIS", 30),
            f"Error Pattern: {match.pattern.value}",
        ]

        hints = _PATTERN_HINTS.get(match.pattern)
        if hints:
            issue, priority, subject_label = hints
            lines.append(f"Issue: {issue}")
            lines.append(f"Focus Line: {app_file.line}")
            lines.append(f"Investigation Priority: {priority}")
            if match.subject:
                lines.append(f"{subject_label}: {match.subject}")
        else:
            lines.append(f"Focus Line: {app_file.line}")

        return "\n".join(lines)

    def _fix(self) -> str:
        fix = self.error.fix
        if not fix or not fix.proposal:
            return ""

        return "\n".join(
            [
                heading("INSPECTOR AI ANALYSIS", 30),
                f"Detected Platform: {fix.platform or 'Unknown'}",
                f"Language: {fix.language or 'Unknown'}",
                "",
                "Proposed Fix:",
                fix.proposal,
                "",
                "This fix was generated by Inspector's AI based on the error context. "
                "Review it before applying.",
            ]
        )

    def _insights(self) -> str:
        e = self.error
        lines = [heading("ACTIONABLE INSIGHTS", 30)]

        if e.nth > 1:
            lines.append(f"This is a recurring error ({e.nth} occurrences)")

        pattern = classifier.occurrence_pattern(e.created_at, e.last_seen_at, e.nth)
        lines.append(f"Pattern: {pattern.value}")

        lines += ["", "Debugging Strategy:"]
        if e.app_file:
            lines += [
                "1. Focus investigation on the APPLICATION SOURCE, not library code",
                f"   Open file: {e.app_file.file}",
                f"   Navigate to line: {e.app_file.line}",
                "2. Trace the values used on that line back to where they are assigned",
                "3. Add a guard or validation for the failing condition",
            ]
        else:
            lines += [
                "1. Review the stack trace origin to find the first application frame",
                "2. Reproduce the error with the same input data",
                "3. Add a guard or validation for the failing condition",
            ]

        return "\n".join(lines)


def render_error_report(error: ErrorDetail) -> str:
    return ErrorReport(error).generate()
