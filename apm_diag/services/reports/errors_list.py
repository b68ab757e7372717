from collections.abc import Sequence
from datetime import datetime

from apm_diag.models.telemetry import Application, EnrichedError
from apm_diag.services import aggregators, classifier
from apm_diag.services.reports.base import Report, fence_language

NO_ERRORS_MESSAGE = (
    "# Application Errors Report\n\n"
    "**No errors detected in the last 24 hours**\n\n"
    "The application is currently running without any reported errors."
)

HIGH_FREQUENCY_THRESHOLD = 10


class ErrorsListReport(Report):
    """에러 목록 리포트 (LLM 분석용)

    header → executive summary → top 3 critical → 클래스별 breakdown
    → recommendations → footer
    """

    def __init__(self, app: Application, errors: Sequence[EnrichedError], now: datetime):
        self.app = app
        self.errors = list(errors)
        self.now = now

    def generate(self) -> str:
        if not self.errors:
            return NO_ERRORS_MESSAGE

        return "".join(
            [
                self._header(),
                self._executive_summary(),
                self._critical_errors(),
                self._breakdown(),
                self._recommendations(),
                self._footer(),
            ]
        )

    def _header(self) -> str:
        timestamp = self.now.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
        return (
            "# Application Errors Report - Last 24 hours\n"
            f"**Application:** {self.app.description()}\n"
            f"**Generated:** {timestamp}\n"
            f"**Total Error Types:** {len(self.errors)}\n"
            f"**Total Occurrences:** {aggregators.total_occurrences(self.errors)}\n\n"
            "---\n\n"
        )

    def _executive_summary(self) -> str:
        high_frequency = [e for e in self.errors if e.nth >= HIGH_FREQUENCY_THRESHOLD]
        active = [e for e in self.errors if classifier.is_active(e.last_seen_at, self.now)]
        classes = {e.class_name for e in self.errors}
        files = {e.file for e in self.errors}

        lines = ["## Executive Summary", ""]
        if high_frequency:
            lines.append(
                f"**HIGH PRIORITY:** {len(high_frequency)} error type(s) "
                f"with {HIGH_FREQUENCY_THRESHOLD}+ occurrences"
            )
        if active:
            lines.append(f"**ACTIVE:** {len(active)} error type(s) occurred in the last hour")
        lines.append(f"**Error Categories:** {len(classes)} distinct exception types")
        lines.append(f"**Affected Components:** {len(files)} different files/modules")
        return "\n".join(lines) + "\n\n"

    def _critical_errors(self) -> str:
        section = "## Critical Errors (Top 3 by Impact)\n\n"

        for priority, error in enumerate(aggregators.rank_critical_errors(self.errors), start=1):
            frequency = classifier.frequency_level(error.nth)
            recency = classifier.recency(error.last_seen_at, self.now)

            section += f"### {priority}. {frequency.value} {recency.value}\n"
            section += f"**Error:** `{error.class_name}`\n"
            section += f"**Message:** {error.message}\n"
            section += f"**Occurrences:** {error.nth} times\n"
            section += f"**First Seen:** {error.created_at or 'N/A'}\n"
            section += f"**Last Seen:** {error.last_seen_at or 'N/A'}\n"
            section += (
                f"**Group Hash:** `{error.group_hash}` "
                "*(use this to get detailed stack trace, and bug fix suggestions)*\n\n"
            )

            if error.app_file:
                section += "**Application Source:**\n"
                section += f"```{fence_language(error.app_file.file)}\n"
                section += f"// File: {error.app_file.location}\n"
                if error.app_file.code:
                    section += f"{error.app_file.code}\n"
                section += "```\n\n"

        return section

    def _breakdown(self) -> str:
        section = "## Complete Error Breakdown\n\n"

        for class_name, class_errors in aggregators.group_by_class(self.errors).items():
            total = aggregators.total_occurrences(class_errors)
            section += f"### `{class_name}` ({total} total occurrences)\n\n"

            for error in class_errors:
                section += f"- **{error.nth}x** {error.message}\n"
                section += f"  - `{error.file}:{error.line if error.line is not None else ''}`\n"
                section += f"  - Group: `{error.group_hash}`\n"
                section += f"  - Last: {error.last_seen_at or 'N/A'}\n"
                if error.app_file:
                    section += f"  - App: `{error.app_file.location}`\n"
                section += "\n"
            section += "\n"

        return section

    def _recommendations(self) -> str:
        return (
            "## AI Analysis & Recommendations\n\n"
            "### General Debugging Strategy\n"
            "1. **Monitor recency** - Prioritize errors that occurred in the last hour\n"
            "2. **Look at high-frequency errors** - Focus on errors with 10+ occurrences first\n"
            "3. **Check application code** - Review the app_file locations for business logic issues\n"
            "4. **Look for cascading failures** - Multiple errors in the same timeframe might be related\n"
            "5. **Use group hashes** - Call the get_error_analysis tool with the group hash "
            "for full stack traces and bug fix suggestions\n\n"
        )

    def _footer(self) -> str:
        return (
            "---\n\n"
            "*This report was generated for AI-assisted debugging.*\n"
            "*Use the group_hash values to fetch detailed stack traces, bug fix suggestions, and context.*"
        )


def render_errors_report(
    app: Application, errors: Sequence[EnrichedError], now: datetime
) -> str:
    return ErrorsListReport(app, errors, now).generate()
