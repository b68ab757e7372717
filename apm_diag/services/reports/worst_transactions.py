from collections.abc import Callable, Sequence
from datetime import datetime

from apm_diag.models.report import CategorizedTransactions, TransactionCategory
from apm_diag.models.telemetry import Transaction
from apm_diag.services import aggregators, classifier
from apm_diag.services.reports.base import Report, fmt_number

NO_TRANSACTIONS_MESSAGE = "No transactions found for the specified time range."

# 카테고리별 섹션 제목 / 설명
_SECTIONS: dict[TransactionCategory, tuple[str, str]] = {
    TransactionCategory.CRITICAL: (
        "## CRITICAL ISSUES - Immediate Investigation Required",
        "These transactions have failed or returned error status codes. Investigate immediately.",
    ),
    TransactionCategory.SLOW: (
        "## PERFORMANCE ISSUES - Optimization Needed",
        "These transactions are significantly slower than expected. "
        "Likely candidates for optimization.",
    ),
    TransactionCategory.MEMORY: (
        "## MEMORY ISSUES - Resource Optimization",
        "These transactions consume significant memory. Consider memory optimization.",
    ),
    TransactionCategory.OTHER: (
        "## OTHER TRANSACTIONS - Baseline Performance",
        "These transactions are performing within acceptable parameters "
        "but are among the slowest in your application.",
    ),
}

_TALLY_LABELS: dict[TransactionCategory, str] = {
    TransactionCategory.CRITICAL: "Critical Issues",
    TransactionCategory.SLOW: "Performance Issues",
    TransactionCategory.MEMORY: "Memory Issues",
    TransactionCategory.OTHER: "Other",
}


class WorstTransactionsReport(Report):
    """느린/실패 트랜잭션 목록 리포트 (CRITICAL → SLOW → MEMORY → OTHER)"""

    def __init__(self, transactions: Sequence[Transaction], now: datetime):
        self.transactions = list(transactions)
        self.now = now

    def generate(self) -> str:
        if not self.transactions:
            return NO_TRANSACTIONS_MESSAGE

        categorized = aggregators.categorize_transactions(self.transactions)
        renderers: dict[TransactionCategory, Callable[[Transaction], str]] = {
            TransactionCategory.CRITICAL: self._critical,
            TransactionCategory.SLOW: self._slow,
            TransactionCategory.MEMORY: self._memory,
            TransactionCategory.OTHER: self._other,
        }

        report = self._header()
        for category in TransactionCategory:
            transactions = categorized.get(category)
            if not transactions:
                continue
            title, description = _SECTIONS[category]
            report += f"{title}\n\n{description}\n\n"
            report += "".join(renderers[category](t) for t in transactions)
            report += "\n"

        return report + self._summary(categorized)

    def _header(self) -> str:
        return (
            "# Worst Transactions Report\n\n"
            f"**Analysis Period:** {aggregators.time_range(self.transactions)}\n"
            f"**Total Transactions Analyzed:** {len(self.transactions)}\n"
            f"**Generated:** {self.now.strftime('%Y-%m-%d %H:%M:%S')}\n\n"
            "---\n\n"
        )

    def _critical(self, t: Transaction) -> str:
        lines = [
            f"### CRITICAL: {t.name}",
            "",
            f"**Hash:** `{t.hash}`",
            f"**Status:** {t.result} (FAILED)",
            f"**Duration:** {fmt_number(t.duration_ms)}ms",
            f"**Memory Peak:** {fmt_number(t.memory_peak_mb)}MB",
            f"**Timestamp:** {t.timestamp}",
            f"**Host:** {t.hostname}",
            "",
        ]
        if t.http:
            lines += [f"**URL:** {t.url or 'N/A'}", f"**Method:** {t.method or 'N/A'}", ""]

        lines += [
            "**INVESTIGATION STEPS:**",
            f"1. Use hash `{t.hash}` to retrieve detailed timeline",
            f"2. Check application logs around {t.timestamp}",
            f"3. Review error handling in: `{t.name}`",
        ]
        if t.type == "job":
            lines += [
                "4. Check job queue configuration and implementation",
                "5. Verify job retry logic and failure handling",
            ]
        elif t.type == "request":
            lines += [
                "4. Check route implementation and middleware",
                "5. Verify request validation and error responses",
            ]

        lines += ["", "---", "", ""]
        return "\n".join(lines)

    def _slow(self, t: Transaction) -> str:
        severity = classifier.slow_severity(t.duration_ms)
        lines = [
            f"### {severity.value} SLOW: {t.name}",
            "",
            f"**Hash:** `{t.hash}`",
            f"**Duration:** {fmt_number(t.duration_ms)}ms ({fmt_number(t.duration_ms / 1000)}s)",
            f"**Memory Peak:** {fmt_number(t.memory_peak_mb)}MB",
            f"**Status:** {t.result}",
            f"**Timestamp:** {t.timestamp}",
            "",
        ]
        if t.http:
            lines += [f"**URL:** {t.url or 'N/A'}", ""]

        lines += [
            "**PERFORMANCE INVESTIGATION:**",
            f"1. Retrieve timeline with hash `{t.hash}` to identify bottlenecks",
            "2. Look for N+1 query patterns in database operations",
            "3. Check for unoptimized loops or expensive computations",
            "4. Review external API calls and their response times",
            "5. Analyze cache hit/miss ratios",
        ]
        if t.type == "job":
            lines.append("6. Consider job chunking for large datasets")

        lines += [
            "",
            "**COMMON SOLUTIONS:**",
            "- Add database indexes for slow queries",
            "- Implement caching for expensive operations",
            "- Use eager loading to prevent N+1 queries",
            "- Optimize or parallelize external API calls",
            "",
            "---",
            "",
            "",
        ]
        return "\n".join(lines)

    def _memory(self, t: Transaction) -> str:
        lines = [
            f"### HIGH MEMORY: {t.name}",
            "",
            f"**Hash:** `{t.hash}`",
            f"**Memory Peak:** {fmt_number(t.memory_peak_mb)}MB",
            f"**Duration:** {fmt_number(t.duration_ms)}ms",
            f"**Status:** {t.result}",
            f"**Timestamp:** {t.timestamp}",
            "",
            "**MEMORY INVESTIGATION:**",
            f"1. Use hash `{t.hash}` to analyze memory usage patterns",
            "2. Check for large dataset processing without chunking",
            "3. Look for memory leaks in loops or recursive functions",
            "4. Review object instantiation and garbage collection",
            "",
            "**OPTIMIZATION STRATEGIES:**",
            "- Implement data streaming for large datasets",
            "- Use generators instead of loading full arrays",
            "- Release references to large objects as soon as possible",
            "- Consider pagination for bulk operations",
            "",
            "---",
            "",
            "",
        ]
        return "\n".join(lines)

    def _other(self, t: Transaction) -> str:
        return (
            f"### {t.name}\n\n"
            f"**Duration:** {fmt_number(t.duration_ms)}ms | "
            f"**Memory:** {fmt_number(t.memory_peak_mb)}MB | "
            f"**Status:** {t.result} | "
            f"**Hash:** `{t.hash}`\n\n"
        )

    def _summary(self, categorized: CategorizedTransactions) -> str:
        counts = categorized.counts()
        lines = ["## SUMMARY & RECOMMENDATIONS", "", "**Issue Distribution:**"]
        lines += [f"- {_TALLY_LABELS[c]}: {counts[c]}" for c in TransactionCategory]
        lines += [
            "",
            "**GENERAL RECOMMENDATIONS:**",
            "1. Use transaction hashes to retrieve detailed timelines for root cause analysis",
            "2. Consider adding caching layers for frequently accessed, slow operations",
            "3. Review and optimize database queries, especially in high-traffic endpoints",
            "",
        ]
        return "\n".join(lines)


def render_worst_transactions(transactions: Sequence[Transaction], now: datetime) -> str:
    return WorstTransactionsReport(transactions, now).generate()
