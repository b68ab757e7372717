from collections.abc import Sequence

from apm_diag.models.telemetry import Segment, Transaction
from apm_diag.services import aggregators, queries
from apm_diag.services.reports.base import Report, fmt_number, fmt_percent, heading, truncate

WARNING_DURATION_MS = 1000
NOTICE_DURATION_MS = 500

SLOW_TASK_LABEL_LENGTH = 80
N_PLUS_ONE_LABEL_LENGTH = 80
SLOWEST_QUERY_LABEL_LENGTH = 100


class TransactionDetailReport(Report):
    """단일 트랜잭션 + 타임라인 분석 리포트"""

    def __init__(self, transaction: Transaction, segments: Sequence[Segment]):
        self.transaction = transaction
        self.segments = list(segments)

    def generate(self) -> str:
        sections = [self._header()]

        exceptions = aggregators.exception_segments(self.segments)
        if exceptions:
            sections.append(self._exceptions(exceptions))

        sections.append(self._performance())
        sections.append(self._database())
        sections.append(self._timeline_summary())

        return "\n\n".join(s for s in sections if s)

    def _header(self) -> str:
        t = self.transaction
        lines = [
            heading("TRANSACTION ANALYSIS REPORT", 50),
            f"Transaction: {t.type.upper()} {t.name}",
            f"Timestamp: {t.timestamp}",
            f"Duration: {fmt_number(t.duration_ms)}ms",
            f"Memory Peak: {fmt_number(t.memory_peak_mb)}MB",
            f"Result: {t.result}",
        ]
        if t.url:
            lines.append(f"URL: {t.url}")
        return "\n".join(lines) + "\n"

    def _exceptions(self, exceptions: list[Segment]) -> str:
        report = heading("CRITICAL ISSUES - EXCEPTIONS FOUND", 40) + "\n"

        for index, exception in enumerate(exceptions, start=1):
            report += f"Exception #{index}:\n"
            report += f"  Error: {exception.label}\n"
            report += f"  Time: {fmt_number(exception.start_ms)}ms into execution\n"
            report += f"  Duration: {fmt_number(exception.duration_ms)}ms\n"

            if exception.app_file:
                report += f"  File: {exception.app_file.file}\n"
                report += f"  Line: {exception.app_file.line}\n"
                if exception.app_file.code:
                    report += f"  Code Context:\n{exception.app_file.code}\n"

            report += "\n"

        report += (
            "RECOMMENDATION: Address these exceptions immediately "
            "as they indicate runtime errors in your application.\n"
        )
        return report

    def _performance(self) -> str:
        total = self.transaction.duration_ms
        report = heading("PERFORMANCE ANALYSIS", 30) + "\n"
        report += f"Total Transaction Duration: {fmt_number(total)}ms\n"

        if total > WARNING_DURATION_MS:
            report += "WARNING: Transaction duration exceeds 1 second. Consider optimization.\n"
        elif total > NOTICE_DURATION_MS:
            report += "NOTICE: Transaction duration is moderately slow (>500ms).\n"

        slow = aggregators.slow_segments(self.segments)
        if slow:
            report += f"\nSlow Tasks (>{aggregators.SLOW_SEGMENT_THRESHOLD_MS:g}ms):\n"
            for task in slow:
                report += (
                    f"  - {task.type}: {fmt_number(task.duration_ms)}ms "
                    f"({fmt_percent(task.duration_ms, total)}% of total time)\n"
                )
                report += f"    Query: {truncate(task.label, SLOW_TASK_LABEL_LENGTH)}\n"

        return report

    def _database(self) -> str:
        db_tasks = queries.database_segments(self.segments)
        title = heading("DATABASE ANALYSIS", 20)

        if not db_tasks:
            return f"{title}\nNo database queries detected in this transaction.\n"

        total_db_time = sum(task.duration_ms for task in db_tasks)
        query_count = len(db_tasks)

        report = title + "\n"
        report += (
            f"Total Database Time: {fmt_number(total_db_time)}ms "
            f"({fmt_percent(total_db_time, self.transaction.duration_ms)}% of transaction)\n"
        )
        report += f"Query Count: {query_count}\n"
        report += f"Average Query Time: {fmt_number(total_db_time / query_count)}ms\n\n"

        issues = queries.detect_n_plus_one(db_tasks)
        if issues:
            report += "POTENTIAL N+1 QUERY ISSUES DETECTED:\n"
            for issue in issues:
                report += f"  - Pattern: {truncate(issue.pattern, N_PLUS_ONE_LABEL_LENGTH)}\n"
                report += f"    Occurrences: {issue.count} times\n"
                report += f"    Total Time: {fmt_number(issue.total_time_ms)}ms\n"
            report += (
                "\nRECOMMENDATION: Consider using eager loading or batch queries "
                "to optimize these patterns.\n\n"
            )

        report += "SLOWEST DATABASE QUERIES:\n"
        for index, query in enumerate(aggregators.slowest(db_tasks), start=1):
            report += f"{index}. Duration: {fmt_number(query.duration_ms)}ms\n"
            report += f"   Query: {truncate(query.label, SLOWEST_QUERY_LABEL_LENGTH)}\n"
            report += f"   Executed at: {fmt_number(query.start_ms)}ms\n\n"

        return report

    def _timeline_summary(self) -> str:
        report = heading("EXECUTION TIMELINE SUMMARY", 30) + "\n"

        for aggregate in aggregators.aggregate_by_type(self.segments):
            report += (
                f"{aggregate.type[:1].upper()}{aggregate.type[1:]}: "
                f"{aggregate.count} operations, "
                f"{fmt_number(aggregate.total_time_ms)}ms total "
                f"(avg: {fmt_number(aggregate.average_ms)}ms)\n"
            )

        report += "\nFor detailed investigation, focus on the endpoint/job implementation:\n"
        if self.transaction.type == "request" and self.transaction.path:
            report += f"- Check route definition for: {self.transaction.path}\n"
            report += "- Look for controller method handling this endpoint\n"
        report += "- Review database query locations using the timeline timestamps\n"
        report += "- Consider adding database indexes for slow queries\n"
        report += "- Implement query result caching where appropriate\n"

        return report


def render_transaction_detail(transaction: Transaction, segments: Sequence[Segment]) -> str:
    return TransactionDetailReport(transaction, segments).generate()
