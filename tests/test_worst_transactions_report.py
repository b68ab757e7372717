from apm_diag.services.reports import WorstTransactionsReport, render_worst_transactions
from apm_diag.services.reports.worst_transactions import NO_TRANSACTIONS_MESSAGE
from conftest import make_transaction


class TestWorstTransactionsReport:
    """최악 트랜잭션 리포트 테스트"""

    def test_no_transactions(self, now):
        assert render_worst_transactions([], now) == NO_TRANSACTIONS_MESSAGE

    def test_header(self, now):
        transactions = [
            make_transaction(hash="t1", timestamp="2024-08-19 12:00:00"),
            make_transaction(hash="t2", timestamp="2024-08-19 08:00:00"),
        ]

        report = render_worst_transactions(transactions, now)

        assert report.startswith("# Worst Transactions Report\n")
        assert "**Analysis Period:** 2024-08-19 08:00:00 to 2024-08-19 12:00:00" in report
        assert "**Total Transactions Analyzed:** 2" in report
        assert "**Generated:** 2024-08-19 17:00:00" in report

    def test_critical_slow_not_memory(self, now):
        """duration=15000, memory=10, success → CRITICAL SLOW (HIGH MEMORY 없음)"""
        transactions = [make_transaction(name="GET /reports", duration=15000, memory_peak=10)]

        report = render_worst_transactions(transactions, now)

        assert "### CRITICAL SLOW: GET /reports" in report
        assert "**Duration:** 15,000.00ms (15.00s)" in report
        assert "### HIGH MEMORY" not in report
        assert "### CRITICAL: " not in report

    def test_critical_request(self, now):
        transactions = [
            make_transaction(
                hash="err-1",
                result="500",
                http={"url": {"full": "https://example.com/api/users"}, "request": {"method": "POST"}},
            )
        ]

        report = render_worst_transactions(transactions, now)

        assert "## CRITICAL ISSUES - Immediate Investigation Required" in report
        assert "### CRITICAL: GET /api/users" in report
        assert "**Status:** 500 (FAILED)" in report
        assert "**Host:** web-01" in report
        assert "**URL:** https://example.com/api/users" in report
        assert "**Method:** POST" in report
        assert "1. Use hash `err-1` to retrieve detailed timeline" in report
        assert "4. Check route implementation and middleware" in report

    def test_critical_job(self, now):
        transactions = [make_transaction(name="App\\Jobs\\Sync", type="job", result="failed", host=None)]

        report = render_worst_transactions(transactions, now)

        assert "**Host:** N/A" in report
        assert "4. Check job queue configuration and implementation" in report
        assert "**URL:**" not in report

    def test_slow_job_chunking_hint(self, now):
        report = render_worst_transactions([make_transaction(type="job", duration=3000)], now)

        assert "### MEDIUM SLOW:" in report
        assert "6. Consider job chunking for large datasets" in report

    def test_memory(self, now):
        report = render_worst_transactions([make_transaction(memory_peak=128)], now)

        assert "## MEMORY ISSUES - Resource Optimization" in report
        assert "### HIGH MEMORY: GET /api/users" in report
        assert "**Memory Peak:** 128.00MB" in report

    def test_other_is_compact(self, now):
        report = render_worst_transactions([make_transaction(hash="ok-1")], now)

        assert "## OTHER TRANSACTIONS - Baseline Performance" in report
        assert "**Duration:** 120.00ms | **Memory:** 10.00MB | **Status:** success | **Hash:** `ok-1`" in report

    def test_sections_in_priority_order(self, now):
        transactions = [
            make_transaction(hash="o"),
            make_transaction(hash="m", memory_peak=90),
            make_transaction(hash="s", duration=2500),
            make_transaction(hash="c", result="error"),
        ]

        report = render_worst_transactions(transactions, now)

        positions = [
            report.index("## CRITICAL ISSUES"),
            report.index("## PERFORMANCE ISSUES"),
            report.index("## MEMORY ISSUES"),
            report.index("## OTHER TRANSACTIONS"),
            report.index("## SUMMARY & RECOMMENDATIONS"),
        ]
        assert positions == sorted(positions)

    def test_empty_categories_omitted(self, now):
        report = render_worst_transactions([make_transaction(duration=2500)], now)

        assert "## CRITICAL ISSUES" not in report
        assert "## MEMORY ISSUES" not in report
        assert "## OTHER TRANSACTIONS" not in report

    def test_summary_tally(self, now):
        transactions = [
            make_transaction(result="404"),
            make_transaction(result="503"),
            make_transaction(duration=2500),
            make_transaction(),
        ]

        report = str(WorstTransactionsReport(transactions, now))

        assert "**Issue Distribution:**" in report
        assert "- Critical Issues: 2" in report
        assert "- Performance Issues: 1" in report
        assert "- Memory Issues: 0" in report
        assert "- Other: 1" in report
        assert "3. Review and optimize database queries" in report
