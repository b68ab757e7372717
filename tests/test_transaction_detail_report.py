import pytest

from apm_diag.services.aggregators import resolve_segment_app_files
from apm_diag.services.reports import TransactionDetailReport, render_transaction_detail
from apm_diag.services.reports.base import fmt_percent, truncate
from conftest import make_segment, make_transaction

N_PLUS_ONE_QUERY = "SELECT * FROM posts WHERE user_id = ?"


@pytest.fixture
def transaction():
    return make_transaction(
        duration=1500,
        memory_peak=24.5,
        http={
            "url": {"full": "https://example.com/api/users", "path": "/api/users"},
            "request": {"method": "GET"},
        },
    )


@pytest.fixture
def segments(error_payloads):
    timeline = [make_segment("mysql", N_PLUS_ONE_QUERY, 20, start=10 + i * 20) for i in range(5)]
    timeline.append(make_segment("http", "GET https://api.example.com/profile", 250, start=120))
    timeline.append(
        make_segment(
            "exception",
            "ErrorException",
            0,
            start=400,
            context={"Error": {"stack": error_payloads[0]["stack"]}},
        )
    )
    return resolve_segment_app_files(timeline)


class TestTransactionDetailReport:
    """트랜잭션 상세 리포트 테스트"""

    def test_header(self, transaction, segments):
        report = render_transaction_detail(transaction, segments)

        assert report.startswith("TRANSACTION ANALYSIS REPORT\n" + "=" * 50 + "\n")
        assert "Transaction: REQUEST GET /api/users" in report
        assert "Duration: 1,500.00ms" in report
        assert "Memory Peak: 24.50MB" in report
        assert "Result: success" in report
        assert "URL: https://example.com/api/users" in report

    def test_exceptions(self, transaction, segments):
        report = render_transaction_detail(transaction, segments)

        assert "CRITICAL ISSUES - EXCEPTIONS FOUND" in report
        assert "Exception #1:" in report
        assert "  Error: ErrorException" in report
        assert "  Time: 400.00ms into execution" in report
        assert "  File: /app/Http/Controllers/UserController.php" in report
        assert "  Line: 42" in report
        assert "42 | return $user->name;" in report

    def test_no_exception_section_without_exceptions(self, transaction):
        report = render_transaction_detail(transaction, [make_segment("mysql", "select 1", 1)])
        assert "EXCEPTIONS FOUND" not in report

    def test_performance(self, transaction, segments):
        report = render_transaction_detail(transaction, segments)

        assert "Total Transaction Duration: 1,500.00ms" in report
        assert "WARNING: Transaction duration exceeds 1 second" in report
        assert "Slow Tasks (>100ms):" in report
        assert "  - http: 250.00ms (16.7% of total time)" in report
        assert "    Query: GET https://api.example.com/profile" in report

    def test_performance_notice(self, segments):
        report = render_transaction_detail(make_transaction(duration=800), segments)

        assert "NOTICE: Transaction duration is moderately slow (>500ms)." in report
        assert "WARNING:" not in report

    def test_database_analysis(self, transaction, segments):
        report = render_transaction_detail(transaction, segments)

        assert "Total Database Time: 100.00ms (6.7% of transaction)" in report
        assert "Query Count: 5" in report
        assert "Average Query Time: 20.00ms" in report
        assert "POTENTIAL N+1 QUERY ISSUES DETECTED:" in report
        assert f"  - Pattern: {N_PLUS_ONE_QUERY}" in report
        assert "    Occurrences: 5 times" in report
        assert "RECOMMENDATION: Consider using eager loading" in report
        assert "SLOWEST DATABASE QUERIES:" in report
        assert "3. Duration: 20.00ms" in report
        assert "4. Duration:" not in report

    def test_no_database_queries(self, transaction):
        report = render_transaction_detail(transaction, [make_segment("redis", "GET key", 2)])

        assert "No database queries detected in this transaction." in report
        assert "Query Count" not in report

    def test_no_n_plus_one_for_three_queries(self, transaction):
        timeline = [make_segment("mysql", N_PLUS_ONE_QUERY, 5) for _ in range(3)]

        report = render_transaction_detail(transaction, timeline)

        assert "N+1" not in report

    def test_timeline_summary(self, transaction, segments):
        report = render_transaction_detail(transaction, segments)

        http = report.index("Http: 1 operations, 250.00ms total (avg: 250.00ms)")
        mysql = report.index("Mysql: 5 operations, 100.00ms total (avg: 20.00ms)")
        assert http < mysql
        assert "- Check route definition for: /api/users" in report

    def test_route_hint_only_for_requests(self, segments):
        report = render_transaction_detail(make_transaction(type="job", name="SendEmails"), segments)

        assert "Check route definition" not in report
        assert "Transaction: JOB SendEmails" in report

    def test_zero_duration_transaction(self):
        transaction = make_transaction(duration=0)

        report = TransactionDetailReport(transaction, [make_segment("mysql", "select 1", 0)]).generate()

        assert "(0.0% of transaction)" in report

    def test_empty_timeline(self, transaction):
        report = render_transaction_detail(transaction, [])

        assert "No database queries detected" in report
        assert "EXECUTION TIMELINE SUMMARY" in report


class TestFormatting:
    def test_fmt_percent_zero_total(self):
        assert fmt_percent(10, 0) == "0.0"

    def test_truncate(self):
        assert truncate("short", 80) == "short"
        assert truncate("a" * 90, 80) == "a" * 80 + "..."

    def test_truncate_dangling_backslash(self):
        assert truncate("abc\\def", 4) == "abc..."
