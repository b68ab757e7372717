from apm_diag.services.reports.error_detail import ErrorReport, render_error_report
from apm_diag.services.reports.errors_list import ErrorsListReport, render_errors_report
from apm_diag.services.reports.transaction_detail import (
    TransactionDetailReport,
    render_transaction_detail,
)
from apm_diag.services.reports.worst_transactions import (
    WorstTransactionsReport,
    render_worst_transactions,
)

__all__ = [
    "ErrorReport",
    "ErrorsListReport",
    "TransactionDetailReport",
    "WorstTransactionsReport",
    "render_error_report",
    "render_errors_report",
    "render_transaction_detail",
    "render_worst_transactions",
]
