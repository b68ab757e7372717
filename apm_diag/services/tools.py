"""리포트 도구 - 텔레메트리 조회 → 병합 → 렌더링 + 도구 레지스트리"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field, ValidationError

from apm_diag.core.config import Settings, settings
from apm_diag.models.telemetry import (
    Application,
    ErrorDetail,
    ErrorGroup,
    ErrorOccurrence,
    Segment,
    Transaction,
)
from apm_diag.services import aggregators
from apm_diag.services.inspector import InspectorAPIError, TelemetryFetcher
from apm_diag.services.reports import (
    render_error_report,
    render_errors_report,
    render_transaction_detail,
    render_worst_transactions,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def _as_list(payload) -> list[dict]:
    return [item for item in payload or [] if isinstance(item, dict)]


class ToolService:
    """도구별 fetch + 렌더링. 현재 시각은 clock으로 주입"""

    def __init__(
        self,
        fetcher: TelemetryFetcher,
        config: Settings | None = None,
        clock: Clock = utc_now,
    ):
        self.fetcher = fetcher
        self.config = config or settings
        self.clock = clock

    async def get_app(self) -> Application:
        return Application.from_payload(await self.fetcher.get("") or {})

    async def production_errors(self, hours: int, limit: int | None = None) -> str:
        now = self.clock()
        app = await self.get_app()

        start = (now - timedelta(hours=hours)).strftime("%Y-%m-%d %H:%M:%S")
        payload = await self.fetcher.get("errors", params={"start": start})
        errors = list(
            aggregators.index_by_hash(
                ErrorOccurrence.model_validate(e) for e in _as_list(payload)
            ).values()
        )

        if limit is None and len(errors) > self.config.max_errors_without_limit:
            logger.info("Too many errors (%d) without limit, returning guard message", len(errors))
            return (
                f"Current research for the last {hours} hours retrieved more than "
                f"{self.config.max_errors_without_limit} errors. They could flood the context window. "
                "You can try to narrow the search by setting a limit or using a shorter time window."
            )

        errors = errors[:limit]
        if not errors:
            return render_errors_report(app, [], now)

        groups_payload = await self.fetcher.post(
            "error-groups", {"hashes": [e.group_hash for e in errors]}
        )
        groups = [ErrorGroup.model_validate(g) for g in _as_list(groups_payload) if g.get("hash")]

        return render_errors_report(app, aggregators.merge_errors(errors, groups), now)

    async def error_analysis(self, group_hash: str) -> str:
        payload = await self.fetcher.get(f"error-groups/{group_hash}") or {}
        error = ErrorDetail.model_validate(payload)
        if error.app_file is None:
            error = error.model_copy(update={"app_file": aggregators.resolve_app_file(error.stack)})
        return render_error_report(error)

    async def worst_transactions(self, hours: int, limit: int) -> str:
        now = self.clock()
        start = (now - timedelta(hours=hours)).strftime("%Y-%m-%d %H:%M")

        payload = await self.fetcher.post(
            "worst-transactions", {"query": {"filter": {"start": start}}}
        )
        transactions = [Transaction.model_validate(t) for t in _as_list(payload)]

        if len(transactions) > limit:
            logger.info("Too many transactions (%d > %d), returning guard message", len(transactions), limit)
            return (
                f"Current research for the last {hours} hours retrieved more than {limit} transactions. "
                "They could flood the context window. "
                "You can try to narrow the search by setting a limit or using a shorter time window."
            )

        return render_worst_transactions(transactions, now)

    async def transaction_details(self, hash: str) -> str:
        occurrence = await self.fetcher.get(f"transactions/{hash}/occurrence") or {}
        timeline = await self.fetcher.get(f"transactions/{hash}/segments")

        transaction = Transaction.model_validate(occurrence)
        segments = aggregators.resolve_segment_app_files(
            Segment.model_validate(s) for s in _as_list(timeline)
        )
        return render_transaction_detail(transaction, segments)


# ── Tool registry ────────────────────────────────────────────────


class ProductionErrorsArgs(BaseModel):
    hours: int = Field(
        default_factory=lambda: settings.default_hours,
        ge=1,
        description="The number of hours to look back for errors (24 by default).",
    )
    limit: int | None = Field(
        None, ge=1, description="The maximum number of errors to return. Default null to return all errors."
    )


class ErrorAnalysisArgs(BaseModel):
    group_hash: str = Field(min_length=1, description="The error group hash from the errors report.")


class WorstTransactionsArgs(BaseModel):
    hours: int = Field(
        default_factory=lambda: settings.default_hours,
        ge=1,
        description="The number of hours to look back for transactions (24 by default).",
    )
    limit: int = Field(
        default_factory=lambda: settings.worst_transactions_limit,
        ge=1,
        description="The maximum number of transactions to return.",
    )


class TransactionDetailsArgs(BaseModel):
    hash: str = Field(min_length=1, description="The transaction hash.")


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[ToolService, BaseModel], Awaitable[str]]

    def input_schema(self) -> dict:
        return self.args_model.model_json_schema()


async def _production_errors(service: ToolService, args: ProductionErrorsArgs) -> str:
    return await service.production_errors(args.hours, args.limit)


async def _error_analysis(service: ToolService, args: ErrorAnalysisArgs) -> str:
    return await service.error_analysis(args.group_hash)


async def _worst_transactions(service: ToolService, args: WorstTransactionsArgs) -> str:
    return await service.worst_transactions(args.hours, args.limit)


async def _transaction_details(service: ToolService, args: TransactionDetailsArgs) -> str:
    return await service.transaction_details(args.hash)


# 도구 레지스트리 (이름 → 인자 모델 + 핸들러)
_TOOLS: dict[str, Tool] = {
    tool.name: tool
    for tool in (
        Tool(
            name="get_production_errors",
            description=(
                "Get recent production errors to debug and fix application issues. Returns an analysis "
                "of errors including frequency, severity, affected code locations, and recommendations."
            ),
            args_model=ProductionErrorsArgs,
            handler=_production_errors,
        ),
        Tool(
            name="get_error_analysis",
            description=(
                "Get detailed error analysis including the application source file (not just library "
                "stack traces), error patterns, code context, occurrence frequency, and debugging guidance."
            ),
            args_model=ErrorAnalysisArgs,
            handler=_error_analysis,
        ),
        Tool(
            name="worst_performing_transactions",
            description=(
                "Retrieve the worst performing transactions in the selected time range (24 hours by "
                "default). A transaction is an HTTP request, a background job, or a console command."
            ),
            args_model=WorstTransactionsArgs,
            handler=_worst_transactions,
        ),
        Tool(
            name="transaction_details",
            description=(
                "Retrieve the transaction details and the timeline of all tasks executed during the "
                "transaction (database queries, cache commands, external http calls, and so on)."
            ),
            args_model=TransactionDetailsArgs,
            handler=_transaction_details,
        ),
    )
}


def get_tool(name: str) -> Tool:
    """이름으로 도구 반환"""
    tool = _TOOLS.get(name)
    if not tool:
        raise ValueError(f"Unknown tool: {name}")
    return tool


def list_tools() -> list[Tool]:
    return list(_TOOLS.values())


async def execute_tool(service: ToolService, tool: Tool, args: BaseModel) -> str:
    """검증된 인자로 핸들러 실행 (백엔드 payload 파싱 실패 → InspectorAPIError)"""
    logger.info("Tool call: %s %s", tool.name, args.model_dump())
    try:
        return await tool.handler(service, args)
    except ValidationError as e:
        logger.warning("Unexpected payload for %s: %d invalid field(s)", tool.name, e.error_count())
        raise InspectorAPIError(
            f"Unexpected payload from Inspector API ({e.error_count()} invalid field(s))"
        ) from e


async def call_tool(service: ToolService, name: str, arguments: dict | None = None) -> str:
    """인자 검증 (pydantic ValidationError 전파) → 핸들러 실행"""
    tool = get_tool(name)
    args = tool.args_model.model_validate(arguments or {})
    return await execute_tool(service, tool, args)
