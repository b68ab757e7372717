import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from apm_diag.api.tools import router as tools_router
from apm_diag.core.config import settings
from apm_diag.services.inspector import inspector_client

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 시작/종료 시 실행"""
    logger.info("APM diagnostic tools ready")
    yield
    # Shutdown: Inspector HTTP 클라이언트 정리
    await inspector_client.close()


app = FastAPI(
    title="APM-Diag",
    description="Application telemetry → prioritized diagnostic reports for humans and AI agents",
    lifespan=lifespan,
)

app.include_router(tools_router, prefix="/tools", tags=["tools"])


@app.get("/health")
async def health():
    return {"status": "ok"}
