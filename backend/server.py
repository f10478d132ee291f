from __future__ import annotations

import os
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from app.config import APP_NAME, APP_VERSION, SERVICE_NAME
from app.db import close_mongo, connect_mongo, get_db, ping_db
from app.exception_handlers import register_exception_handlers
from app.indexes.analytics_indexes import ensure_analytics_indexes
from app.middleware.correlation_id import CorrelationIdMiddleware
from app.middleware.structured_logging_middleware import StructuredLoggingMiddleware
from app.routers.leaves_analytics import router as leaves_analytics_router
from app.routers.org_structure_analytics import router as org_structure_analytics_router
from app.routers.payroll_analytics import router as payroll_analytics_router
from app.routers.profile_analytics import router as profile_analytics_router
from app.routers.time_management_analytics import router as time_management_analytics_router
from app.routers.workforce_analytics import router as workforce_analytics_router

ROOT_DIR = Path(__file__).parent

# Load .env only if exists (development fallback)
env_path = ROOT_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(SERVICE_NAME)

app = FastAPI(title=APP_NAME, version=APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(StructuredLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

# Routers (/api prefix is on each router)
app.include_router(payroll_analytics_router)
app.include_router(org_structure_analytics_router)
app.include_router(workforce_analytics_router)
app.include_router(profile_analytics_router)
app.include_router(leaves_analytics_router)
app.include_router(time_management_analytics_router)


@app.get("/api/health")
async def health() -> dict[str, Any]:
    """Main health check with database ping"""
    return {"ok": await ping_db(), "service": SERVICE_NAME}


# Deployment health check alias
@app.get("/health")
@app.get("/health/")
async def deployment_health() -> dict[str, Any]:
    """Simple health check for deployment platforms"""
    return {"ok": True, "service": SERVICE_NAME, "status": "healthy"}


@app.on_event("startup")
async def _startup() -> None:
    await connect_mongo()
    await ensure_analytics_indexes(await get_db())
    logger.info("Startup complete")


@app.on_event("shutdown")
async def _shutdown() -> None:
    await close_mongo()
    logger.info("Shutdown complete")
