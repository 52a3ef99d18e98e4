# spentiva/main.py
import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from spentiva.api.v1 import (
    admin,
    analytics,
    auth,
    categories,
    expenses,
    health,
    payments,
    refunds,
    report_schedules,
    support,
    trackers,
    uploads,
    usage,
    usage_logs,
)
from spentiva.core.config import settings
from spentiva.core.logging import configure_logging
from spentiva.core.rate_limit import api_limiter
from spentiva.core.responses import register_exception_handlers, success_response
from spentiva.db.session import SessionLocal
from spentiva.services.reports import ReportScheduler

configure_logging()
settings.validate()
logger = logging.getLogger("spentiva")

report_scheduler = ReportScheduler(SessionLocal)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.REPORT_SCHEDULER_ENABLED:
        report_scheduler.start()
    else:
        logger.info("Report scheduler disabled")
    yield
    report_scheduler.stop()


app = FastAPI(title="Spentiva API", version=settings.VERSION, lifespan=lifespan)
register_exception_handlers(app)

# serve files under /uploads so the browser can GET /uploads/<user>/<file>
os.makedirs(settings.upload_root, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_root), name="uploads")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


API = settings.API_PREFIX
limited = [Depends(api_limiter)]

app.include_router(health.router, prefix=API)
app.include_router(auth.router, prefix=f"{API}/auth", dependencies=limited)
app.include_router(trackers.router, prefix=f"{API}/tracker", dependencies=limited)
app.include_router(categories.router, prefix=f"{API}/category", dependencies=limited)
app.include_router(expenses.router, prefix=f"{API}/expense", dependencies=limited)
app.include_router(payments.router, prefix=f"{API}/payment", dependencies=limited)
app.include_router(refunds.router, prefix=f"{API}/refund", dependencies=limited)
app.include_router(report_schedules.router, prefix=f"{API}/report-schedule", dependencies=limited)
app.include_router(support.router, prefix=f"{API}/support", dependencies=limited)
app.include_router(usage_logs.router, prefix=f"{API}/usage-logs", dependencies=limited)
app.include_router(usage.router, prefix=f"{API}/usage", dependencies=limited)
app.include_router(analytics.router, prefix=f"{API}/analytics", dependencies=limited)
app.include_router(admin.router, prefix=f"{API}/admin", dependencies=limited)
app.include_router(uploads.router, prefix=API, dependencies=limited)


@app.get("/")
def root():
    return success_response({"docs": "/docs", "health": f"{API}/health"}, "Spentiva API")
