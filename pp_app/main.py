# pp_app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from pp_app.core.config import settings
from pp_app.core.logging import setup_logging
from pp_app.db.base import init_db, async_session

import pp_app.api.signup as signup_api
import pp_app.api.queue as queue_api
import pp_app.api.admin as admin_api

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_db()
    if not settings.admin_secret:
        logger.warning("ADMIN_SECRET is not set; admin routes are %s",
                       "closed" if settings.is_production else "open")
    yield


app = FastAPI(title="PeerPlates Waitlist", lifespan=lifespan)

app.include_router(signup_api.router)
app.include_router(queue_api.router)
app.include_router(admin_api.router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def _unexpected(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Unexpected server error"})


@app.get("/health")
async def health():
    try:
        async with async_session() as s:
            await s.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        db_ok = False
    return {"ok": True, "db": db_ok}
