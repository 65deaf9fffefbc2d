# sitelens/main.py
# -----------------------------------------------------------------------------
# FastAPI entrypoint
# - loguru sinks configured at import
# - tables created on startup
# -----------------------------------------------------------------------------
from fastapi import FastAPI

from sitelens.core.config import settings
from sitelens.core.logging import setup_logging
from sitelens.db.session import create_tables
from sitelens.routers import analysis

setup_logging()

app = FastAPI(title=settings.APP_NAME)


@app.on_event("startup")
async def on_startup():
    await create_tables()


app.include_router(analysis.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
