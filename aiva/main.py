import time
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from aiva.api import router
from aiva.core.exceptions import AivaError
from aiva.db.sessions import engine
from aiva.db.base import Base
from contextlib import asynccontextmanager
from aiva.db.base import load_all_models
from aiva.utils.logger import get_logger, log_request
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

load_all_models()

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

app = FastAPI(title="AIVA Digital Asset Management API", version="1.0.0", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    log_request(logger, request.method, request.url.path, response.status_code, time.time() - start_time)
    return response


@app.exception_handler(AivaError)
async def aiva_error_handler(request: Request, exc: AivaError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


# Prometheus metrics
Instrumentator().instrument(app).expose(app)

app.include_router(router.api_router)
