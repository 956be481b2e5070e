from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import router as api_router
from .oracle import OracleService
from .settings import get_settings

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    s = get_settings()
    setup_logging(s.LOG_LEVEL)
    # A ConstructionError here is fatal on purpose: bad config must stop startup.
    if getattr(app.state, "oracle", None) is None:
        app.state.oracle = OracleService.from_settings(s)
        logger.info("Oracle initialized for API server")
    try:
        yield
    finally:
        oracle = getattr(app.state, "oracle", None)
        if oracle is not None:
            logger.info("Shutting down API server...")
            await oracle.aclose()
            app.state.oracle = None


app = FastAPI(title="NGN/USD Oracle", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list(),
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {
            "ok": False,
            "error": {
                "code": "BAD_INPUT",
                "message": "invalid input",
                "source": "ngn_oracle",
                "retriable": False,
            },
            "ts": datetime.now(timezone.utc).isoformat(),
        },
        status_code=400,
    )


app.include_router(api_router)


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "ngn_oracle.main:app",
        host=settings.HOST,
        port=settings.API_PORT,
        reload=False,
    )
