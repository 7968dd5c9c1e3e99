import sys
from typing import Any

import fastapi
import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from review_agent import __version__
from review_agent.queue import configure_review_handler, pending_jobs, shutdown_queue
from review_agent.services.review_processor import ReviewProcessor
from review_agent.webhook import router as webhook_router

app = FastAPI(title="Review Agent", version=__version__)

app.include_router(webhook_router, tags=["webhook"])


@app.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "pong"


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "The review agent is operational and ready to review your code.",
        "pending_jobs": pending_jobs(),
        "environment": {
            "python version": sys.version,
            "fastapi version": fastapi.__version__,
            "uvicorn version": uvicorn.__version__,
        },
    }


@app.on_event("startup")
async def _configure_queue_worker() -> None:
    configure_review_handler(ReviewProcessor())


@app.on_event("shutdown")
async def _shutdown_queue_worker() -> None:
    await shutdown_queue()
