"""
ChangeGuard FastAPI Application.

HTTP shell over the change-application and rollback engine:
  PUT  /apply-changes/executions/{id} → register generated changes
  POST /apply-changes/apply           → apply an execution's changes
  POST /apply-changes/rollback        → reverse an application
  GET  /apply-changes/status/{id}     → one application record
  GET  /apply-changes/list            → all application records
  GET  /apply-changes/execution/{id}  → applications of one execution
  GET  /health                        → {"status": "ok"}
"""

from __future__ import annotations

import logging

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from changeguard.api.routes.apply_changes import router as apply_changes_router
from changeguard.api.routes.health import router as health_router
from changeguard.config import settings
from changeguard.errors import NotFoundError, RollbackRejectedError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("changeguard")

app = FastAPI(
    title="ChangeGuard",
    description="Applies generated file changes with backups and rollback",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(apply_changes_router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RollbackRejectedError)
async def rollback_rejected_handler(request: Request, exc: RollbackRejectedError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = await request.body()
    logger.error(f"Validation Error. Raw body: {body.decode('utf-8')[:500]} | Errors: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "body": body.decode("utf-8")[:100]},
    )
