from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import logging
import os
import time

from db import Base, engine
from errors import LenderError, ValidationFailure
from routers import ALL_ROUTERS
from validation import pydantic_errors

import orm  # noqa: F401  registers the tables on Base

app = FastAPI(title="Lender API")

Base.metadata.create_all(bind=engine)

# -----------------------
# Logging
# -----------------------
logging.basicConfig(
    level=os.getenv("APP_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed_ms = int((time.time() - start) * 1000)
    logger.info(
        "method=%s path=%s status=%s elapsed_ms=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response

# -----------------------
# Errors
# -----------------------
def error_response(exc: LenderError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

@app.exception_handler(LenderError)
async def lender_error_handler(request: Request, exc: LenderError):
    if exc.status_code >= 500:
        logger.error(
            "internal error method=%s path=%s message=%s context=%s",
            request.method,
            request.url.path,
            exc.message,
            exc.context,
        )
    return error_response(exc)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = pydantic_errors(exc)  # type: ignore[arg-type]
    return error_response(ValidationFailure(errors))

for router in ALL_ROUTERS:
    app.include_router(router)

@app.get("/")
def root():
    return {
        "message": "Lender API",
        "docs": "/docs",
        "endpoints": ["/members", "/items", "/loans", "/dashboard"],
    }
