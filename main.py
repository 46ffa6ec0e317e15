import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

import accounts
import auth
import budgets
import categories
import reports
import transactions
from config import API_PREFIX, CORS_ORIGINS, DATABASE_URL, ENVIRONMENT, LOG_LEVEL, PORT, UPLOAD_FOLDER
from database import async_session, init_models, ping
from schemas import ErrorOut

# ----------------------------------------------------------------------------
# Logging
# ----------------------------------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("finance-backend")


# ----------------------------------------------------------------------------
# App setup
# ----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    async with async_session() as session:
        await categories.seed_system_categories(session)
    logger.info("Finance API started in %s mode", ENVIRONMENT)
    yield


app = FastAPI(title="Personal Finance API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, accounts, transactions, budgets, categories, reports):
    app.include_router(module.router, prefix=API_PREFIX)

app.mount("/uploads", StaticFiles(directory=UPLOAD_FOLDER, check_dir=False), name="uploads")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed)
    return response


# ----------------------------------------------------------------------------
# Error translation
# ----------------------------------------------------------------------------
def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorOut(error=message).model_dump(), headers=headers)


def _validation_message(error: dict) -> str:
    field = ".".join(str(part) for part in error.get("loc", ())[1:])
    message = error.get("msg", "Invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{field}: {message}" if field else message


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and message == "Not Found":
        message = f"Cannot find {request.url.path} on this server"
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    # a malformed id in the path can't name any resource
    if errors and all(e.get("loc", ("",))[0] == "path" for e in errors):
        return error_response(404, "Resource not found")
    return error_response(400, ", ".join(_validation_message(e) for e in errors))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response(400, "Duplicate field value entered")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Server Error")


# ----------------------------------------------------------------------------
# Health
# ----------------------------------------------------------------------------
@app.get("/")
async def read_root():
    return {"message": "Personal Finance Backend is running"}


@app.get("/health")
async def health():
    info = {
        "status": "success",
        "environment": ENVIRONMENT,
        "using_sqlite_fallback": DATABASE_URL.startswith("sqlite"),
        "database": "unavailable",
    }
    try:
        await ping()
        info["database"] = "available"
    except Exception as e:
        logger.error("Database ping failed: %s", e)
        info["status"] = "degraded"
        info["database"] = f"error: {str(e)[:160]}"
    return info


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
