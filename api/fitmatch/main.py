import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from .config import LOG_LEVEL
from .database import SessionLocal, create_schema
from .errors import FitMatchError
from .routes import include_modular_routers

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="FitMatch API")
include_modular_routers(app)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FitMatchError)
def fitmatch_error_handler(request: Request, exc: FitMatchError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[api] %s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("[api] %s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code.value)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def wait_for_db(max_attempts: int = 30, delay_seconds: float = 1.0) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
            return
        except OperationalError as exc:
            last_err = exc
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    create_schema(SessionLocal)
    logger.info("[startup] schema ready")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
