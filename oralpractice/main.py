from dotenv import load_dotenv
import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(BASE_DIR, ".env"))

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from oralpractice.core.config import settings
from oralpractice.core.errors import AppError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("oralpractice")

# ───────────────── ROUTER IMPORTS ─────────────────
from oralpractice.routes.auth import router as auth_router
from oralpractice.routes.users import router as users_router
from oralpractice.routes.exercises import router as exercises_router
from oralpractice.routes.student import router as student_router
from oralpractice.routes.teacher import router as teacher_router
from oralpractice.routes.evaluate import router as evaluate_router

app = FastAPI(
    title="Oral Practice API",
    description="Backend API for spoken-English practice: exercises, recordings, review and statistics",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)


# ───────────────── ERROR HANDLERS ─────────────────

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


def _sanitize(obj):
    # multipart uploads can put raw bytes into validation errors
    if isinstance(obj, (bytes, bytearray)):
        return f"<bytes:{len(obj)}>"
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(v) for v in obj]
    return obj


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    safe_errors = _sanitize(exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": safe_errors},
    )

# ───────────────── CORS ─────────────────

origins = settings.origins_list or [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ───────────────── ROUTES ─────────────────

app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(exercises_router, prefix="/api")

# student practice + teacher review
app.include_router(student_router, prefix="/api")
app.include_router(teacher_router, prefix="/api")
app.include_router(evaluate_router, prefix="/api")

# ───────────────── HEALTH ─────────────────

@app.get("/", tags=["Health"])
async def root():
    return {
        "status": "ok",
        "app": "Oral Practice API",
        "env": settings.APP_ENV,
    }


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "healthy"}
