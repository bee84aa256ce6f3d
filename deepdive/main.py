from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from deepdive.api.deps import shutdown_services
from deepdive.api.routes import analyze, chat, memory
from deepdive.config import settings
from deepdive.errors import DeepDiveError
from deepdive.models.schemas import HealthResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("DeepDive backend starting")
    yield
    # Shutdown: let in-flight memory updates finish
    await shutdown_services()


app = FastAPI(
    title="DeepDive",
    description="Summaries, credibility and fact checks for what you read",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(analyze.router)
app.include_router(chat.router)
app.include_router(memory.router)


@app.exception_handler(DeepDiveError)
async def deepdive_error_handler(request: Request, exc: DeepDiveError):
    if exc.status_code >= 500:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "Internal server error", "details": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat())
