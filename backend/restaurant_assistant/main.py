import logging
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from restaurant_assistant.routes import chat_router
from restaurant_assistant.config import settings
from restaurant_assistant.services import cache_service, conversation_memory, llm_service, message_batcher

VERSION = "0.1.0"


def setup_logging():
    """Configure logging for the application."""
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Root logger at INFO keeps third-party libs quiet
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    app_log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.getLogger("restaurant_assistant").setLevel(app_log_level)

    # Suppress noisy third-party libraries
    for lib in ["uvicorn.access", "httpx", "httpcore", "anthropic", "openai"]:
        logging.getLogger(lib).setLevel(logging.WARNING)

    logging.info(f"Logging configured (app: {logging.getLevelName(app_log_level)}, libs: WARNING)")


# Initialize logging on module load
setup_logging()

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Restaurant Assistant",
    description="Conversational analytics assistant for restaurant managers",
    version=VERSION,
)

cors_origins = settings.get_cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # Credentials cannot be combined with a wildcard origin
    allow_credentials="*" not in cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc) or "Internal server error"},
    )


# API routes
app.include_router(chat_router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": VERSION,
        "debug": settings.debug,
        "model": settings.default_model,
        "providers": llm_service.get_configured_providers(),
        "memory": conversation_memory.get_stats(),
        "pending_batches": message_batcher.pending_count(),
        "caches": cache_service.get_all_stats(),
    }
