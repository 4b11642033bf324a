"""FastAPI main application entry point."""
import logging
import sys
from contextlib import asynccontextmanager

from copyrepair.utils.config import config

# Configure logging before the app modules create their loggers
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%H:%M:%S',
    handlers=[logging.StreamHandler(sys.stdout)]
)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from copyrepair.api.routes import get_knowledge_base, router as api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Knowledge base is read once, at startup
    sections = get_knowledge_base()
    logger.info(f"{config.APP_NAME} {config.APP_VERSION} ready, {len(sections)} knowledge sections")
    yield


app = FastAPI(
    title=config.APP_NAME,
    version=config.APP_VERSION,
    description="Validation-guided generation and repair of SimpleWine marketing copy",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1", tags=["copy"])


@app.get("/")
async def root():
    """Service info."""
    return {
        "name": config.APP_NAME,
        "version": config.APP_VERSION,
        "status": "running",
        "formats": ["email", "multiformat"],
        "api_docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=config.LOG_LEVEL.lower())
