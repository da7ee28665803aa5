import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from kolagent.config import get_settings
from kolagent.logging_config import setup_logging
from kolagent.orchestration.dispatch import PipelineDispatcher
from kolagent.orchestration.tasks import VERSION, build_pipeline, healthcheck
from kolagent.routers import webhook

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the pipeline from settings on startup; let in-flight runs finish on shutdown."""
    settings = get_settings()
    logger.info(f"Twitter credentials loaded: {settings.twitter_credentials_loaded}")
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not configured; generation will fail")
    if settings.dry_run:
        logger.warning("DRY_RUN enabled; posts will be logged, not published")

    app.state.dispatcher = PipelineDispatcher(build_pipeline(settings))
    logger.info("KOL Agent starting up")

    yield

    await app.state.dispatcher.drain()
    logger.info("KOL Agent shutting down")

app = FastAPI(
    title="KOL Agent",
    description="Generates and posts promotional messages for on-chain token transfers",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

app.include_router(webhook.router)

@app.get("/healthz")
def health_check():
    """Health check endpoint."""
    try:
        return healthcheck()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unhealthy")

@app.get("/")
def root():
    """Root endpoint - service information."""
    return {
        "service": "KOL Agent",
        "version": VERSION,
        "description": "Token transfer webhook → generated promotional post on X",
        "endpoints": {
            "webhook": "POST /webhook",
            "health": "/healthz",
            "docs": "/docs",
            "redoc": "/redoc"
        }
    }
