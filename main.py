import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import text

from solvo.cache.connection import close_redis
from solvo.config import get_settings
from solvo.db.session import db_session
from solvo.logging_config import setup_logging
from solvo.routers import aptitude as aptitude_router
from solvo.routers import psychometric as psychometric_router

settings = get_settings()
setup_logging(settings.logging.level, json_format=settings.logging.json_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Solvo assessment API starting")
    yield
    await close_redis()
    logger.info("Solvo assessment API stopped")


app = FastAPI(title="Solvo Assessment API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Include Routers ---
app.include_router(psychometric_router.router, prefix="/api", tags=["psychometric"])
app.include_router(aptitude_router.router, prefix="/api", tags=["aptitude"])


@app.get("/health", tags=["Health Check"])
async def read_root():
    """Liveness check."""
    return {"status": "ok", "message": "Solvo assessment API is running."}


@app.get("/health/db", tags=["Health Check"])
async def health_check_db(db: AsyncSession = Depends(db_session)):
    """
    Performs a database connection health check.
    """
    try:
        result = (await db.execute(text("SELECT 1"))).scalar_one()
        return {"status": "ok", "db_check": result}
    except Exception as e:
        logger.error(f"DB health check failed: {e}", exc_info=True)
        # Details go to the log only
        raise HTTPException(status_code=503, detail="Database connection error")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
