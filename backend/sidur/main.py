from dotenv import load_dotenv
load_dotenv()
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from sqlalchemy import text
import logging
import uvicorn

from .core.config import settings
from .core.database import engine, Base, create_tables
from .routes import routers
from .utils.timezone import get_timezone_info
from .websocket.connection_manager import connection_manager

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)
logging.getLogger("uvicorn.access").setLevel(logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting work schedule service...")

    timezone_info = get_timezone_info()
    logger.info(f"Timezone: {timezone_info['timezone']} ({timezone_info['offset']})")
    logger.info(f"Local time: {timezone_info['local_time']}, UTC: {timezone_info['utc_time']}")

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info(f"Database connection OK: {engine.url.database}")
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")
        raise RuntimeError("Cannot connect to the database, check DATABASE_URL")

    create_tables()
    logger.info(f"Tables ready: {list(Base.metadata.tables.keys())}")

    yield

    logger.info("Shutting down...")
    await connection_manager.shutdown()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description="API לניהול סידור עבודה יומי",
    version="1.0.0",
    redirect_slashes=False,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS or [settings.FRONTEND_ORIGIN],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
    max_age=86400,
)

for router in routers:
    app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    return {"message": f"ברוכים הבאים ל{settings.APP_NAME}"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "message": "המערכת פועלת כרגיל"}


if __name__ == "__main__":
    uvicorn.run("sidur.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
