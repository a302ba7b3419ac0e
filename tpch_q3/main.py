import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from tpch_q3.core.config import settings
from tpch_q3.core.database import engine, Base
from tpch_q3.core import models  # noqa: F401  (registers the tables on Base)
from tpch_q3.api.router import api_router

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# Create the tables on startup, close the engine once everything is done
@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables ready")

    yield
    await engine.dispose()


app = FastAPI(title="TPC-H Shipping Priority Query API", lifespan=lifespan)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Welcome to the Shipping Priority Query API"}
