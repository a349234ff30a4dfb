import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from acn_python_backend.config import CORS_ORIGINS, LOG_LEVEL
from acn_python_backend.db_session import async_engine, init_models
from acn_python_backend.interaction_api import router as interaction_router
from acn_python_backend.ledger_api import router as ledger_router

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("[INFO] Initializing database schema...")
    try:
        await init_models()
        logger.info("[INFO] Database ready.")
    except Exception:
        logger.exception("[ERROR] Failed to initialize database during startup")
        raise
    yield
    logger.info("[INFO] Disposing database engine...")
    await async_engine.dispose()


# fastapi app
acn_app = FastAPI(title="Argument Confidence Network", lifespan=lifespan)

acn_app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

acn_app.include_router(interaction_router)
acn_app.include_router(ledger_router)


@acn_app.get("/api/acn/health")
async def health():
    return {"status": "ok"}
