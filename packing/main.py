from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from packing.core.config import get_settings
from packing.core.logging_config import setup_logging
from packing.db.session import AppSessionLocal, init_db
from packing.services.drafts import DraftStore
from packing.services.session import SessionRegistry
from packing.api import orders, settings as settings_api, packs, health

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.packing_sessions = SessionRegistry()
    logger.info("Packing backend started (%s)", settings.APP_ENV)
    yield
    registry: SessionRegistry = app.state.packing_sessions
    logger.info("Packing backend stopping with %d open sessions", len(registry))
    db = AppSessionLocal()
    try:
        registry.flush_all(DraftStore(db))
    finally:
        db.close()


app = FastAPI(title="Packing Assistant Backend", lifespan=lifespan)

# --- CORS (so the React frontend can call APIs) ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Root route (test) ---
@app.get("/")
def root():
    return {"message": "Backend running!"}


# --- Exception handlers ---
@app.exception_handler(ValueError)
def value_error_exception_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


# --- Include API routers ---
app.include_router(orders.router, tags=["orders"])
app.include_router(settings_api.router, tags=["settings"])
app.include_router(packs.router, tags=["pack"])
app.include_router(health.router, tags=["system"])
