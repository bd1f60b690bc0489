"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import earnings, holdings, portfolios, sync, transactions
from config import settings
from database import Base, get_engine, get_session_local
from logging_config import setup_logging
from models import User

setup_logging()
logger = logging.getLogger(__name__)


def ensure_default_user(db) -> User:
    """Create the single-user-mode default user if it does not exist."""
    user = db.get(User, settings.DEFAULT_USER_ID)
    if user is None:
        user = User(
            id=settings.DEFAULT_USER_ID,
            email=settings.DEFAULT_USER_EMAIL,
            name=settings.DEFAULT_USER_NAME,
        )
        db.add(user)
        db.commit()
        logger.info("Created default user %s", settings.DEFAULT_USER_EMAIL)
    return user


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the default user on startup."""
    Base.metadata.create_all(bind=get_engine())
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        ensure_default_user(db)
    except Exception:
        logger.warning("Default user seeding failed on startup", exc_info=True)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Crypto Portfolio Tracker",
    description="Binance-synced crypto holdings, transactions and earn positions",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:4200"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(portfolios.router)
app.include_router(holdings.router)
app.include_router(transactions.router)
app.include_router(sync.router)
app.include_router(earnings.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
