from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from shopbooks.config import get_settings
from shopbooks.database import engine, Base
from shopbooks.api import products, sales, debts, expenses, health
from shopbooks.services.exceptions import ConflictError, PersistenceError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    logger.info("Starting up application...")

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    yield

    logger.info("Shutting down application...")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Bookkeeping backend for small shops: inventory, sales, customer debts and
    expenses, for one or more shops owned by the same operator.

    ## Features

    ### Stock & Debt Ledger
    Recording a sale or a product loan decrements stock and writes the
    financial record in one transaction. Paying against a debt appends a
    payment, reduces the balance and books the recovered cash as a
    zero-quantity sale, also in one transaction.

    ### Concurrency
    Stock and debt balances are guarded by row locks (PostgreSQL
    `SELECT FOR UPDATE`) and version counters. Conflicting writers are
    retried a bounded number of times; two sales that together exceed the
    stock on hand never both succeed.

    ### Background Processing
    Celery workers check low-stock thresholds and announce settled debts
    after the ledger transaction has committed.

    ### Caching
    Product details are cached in Redis and invalidated on every stock change.
    """,
    version="1.0.0",
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT"
    },
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    """Contention outlasted the retry budget; the client may retry."""
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_handler(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(sales.router, prefix="/api/v1")
app.include_router(debts.router, prefix="/api/v1")
app.include_router(expenses.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/v1/health"
    }
