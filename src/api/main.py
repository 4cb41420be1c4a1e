"""FastAPI application entry-point for the FX Treasury API.

Configures logging, CORS and rate limiting, and mounts all route modules.
Run with:  uvicorn src.api.main:app --reload --host 0.0.0.0 --port 8000
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from src.api.deps import get_context
from src.api.routes import audit, hedges, health, positions, rates, resets, routing, trades
from src.core.config import settings
from src.core.utils.logging_config import configure_logging, get_logger

configure_logging(debug=settings.debug, json_logs=settings.log_json)
logger = get_logger(__name__, component="api")


# ---------------------------------------------------------------------------
# Lifespan -- run once at startup / shutdown
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the seeded treasury context before serving the first request."""
    ctx = get_context()
    logger.info(
        "api_started",
        config_version=ctx.store.current.version,
        trades=len(ctx.blotter.trades),
    )
    yield
    logger.info("api_stopped")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
openapi_tags = [
    {"name": "Health", "description": "Health check endpoints"},
    {"name": "Routing", "description": "Direct vs exotic pair configuration"},
    {"name": "Trade Blotter", "description": "Trade booking and USD decomposition"},
    {"name": "Positions", "description": "Positions per currency and liquidity provider"},
    {"name": "Market Rates", "description": "Quotes used for USD conversion and MTM"},
    {"name": "Manual Hedges", "description": "Hedge entry with dual authorisation"},
    {"name": "Position Resets", "description": "Two-level position reset approvals"},
    {"name": "Audit Trail", "description": "Append-only audit events"},
]

app = FastAPI(
    title="FX Treasury API",
    version="0.1.0",
    description=(
        "REST API for the FX Treasury engine. Serves the direct-trading "
        "configuration, decomposed trades, positions, hedges, resets and the audit trail."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=openapi_tags,
)

# Rate limiting
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.api_rate_limit])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------
_allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8000",
]
if settings.allowed_origins:
    _allowed_origins.extend(
        o.strip() for o in settings.allowed_origins.split(",") if o.strip()
    )
if settings.debug:
    _allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
# All endpoints sit under /api/v1
app.include_router(health.router, prefix="/api/v1")
app.include_router(routing.router, prefix="/api/v1")
app.include_router(trades.router, prefix="/api/v1")
app.include_router(positions.router, prefix="/api/v1")
app.include_router(rates.router, prefix="/api/v1")
app.include_router(hedges.router, prefix="/api/v1")
app.include_router(resets.router, prefix="/api/v1")
app.include_router(audit.router, prefix="/api/v1")
