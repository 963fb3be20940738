import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from extracto.config import settings
from extracto.middleware import RequestSizeLimitMiddleware, limiter
from extracto.routes import health, statements
from extracto.services.analysis import StatementAnalyzer

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    app.state.analyzer = StatementAnalyzer(settings)
    yield
    # Shutdown - cleanup SDK clients
    await app.state.analyzer.close()


app = FastAPI(
    title="Extracto API",
    description="Text extraction, normalization and redaction for bank statements",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiter state (required by slowapi)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Upload size limit middleware (prevents memory exhaustion)
app.add_middleware(RequestSizeLimitMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(statements.router, prefix="/api/statements", tags=["statements"])
app.include_router(health.router, prefix="/api/health", tags=["health"])
