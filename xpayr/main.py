from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import dispatch, health
from .config import settings
from .core.dispatch.service import close_dispatch_service
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_dispatch_service()


# Create FastAPI app
app = FastAPI(
    title="xpayr dispatch API",
    description="USDC treasury rebalancing across merchant wallets over Circle CCTP",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(dispatch.router, tags=["Dispatch"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "xpayr dispatch API",
        "version": __version__,
        "network": settings.network,
        "docs": "/docs",
        "health": "/healthz",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "xpayr.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
