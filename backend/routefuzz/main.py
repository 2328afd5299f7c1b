"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routefuzz.core.config import settings
from routefuzz.core.errors import RouteFuzzError
from routefuzz.core.logging import setup_logging
from routefuzz.core.middleware import MonitoringMiddleware, ErrorHandlingMiddleware
from routefuzz.core.monitoring import get_metrics
from routefuzz.api.v1.router import api_router

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Fuzz record generation for HTTP routes described by OpenAPI documents",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware (order matters - last added is first executed)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(MonitoringMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(RouteFuzzError)
async def routefuzz_error_handler(request: Request, exc: RouteFuzzError):
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_dict()})


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": settings.APP_NAME, "version": VERSION}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=get_metrics(), media_type="text/plain")
