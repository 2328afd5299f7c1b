"""
API v1 router.
"""
from fastapi import APIRouter

from routefuzz.api.v1.endpoints import (
    corpus,
    generate,
    execute,
)

api_router = APIRouter()

api_router.include_router(corpus.router, prefix="/corpus", tags=["corpus"])
api_router.include_router(generate.router, prefix="/generate", tags=["generate"])
api_router.include_router(execute.router, prefix="/execute", tags=["execute"])
