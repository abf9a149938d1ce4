"""API Routes - Domain-based routing"""

from .connection import router as connection_router
from .model import router as model_router

__all__ = [
    'connection_router',
    'model_router',
]
