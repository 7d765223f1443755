"""
app/api/routers package marker.
"""

from app.api.routers.analysis import router as analysis_router
from app.api.routers.settings import router as settings_router

__all__ = [
    "analysis_router",
    "settings_router",
]
