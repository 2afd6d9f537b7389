"""
API v1 package initialization.

This module exposes the v1 routers of the CarSline workshop API.
"""

from carsline.api.v1.orders import router as orders_router

__all__ = ["orders_router"]
