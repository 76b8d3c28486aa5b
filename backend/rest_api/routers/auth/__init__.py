"""
Authentication routers - /api/auth/*
Handles login and user info.
"""

from .routes import router

__all__ = ["router"]
