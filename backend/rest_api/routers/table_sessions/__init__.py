"""
Table session routers - /api/table-sessions/*
"""

from .routes import router

__all__ = ["router"]
