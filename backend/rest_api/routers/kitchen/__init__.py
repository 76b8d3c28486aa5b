"""
Kitchen routers - /api/admin/kitchen-tickets/*
Handles kitchen ticket listing and status updates by station.
"""

from .tickets import router as tickets_router

__all__ = ["tickets_router"]
