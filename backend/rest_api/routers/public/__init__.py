"""
Public routers - No staff authentication required.
- /api/public/tables/* - QR table view and ordering
- /api/health - Health check
"""

from .health import router as health_router
from .tables import router as tables_router

__all__ = ["health_router", "tables_router"]
