"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from rest_api.core import configure_cors, lifespan, register_middlewares
from rest_api.routers.admin import router as admin_router
from rest_api.routers.auth import router as auth_router
from rest_api.routers.kitchen import tickets_router as kitchen_tickets_router
from rest_api.routers.public import health_router, tables_router as public_tables_router
from rest_api.routers.table_sessions import router as table_sessions_router
from rest_api.routers.tables import router as tables_router
from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler


app = FastAPI(
    title="Dine-in REST API",
    description="Table sessions, dine-in orders and kitchen ticket routing",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

register_middlewares(app)
configure_cors(app)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(public_tables_router)
app.include_router(tables_router)
app.include_router(table_sessions_router)
app.include_router(kitchen_tickets_router)
app.include_router(admin_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=True,
    )
