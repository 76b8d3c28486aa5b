"""
Shared module for code used by both the REST API and the WS Gateway.

- shared.config: settings (pydantic-settings), structured logging, constants
- shared.infrastructure: SQLAlchemy sessions, Redis realtime events, correlation ids
- shared.security: staff JWT, table order tokens, bcrypt, rate limiting
- shared.utils: HTTP exceptions and Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import current_user_context, require_roles
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Roles, TableStatus
    from shared.utils.exceptions import NotFoundError, ValidationError
"""
