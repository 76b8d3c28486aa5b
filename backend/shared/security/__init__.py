"""
Security module: authentication, password hashing, rate limiting.
"""

from shared.security.auth import (
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    current_user_context,
    optional_user_context,
    user_id_of,
    require_roles,
    require_branch,
    sign_table_order_token,
    verify_table_order_token,
    optional_table_context,
)
from shared.security.password import hash_password, verify_password
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    # auth
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_user_context",
    "optional_user_context",
    "user_id_of",
    "require_roles",
    "require_branch",
    "sign_table_order_token",
    "verify_table_order_token",
    "optional_table_context",
    # password
    "hash_password",
    "verify_password",
    # rate_limit
    "limiter",
    "rate_limit_exceeded_handler",
]
