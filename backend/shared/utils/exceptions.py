"""
HTTP exceptions raised by services and routers.

Every exception logs itself when built, with any keyword context, so routers
never have to log before raising. Details are user-facing (Spanish)::

    raise TableNotFoundError(table_id)
    raise InvalidTransitionError("Comanda", "PENDING", "READY", ticket_id=7)
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """Base for every application error; logs ``detail`` at ``log_level``."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        getattr(logger, log_level, logger.warning)(detail, status_code=status_code, **log_context)
        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404
# =============================================================================


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        detail = f"{entity} no encontrado" if entity_id is None else f"{entity} con ID {entity_id} no encontrado"
        super().__init__(
            status.HTTP_404_NOT_FOUND, detail, entity=entity, entity_id=entity_id, **log_context
        )


class TableNotFoundError(NotFoundError):
    """Missing or inactive table."""

    def __init__(self, table_id: int | None = None, **log_context: Any):
        super().__init__("Mesa", table_id, **log_context)


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: int | None = None, **log_context: Any):
        super().__init__("Sesión de mesa", session_id, **log_context)


class TicketNotFoundError(NotFoundError):
    def __init__(self, ticket_id: int | None = None, **log_context: Any):
        super().__init__("Comanda", ticket_id, **log_context)


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Pedido", order_id, **log_context)


# =============================================================================
# 403
# =============================================================================


class ForbiddenError(AppException):
    """
    The caller is authenticated but may not do this.

    ``action`` completes the sentence "No autorizado para ...".
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        detail = f"No autorizado para {action}" if action else "Acceso denegado"
        super().__init__(status.HTTP_403_FORBIDDEN, detail, action=action, **log_context)


class BranchAccessError(ForbiddenError):
    def __init__(self, branch_id: int | None = None, **log_context: Any):
        super().__init__("acceder a esta sucursal", branch_id=branch_id, **log_context)


class InsufficientRoleError(ForbiddenError):
    def __init__(self, required_roles: list[str], **log_context: Any):
        super().__init__(
            f"realizar esta acción (requiere rol: {', '.join(required_roles)})",
            required_roles=required_roles,
            **log_context,
        )


# =============================================================================
# 400
# =============================================================================


class ValidationError(AppException):
    """Bad input that pydantic could not catch (unknown status, empty order, ...)."""

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, **log_context)


class InvalidStateError(ValidationError):
    """The entity exists but its current state does not allow the operation."""

    def __init__(
        self,
        entity: str,
        current_state: str,
        expected_states: list[str] | None = None,
        **log_context: Any,
    ):
        if expected_states:
            detail = f"{entity} está en estado '{current_state}', se esperaba: {', '.join(expected_states)}"
        else:
            detail = f"{entity} no puede estar en estado '{current_state}' para esta operación"
        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


class InvalidTransitionError(ValidationError):
    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        super().__init__(
            f"Transición inválida de '{from_status}' a '{to_status}' para {entity}",
            entity=entity,
            from_status=from_status,
            to_status=to_status,
            **log_context,
        )


# =============================================================================
# 409 / 500
# =============================================================================


class ConflictError(AppException):
    """Lost a race against another request, e.g. two waiters opening one table."""

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(status.HTTP_409_CONFLICT, detail, **log_context)


class InternalError(AppException):
    def __init__(self, detail: str = "Error interno del servidor", **log_context: Any):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail, log_level="error", **log_context)
