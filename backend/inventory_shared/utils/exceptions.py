"""
Centralized HTTP exceptions for consistent error handling.

Usage:
    from inventory_shared.utils.exceptions import NotFoundError, BranchAccessError, ValidationError

    raise NotFoundError("Product", product_id)
    raise BranchAccessError(branch_id, user_id=user.id)
    raise ValidationError("At least one branch must be selected", field="branch_ids")
"""

from fastapi import HTTPException, status
from typing import Any

from inventory_shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        errors: dict[str, list[str]] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.detail}
        if self.errors:
            body["errors"] = self.errors
        return body


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Product", 123)
        raise NotFoundError("Branch", branch_id, tenant_id=tenant_id)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("delete products")
        raise ForbiddenError("view all branches", user_id=user_id)
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not authorized to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class BranchAccessError(ForbiddenError):
    """User doesn't have access to the branch."""

    def __init__(self, branch_id: int | None = None, **log_context: Any):
        super().__init__("access this branch", branch_id=branch_id, **log_context)


class InsufficientRoleError(ForbiddenError):
    """User doesn't have the required role."""

    def __init__(self, required_roles: list[str], **log_context: Any):
        roles_str = ", ".join(required_roles)
        super().__init__(
            f"perform this action (requires role: {roles_str})",
            required_roles=required_roles,
            **log_context,
        )


# =============================================================================
# 422 Validation Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (422) carrying a field-keyed error map.

    Usage:
        raise ValidationError("Invalid branch selected", field="branch_ids")
        raise ValidationError("The given data was invalid.", errors={"sku": ["..."]})
    """

    def __init__(
        self,
        detail: str,
        field: str | None = None,
        errors: dict[str, list[str]] | None = None,
        **log_context: Any,
    ):
        if errors is None and field is not None:
            errors = {field: [detail]}

        super().__init__(
            status_code=422,
            detail=detail,
            log_level="warning",
            errors=errors,
            field=field,
            **log_context,
        )


class DuplicateEntityError(ValidationError):
    """Entity already exists."""

    def __init__(self, entity: str, field: str, identifier: str | None = None, **log_context: Any):
        if identifier:
            detail = f"{entity} with {field} '{identifier}' already exists"
        else:
            detail = f"{entity} already exists"

        super().__init__(detail, field=field, entity=entity, identifier=identifier, **log_context)


class BranchRemovalError(ValidationError):
    """
    A branch assignment cannot be removed from a product.

    When the refusal is about stock left in the branch, ``current_stock``
    is reported next to the branch error.
    """

    def __init__(
        self,
        detail: str,
        branch_id: int,
        product_id: int,
        current_stock: int | None = None,
        **log_context: Any,
    ):
        errors = {"branch_id": [detail]}
        if current_stock is not None:
            errors["current_stock"] = [str(current_stock)]

        super().__init__(
            detail,
            errors=errors,
            branch_id=branch_id,
            product_id=product_id,
            current_stock=current_stock,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    The detail is always generic; the cause is only logged server side.
    The request id is returned so the client can quote it.

    Usage:
        raise InternalError("Failed to update product", request_id=get_request_id(), product_id=123)
    """

    def __init__(
        self,
        detail: str = "Internal server error",
        request_id: str | None = None,
        **log_context: Any,
    ):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            request_id=request_id,
            **log_context,
        )
        self.request_id = request_id

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.request_id:
            body["request_id"] = self.request_id
        return body
