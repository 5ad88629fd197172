"""
Audit logging service.
Records catalog changes in the same transaction as the change itself.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from inventory_api.models import AuditLog, User


def log_change(
    db: Session,
    *,
    tenant_id: int,
    user_id: Optional[int],
    user_email: Optional[str],
    entity_type: str,
    entity_id: int,
    action: str,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
) -> AuditLog:
    """
    Log a change to an entity.

    Args:
        db: Database session
        tenant_id: Tenant ID
        user_id: User who made the change
        user_email: Email of user who made the change
        entity_type: Type of entity (e.g., "product")
        entity_id: ID of the entity
        action: Action performed (CREATE, UPDATE, DELETE)
        old_values: Previous state of the entity (for UPDATE/DELETE)
        new_values: New state of the entity (for CREATE/UPDATE)

    Returns:
        Created AuditLog entry
    """
    changes = None
    if action == "UPDATE" and old_values and new_values:
        changes = {}
        for key in set(old_values.keys()) | set(new_values.keys()):
            old_val = old_values.get(key)
            new_val = new_values.get(key)
            if old_val != new_val:
                changes[key] = {"old": old_val, "new": new_val}

    audit_entry = AuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        user_email=user_email,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        old_values=json.dumps(old_values) if old_values else None,
        new_values=json.dumps(new_values) if new_values else None,
        changes=json.dumps(changes) if changes else None,
    )

    db.add(audit_entry)
    # Don't commit here - let the caller handle the transaction
    return audit_entry


def serialize_model(obj: Any, exclude: list[str] | None = None) -> dict:
    """
    Serialize a SQLAlchemy model to a JSON-safe dictionary for audit logging.
    """
    exclude = exclude or []

    result = {}
    for column in obj.__table__.columns:
        if column.name in exclude:
            continue
        value = getattr(obj, column.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = str(value)
        result[column.name] = value

    return result


def log_create(db: Session, user: User, entity_type: str, entity: Any, **extra: Any) -> AuditLog:
    """Log entity creation."""
    return log_change(
        db,
        tenant_id=entity.tenant_id,
        user_id=user.id,
        user_email=user.email,
        entity_type=entity_type,
        entity_id=entity.id,
        action="CREATE",
        new_values={**serialize_model(entity), **extra},
    )


def log_update(
    db: Session,
    user: User,
    entity_type: str,
    entity: Any,
    old_values: dict,
    **extra: Any,
) -> AuditLog:
    """Log entity update."""
    return log_change(
        db,
        tenant_id=entity.tenant_id,
        user_id=user.id,
        user_email=user.email,
        entity_type=entity_type,
        entity_id=entity.id,
        action="UPDATE",
        old_values=old_values,
        new_values={**serialize_model(entity), **extra},
    )


def log_delete(db: Session, user: User, entity_type: str, entity: Any) -> AuditLog:
    """Log entity deletion."""
    return log_change(
        db,
        tenant_id=entity.tenant_id,
        user_id=user.id,
        user_email=user.email,
        entity_type=entity_type,
        entity_id=entity.id,
        action="DELETE",
        old_values=serialize_model(entity),
    )
