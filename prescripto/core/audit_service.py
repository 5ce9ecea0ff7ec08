from sqlalchemy.orm import Session
from typing import Optional, Dict, Any

from .audit_models import AuditLog

def record_audit_entry(
    db: Session,
    action: str,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Adds an audit log entry to the current transaction.

    The entry is not committed here; it is written together with the change
    it describes, so a rolled back change leaves no audit row behind.

    Args:
        db: The database session.
        action: A string describing the action performed (e.g., 'PRESCRIPTION_CREATED').
        user_id: The ID of the user who performed the action (if applicable).
        ip_address: Address of the client that made the request (if available).
        details: A dictionary containing additional context or data related to the action.

    Returns:
        The pending AuditLog object.
    """
    audit_entry = AuditLog(
        user_id=user_id,
        action=action,
        ip_address=ip_address,
        details=details
    )
    db.add(audit_entry)
    return audit_entry

def get_audit_entries(db: Session, action: Optional[str] = None, limit: int = 100):
    """
    Get the most recent audit entries, optionally filtered by action.

    Args:
        db: The database session.
        action: Only return entries with this action name.
        limit: Maximum number of entries.

    Returns:
        List of AuditLog objects, newest first.
    """
    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.id.desc()).limit(limit).all()
