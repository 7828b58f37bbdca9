"""
Audit logging service for inventory-affecting actions.
"""
from backoffice.models.audit_log import AuditLog, AuditAction
from flask import request, has_request_context
from datetime import datetime
import json
import logging

logger = logging.getLogger(__name__)


def log_action(
    session,
    action: AuditAction,
    resource_type: str = None,
    resource_id: int = None,
    details: dict = None
):
    """
    Add an audit entry to the session.

    The caller owns the transaction: the entry is committed or rolled back
    together with the action it records.

    Args:
        session: Database session
        action: AuditAction enum value
        resource_type: Type of resource affected (e.g., 'purchase')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)
    """
    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = request.headers.get('User-Agent', '')[:255]

    details_json = None
    if details:
        details_json = json.dumps(details, default=str)

    audit_entry = AuditLog(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details_json,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=datetime.utcnow()
    )
    session.add(audit_entry)

    logger.info(f"Audit log created: {action.value} on {resource_type} {resource_id}")
    return audit_entry


def get_audit_logs(
    session,
    limit: int = 100,
    offset: int = 0,
    action_filter: AuditAction = None,
    resource_type_filter: str = None,
    resource_id_filter: int = None
):
    """
    Retrieve audit logs with optional filters, newest first.

    Returns:
        List of AuditLog objects
    """
    query = session.query(AuditLog)

    if action_filter:
        query = query.filter(AuditLog.action == action_filter)

    if resource_type_filter:
        query = query.filter(AuditLog.resource_type == resource_type_filter)

    if resource_id_filter is not None:
        query = query.filter(AuditLog.resource_id == resource_id_filter)

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    query = query.limit(limit).offset(offset)

    return query.all()
