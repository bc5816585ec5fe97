from flask import current_app, g, has_request_context, request

from ..extensions import db
from ..models import ADMIN_ACTION_TYPES, AdminLog

ACTION_VERBS = {
    "CREATE": "Created",
    "UPDATE": "Updated",
    "DELETE": "Deleted",
    "VIEW": "Viewed",
    "EXPORT": "Exported",
    "APPROVE": "Approved",
    "REJECT": "Rejected",
    "ACTIVATE": "Activated",
    "DEACTIVATE": "Deactivated",
    "BULK_OPERATION": "Bulk operation on",
}


def extract_request_info():
    """Client IP (first X-Forwarded-For hop, then X-Real-IP) and user agent."""
    if not has_request_context():
        return {"ip_address": None, "user_agent": None}

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.headers.get("X-Real-IP") or request.remote_addr
    return {
        "ip_address": ip_address,
        "user_agent": request.headers.get("User-Agent"),
    }


def create_change_details(before, after):
    before = before or {}
    after = after or {}
    changes = {}
    for key in sorted(set(before) | set(after)):
        if before.get(key) != after.get(key):
            changes[key] = {"from": before.get(key), "to": after.get(key)}

    details = {"before": before, "after": after}
    if changes:
        details["changes"] = changes
    return details


def get_action_description(action_type, resource_type, identifier=None):
    verb = ACTION_VERBS.get(action_type, action_type.title())
    description = f"{verb} {resource_type}"
    if identifier is not None and identifier != "":
        description += f' "{identifier}"'
    return description


def log_admin_action(
    user_id,
    action_type,
    resource_type,
    description,
    resource_id=None,
    details=None,
    ip_address=None,
    user_agent=None,
    metadata=None,
):
    """Write one audit entry. Never raises; returns the entry or None."""
    try:
        if action_type not in ADMIN_ACTION_TYPES:
            current_app.logger.warning(f"Unknown admin action type: {action_type}")
            return None

        entry = AdminLog(
            user_id=user_id,
            action_type=action_type,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            description=description[:500],
            details=details,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
            request_meta=metadata,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to write admin log ({action_type} {resource_type}): {e}")
        return None


def log_current_admin(
    action_type, resource_type, resource_id=None, identifier=None, details=None, description=None
):
    """Audit an action taken by ``g.current_user`` in the current request."""
    user = getattr(g, "current_user", None)
    info = extract_request_info()
    return log_admin_action(
        user_id=user.id if user else None,
        action_type=action_type,
        resource_type=resource_type,
        resource_id=resource_id,
        description=description
        or get_action_description(action_type, resource_type, identifier),
        details=details,
        ip_address=info["ip_address"],
        user_agent=info["user_agent"],
        metadata={"method": request.method, "path": request.path}
        if has_request_context()
        else None,
    )
