import json
from flask import g, has_request_context, request
from models import db
from models.audit_log import AuditLog

def _request_origin():
    ctx = getattr(g, "ctx", None) if has_request_context() else None
    if ctx is not None:
        return ctx.ip, ctx.user_agent
    if has_request_context():
        return request.remote_addr, request.headers.get("User-Agent", "")
    return None, None

def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None):
    ip, user_agent = _request_origin()

    row = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata) if metadata else None
    )
    db.session.add(row)
    db.session.commit()
