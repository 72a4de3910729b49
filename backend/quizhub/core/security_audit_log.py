from __future__ import annotations

import json
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from quizhub.core.rate_limit import client_ip
from quizhub.models.security_audit import SecurityAuditEvent

logger = logging.getLogger("quizhub.audit")


def request_id(request: Request) -> str | None:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    rid = str(rid or "").strip()
    return rid or None


def audit_log(
    *,
    db: Session,
    request: Request,
    event_type: str,
    actor_user_id=None,
    resource_type: str | None = None,
    resource_id=None,
    meta: dict | str | None = None,
) -> None:
    """Stage an audit event on ``db``; the caller's commit persists it."""
    if isinstance(meta, dict):
        meta_str = json.dumps(meta, ensure_ascii=False, default=str)
    elif isinstance(meta, str):
        meta_str = meta
    else:
        meta_str = None

    db.add(
        SecurityAuditEvent(
            actor_user_id=actor_user_id,
            event_type=str(event_type),
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            meta=meta_str,
            request_id=request_id(request),
            ip=client_ip(request),
        )
    )
    logger.info("%s actor=%s %s=%s", event_type, actor_user_id, resource_type or "resource", resource_id)
