"""Authentication audit trail and client identification."""

import json
import logging
from typing import Optional

from fastapi import Request

from models.auth_audit import AuthAuditLog
from services.stores import _Store

logger = logging.getLogger(__name__)

# Checked in order; the first header present wins
_CLIENT_IP_HEADERS = ("X-Forwarded-For", "X-Vercel-Forwarded-For", "X-Real-IP")


class AuditService(_Store):
    """Service for logging authentication events, under the store timeout."""

    async def log(
        self,
        action: str,
        user_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> AuthAuditLog:
        """Log an authentication event (flushed, committed by the caller)."""
        log_entry = AuthAuditLog(
            user_id=user_id,
            action=action,
            ip_address=ip_address[:45] if ip_address else None,
            user_agent=user_agent[:500] if user_agent else None,
            success=success,
            error_message=error_message,
            metadata_json=json.dumps(metadata) if metadata else None,
        )
        self.db.add(log_entry)
        await self._run("log", self.db.flush())
        return log_entry


def get_client_info(request: Request) -> tuple[str, str]:
    """Extract client IP and User-Agent from request."""
    ip_address = None
    for header in _CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            # X-Forwarded-For may hold a proxy chain; the client is first
            ip_address = value.split(",")[0].strip()
            if ip_address:
                break
    if not ip_address:
        ip_address = request.client.host if request.client else "unknown"

    user_agent = request.headers.get("User-Agent", "unknown")

    return ip_address, user_agent
