import json
import hashlib
import logging
from datetime import datetime
from typing import Optional, Dict, Any

from ...application.ports.audit_logger import AuditLogger


def hash_identifier(value: str) -> str:
    """One-way hash for emails and phone numbers in audit records."""
    return hashlib.sha256(value.strip().lower().encode()).hexdigest()


class StdAuditLogger(AuditLogger):
    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def log(self, action: str, subject: str, user_id: Optional[str] = None, request_id: Optional[str] = None, ip_address: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "action": action,
            "subject_hash": hash_identifier(subject),
            "user_id": user_id,
            "request_id": request_id,
            "ip_address": ip_address,
            "success": success,
            "details": details or {},
        }
        self._logger.info(f"AUDIT: {json.dumps(entry, default=str)}")
