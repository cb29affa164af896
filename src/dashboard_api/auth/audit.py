"""Access audit records.

Every gate decision is written as one JSON line to the
``dashboard_api.audit`` logger: WARNING for denials, INFO otherwise.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

audit_logger = logging.getLogger("dashboard_api.audit")


@dataclass
class AccessAuditRecord:
    """Structured record of one authorization decision."""

    timestamp: datetime
    decision: str
    tenant_key: Optional[str]
    tenant_id: Optional[str]
    subject: Optional[str]
    email: Optional[str]
    reason: Optional[str] = None

    @classmethod
    def create(
        cls,
        decision: str,
        tenant_key: Optional[str],
        tenant_id: Optional[str] = None,
        subject: Optional[str] = None,
        email: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> "AccessAuditRecord":
        return cls(
            timestamp=datetime.now(timezone.utc),
            decision=decision,
            tenant_key=tenant_key,
            tenant_id=tenant_id,
            subject=subject,
            email=email,
            reason=reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary with ISO timestamp."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "decision": self.decision,
            "tenant_key": self.tenant_key,
            "tenant_id": self.tenant_id,
            "subject": self.subject,
            "email": self.email,
            "reason": self.reason,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def log_access(record: AccessAuditRecord) -> None:
    if record.decision == "deny":
        audit_logger.warning(record.to_json())
    else:
        audit_logger.info(record.to_json())
