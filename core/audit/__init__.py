from core.audit.models import AuditEntry, AuditKind, INBOUND_KINDS, OUTBOUND_KINDS
from core.audit.trail import AuditFilter, AuditTrail

__all__ = [
    "AuditEntry",
    "AuditFilter",
    "AuditKind",
    "AuditTrail",
    "INBOUND_KINDS",
    "OUTBOUND_KINDS",
]
