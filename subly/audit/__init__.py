"""Audit logging package."""

from subly.audit.logger import AUDIT_TABLE, AuditLogger, create_correlation_id

__all__ = ["AUDIT_TABLE", "AuditLogger", "create_correlation_id"]
