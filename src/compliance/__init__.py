"""Compliance and audit module."""
from src.compliance.audit import AuditEvent, AuditLog

__all__ = ["AuditEvent", "AuditLog"]
