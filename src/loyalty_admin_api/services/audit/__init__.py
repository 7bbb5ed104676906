"""Audit service exports."""

from .audit_service import AuditEntry, AuditService, record_best_effort  # noqa: F401
