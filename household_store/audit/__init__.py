"""Audit logging package."""

from household_store.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
