"""Persistent audit trail for extraction and feedback events."""

from __future__ import annotations

from ctigraph.logging.audit_logger import AuditLogger

__all__ = ["AuditLogger"]
