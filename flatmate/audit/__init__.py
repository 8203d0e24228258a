"""
Audit Package

Provides audit logging for all household mutations.
"""

from flatmate.audit.logger import (
    AuditLogger,
    configure_log_level,
    create_correlation_id,
)

__all__ = [
    "AuditLogger",
    "configure_log_level",
    "create_correlation_id",
]
