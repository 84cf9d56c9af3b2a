from .logging_audit_sink import AUDIT_LOGGER, LoggingAuditSink

__all__ = ["AUDIT_LOGGER", "LoggingAuditSink"]
