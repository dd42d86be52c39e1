"""Persistence — append-only event log and the audit emitter that feeds it."""

from ecoflow.persistence.audit import AuditEmitter
from ecoflow.persistence.event_log import EventKind, EventLog, EventRecord

__all__ = ["AuditEmitter", "EventKind", "EventLog", "EventRecord"]
