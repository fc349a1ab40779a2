# audit.py -- Audit records for secrets authorization decisions.
# Builds one record per decision with the fields the audit collaborator
# stores, renders it as a pipe-separated line, and emits it through the
# structured logger. Persisting records is left to the log pipeline.

import datetime
from dataclasses import dataclass

import logs
from decisions import AuthorizationResult
from policy import SecretAction

logger = logs.get_logger("secrets_authz.audit")

EVENT_ACCESS = "AUDIT:SECRETS:ACCESS"
EVENT_BREAK_GLASS = "AUDIT:SECRETS:BREAKGLASS"
EVENT_DENIED = "AUDIT:SECRETS:DENIED"


@dataclass(frozen=True)
class AuditRecord:
    timestamp: str
    user_id: str | None
    principal_type: str
    resource: str
    action: str
    outcome: str
    is_break_glass: bool
    is_service_account: bool
    detail: str | None = None
    correlation_id: str | None = None

    @property
    def event(self) -> str:
        if self.outcome == "denied":
            return EVENT_DENIED
        if self.is_break_glass:
            return EVENT_BREAK_GLASS
        return EVENT_ACCESS


def build_record(
    result: AuthorizationResult,
    resource: str,
    action: SecretAction,
    correlation_id: str | None = None,
    now: datetime.datetime | None = None,
) -> AuditRecord:
    """Build the audit record for one decision.

    Args:
        result: The decision returned by the authorization service.
        resource: Secret name, or "category:{name}" for category requests.
        action: The requested action.
        correlation_id: Request correlation id, if the caller has one.
        now: Decision time; defaults to the current UTC time.

    Returns:
        The audit record.
    """
    timestamp = (now or datetime.datetime.now(datetime.timezone.utc)).isoformat()
    return AuditRecord(
        timestamp=timestamp,
        user_id=result.user_id,
        principal_type=result.principal_type,
        resource=resource,
        action=action.value,
        outcome="success" if result.is_authorized else "denied",
        is_break_glass=result.is_break_glass,
        is_service_account=result.is_service_account,
        detail=result.denial_reason,
        correlation_id=correlation_id,
    )


def format_record(record: AuditRecord) -> str:
    """Render a record as one line of pipe-separated fields.

    timestamp | user | principal_type | action | resource | outcome [| break-glass] [| detail]
    """
    line = (
        f"{record.timestamp} | {record.user_id or '-'} | {record.principal_type} | "
        f"{record.action} | {record.resource or '-'} | {record.outcome}"
    )
    if record.is_break_glass:
        line += " | break-glass"
    if record.detail:
        line += f" | {record.detail}"
    return line


def emit(record: AuditRecord) -> None:
    """Log the record: break-glass and denials at WARNING, other grants at INFO."""
    fields = {
        "user_id": record.user_id,
        "principal_type": record.principal_type,
        "resource": record.resource,
        "action": record.action,
        "outcome": record.outcome,
        "is_break_glass": record.is_break_glass,
        "is_service_account": record.is_service_account,
        "correlation_id": record.correlation_id,
        "audit_timestamp": record.timestamp,
    }
    if record.detail:
        fields["reason"] = record.detail

    if record.outcome == "denied" or record.is_break_glass:
        logger.warning(record.event, **fields)
    else:
        logger.info(record.event, **fields)
